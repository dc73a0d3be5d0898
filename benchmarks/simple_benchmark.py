#!/usr/bin/env python3
"""
Simple performance benchmark for spherical k-means feature extraction.

Times dictionary learning and feature extraction on synthetic images.
"""

import sys
import time
from pathlib import Path

# Add the repository root to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
from spherical_kmeans import ArrayImageSource, FeatureConfig, Row, fit, transform


def make_source(n_images, size, seed=42):
    rng = np.random.default_rng(seed)
    images = rng.integers(0, 256, (n_images, size, size, 3), dtype=np.uint8)
    source = ArrayImageSource({f"img{i}": img for i, img in enumerate(images)})
    return [Row(f"img{i}") for i in range(n_images)], source


def test_basic_performance():
    """Time fit and transform for a few dictionary sizes."""
    print("🚀 Simple Spherical K-Means Benchmark")
    print("=" * 50)

    rows, source = make_source(200, 32)
    print(f"Test data: {len(rows)} images of 32×32")

    results = {}
    for n_atoms in (16, 64, 256):
        print(f"\n--- Dictionary size: {n_atoms} ---")
        cfg = FeatureConfig(seed=0, crop_size=8, patches_per_image=20, n_atoms=n_atoms,
                            stride=4, pool_size=7)

        start_time = time.time()
        dictionary = fit(rows, cfg, source)
        fit_time = time.time() - start_time

        start_time = time.time()
        table = transform(rows, dictionary, source)
        transform_time = time.time() - start_time

        results[n_atoms] = {
            'fit_time': fit_time,
            'transform_time': transform_time,
            'n_iter': dictionary.history.n_iter,
            'shape': table.features.shape,
        }
        print(f"  Dictionary learning: {fit_time:.2f}s ({dictionary.history.n_iter} iterations)")
        print(f"  Feature extraction: {transform_time:.2f}s")
        print(f"  Features shape: {table.features.shape}")

    print("\n" + "=" * 50)
    print("📊 SUMMARY")
    print("=" * 50)
    for n_atoms, r in results.items():
        per_image = 1000 * r['transform_time'] / len(rows)
        print(f"K={n_atoms:4d}: fit {r['fit_time']:.2f}s, {per_image:.2f} ms/image")
    return results


def test_scalability():
    """Time extraction across image sizes with a fixed grid configuration."""
    print(f"\n{'=' * 50}")
    print("📏 SCALABILITY TEST")
    print("=" * 50)

    # 1 + (size - 8) / 4 patches per side, always divisible by 2
    for size in (12, 20, 28, 36):
        rows, source = make_source(50, size)
        cfg = FeatureConfig(crop_size=8, patches_per_image=10, n_atoms=32, stride=4,
                            pool_size=2)
        start_time = time.time()
        table = transform(rows, fit(rows, cfg, source), source)
        total_time = time.time() - start_time
        print(f"  {size}×{size}: {total_time:.2f}s, {table.features.shape[1]} features")


if __name__ == "__main__":
    test_basic_performance()
    test_scalability()
