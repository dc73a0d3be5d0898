#!/usr/bin/env python3
"""
Basic Feature Extraction Example

Learns a spherical k-means dictionary from synthetic textured images, then
turns every image into a pooled feature vector and saves the learned atoms as
an image mosaic.
"""

from pathlib import Path
import sys

import numpy as np
from PIL import Image

# Add spherical_kmeans to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from spherical_kmeans import (
    ArrayImageSource, FeatureConfig, Row, fit, save_dictionary, transform,
)


def generate_textured_images(n_images: int = 60, size: int = 32, seed: int = 0):
    """
    Random RGB images built from oriented sinusoidal gratings plus noise.

    Each image gets one of three orientations, used as its label.
    """
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:size, 0:size]
    images, labels = [], []
    for i in range(n_images):
        label = i % 3
        angle = label * np.pi / 3 + rng.normal(0, 0.1)
        grating = np.sin((np.cos(angle) * xx + np.sin(angle) * yy) * 2 * np.pi / 6)
        tint = rng.uniform(0.4, 1.0, size=3)
        img = 128 + 90 * grating[:, :, np.newaxis] * tint + rng.normal(0, 15, (size, size, 3))
        images.append(np.clip(img, 0, 255).astype(np.uint8))
        labels.append(f"orientation{label}")
    return images, labels


def atom_mosaic(dictionary, n_cols: int = 8, scale: int = 4) -> Image.Image:
    """Tile the atoms (rescaled to 0..255 each) into one RGB image."""
    blocks = dictionary.atom_images()
    K, c = blocks.shape[0], blocks.shape[1]
    n_rows = int(np.ceil(K / n_cols))
    mosaic = np.zeros((n_rows * (c + 1), n_cols * (c + 1), 3), dtype=np.uint8)
    for k, block in enumerate(blocks):
        lo, hi = block.min(), block.max()
        tile = (block - lo) / (hi - lo) if hi > lo else np.zeros_like(block)
        r, q = divmod(k, n_cols)
        mosaic[r * (c + 1):r * (c + 1) + c, q * (c + 1):q * (c + 1) + c] = tile * 255
    img = Image.fromarray(mosaic)
    return img.resize((img.width * scale, img.height * scale), Image.NEAREST)


def main():
    """Run basic feature extraction example"""

    print("🌟 Basic Feature Extraction Example")
    print("==================================")

    config = FeatureConfig(seed=42, crop_size=6, patches_per_image=40, n_atoms=32,
                           stride=2, pool_size=2)
    print("Parameters:")
    for name, value in config.model_dump().items():
        print(f"  - {name}: {value}")

    print("\n📊 Generating images...")
    images, labels = generate_textured_images()
    source = ArrayImageSource({f"img{i}": img for i, img in enumerate(images)})
    rows = [Row(f"img{i}", label) for i, label in enumerate(labels)]
    print(f"Generated {len(images)} images of size {images[0].shape}")

    print("\n🚀 Learning dictionary...")
    dictionary = fit(rows, config, source)
    history = dictionary.history
    print(f"Iterations: {history.n_iter} (converged: {history.converged})")
    print(f"Final SSE: {history.sse[-1]:.4f}")

    print("\n🎯 Extracting features...")
    table = transform(rows, dictionary, source)
    print(f"Feature table shape: {table.features.shape}")
    print(f"Fraction of active features: {np.mean(table.features > 0):.3f}")

    output_dir = Path("feature_extraction_results")
    save_dictionary(dictionary, output_dir / "dictionary", metadata={"dataset": "gratings"})
    table.to_csv(output_dir / "features.csv")
    atom_mosaic(dictionary).save(output_dir / "atoms.png")

    print("\n✅ Feature extraction example completed!")
    print(f"Results saved to: {output_dir.absolute()}")


if __name__ == "__main__":
    main()
