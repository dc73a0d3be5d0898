"""
Test configuration and fixtures for spherical k-means feature tests.

Provides small synthetic RGB images, an in-memory image source and shared
assertion helpers.
"""

import numpy as np
import pytest

from spherical_kmeans import ArrayImageSource, FeatureConfig, Row


@pytest.fixture
def random_seed():
    """Fixed random seed for reproducible tests."""
    return 42


@pytest.fixture
def image_size():
    """Side length of the synthetic images; tiles the small_config grid."""
    return 10


@pytest.fixture
def small_config():
    """
    Small but valid configuration for 10×10 images.

    Grid: 1 + (10 - 4) / 2 = 4 patches per dimension, 2×2 pools,
    so 4 pools and 4 · n_atoms features.
    """
    return FeatureConfig(seed=0, crop_size=4, patches_per_image=10, n_atoms=8,
                         stride=2, pool_size=2)


def make_images(n_images, size, seed=0):
    """Random RGB images with smooth gradients plus noise, as uint8."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:size, 0:size]
    images = []
    for _ in range(n_images):
        angle = rng.uniform(0, 2 * np.pi)
        ramp = np.cos(angle) * xx + np.sin(angle) * yy
        base = 128 + 100 * np.sin(ramp / max(size / 4, 1))
        channels = [base * rng.uniform(0.5, 1.0) + rng.normal(0, 20, (size, size))
                    for _ in range(3)]
        img = np.clip(np.stack(channels, axis=2), 0, 255).astype(np.uint8)
        images.append(img)
    return images


def constant_image(size, color):
    img = np.zeros((size, size, 3), dtype=np.uint8)
    img[:, :] = color
    return img


@pytest.fixture
def images(image_size, random_seed):
    return make_images(12, image_size, seed=random_seed)


@pytest.fixture
def image_source(images):
    return ArrayImageSource({f"img{i}": img for i, img in enumerate(images)})


@pytest.fixture
def rows(images):
    return [Row(f"img{i}", label=f"class{i % 3}", weight=1.0 + i)
            for i in range(len(images))]


@pytest.fixture
def whitened_patches(random_seed):
    """Gaussian data with correlated coordinates standing in for whitened patches."""
    rng = np.random.default_rng(random_seed)
    mixing = rng.standard_normal((12, 12))
    return mixing @ rng.standard_normal((12, 300))


def assert_dictionary_normalized(dictionary, tolerance=1e-10):
    """Assert that all non-degenerate dictionary atoms have unit norm."""
    atom_norms = np.linalg.norm(dictionary, axis=0)
    nonzero = atom_norms > 0
    np.testing.assert_allclose(atom_norms[nonzero], 1.0, atol=tolerance,
                               err_msg="Dictionary atoms must be unit normalized")


def assert_top1_assignment(S, P):
    """Each column of S holds only the max-|·| entry of the projections P."""
    nonzero = np.count_nonzero(S, axis=0)
    assert np.all(nonzero <= 1), f"Columns with several nonzeros: {np.flatnonzero(nonzero > 1)}"
    cols = np.arange(P.shape[1])
    rows = np.argmax(np.abs(S), axis=0)
    np.testing.assert_allclose(S[rows, cols], P[rows, cols], rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(np.abs(S).max(axis=0), np.abs(P).max(axis=0),
                               rtol=1e-12, atol=1e-12)
