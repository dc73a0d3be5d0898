"""
Patch sampling and per-patch contrast normalization.

A c×c RGB patch is flattened channel-major: the c² red samples in row-major
order, then the green samples, then the blue ones, giving a vector of length
L = 3·c². Patch matrices hold one such vector per column.

Contrast normalization (Coates, Lee & Ng 2011) centers each patch on its own
mean and divides by a regularized standard deviation:

    v ← (v − mean(v)) / sqrt(‖v − mean(v)‖² / L + ε),   ε = 10

ε keeps near-constant patches from being blown up into noise.
"""

from __future__ import annotations
import logging
from typing import Iterable, Sequence

import numpy as np

logger = logging.getLogger(__name__)


def flatten_patch(image: np.ndarray, x: int, y: int, crop_size: int) -> np.ndarray:
    """Cut the crop at column ``x``, row ``y`` and flatten it channel-major."""
    patch = image[y:y + crop_size, x:x + crop_size, :3]
    if patch.shape[:2] != (crop_size, crop_size):
        raise ValueError(
            f"Patch at (x={x}, y={y}) of size {crop_size} exceeds image shape {image.shape}")
    return np.ascontiguousarray(patch.transpose(2, 0, 1), dtype=np.float64).reshape(-1)


def contrast_normalize(X: np.ndarray, eps: float = 10.0) -> np.ndarray:
    """Contrast-normalize every column of X; returns a new array."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2D patch matrix, got shape {X.shape}")
    L = X.shape[0]
    centered = X - X.mean(axis=0, keepdims=True)
    scale = 1.0 / np.sqrt(np.sum(centered * centered, axis=0, keepdims=True) / L + eps)
    return centered * scale


def patch_matrix(image: np.ndarray, offsets: Iterable, crop_size: int,
                 eps: float = 10.0) -> np.ndarray:
    """Stack the normalized patches at the given (x, y) offsets as columns."""
    cols = [flatten_patch(image, x, y, crop_size) for x, y in offsets]
    if not cols:
        return np.zeros((3 * crop_size * crop_size, 0))
    return contrast_normalize(np.stack(cols, axis=1), eps=eps)


class PatchSampler:
    """
    Draw random training patches from a batch of equally sized images.

    Args:
        crop_size: side length c of each square patch
        patches_per_image: number of patches p drawn from every image
        eps: contrast normalization regularizer
    """

    def __init__(self, crop_size: int = 8, patches_per_image: int = 1, eps: float = 10.0):
        self.crop_size = int(crop_size)
        self.patches_per_image = int(patches_per_image)
        self.eps = float(eps)

    @property
    def patch_dim(self) -> int:
        return 3 * self.crop_size * self.crop_size

    def random_offsets(self, image: np.ndarray, rng: np.random.Generator):
        """Uniform top-left offsets; x (column) is drawn before y (row)."""
        height, width = image.shape[:2]
        x_max = 1 + width - self.crop_size
        y_max = 1 + height - self.crop_size
        if x_max < 1 or y_max < 1:
            raise ValueError(
                f"Crop size {self.crop_size} does not fit image of shape {image.shape}")
        for _ in range(self.patches_per_image):
            x = int(rng.integers(0, x_max))
            y = int(rng.integers(0, y_max))
            yield x, y

    def sample(self, images: Sequence[np.ndarray], rng: np.random.Generator) -> np.ndarray:
        """
        Sample ``patches_per_image`` patches from every image, in order.

        Returns:
            Patch matrix of shape (3·c², patches_per_image · len(images)).
        """
        blocks = [patch_matrix(image, list(self.random_offsets(image, rng)),
                               self.crop_size, eps=self.eps)
                  for image in images]
        if not blocks:
            return np.zeros((self.patch_dim, 0))
        X = np.concatenate(blocks, axis=1)
        logger.debug(f"Sampled {X.shape[1]} patches of dimension {X.shape[0]}")
        return X
