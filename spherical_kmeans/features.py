"""
Dense feature extraction with a learned dictionary.

For an image of side ``image_size`` the crop is slid over a regular grid with
the configured stride, giving ``patches_per_dim`` positions per axis. The grid
is split into square pools of ``pool_size × pool_size`` patches.

Patches are visited pool-major::

    for pool_x, for pool_y, for local_x, for local_y:
        x = (pool_x * pool_size + local_x) * stride     # column
        y = (pool_y * pool_size + local_y) * stride     # row

Each patch is contrast-normalized (no PCA whitening), projected onto the
dictionary, rectified with max(0, ·) and summed over its pool. The per-pool
K-vectors are concatenated in the same pool order.
"""

from __future__ import annotations
import logging
from typing import Any, List, Sequence, Tuple

import numpy as np

from .config import GridGeometry
from .dictionary import Dictionary
from .exceptions import ConfigurationError
from .patches import patch_matrix

logger = logging.getLogger(__name__)


def grid_offsets(geometry: GridGeometry) -> List[Tuple[int, int]]:
    """Pixel (x, y) origins of every grid patch, in pool-major order."""
    p, s = geometry.pool_size, geometry.stride
    offsets = []
    for pool_x in range(geometry.pools_per_dim):
        for pool_y in range(geometry.pools_per_dim):
            for local_x in range(p):
                for local_y in range(p):
                    offsets.append(((pool_x * p + local_x) * s,
                                    (pool_y * p + local_y) * s))
    return offsets


def pool_features(activations: np.ndarray, pool_size: int) -> np.ndarray:
    """
    Sum rectified activations over each pool.

    Args:
        activations: K × n_patches matrix, columns in pool-major order
        pool_size: pool side length, so each pool owns pool_size² columns

    Returns:
        Feature vector of length n_pools · K; entry i·K + k is the pooled
        response of atom k in pool i.
    """
    K, n = activations.shape
    per_pool = pool_size * pool_size
    if n % per_pool != 0:
        raise ValueError(f"{n} patches cannot be split into pools of {per_pool}")
    rectified = np.maximum(activations, 0.0)
    pooled = rectified.reshape(K, n // per_pool, per_pool).sum(axis=2)
    return pooled.T.reshape(-1)


class FeatureExtractor:
    """
    Turn images into pooled dictionary responses.

    The extractor only reads the dictionary; one instance (or many) can be
    used for any number of images once learning has finished.
    """

    def __init__(self, dictionary: Dictionary):
        self.dictionary = dictionary
        self.geometry = dictionary.geometry
        self.offsets = grid_offsets(self.geometry)

    @property
    def n_features(self) -> int:
        return self.geometry.n_features(self.dictionary.n_atoms)

    def check_image(self, image: np.ndarray, reference: Any = None) -> None:
        height, width = image.shape[:2]
        size = self.geometry.image_size
        if height != size or width != size:
            raise ConfigurationError(
                f"Image {reference!r} is {width}x{height}, but the dictionary "
                f"was learned on {size}x{size} images")

    def patches(self, image: np.ndarray) -> np.ndarray:
        """Normalized grid patches of one image, one column per patch."""
        cfg = self.dictionary.config
        return patch_matrix(image, self.offsets, cfg.crop_size, eps=cfg.contrast_eps)

    def activations(self, image: np.ndarray) -> np.ndarray:
        """Raw projections Dᵀ·P, shape (K, n_patches)."""
        return self.dictionary.atoms.T @ self.patches(image)

    def transform_image(self, image: np.ndarray, reference: Any = None) -> np.ndarray:
        self.check_image(image, reference)
        logger.debug(f"Calculating image features for {reference!r}")
        return pool_features(self.activations(image), self.geometry.pool_size)

    def transform(self, images: Sequence[np.ndarray]) -> np.ndarray:
        """Stack the feature vectors of several images as rows."""
        out = np.zeros((len(images), self.n_features))
        for i, image in enumerate(images):
            out[i] = self.transform_image(image, reference=i)
        return out
