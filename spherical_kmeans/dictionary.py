from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import FeatureConfig, GridGeometry, grid_geometry
from .kmeans import LearningHistory


@dataclass(frozen=True, eq=False)
class Dictionary:
    """
    A learned patch dictionary and the geometry it was learned for.

    ``atoms`` is an L × K matrix of unit-norm columns in whitened patch space.
    The array is made read-only on construction: once learning has finished
    the dictionary is shared by every extraction call and never modified.

    Attributes:
        atoms: dictionary matrix (3·crop_size², n_atoms)
        config: settings of the run that produced it
        image_size: side length of the square training images
        history: spherical k-means history, when available
    """
    atoms: np.ndarray
    config: FeatureConfig
    image_size: int
    history: Optional[LearningHistory] = None

    def __post_init__(self):
        atoms = np.array(self.atoms, dtype=np.float64, copy=True)
        if atoms.ndim != 2:
            raise ValueError(f"Dictionary atoms must be 2D, got shape {atoms.shape}")
        if atoms.shape[0] != self.config.patch_dim:
            raise ValueError(
                f"Atom length {atoms.shape[0]} does not match crop size "
                f"{self.config.crop_size} (expected {self.config.patch_dim})")
        atoms.flags.writeable = False
        object.__setattr__(self, "atoms", atoms)
        object.__setattr__(self, "image_size", int(self.image_size))

    @property
    def n_atoms(self) -> int:
        return self.atoms.shape[1]

    @property
    def patch_dim(self) -> int:
        return self.atoms.shape[0]

    @property
    def geometry(self) -> GridGeometry:
        return grid_geometry(self.image_size, self.config)

    @property
    def n_features(self) -> int:
        return self.geometry.n_features(self.n_atoms)

    def atom_images(self) -> np.ndarray:
        """Atoms reshaped as (n_atoms, crop_size, crop_size, 3) pixel blocks."""
        c = self.config.crop_size
        return self.atoms.T.reshape(self.n_atoms, 3, c, c).transpose(0, 2, 3, 1)

    def __eq__(self, other):
        if not isinstance(other, Dictionary):
            return NotImplemented
        return (self.config == other.config
                and self.image_size == other.image_size
                and np.array_equal(self.atoms, other.atoms))

