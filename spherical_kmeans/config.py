from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt

from .exceptions import ConfigurationError


class FeatureConfig(BaseModel):
    """
    Settings for one fit/transform run, fixed once validated.

    crop_size, stride and pool_size describe the extraction grid; they are
    checked against the image size by :func:`grid_geometry` before any
    patch is sampled.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    seed: int = Field(0, ge=0)
    crop_size: PositiveInt = 8
    patches_per_image: PositiveInt = 1
    n_atoms: PositiveInt = 1000
    stride: PositiveInt = 4
    pool_size: PositiveInt = 2
    max_iter: PositiveInt = 200
    tol: float = Field(1e-12, ge=0.0)
    contrast_eps: PositiveFloat = 10.0   # patch contrast normalization regularizer
    whitening_eps: PositiveFloat = 0.1   # added to covariance eigenvalues

    @property
    def patch_dim(self) -> int:
        return 3 * self.crop_size * self.crop_size


SCHEMA_VERSION = 1


@dataclass(frozen=True)
class GridGeometry:
    """Dense extraction grid for square images of one fixed size."""
    image_size: int
    crop_size: int
    stride: int
    pool_size: int
    patches_per_dim: int
    pools_per_dim: int

    @property
    def n_patches(self) -> int:
        return self.patches_per_dim * self.patches_per_dim

    @property
    def n_pools(self) -> int:
        return self.pools_per_dim * self.pools_per_dim

    @property
    def patch_dim(self) -> int:
        return 3 * self.crop_size * self.crop_size

    def n_features(self, n_atoms: int) -> int:
        return self.n_pools * n_atoms


def grid_geometry(image_size: int, cfg: FeatureConfig) -> GridGeometry:
    """
    Validate crop/stride/pool settings against the image size.

    Raises:
        ConfigurationError: if the crop does not fit, if ``image_size - crop_size``
            is not a multiple of the stride, or if the number of patches per
            dimension is not a multiple of the pool size.

    Example:
        >>> g = grid_geometry(20, FeatureConfig(crop_size=8, stride=4, pool_size=2, n_atoms=5))
        >>> g.patches_per_dim, g.n_pools, g.n_features(5)
        (4, 4, 20)
    """
    image_size = int(image_size)
    if image_size < cfg.crop_size:
        raise ConfigurationError(
            f"Crop size {cfg.crop_size} is larger than image size {image_size}")
    if (image_size - cfg.crop_size) % cfg.stride != 0:
        raise ConfigurationError(
            f"Image size {image_size} not compatible with crop size {cfg.crop_size} "
            f"and stride {cfg.stride}: (image_size - crop_size) % stride != 0")
    patches_per_dim = 1 + (image_size - cfg.crop_size) // cfg.stride
    if patches_per_dim % cfg.pool_size != 0:
        raise ConfigurationError(
            f"Pool size {cfg.pool_size} not compatible with {patches_per_dim} "
            f"patches per dimension")
    return GridGeometry(
        image_size=image_size,
        crop_size=cfg.crop_size,
        stride=cfg.stride,
        pool_size=cfg.pool_size,
        patches_per_dim=patches_per_dim,
        pools_per_dim=patches_per_dim // cfg.pool_size,
    )


def load_config(path: Optional[Union[str, Path]] = None, **overrides) -> FeatureConfig:
    """Read a YAML mapping into a FeatureConfig; keyword overrides win over the file."""
    raw = {}
    if path:
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return FeatureConfig(**raw)


def make_metadata(cfg: FeatureConfig, image_size: int, D_shape, extra=None):
    meta = {
        "schema_version": SCHEMA_VERSION,
        "image_size": int(image_size),
        "config": cfg.model_dump(),
        "shapes": {"D": list(D_shape)},
    }
    if extra: meta.update(extra)
    return meta
