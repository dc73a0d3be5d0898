"""
Image sources: resolve an image reference into an H×W×3 uint8 pixel grid.

The pipeline only ever calls ``source.load(reference)``. Implementations
raise :class:`DecodeError` when a reference cannot be decoded; what happens
next (skip or abort) is decided by the caller.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Hashable, Mapping, Optional, Protocol, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .exceptions import DecodeError


class ImageSource(Protocol):
    """Anything that turns an image reference into RGB pixels."""

    def load(self, reference: Any) -> np.ndarray:
        """Return the decoded image as an (H, W, 3) uint8 array."""
        ...


def as_rgb_array(image, reference=None) -> np.ndarray:
    """
    Coerce an array-like image to (H, W, 3) uint8.

    Grayscale (H, W) images are replicated across the three channels and an
    alpha channel is dropped.
    """
    arr = np.asarray(image)
    if arr.ndim == 2:
        arr = np.repeat(arr[:, :, np.newaxis], 3, axis=2)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise DecodeError(reference, f"expected (H, W, 3) pixels, got shape {arr.shape}")
    arr = arr[:, :, :3]
    if arr.dtype != np.uint8:
        if not np.all(np.isfinite(arr)) or arr.min() < 0 or arr.max() > 255:
            raise DecodeError(reference, "pixel values must lie in [0, 255]")
        arr = arr.astype(np.uint8)
    return arr


class PILImageSource:
    """
    Decode image files with Pillow.

    Relative paths are resolved against ``root`` when given. Arrays passed as
    references are returned as-is (after RGB coercion), which lets callers mix
    in-memory images with files.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else None

    def resolve(self, reference) -> Path:
        path = Path(reference)
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    def load(self, reference) -> np.ndarray:
        if isinstance(reference, np.ndarray):
            return as_rgb_array(reference, reference="<array>")
        path = self.resolve(reference)
        try:
            with Image.open(path) as im:
                rgb = im.convert("RGB")
                arr = np.asarray(rgb, dtype=np.uint8)
        except (OSError, UnidentifiedImageError) as e:
            raise DecodeError(str(path), str(e)) from e
        return arr


class ArrayImageSource:
    """In-memory ImageSource backed by a mapping of reference -> pixels."""

    def __init__(self, images: Mapping[Hashable, Any]):
        self.images = dict(images)

    def load(self, reference) -> np.ndarray:
        try:
            image = self.images[reference]
        except KeyError:
            raise DecodeError(reference, "no such image") from None
        return as_rgb_array(image, reference=reference)
