"""
Two-phase image feature pipeline.

``fit(rows)`` samples patches from the training images, whitens them and
learns a dictionary with spherical k-means. ``transform(rows, dictionary)``
turns every row into a pooled feature vector with that dictionary. The
dictionary is an explicit, immutable value handed from one phase to the
other.

    >>> dictionary = fit(train_rows, FeatureConfig(n_atoms=64), source)
    >>> table = transform(test_rows, dictionary, source)
    >>> table.features.shape
    (len(test_rows), dictionary.n_features)
"""

from __future__ import annotations
import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .config import FeatureConfig, grid_geometry
from .deterministic import make_rng
from .dictionary import Dictionary
from .exceptions import ConfigurationError, DecodeError
from .features import FeatureExtractor
from .images import ImageSource, PILImageSource
from .kmeans import SphericalKMeans
from .patches import PatchSampler
from .whitening import PCAWhitener

logger = logging.getLogger(__name__)


class Row(NamedTuple):
    """One input record: an image reference, its label and its weight."""
    image: Any
    label: Any = None
    weight: float = 1.0


def as_row(obj) -> Row:
    if isinstance(obj, Row):
        return obj
    if isinstance(obj, tuple):
        return Row(*obj)
    return Row(obj)


@dataclass
class FeatureTable:
    """
    One feature row per input row, in input order.

    Attributes:
        features: (n_rows, n_features) matrix of pooled activations
        labels: label of each input row, passed through unchanged
        weights: weight of each input row
    """
    features: np.ndarray
    labels: List[Any] = field(default_factory=list)
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __len__(self):
        return self.features.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def has_labels(self) -> bool:
        return any(label is not None for label in self.labels)

    @property
    def column_names(self) -> List[str]:
        names = [f"x{i + 1}" for i in range(self.n_features)]
        if self.has_labels:
            names.append("label")
        return names

    def to_csv(self, path: Union[str, Path]) -> None:
        """Write the feature columns, the label (if any) and the row weight."""
        with open(path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(self.column_names + ["weight"])
            for i in range(len(self)):
                row = [repr(float(v)) for v in self.features[i]]
                if self.has_labels:
                    row.append("" if self.labels[i] is None else self.labels[i])
                row.append(repr(float(self.weights[i])))
                writer.writerow(row)


def load_training_images(rows: Iterable, source: ImageSource) -> List[Tuple[Any, np.ndarray]]:
    """Decode training images, skipping (and logging) those that fail."""
    images = []
    for row in map(as_row, rows):
        try:
            images.append((row.image, source.load(row.image)))
        except DecodeError as e:
            logger.warning(f"Skipping training image: {e}")
    return images


def validate_training_images(images: Sequence[Tuple[Any, np.ndarray]]) -> int:
    """
    Check that every training image is square and of one common size.

    Returns:
        The common image side length.
    """
    if not images:
        raise ConfigurationError("No training image could be decoded")
    image_size = -1
    for reference, image in images:
        height, width = image.shape[:2]
        if height != width:
            raise ConfigurationError(f"Image {reference!r} is not square ({width}x{height})")
        if image_size == -1:
            image_size = width
        elif width != image_size:
            raise ConfigurationError(
                f"Image {reference!r} has size {width}, expected {image_size}")
    logger.debug(f"Image size is: {image_size}")
    return image_size


def fit(rows: Iterable, config: Optional[FeatureConfig] = None,
        source: Optional[ImageSource] = None,
        rng: Optional[np.random.Generator] = None,
        callback=None) -> Dictionary:
    """
    Learn a dictionary from the training rows.

    Args:
        rows: Row objects, (image, label, weight) tuples or bare references
        config: run settings; defaults to FeatureConfig()
        source: ImageSource resolving references; defaults to PILImageSource()
        rng: random stream; defaults to ``make_rng(config.seed)``
        callback: forwarded to :meth:`SphericalKMeans.fit`

    Raises:
        ConfigurationError: image sizes or grid geometry are invalid. Raised
            before any patch is sampled.
        NumericalError: the whitening eigendecomposition failed.
    """
    config = config if config is not None else FeatureConfig()
    source = source if source is not None else PILImageSource()
    rng = rng if rng is not None else make_rng(config.seed)

    images = load_training_images(rows, source)
    image_size = validate_training_images(images)
    geometry = grid_geometry(image_size, config)
    logger.info(f"Learning {config.n_atoms} atoms from {len(images)} images of size "
                f"{image_size} ({geometry.n_features(config.n_atoms)} features per image)")

    sampler = PatchSampler(config.crop_size, config.patches_per_image, eps=config.contrast_eps)
    X = sampler.sample([image for _, image in images], rng)

    logger.debug("Whitening patches")
    X = PCAWhitener(eps=config.whitening_eps).fit_transform(X)

    logger.debug("Running spherical k-means")
    kmeans = SphericalKMeans(config.n_atoms, max_iter=config.max_iter, tol=config.tol)
    kmeans.fit(X, rng, callback=callback)
    return Dictionary(kmeans.D, config, image_size, history=kmeans.history)


def transform(rows: Iterable, dictionary: Dictionary,
              source: Optional[ImageSource] = None) -> FeatureTable:
    """
    Compute the feature vector of every row with a learned dictionary.

    Any DecodeError or size mismatch aborts the whole call.
    """
    source = source if source is not None else PILImageSource()
    extractor = FeatureExtractor(dictionary)
    rows = [as_row(r) for r in rows]
    features = np.zeros((len(rows), extractor.n_features))
    for i, row in enumerate(rows):
        image = source.load(row.image)
        features[i] = extractor.transform_image(image, reference=row.image)
    return FeatureTable(
        features=features,
        labels=[row.label for row in rows],
        weights=np.array([row.weight for row in rows], dtype=np.float64),
    )


class KMeansImageFeatures:
    """
    Convenience wrapper: learn on the first batch, then reuse the dictionary.

    ``fit`` replaces the stored dictionary with a freshly learned one; it
    never modifies a dictionary already handed out.
    """

    def __init__(self, config: Optional[FeatureConfig] = None,
                 source: Optional[ImageSource] = None):
        self.config = config if config is not None else FeatureConfig()
        self.source = source if source is not None else PILImageSource()
        self.dictionary: Optional[Dictionary] = None

    def fit(self, rows) -> Dictionary:
        self.dictionary = fit(rows, self.config, self.source)
        return self.dictionary

    def transform(self, rows) -> FeatureTable:
        if self.dictionary is None:
            raise RuntimeError("KMeansImageFeatures must be fitted before transform")
        return transform(rows, self.dictionary, self.source)

    def fit_transform(self, rows) -> FeatureTable:
        rows = list(rows)
        self.fit(rows)
        return self.transform(rows)
