from .__about__ import __version__

from .config import FeatureConfig, GridGeometry, grid_geometry, load_config
from .exceptions import (
    SphericalKMeansError, ConfigurationError, DecodeError, NumericalError
)
from .images import ImageSource, PILImageSource, ArrayImageSource
from .patches import PatchSampler, contrast_normalize
from .whitening import PCAWhitener
from .kmeans import SphericalKMeans, LearningHistory
from .dictionary import Dictionary
from .features import FeatureExtractor
from .pipeline import Row, FeatureTable, KMeansImageFeatures, fit, transform
from .persistence import save_dictionary, load_dictionary, save_estimator, load_estimator
from .deterministic import make_rng, set_deterministic
from .sklearn_estimator import SphericalKMeansFeaturizer

__all__ = [
    "__version__",

    # Configuration and errors
    "FeatureConfig", "GridGeometry", "grid_geometry", "load_config",
    "SphericalKMeansError", "ConfigurationError", "DecodeError", "NumericalError",

    # Collaborators
    "ImageSource", "PILImageSource", "ArrayImageSource",

    # Pipeline stages
    "PatchSampler", "contrast_normalize", "PCAWhitener",
    "SphericalKMeans", "LearningHistory", "Dictionary", "FeatureExtractor",

    # Two-phase API
    "Row", "FeatureTable", "KMeansImageFeatures", "fit", "transform",

    # Persistence and reproducibility
    "save_dictionary", "load_dictionary", "save_estimator", "load_estimator",
    "make_rng", "set_deterministic",

    # scikit-learn adapter
    "SphericalKMeansFeaturizer",
]
