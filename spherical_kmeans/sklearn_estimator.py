"""
Scikit-learn compatible featurizer.

Wraps the two-phase pipeline in the BaseEstimator/TransformerMixin interface
so it can sit at the front of a sklearn Pipeline. ``X`` is a sequence of
image references (file paths or (H, W, 3) arrays); ``transform`` returns a
(n_images, n_features) matrix.

Examples
--------
>>> from sklearn.pipeline import make_pipeline
>>> from sklearn.linear_model import LogisticRegression
>>> model = make_pipeline(SphericalKMeansFeaturizer(n_atoms=200), LogisticRegression())
>>> model.fit(image_paths, labels)
"""

import numpy as np
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from .config import FeatureConfig
from .images import PILImageSource
from .pipeline import Row, fit, transform


class SphericalKMeansFeaturizer(BaseEstimator, TransformerMixin):
    """
    Parameters
    ----------
    n_atoms : int, default=1000
        Dictionary size K
    crop_size : int, default=8
        Patch side length
    patches_per_image : int, default=1
        Training patches drawn per image
    stride : int, default=4
        Grid stride at extraction time
    pool_size : int, default=2
        Pool side length, in patches
    max_iter : int, default=200
        Spherical k-means iteration cap
    seed : int, default=0
        Seed of the random stream
    image_source : ImageSource or None
        Resolves references; PILImageSource() when None

    Attributes
    ----------
    dictionary_ : Dictionary
        Learned dictionary
    components_ : ndarray of shape (n_atoms, 3 * crop_size**2)
        Dictionary atoms as rows (sklearn convention)
    n_features_out_ : int
        Length of each feature vector
    """

    def __init__(self, n_atoms=1000, crop_size=8, patches_per_image=1, stride=4,
                 pool_size=2, max_iter=200, seed=0, image_source=None):
        self.n_atoms = n_atoms
        self.crop_size = crop_size
        self.patches_per_image = patches_per_image
        self.stride = stride
        self.pool_size = pool_size
        self.max_iter = max_iter
        self.seed = seed
        self.image_source = image_source

    def _source(self):
        return self.image_source if self.image_source is not None else PILImageSource()

    def _config(self):
        return FeatureConfig(
            seed=self.seed,
            crop_size=self.crop_size,
            patches_per_image=self.patches_per_image,
            n_atoms=self.n_atoms,
            stride=self.stride,
            pool_size=self.pool_size,
            max_iter=self.max_iter,
        )

    def fit(self, X, y=None):
        self.dictionary_ = fit([Row(ref) for ref in X], self._config(), self._source())
        self.components_ = np.array(self.dictionary_.atoms.T)
        self.n_features_out_ = self.dictionary_.n_features
        return self

    def transform(self, X):
        check_is_fitted(self, "dictionary_")
        table = transform([Row(ref) for ref in X], self.dictionary_, self._source())
        return table.features

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "dictionary_")
        return np.array([f"x{i + 1}" for i in range(self.n_features_out_)], dtype=object)
