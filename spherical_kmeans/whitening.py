"""
PCA (ZCA-form) whitening of a patch matrix.

Given X (L × N), with column mean μ and covariance

    Σ = (1/N) · (X − μ)(X − μ)ᵀ = V Λ Vᵀ,

the whitening operator is the symmetric matrix

    W = V · diag(1 / sqrt(λᵢ + ε)) · Vᵀ,   ε = 0.1

ε regularizes zero and near-zero eigenvalues. W is applied to the
uncentered X.

The operator is used only to whiten the training patches fed to dictionary
learning. It is not kept with the learned dictionary and is not applied to
patches at extraction time.
"""

from __future__ import annotations
import logging
from typing import Optional

import numpy as np
from scipy import linalg

from .exceptions import NumericalError

logger = logging.getLogger(__name__)


def patch_covariance(X: np.ndarray):
    """Return (column mean, L×L covariance) of the patch matrix X."""
    X = np.asarray(X, dtype=np.float64)
    n = X.shape[1]
    if n == 0:
        raise ValueError("Cannot compute a covariance from zero patches")
    mean = X.mean(axis=1)
    centered = X - mean[:, np.newaxis]
    cov = (centered @ centered.T) / n
    return mean, cov


def symmetric_eigh(cov: np.ndarray):
    """Eigendecomposition of a symmetric matrix; failures become NumericalError."""
    try:
        return linalg.eigh(cov)
    except linalg.LinAlgError as e:
        raise NumericalError(f"Eigendecomposition of patch covariance did not converge: {e}") from e
    except ValueError as e:
        raise NumericalError(f"Patch covariance is not finite: {e}") from e


def whitening_operator(evals: np.ndarray, V: np.ndarray, eps: float = 0.1) -> np.ndarray:
    """Build W = V diag(1/sqrt(λ + eps)) Vᵀ."""
    scale = 1.0 / np.sqrt(evals + eps)
    return (V * scale[np.newaxis, :]) @ V.T


class PCAWhitener:
    """
    Fit a whitening operator on training patches and apply it.

    Attributes:
        mean_: column mean of the fitted patches, shape (L,)
        eigenvalues_: covariance eigenvalues in ascending order, shape (L,)
        operator_: symmetric whitening matrix W, shape (L, L)
    """

    def __init__(self, eps: float = 0.1):
        self.eps = float(eps)
        self.mean_: Optional[np.ndarray] = None
        self.eigenvalues_: Optional[np.ndarray] = None
        self.operator_: Optional[np.ndarray] = None

    def fit(self, X: np.ndarray) -> "PCAWhitener":
        mean, cov = patch_covariance(X)
        logger.debug(f"Eigendecomposition of {cov.shape[0]}x{cov.shape[1]} patch covariance")
        evals, V = symmetric_eigh(cov)
        self.mean_ = mean
        self.eigenvalues_ = evals
        self.operator_ = whitening_operator(evals, V, eps=self.eps)
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        if self.operator_ is None:
            raise RuntimeError("PCAWhitener must be fitted before transform")
        return self.operator_ @ np.asarray(X, dtype=np.float64)

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        return self.fit(X).transform(X)
