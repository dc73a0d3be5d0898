"""
Unit tests for PCA whitening of patch matrices.
"""

import numpy as np
import pytest
from scipy import linalg

from spherical_kmeans import whitening
from spherical_kmeans.exceptions import NumericalError
from spherical_kmeans.whitening import (
    PCAWhitener, patch_covariance, symmetric_eigh, whitening_operator
)


class TestPatchCovariance:

    def test_matches_biased_covariance(self, whitened_patches):
        X = whitened_patches
        mean, cov = patch_covariance(X)
        np.testing.assert_allclose(mean, X.mean(axis=1))
        np.testing.assert_allclose(cov, np.cov(X, bias=True), rtol=1e-10, atol=1e-10)
        assert cov.shape == (12, 12)

    def test_zero_patches(self):
        with pytest.raises(ValueError):
            patch_covariance(np.zeros((12, 0)))


class TestWhiteningOperator:

    def test_formula(self, whitened_patches):
        _, cov = patch_covariance(whitened_patches)
        evals, V = linalg.eigh(cov)
        W = whitening_operator(evals, V, eps=0.1)
        expected = V @ np.diag(1.0 / np.sqrt(evals + 0.1)) @ V.T
        np.testing.assert_allclose(W, expected, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(W, W.T, atol=1e-12)

    def test_zero_covariance_scales_by_inverse_sqrt_eps(self):
        evals, V = symmetric_eigh(np.zeros((6, 6)))
        W = whitening_operator(evals, V, eps=0.1)
        np.testing.assert_allclose(W, np.eye(6) / np.sqrt(0.1), atol=1e-12)


class TestPCAWhitener:

    def test_output_covariance(self, whitened_patches):
        """cov(WX) = W Σ W, whose eigenvalues are λ / (λ + eps)."""
        X = whitened_patches
        whitener = PCAWhitener(eps=0.1)
        Y = whitener.fit_transform(X)
        _, cov = patch_covariance(X)
        W = whitener.operator_
        np.testing.assert_allclose(np.cov(Y, bias=True), W @ cov @ W, rtol=1e-8, atol=1e-10)
        out_evals = np.linalg.eigvalsh(np.cov(Y, bias=True))
        expected = np.sort(whitener.eigenvalues_ / (whitener.eigenvalues_ + 0.1))
        np.testing.assert_allclose(np.sort(out_evals), expected, rtol=1e-6, atol=1e-10)

    def test_tiny_eps_gives_identity_covariance(self, whitened_patches):
        Y = PCAWhitener(eps=1e-12).fit_transform(whitened_patches)
        np.testing.assert_allclose(np.cov(Y, bias=True), np.eye(12), atol=1e-6)

    def test_operator_applied_to_uncentered_patches(self, whitened_patches):
        X = whitened_patches + 5.0
        whitener = PCAWhitener().fit(X)
        np.testing.assert_allclose(whitener.transform(X), whitener.operator_ @ X)

    def test_transform_before_fit(self):
        with pytest.raises(RuntimeError):
            PCAWhitener().transform(np.ones((3, 3)))

    def test_does_not_modify_input(self, whitened_patches):
        X = whitened_patches.copy()
        PCAWhitener().fit_transform(X)
        np.testing.assert_array_equal(X, whitened_patches)


class TestNumericalFailures:

    def test_non_finite_patches(self):
        X = np.ones((4, 10))
        X[0, 0] = np.nan
        with pytest.raises(NumericalError):
            PCAWhitener().fit(X)

    def test_eigendecomposition_not_converging(self, monkeypatch, whitened_patches):
        def fail(*args, **kwargs):
            raise linalg.LinAlgError("did not converge")

        monkeypatch.setattr(whitening.linalg, "eigh", fail)
        with pytest.raises(NumericalError, match="did not converge"):
            PCAWhitener().fit(whitened_patches)

    def test_numerical_error_is_arithmetic_error(self):
        assert issubclass(NumericalError, ArithmeticError)
