"""
Error taxonomy for the spherical k-means feature pipeline.

ConfigurationError
    Raised before any computation: non-square images, inconsistent training
    image sizes, crop/stride/pool geometry that does not tile the image.
DecodeError
    Raised by an ImageSource when a reference cannot be turned into pixels.
    Skipped while sampling training patches, fatal during extraction.
NumericalError
    The whitening eigendecomposition did not converge.
"""


class SphericalKMeansError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(SphericalKMeansError, ValueError):
    """Invalid configuration or image geometry."""


class DecodeError(SphericalKMeansError, OSError):
    """An image reference could not be decoded into an RGB pixel grid."""

    def __init__(self, reference, reason=None):
        self.reference = reference
        self.reason = reason
        msg = f"Could not decode image {reference!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NumericalError(SphericalKMeansError, ArithmeticError):
    """A linear algebra routine failed (e.g. eigendecomposition did not converge)."""
