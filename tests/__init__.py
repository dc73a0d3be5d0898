"""
Test suite for spherical k-means image features.

Unit tests cover each pipeline stage on its own (patch sampling, whitening,
spherical k-means, pooling); integration tests run fit/transform end to end
through the Python API, persistence, scikit-learn and the CLI.
"""
