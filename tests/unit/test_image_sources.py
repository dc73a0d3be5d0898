"""
Unit tests for image sources and RGB coercion.
"""

import numpy as np
import pytest
from PIL import Image

from spherical_kmeans.exceptions import DecodeError
from spherical_kmeans.images import ArrayImageSource, PILImageSource, as_rgb_array


class TestAsRgbArray:

    def test_grayscale_replicated(self):
        gray = np.arange(16, dtype=np.uint8).reshape(4, 4)
        rgb = as_rgb_array(gray)
        assert rgb.shape == (4, 4, 3)
        for c in range(3):
            np.testing.assert_array_equal(rgb[:, :, c], gray)

    def test_alpha_dropped(self):
        rgba = np.zeros((2, 2, 4), dtype=np.uint8)
        rgba[..., 3] = 255
        assert as_rgb_array(rgba).shape == (2, 2, 3)

    def test_float_pixels_in_range(self):
        out = as_rgb_array(np.full((2, 2, 3), 12.0))
        assert out.dtype == np.uint8
        assert out[0, 0, 0] == 12

    @pytest.mark.parametrize("bad", [
        np.zeros((2, 2, 2)),
        np.zeros(5),
        np.full((2, 2, 3), 300.0),
        np.full((2, 2, 3), -1.0),
    ])
    def test_rejects_bad_pixels(self, bad):
        with pytest.raises(DecodeError):
            as_rgb_array(bad, reference="bad")


class TestArrayImageSource:

    def test_load(self):
        img = np.ones((3, 3, 3), dtype=np.uint8)
        source = ArrayImageSource({"a": img})
        np.testing.assert_array_equal(source.load("a"), img)

    def test_missing_reference(self):
        with pytest.raises(DecodeError, match="'missing'"):
            ArrayImageSource({}).load("missing")


class TestPILImageSource:

    def test_reads_png_as_rgb(self, tmp_path):
        pixels = np.random.default_rng(0).integers(0, 256, (6, 6, 3), dtype=np.uint8)
        Image.fromarray(pixels).save(tmp_path / "a.png")
        out = PILImageSource().load(tmp_path / "a.png")
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out, pixels)

    def test_grayscale_file_converted(self, tmp_path):
        Image.fromarray(np.full((5, 5), 40, dtype=np.uint8)).save(tmp_path / "g.png")
        out = PILImageSource().load(str(tmp_path / "g.png"))
        assert out.shape == (5, 5, 3)
        assert np.all(out == 40)

    def test_relative_paths_use_root(self, tmp_path):
        Image.fromarray(np.zeros((4, 4, 3), dtype=np.uint8)).save(tmp_path / "b.png")
        assert PILImageSource(root=tmp_path).load("b.png").shape == (4, 4, 3)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            PILImageSource().load(tmp_path / "nope.png")

    def test_corrupt_file(self, tmp_path):
        (tmp_path / "bad.png").write_bytes(b"not an image")
        with pytest.raises(DecodeError) as excinfo:
            PILImageSource().load(tmp_path / "bad.png")
        assert isinstance(excinfo.value, OSError)

    def test_array_reference_passthrough(self):
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        np.testing.assert_array_equal(PILImageSource().load(img), img)
