"""
Unit tests for the immutable Dictionary value.
"""

import numpy as np
import pytest

from spherical_kmeans.config import FeatureConfig
from spherical_kmeans.dictionary import Dictionary
from spherical_kmeans.kmeans import normalize_columns
from spherical_kmeans.patches import flatten_patch
from tests.conftest import make_images


@pytest.fixture
def config():
    return FeatureConfig(crop_size=4, stride=2, pool_size=2, n_atoms=3)


def test_atoms_are_read_only_copy(config):
    atoms = normalize_columns(np.random.default_rng(0).standard_normal((48, 3)))
    d = Dictionary(atoms, config, 10)
    assert d.atoms is not atoms
    with pytest.raises(ValueError):
        d.atoms[0, 0] = 1.0
    atoms[0, 0] = 123.0
    assert d.atoms[0, 0] != 123.0


def test_is_frozen(config):
    d = Dictionary(np.zeros((48, 3)), config, 10)
    with pytest.raises(AttributeError):
        d.image_size = 12


def test_shape_properties(config):
    d = Dictionary(np.zeros((48, 3)), config, 10)
    assert d.n_atoms == 3
    assert d.patch_dim == 48
    assert d.geometry.patches_per_dim == 4
    assert d.n_features == 12


def test_rejects_wrong_atom_length(config):
    with pytest.raises(ValueError, match="does not match crop size"):
        Dictionary(np.zeros((27, 3)), config, 10)
    with pytest.raises(ValueError, match="2D"):
        Dictionary(np.zeros(48), config, 10)


def test_atom_images_invert_patch_layout(config):
    image = make_images(1, 10)[0]
    atoms = np.stack([flatten_patch(image, x, 0, 4) for x in (0, 2, 6)], axis=1)
    d = Dictionary(atoms, config, 10)
    blocks = d.atom_images()
    assert blocks.shape == (3, 4, 4, 3)
    np.testing.assert_array_equal(blocks[1], image[0:4, 2:6].astype(float))


def test_equality(config):
    atoms = np.random.default_rng(0).standard_normal((48, 3))
    assert Dictionary(atoms, config, 10) == Dictionary(atoms.copy(), config, 10)
    assert Dictionary(atoms, config, 10) != Dictionary(atoms, config, 12)
    assert Dictionary(atoms, config, 10) != Dictionary(atoms + 1, config, 10)
