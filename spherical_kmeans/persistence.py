"""
Saving and loading learned dictionaries.

A saved dictionary is a directory with:
- dictionary.npz: the atom matrix
- config.json: run configuration, image size, training history, version,
  creation time and a SHA-256 checksum of the atoms
"""

import json
import hashlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import joblib
import numpy as np

from .__about__ import __version__
from .config import FeatureConfig, make_metadata
from .dictionary import Dictionary
from .kmeans import LearningHistory

DICTIONARY_FILE = "dictionary.npz"
CONFIG_FILE = "config.json"


def atoms_checksum(atoms: np.ndarray) -> str:
    return hashlib.sha256(np.ascontiguousarray(atoms, dtype=np.float64).tobytes()).hexdigest()


def save_dictionary(dictionary: Dictionary, path: Union[str, Path],
                    metadata: Optional[Dict[str, Any]] = None,
                    compress: bool = True) -> Path:
    """
    Write a dictionary to ``path`` (created if needed).

    Examples
    --------
    >>> dictionary = fit(rows, FeatureConfig(n_atoms=64))
    >>> save_dictionary(dictionary, 'model', metadata={'dataset': 'CIFAR-10'})
    >>> dictionary = load_dictionary('model')
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)

    npz_path = path / DICTIONARY_FILE
    if compress:
        np.savez_compressed(npz_path, atoms=dictionary.atoms)
    else:
        np.savez(npz_path, atoms=dictionary.atoms)

    extra = {
        "version": __version__,
        "created": datetime.now().isoformat(),
        "checksum": atoms_checksum(dictionary.atoms),
        "history": dictionary.history.to_dict() if dictionary.history is not None else None,
        "metadata": metadata or {},
    }
    meta = make_metadata(dictionary.config, dictionary.image_size, dictionary.atoms.shape, extra)
    with open(path / CONFIG_FILE, "w", encoding="utf-8") as fh:
        json.dump(meta, fh, indent=2, default=_json_serialize_helper)
    return path


def load_dictionary(path: Union[str, Path], verify_integrity: bool = True) -> Dictionary:
    """
    Load a dictionary written by :func:`save_dictionary`.

    Raises:
        FileNotFoundError: the directory or one of its files is missing
        ValueError: the checksum does not match the stored atoms
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dictionary directory not found: {path}")
    config_path = path / CONFIG_FILE
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    npz_path = path / DICTIONARY_FILE
    if not npz_path.exists():
        raise FileNotFoundError(f"Dictionary data not found: {npz_path}")

    with open(config_path, "r", encoding="utf-8") as fh:
        meta = json.load(fh)
    with np.load(npz_path) as data:
        atoms = data["atoms"]

    if verify_integrity and atoms_checksum(atoms) != meta.get("checksum"):
        raise ValueError("Dictionary integrity check failed. Data may be corrupted.")

    history = LearningHistory(**meta["history"]) if meta.get("history") else None
    return Dictionary(
        atoms=atoms,
        config=FeatureConfig(**meta["config"]),
        image_size=meta["image_size"],
        history=history,
    )


def save_estimator(estimator, path: Union[str, Path]) -> Path:
    """Pickle a fitted scikit-learn featurizer with joblib."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(estimator, path)
    return path


def load_estimator(path: Union[str, Path]):
    return joblib.load(Path(path))


def _json_serialize_helper(obj):
    """Helper for JSON serialization of numpy types."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
