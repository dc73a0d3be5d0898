"""
Reproducibility helpers.

All randomness in the pipeline (patch offsets, dictionary initialization,
empty-atom repair) is drawn from one explicit ``numpy.random.Generator``
created by :func:`make_rng` and passed down by the caller. Nothing here
touches the global ``random`` / ``np.random`` state.

Bit-identical results across runs additionally require single-threaded
BLAS, which :func:`set_deterministic` arranges through environment
variables. They must be set before numpy loads its BLAS library to take
full effect, so the CLI calls it first thing.
"""

import os
import numpy as np

_THREAD_VARS = (
    "OPENBLAS_NUM_THREADS",
    "OMP_NUM_THREADS",
    "MKL_NUM_THREADS",
    "NUMEXPR_NUM_THREADS",
    "VECLIB_MAXIMUM_THREADS",
)


def make_rng(seed: int) -> np.random.Generator:
    """Create the single random stream threaded through a training run."""
    return np.random.default_rng(int(seed))


def set_deterministic() -> None:
    """Pin BLAS/OpenMP thread pools to one thread."""
    for var in _THREAD_VARS:
        os.environ.setdefault(var, "1")


def is_deterministic() -> bool:
    return all(os.environ.get(var) == "1" for var in _THREAD_VARS[:3])


def get_reproducibility_info() -> dict:
    return {
        'threading': {var: os.environ.get(var, 'unset') for var in _THREAD_VARS},
        'environment': {
            'numpy_version': np.__version__,
            'deterministic_enabled': is_deterministic(),
        },
    }
