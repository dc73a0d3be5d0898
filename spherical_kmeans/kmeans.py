"""
Spherical k-means dictionary learning (Coates & Ng 2012).

Atoms live on the unit sphere and patches are assigned by correlation, not
Euclidean distance. With whitened patches X (L × N) and dictionary D (L × K):

1. Assignment: S = Dᵀ X, then keep only the entry of largest magnitude in
   each column (signed, earliest index on ties).
2. SSE = ‖D S − X‖²_F. Stop once the relative decrease drops below ``tol``.
3. Empty-atom repair: atoms that own no patch are reset to a random
   training patch. Once a pass finds no empty atom the check is switched off
   for the rest of the run, so atoms that empty out later are not
   repaired.
4. Update: D ← normalize(D + X Sᵀ). The old atoms are kept in the sum, so
   this is an additive step rather than a fresh centroid computation.

Every function returns new arrays; callers' matrices are never modified.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field, asdict
from typing import Callable, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def normalize_columns(D: np.ndarray) -> np.ndarray:
    """Scale columns to unit norm; all-zero columns are left as they are."""
    norms = np.linalg.norm(D, axis=0)
    norms[norms == 0] = 1
    return D / norms[np.newaxis, :]


def init_dictionary(patch_dim: int, n_atoms: int, rng: np.random.Generator) -> np.ndarray:
    """K standard normal atoms, drawn atom by atom and normalized."""
    D = rng.standard_normal((n_atoms, patch_dim)).T
    return normalize_columns(D)


def assign(D: np.ndarray, X: np.ndarray) -> np.ndarray:
    """
    Hard, signed top-1 assignment.

    Returns S (K × N) where column j holds the projection Dᵀx_j of largest
    absolute value at its row and zeros elsewhere.
    """
    P = D.T @ X
    cols = np.arange(P.shape[1])
    winners = np.argmax(np.abs(P), axis=0)
    S = np.zeros_like(P)
    S[winners, cols] = P[winners, cols]
    return S


def sum_squared_error(D: np.ndarray, S: np.ndarray, X: np.ndarray) -> float:
    R = D @ S - X
    return float(np.sum(R * R))


def has_converged(previous_sse: float, sse: float, tol: float) -> bool:
    """Relative SSE decrease below ``tol``. An increase also counts as converged."""
    if not np.isfinite(previous_sse):
        return False
    if previous_sse == 0:
        return True
    return (previous_sse - sse) / previous_sse < tol


def empty_atoms(S: np.ndarray) -> np.ndarray:
    """Indices of atoms with no patch assigned."""
    return np.flatnonzero(~np.any(S != 0, axis=1))


def replace_empty_atoms(D: np.ndarray, S: np.ndarray, X: np.ndarray,
                        rng: np.random.Generator) -> Tuple[np.ndarray, int]:
    """
    Reset every empty atom to a randomly chosen (whitened) training patch.

    Atoms are visited in index order and each draws one column index from
    ``rng``. Returns the new dictionary and the number of atoms replaced.
    """
    empty = empty_atoms(S)
    if empty.size == 0:
        return D, 0
    D = D.copy()
    n_patches = X.shape[1]
    for k in empty:
        i = rng.integers(0, n_patches)
        D[:, k] = X[:, i]
    D[:, empty] = normalize_columns(D[:, empty])
    return D, int(empty.size)


def update_dictionary(D: np.ndarray, X: np.ndarray, S: np.ndarray) -> np.ndarray:
    return normalize_columns(D + X @ S.T)


@dataclass
class LearningHistory:
    """Per-iteration record of a spherical k-means run."""
    sse: List[float] = field(default_factory=list)
    n_empty: List[int] = field(default_factory=list)
    n_iter: int = 0
    converged: bool = False

    def to_dict(self):
        return asdict(self)


class SphericalKMeans:
    """
    Learn a unit-norm dictionary from whitened patches.

    Args:
        n_atoms: dictionary size K
        max_iter: iteration cap
        tol: relative SSE decrease below which training stops

    Attributes:
        D: learned dictionary (L × K), None before fit
        history: LearningHistory of the last fit
    """

    def __init__(self, n_atoms: int = 1000, max_iter: int = 200, tol: float = 1e-12):
        self.n_atoms = int(n_atoms)
        self.max_iter = int(max_iter)
        self.tol = float(tol)
        self.D: Optional[np.ndarray] = None
        self.history = LearningHistory()

    def fit(self, X: np.ndarray, rng: np.random.Generator,
            callback: Optional[Callable[[int, np.ndarray, np.ndarray, float], None]] = None
            ) -> "SphericalKMeans":
        """
        Run spherical k-means on X (L × N).

        ``callback(iteration, D, S, sse)`` is called after the SSE of each
        iteration is known, with the dictionary used for that assignment.
        """
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2 or X.shape[1] == 0:
            raise ValueError(f"Expected a non-empty 2D patch matrix, got shape {X.shape}")

        D = init_dictionary(X.shape[0], self.n_atoms, rng)
        history = LearningHistory()
        previous_sse = np.inf
        maybe_empty = True

        for iteration in range(self.max_iter):
            S = assign(D, X)
            sse = sum_squared_error(D, S, X)
            history.sse.append(sse)
            history.n_iter = iteration + 1
            logger.debug(f"SSE at iteration {iteration}: {sse}")
            if callback is not None:
                callback(iteration, D, S, sse)

            if has_converged(previous_sse, sse, self.tol):
                history.converged = True
                break
            previous_sse = sse

            if maybe_empty:
                D, n_empty = replace_empty_atoms(D, S, X, rng)
                history.n_empty.append(n_empty)
                logger.debug(f"Number of empty atoms: {n_empty}")
                if n_empty == 0:
                    maybe_empty = False

            D = update_dictionary(D, X, S)

        logger.info(f"Spherical k-means finished after {history.n_iter} iterations "
                    f"(converged={history.converged}, sse={history.sse[-1]:.6g})")
        self.D = D
        self.history = history
        return self
