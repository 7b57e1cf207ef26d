from __future__ import annotations

import logging
import warnings

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as spla

from .models import EigenState, Grid


logger = logging.getLogger(__name__)


def _second_difference_matrix(n: int, h: float) -> sparse.csr_matrix:
    # Dirichlet: the off-grid neighbour is zero.
    return sparse.diags([1.0, -2.0, 1.0], [-1, 0, 1], shape=(n, n), format="csr") / (h * h)


def build_hamiltonian(grid: Grid, potential: np.ndarray) -> sparse.csr_matrix:
    """Real Hamiltonian ``-(1/2)Δ + Re V`` on the flattened ``j*nx + i`` index."""
    laplacian = sparse.kron(
        sparse.identity(grid.ny, format="csr"),
        _second_difference_matrix(grid.nx, grid.dx),
    ) + sparse.kron(
        _second_difference_matrix(grid.ny, grid.dy),
        sparse.identity(grid.nx, format="csr"),
    )
    diagonal = np.real(np.asarray(potential, dtype=complex)).reshape(-1)
    return (-0.5 * laplacian + sparse.diags(diagonal, 0)).tocsr()


def _normalized_state(vector: np.ndarray, grid: Grid) -> np.ndarray:
    norm = np.sqrt(np.sum(vector * vector) * grid.dx * grid.dy)
    if norm > 0:
        vector = vector / norm
    # Fix the arbitrary eigenvector sign so results are reproducible.
    if vector[int(np.argmax(np.abs(vector)))] < 0:
        vector = -vector
    return vector.reshape(grid.shape).astype(complex)


def compute_eigenstates(
    grid: Grid,
    potential: np.ndarray,
    modes: int,
    basis_size: int = 64,
    max_iter: int = 200,
    tol: float = 1e-6,
) -> list[EigenState]:
    """Lowest ``modes`` eigenpairs of the real part of the Hamiltonian, sorted by energy.

    Uses shift-invert Lanczos below the potential minimum. When the solver
    does not converge, the converged subset is returned with a warning.
    """
    n = grid.nx * grid.ny
    k = min(int(modes), n - 2)
    if k <= 0:
        return []
    ncv = min(n - 1, max(int(basis_size), 2 * k + 1))
    hamiltonian = build_hamiltonian(grid, potential).tocsc()
    shift = float(np.min(np.real(potential))) - 1.0

    logger.debug("Computing %d eigenstates on %dx%d grid (ncv=%d).", k, grid.nx, grid.ny, ncv)
    try:
        energies, vectors = spla.eigsh(
            hamiltonian,
            k=k,
            sigma=shift,
            which="LM",
            ncv=ncv,
            maxiter=max(1, int(max_iter)),
            tol=tol,
        )
    except spla.ArpackNoConvergence as exc:
        energies, vectors = exc.eigenvalues, exc.eigenvectors
        warnings.warn(
            f"Eigen solver converged {len(energies)} of {k} requested modes.",
            stacklevel=2,
        )

    order = np.argsort(energies)
    return [
        EigenState(energy=float(energies[idx]), psi=_normalized_state(vectors[:, idx], grid))
        for idx in order
    ]
