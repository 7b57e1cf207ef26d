from __future__ import annotations

import numpy as np
import pytest
from scipy import sparse

from wavesim.models import Box, Grid
from wavesim.potential import build_potential
from wavesim.solver import adi_kinetic_step, cn_adi_step, potential_kick_factor


def _dirichlet_mode(n: int, m: int) -> np.ndarray:
    idx = np.arange(1, n + 1, dtype=float)
    return np.sin(m * np.pi * idx / (n + 1))


def _mode_eigenvalue(n: int, m: int, h: float) -> float:
    return -4.0 / (h * h) * np.sin(m * np.pi / (2.0 * (n + 1))) ** 2


def _gaussian(grid: Grid, cx: float, cy: float, sigma: float, kx: float = 0.0, ky: float = 0.0) -> np.ndarray:
    x, y = grid.cell_centers()
    envelope = np.exp(-0.5 * ((x - cx) ** 2 + (y - cy) ** 2) / sigma**2)
    return (envelope * np.exp(1j * (kx * x + ky * y))).astype(complex)


def test_separable_dirichlet_mode_picks_up_exact_cayley_factor() -> None:
    grid = Grid(12, 10)
    dt = 2e-3
    mx, my = 2, 3
    psi = np.outer(_dirichlet_mode(grid.ny, my), _dirichlet_mode(grid.nx, mx)).astype(complex)

    alpha = 0.25j * dt
    lam_x = _mode_eigenvalue(grid.nx, mx, grid.dx)
    lam_y = _mode_eigenvalue(grid.ny, my, grid.dy)
    gain = (1.0 + alpha * lam_x) / (1.0 - alpha * lam_x) * (1.0 + alpha * lam_y) / (1.0 - alpha * lam_y)

    out = adi_kinetic_step(psi, grid.dx, grid.dy, dt)
    assert np.allclose(out, gain * psi, rtol=0.0, atol=1e-12)
    assert abs(gain) == pytest.approx(1.0, abs=1e-14)


def test_adi_step_matches_dense_factored_operator() -> None:
    grid = Grid(9, 8)
    dt = 5e-3
    potential = build_potential(grid, [Box(0.4, 0.4, 0.6, 0.6, 30.0)], [], 2.0, 0.2)
    psi0 = _gaussian(grid, 0.45 * grid.lx, 0.5 * grid.ly, 0.15, kx=6.0)

    def d2(n: int, h: float) -> sparse.csr_matrix:
        return sparse.diags([1.0, -2.0, 1.0], [-1, 0, 1], shape=(n, n), format="csr") / h**2

    eye_x = sparse.identity(grid.nx)
    eye_y = sparse.identity(grid.ny)
    dxx = sparse.kron(eye_y, d2(grid.nx, grid.dx)).toarray()
    dyy = sparse.kron(d2(grid.ny, grid.dy), eye_x).toarray()
    ident = np.eye(grid.nx * grid.ny)
    alpha = 0.25j * dt
    phi = np.linalg.solve(ident - alpha * dxx, (ident + alpha * dyy) @ psi0.reshape(-1))
    kinetic = np.linalg.solve(ident - alpha * dyy, (ident + alpha * dxx) @ phi)
    kick = np.exp(-0.5j * dt * potential.reshape(-1))
    expected = kick * np.linalg.solve(
        ident - alpha * dyy,
        (ident + alpha * dxx) @ np.linalg.solve(ident - alpha * dxx, (ident + alpha * dyy) @ (kick * psi0.reshape(-1))),
    )

    assert np.allclose(adi_kinetic_step(psi0, grid.dx, grid.dy, dt).reshape(-1), kinetic, atol=1e-12)
    psi = psi0.copy()
    cn_adi_step(psi, potential, grid.dx, grid.dy, dt)
    assert np.allclose(psi.reshape(-1), expected, atol=1e-12)


def test_step_mutates_in_place_and_keeps_zero_field_zero() -> None:
    grid = Grid(8, 8)
    psi = np.zeros(grid.shape, dtype=complex)
    potential = build_potential(grid, [], [], 1.0, 0.1)
    out = cn_adi_step(psi, potential, grid.dx, grid.dy, 1e-3)
    assert out is psi
    assert np.all(psi == 0.0)


def test_real_potential_preserves_norm() -> None:
    grid = Grid(32, 24)
    potential = build_potential(grid, [Box(0.6, 0.0, 0.65, 1.0, 500.0)], [], 0.0, 0.1)
    psi = _gaussian(grid, 0.4 * grid.lx, 0.5 * grid.ly, 0.08, kx=15.0)
    start = np.sum(np.abs(psi) ** 2)
    for _ in range(50):
        cn_adi_step(psi, potential, grid.dx, grid.dy, 1e-3)
    assert np.sum(np.abs(psi) ** 2) == pytest.approx(start, rel=1e-11)


def test_absorbing_potential_never_increases_norm() -> None:
    grid = Grid(32, 32)
    potential = build_potential(grid, [], [], 100.0, 0.15)
    psi = _gaussian(grid, 0.7, 0.5, 0.06, kx=25.0)
    norms = [np.sum(np.abs(psi) ** 2)]
    for _ in range(60):
        cn_adi_step(psi, potential, grid.dx, grid.dy, 1e-3)
        norms.append(np.sum(np.abs(psi) ** 2))
    norms = np.array(norms)
    assert np.all(np.diff(norms) <= 1e-12 * norms[:-1])
    assert norms[-1] < 0.95 * norms[0]


def test_kick_factor_modulus_reflects_absorption() -> None:
    potential = np.array([[3.0 + 0.0j, 3.0 - 2.0j]])
    kick = potential_kick_factor(potential, 0.1)
    assert abs(kick[0, 0]) == pytest.approx(1.0)
    assert abs(kick[0, 1]) == pytest.approx(np.exp(-0.1))


def test_step_commutes_with_transpose_for_symmetric_state() -> None:
    grid = Grid(20, 20)
    potential = build_potential(grid, [], [], 1.0, 0.1)
    psi = _gaussian(grid, 0.5, 0.5, 0.1, kx=5.0, ky=5.0)
    for _ in range(10):
        cn_adi_step(psi, potential, grid.dx, grid.dy, 1e-3)
    assert np.allclose(psi, psi.T, atol=1e-12)
