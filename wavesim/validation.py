from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from .models import Box, Grid, Packet, SimulationParameters, StabilityConfig
from .potential import build_potential, cap_band_width, sponge_profile
from .simulation import Simulation
from .tridiag import solve_tridiagonal, tridiagonal_matvec


@dataclass
class ValidationReport:
    tridiagonal_roundtrip: dict[str, Any]
    mass_conservation: dict[str, Any]
    cap_absorption: dict[str, Any]
    sponge_profile: dict[str, Any]
    potential_additivity: dict[str, Any]

    @property
    def overall_passed(self) -> bool:
        return all(
            bool(section.get("passed", False))
            for section in (
                self.tridiagonal_roundtrip,
                self.mass_conservation,
                self.cap_absorption,
                self.sponge_profile,
                self.potential_additivity,
            )
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "tridiagonal_roundtrip": self.tridiagonal_roundtrip,
            "mass_conservation": self.mass_conservation,
            "cap_absorption": self.cap_absorption,
            "sponge_profile": self.sponge_profile,
            "potential_additivity": self.potential_additivity,
            "overall_passed": self.overall_passed,
        }


def _free_simulation(n: int, dt: float, cap_strength: float) -> Simulation:
    return Simulation(
        SimulationParameters(nx=n, ny=n, dt=dt, cap_strength=cap_strength, cap_ratio=0.1),
        StabilityConfig(warmup_steps=0),
    )


def validate_tridiagonal_roundtrip(*, n: int = 64, seed: int = 0, tolerance: float = 1e-10) -> dict[str, Any]:
    rng = np.random.default_rng(seed)
    a = rng.normal(size=n) + 1j * rng.normal(size=n)
    c = rng.normal(size=n) + 1j * rng.normal(size=n)
    a[0] = 0.0
    c[-1] = 0.0
    b = (np.abs(a) + np.abs(c) + 1.0 + rng.random(n)) * np.exp(1j * rng.uniform(0, 2 * np.pi, n))
    rhs = rng.normal(size=n) + 1j * rng.normal(size=n)

    x = solve_tridiagonal(a, b.copy(), c, rhs.copy())
    residual = tridiagonal_matvec(a, b, c, x) - rhs
    rel = float(np.linalg.norm(residual) / max(1e-300, float(np.linalg.norm(rhs))))
    return {"passed": rel <= tolerance, "relative_residual": rel, "tolerance": tolerance}


def validate_mass_conservation(
    *,
    n: int = 32,
    dt: float = 1e-3,
    steps: int = 100,
    tolerance: float = 1e-9,
) -> dict[str, Any]:
    sim = _free_simulation(n, dt, cap_strength=0.0)
    sim.add_packet(Packet(0.5, 0.5, 0.08, 1.0, 6.0, -4.0))
    sim.rebaseline()
    start = sim.mass()
    sim.step_n(steps)
    drift = float(abs(sim.mass() - start) / max(1e-20, start))
    return {"passed": drift <= tolerance, "mass_relative_drift": drift, "tolerance": tolerance}


def validate_cap_absorption(
    *,
    n: int = 32,
    dt: float = 1e-3,
    steps: int = 60,
    tolerance_nonincreasing: float = 1e-12,
) -> dict[str, Any]:
    sim = _free_simulation(n, dt, cap_strength=50.0)
    sim.add_packet(Packet(0.6, 0.5, 0.06, 1.0, 20.0, 0.0))
    sim.rebaseline()
    mass = [sim.mass()]
    for _ in range(steps):
        sim.step()
        mass.append(sim.mass())
    nonincreasing = all(
        mass[i + 1] <= mass[i] * (1.0 + tolerance_nonincreasing) for i in range(len(mass) - 1)
    )
    return {
        "passed": bool(nonincreasing and mass[-1] < mass[0]),
        "mass_start": mass[0],
        "mass_end": mass[-1],
    }


def validate_sponge_profile(*, n: int = 32, cap_strength: float = 1.0, cap_ratio: float = 0.15) -> dict[str, Any]:
    grid = Grid(n, n)
    absorb = sponge_profile(grid, cap_strength, cap_ratio)
    row = absorb[n // 2, : n // 2]
    width = cap_band_width(cap_ratio, n)
    monotonic = bool(np.all(np.diff(row) <= 0.0))
    zero_inside = bool(np.all(absorb[width : n - width, width : n - width] == 0.0))
    return {
        "passed": monotonic and zero_inside and bool(row[0] > 0.0),
        "band_width": width,
        "edge_value": float(row[0]),
    }


def validate_potential_additivity(*, n: int = 32) -> dict[str, Any]:
    grid = Grid(n, n)
    first = Box(0.2, 0.2, 0.6, 0.6, 3.0)
    second = Box(0.4, 0.4, 0.8, 0.8, 5.0)
    combined = build_potential(grid, [first, second], [], 0.0, 0.1)
    separate = build_potential(grid, [first], [], 0.0, 0.1) + build_potential(grid, [second], [], 0.0, 0.1)
    max_error = float(np.max(np.abs(combined - separate)))
    return {"passed": max_error == 0.0, "max_abs_error": max_error}


def run_fast_validation_suite() -> ValidationReport:
    return ValidationReport(
        tridiagonal_roundtrip=validate_tridiagonal_roundtrip(),
        mass_conservation=validate_mass_conservation(),
        cap_absorption=validate_cap_absorption(),
        sponge_profile=validate_sponge_profile(),
        potential_additivity=validate_potential_additivity(),
    )
