from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


MIN_GRID_CELLS = 8

WELL_PROFILES = (
    "gaussian",
    "soft_coulomb",
    "inverse_square",
    "harmonic_oscillator",
)


def normalize_profile_name(value: str | int) -> str:
    # Older scene files store the profile as an integer code.
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        code = int(value)
        if 0 <= code < len(WELL_PROFILES):
            return WELL_PROFILES[code]
        raise ValueError(f"Unsupported radial well profile code: {value}")
    profile = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    if profile not in WELL_PROFILES:
        allowed = ", ".join(WELL_PROFILES)
        raise ValueError(f"Unsupported radial well profile '{value}'. Supported values: {allowed}.")
    return profile


def clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


@dataclass(frozen=True)
class Grid:
    """Square-cell grid geometry.

    The shorter side always spans one length unit, so ``dx == dy`` and
    ``lx``/``ly`` keep the aspect ratio of ``nx``/``ny``.
    """

    nx: int
    ny: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "nx", max(MIN_GRID_CELLS, int(self.nx)))
        object.__setattr__(self, "ny", max(MIN_GRID_CELLS, int(self.ny)))

    @property
    def cell(self) -> float:
        return 1.0 / float(min(self.nx, self.ny))

    @property
    def dx(self) -> float:
        return self.cell

    @property
    def dy(self) -> float:
        return self.cell

    @property
    def lx(self) -> float:
        return self.nx * self.cell

    @property
    def ly(self) -> float:
        return self.ny * self.cell

    @property
    def shape(self) -> tuple[int, int]:
        return (self.ny, self.nx)

    def cell_centers(self) -> tuple[np.ndarray, np.ndarray]:
        """Physical cell-centre coordinates as broadcastable (1, nx) and (ny, 1) arrays."""
        x = (np.arange(self.nx, dtype=float) + 0.5) * self.dx
        y = (np.arange(self.ny, dtype=float) + 0.5) * self.dy
        return x[None, :], y[:, None]


@dataclass
class Box:
    # Normalized [0, 1] rectangle; positive height is a barrier, negative a well.
    x0: float
    y0: float
    x1: float
    y1: float
    height: float


@dataclass
class RadialWell:
    cx: float
    cy: float
    strength: float
    radius: float
    profile: str = "gaussian"

    def __post_init__(self) -> None:
        self.profile = normalize_profile_name(self.profile)


@dataclass
class Packet:
    cx: float
    cy: float
    sigma: float       # width relative to the shorter domain side
    amplitude: float
    kx: float = 0.0    # radians per unit length
    ky: float = 0.0


@dataclass
class SimulationParameters:
    nx: int = 128
    ny: int = 128
    dt: float = 1e-3
    cap_strength: float = 1.0
    cap_ratio: float = 0.1

    def __post_init__(self) -> None:
        self.nx = max(MIN_GRID_CELLS, int(self.nx))
        self.ny = max(MIN_GRID_CELLS, int(self.ny))
        if self.dt <= 0:
            raise ValueError("dt must be positive.")
        if self.cap_strength < 0:
            raise ValueError("cap_strength must be non-negative.")
        if not 0.0 <= self.cap_ratio < 0.5:
            raise ValueError("cap_ratio must be in [0, 0.5).")


@dataclass
class StabilityConfig:
    rel_mass_drift_tol: float = 0.15
    rel_interior_mass_drift_tol: float = 1.0
    warmup_steps: int = 8
    auto_pause_on_instability: bool = True
    # Growth allowed with the sponge on before a warning; rel_mass_drift_tol stays the hard limit.
    rel_cap_mass_growth_tol: float = 0.01
    interior_mass_drift_vs_total_tol: float = 0.05
    min_initial_interior_mass_fraction: float = 0.05
    min_interior_area_fraction: float = 0.01
    interior_drift_hard_fail: bool = False

    def __post_init__(self) -> None:
        for name in (
            "rel_mass_drift_tol",
            "rel_interior_mass_drift_tol",
            "rel_cap_mass_growth_tol",
            "interior_mass_drift_vs_total_tol",
            "min_initial_interior_mass_fraction",
            "min_interior_area_fraction",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative.")
        if self.warmup_steps < 0:
            raise ValueError("warmup_steps must be non-negative.")


@dataclass
class EigenState:
    energy: float
    psi: np.ndarray


@dataclass
class SceneData:
    nx: int = 128
    ny: int = 128
    dt: float = 1e-3
    cap_strength: float = 1.0
    cap_ratio: float = 0.1
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    boxes: list[Box] = field(default_factory=list)
    wells: list[RadialWell] = field(default_factory=list)
    packets: list[Packet] = field(default_factory=list)
    steps: int = 600
    name: str = "scene"
