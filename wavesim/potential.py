from __future__ import annotations

from dataclasses import dataclass, field
import math

import numpy as np

from .models import Box, Grid, RadialWell, clamp_unit


MIN_WELL_SCALE = 1e-4


def cap_band_width(ratio: float, n: int) -> int:
    """Sponge width in cells along an axis of ``n`` cells (never below one)."""
    return max(1, int(round(ratio * n)))


def box_index_bounds(box: Box, nx: int, ny: int) -> tuple[int, int, int, int]:
    """Inclusive cell index rectangle ``(ix0, ix1, iy0, iy1)`` covered by ``box``."""

    def _to_index(coord: float, n: int) -> int:
        return max(0, min(n - 1, int(math.floor(clamp_unit(coord) * n))))

    ix0, ix1 = _to_index(box.x0, nx), _to_index(box.x1, nx)
    iy0, iy1 = _to_index(box.y0, ny), _to_index(box.y1, ny)
    if ix1 < ix0:
        ix0, ix1 = ix1, ix0
    if iy1 < iy0:
        iy0, iy1 = iy1, iy0
    return ix0, ix1, iy0, iy1


def radial_profile(profile: str, strength: float, r2: np.ndarray, r0: float) -> np.ndarray:
    r0sq = r0 * r0
    if profile == "gaussian":
        return strength * np.exp(-r2 / r0sq)
    if profile == "soft_coulomb":
        return strength / np.sqrt(r2 + r0sq)
    if profile == "inverse_square":
        return strength / (r2 + r0sq)
    if profile == "harmonic_oscillator":
        # Centre value equals strength; negative strength gives a confining bowl.
        return strength * (1.0 - r2 / r0sq)
    raise ValueError(f"Unsupported radial well profile: {profile}")


def sponge_profile(grid: Grid, cap_strength: float, cap_ratio: float) -> np.ndarray:
    """Non-negative absorption magnitude per cell; zero outside the sponge band.

    Corners take the larger of the two axis proximities rather than their sum.
    """

    def _axis_proximity(n: int, width: int) -> np.ndarray:
        idx = np.arange(n, dtype=float)
        return np.where(
            idx < width,
            (width - idx) / width,
            np.where(idx >= n - width, (idx - (n - width - 1)) / width, 0.0),
        )

    sx = _axis_proximity(grid.nx, cap_band_width(cap_ratio, grid.nx))
    sy = _axis_proximity(grid.ny, cap_band_width(cap_ratio, grid.ny))
    s = np.maximum(sx[None, :], sy[:, None])
    ramp = s * s * (3.0 - 2.0 * s)
    return cap_strength * ramp * ramp


def build_potential(
    grid: Grid,
    boxes: list[Box],
    wells: list[RadialWell],
    cap_strength: float,
    cap_ratio: float,
) -> np.ndarray:
    """Compose the complex potential: barriers and wells in the real part, sponge in the imaginary part."""
    potential = np.zeros(grid.shape, dtype=complex)

    for box in boxes:
        ix0, ix1, iy0, iy1 = box_index_bounds(box, grid.nx, grid.ny)
        potential[iy0 : iy1 + 1, ix0 : ix1 + 1] += box.height

    if wells:
        x, y = grid.cell_centers()
        min_length = min(grid.lx, grid.ly)
        for well in wells:
            r0 = max(MIN_WELL_SCALE, well.radius * min_length)
            r2 = (x - well.cx * grid.lx) ** 2 + (y - well.cy * grid.ly) ** 2
            potential.real += radial_profile(well.profile, well.strength, r2, r0)

    potential.imag -= sponge_profile(grid, cap_strength, cap_ratio)
    return potential


@dataclass
class PotentialField:
    """Static potential sources; any change requires a full :meth:`build`."""

    cap_strength: float = 1.0
    cap_ratio: float = 0.1
    boxes: list[Box] = field(default_factory=list)
    wells: list[RadialWell] = field(default_factory=list)

    @property
    def cap_enabled(self) -> bool:
        return self.cap_strength > 1e-12 and self.cap_ratio > 0.0

    def build(self, grid: Grid) -> np.ndarray:
        return build_potential(grid, self.boxes, self.wells, self.cap_strength, self.cap_ratio)
