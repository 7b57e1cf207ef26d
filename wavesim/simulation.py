from __future__ import annotations

import logging

import numpy as np

from .eigen import compute_eigenstates
from .models import Box, EigenState, Grid, Packet, RadialWell, SimulationParameters, StabilityConfig, clamp_unit
from .potential import PotentialField, cap_band_width
from .solver import cn_adi_step, potential_kick_factor
from .stability import (
    FieldMeasurement,
    StabilityDiagnostics,
    measure_field,
    refresh_baseline,
    update_diagnostics,
)


logger = logging.getLogger(__name__)

_MAX_CAP_RATIO = 0.49


class Simulation:
    """Owns the grid, ψ and V, steps the CN-ADI operator and tracks stability.

    ``psi`` and ``potential`` are ``(ny, nx)`` complex arrays. Boxes, wells
    and packets are plain lists that callers may edit directly; call
    :meth:`rebuild_potential` or :meth:`reset` afterwards.
    """

    def __init__(
        self,
        params: SimulationParameters | None = None,
        stability: StabilityConfig | None = None,
    ) -> None:
        p = params or SimulationParameters()
        self.dt = float(p.dt)
        self.running = False
        self.time = 0.0
        self.field = PotentialField(cap_strength=p.cap_strength, cap_ratio=p.cap_ratio)
        self.packets: list[Packet] = []
        self.stability = stability or StabilityConfig()
        self.diagnostics = StabilityDiagnostics()
        self.grid = Grid(p.nx, p.ny)
        self.psi = np.zeros(self.grid.shape, dtype=complex)
        self.potential = np.zeros(self.grid.shape, dtype=complex)
        self._kick: np.ndarray | None = None
        self._kick_dt = 0.0
        self.resize(p.nx, p.ny)

    # --- geometry -------------------------------------------------------
    @property
    def nx(self) -> int:
        return self.grid.nx

    @property
    def ny(self) -> int:
        return self.grid.ny

    @property
    def dx(self) -> float:
        return self.grid.dx

    @property
    def dy(self) -> float:
        return self.grid.dy

    @property
    def lx(self) -> float:
        return self.grid.lx

    @property
    def ly(self) -> float:
        return self.grid.ly

    @property
    def boxes(self) -> list[Box]:
        return self.field.boxes

    @property
    def wells(self) -> list[RadialWell]:
        return self.field.wells

    # --- state mutation -------------------------------------------------
    def resize(self, nx: int, ny: int) -> None:
        """Reallocate the grid; old field content is discarded and rebuilt from the retained sources."""
        self.grid = Grid(nx, ny)
        self.psi = np.zeros(self.grid.shape, dtype=complex)
        logger.debug("Resized grid to %dx%d (cell=%g).", self.nx, self.ny, self.grid.cell)
        self.reset()

    def clear_psi(self) -> None:
        self.psi.fill(0.0)

    def rebuild_potential(self) -> None:
        self.potential = self.field.build(self.grid)
        self._kick = None

    def _kick_factor(self) -> np.ndarray:
        if self._kick is None or self._kick_dt != self.dt:
            self._kick = potential_kick_factor(self.potential, self.dt)
            self._kick_dt = self.dt
        return self._kick

    def reset(self) -> None:
        """Re-synthesize ψ from the retained packets and start a new diagnostics baseline."""
        self.clear_psi()
        self.rebuild_potential()
        for packet in self.packets:
            self._add_gaussian(packet)
        self.time = 0.0
        self.rebaseline()

    def _add_gaussian(self, packet: Packet) -> None:
        cx = packet.cx * self.lx
        cy = packet.cy * self.ly
        sigma = max(1e-12, packet.sigma * min(self.lx, self.ly))
        x, y = self.grid.cell_centers()
        envelope = np.exp(-0.5 * ((x - cx) ** 2 + (y - cy) ** 2) / (sigma * sigma))
        phase = packet.kx * (x - cx) + packet.ky * (y - cy)
        self.psi += packet.amplitude * envelope * np.exp(1j * phase)

    def inject_gaussian(self, packet: Packet) -> None:
        """Superpose a Gaussian packet onto ψ without recording it."""
        self._add_gaussian(packet)
        self.update_diagnostics()

    def add_packet(self, packet: Packet) -> None:
        """Record ``packet`` for future resets and superpose it onto ψ."""
        self.packets.append(packet)
        self.inject_gaussian(packet)

    def add_box(self, box: Box) -> None:
        self.field.boxes.append(box)
        self.rebuild_potential()
        self.update_diagnostics()

    def add_well(self, well: RadialWell) -> None:
        self.field.wells.append(well)
        self.rebuild_potential()
        self.update_diagnostics()

    def set_cap(self, strength: float | None = None, ratio: float | None = None) -> None:
        if strength is not None:
            self.field.cap_strength = max(0.0, float(strength))
        if ratio is not None:
            self.field.cap_ratio = min(_MAX_CAP_RATIO, clamp_unit(ratio))
        self.rebuild_potential()
        self.update_diagnostics()

    # --- stepping -------------------------------------------------------
    def step(self) -> None:
        cn_adi_step(self.psi, self.potential, self.dx, self.dy, self.dt, kick=self._kick_factor())
        self.time += self.dt
        self.update_diagnostics(is_time_step=True)
        if self.diagnostics.unstable and self.stability.auto_pause_on_instability:
            self.running = False

    def step_n(self, n: int) -> None:
        for _ in range(int(n)):
            self.step()

    # --- diagnostics ----------------------------------------------------
    def _sponge_bands(self) -> tuple[int, int]:
        ratio = self.field.cap_ratio
        return cap_band_width(ratio, self.nx), cap_band_width(ratio, self.ny)

    def _measure(self) -> FieldMeasurement:
        band_x, band_y = self._sponge_bands()
        return measure_field(self.psi, self.dx, self.dy, band_x, band_y)

    def update_diagnostics(self, is_time_step: bool = False) -> StabilityDiagnostics:
        was_unstable = self.diagnostics.unstable
        was_warning = self.diagnostics.warning
        self.diagnostics = update_diagnostics(
            self.diagnostics,
            self._measure(),
            self.stability,
            cap_enabled=self.field.cap_enabled,
            is_time_step=is_time_step,
        )
        if self.diagnostics.unstable and not was_unstable:
            logger.warning(
                "Simulation flagged unstable at t=%.6g (%d steps since baseline): %s",
                self.time,
                self.diagnostics.steps_since_baseline,
                self.diagnostics.reason,
            )
        elif self.diagnostics.warning and not was_warning:
            logger.info("Stability warning at t=%.6g: %s", self.time, self.diagnostics.warning_reason)
        return self.diagnostics

    def rebaseline(self) -> StabilityDiagnostics:
        self.diagnostics = refresh_baseline(self._measure(), self.stability)
        if not self.diagnostics.interior_guard_active:
            logger.debug("Interior drift checks disabled: %s", self.diagnostics.interior_guard_reason)
        return self.diagnostics

    def mass(self) -> float:
        density = self.psi.real * self.psi.real + self.psi.imag * self.psi.imag
        return float(np.sum(density) * self.dx * self.dy)

    def interior_mass(self) -> float:
        return self._measure().interior_mass

    def mass_split(self) -> tuple[float, float]:
        """(left, right) mass about the vertical midline, as of the last diagnostics pass."""
        return self.diagnostics.left_mass, self.diagnostics.right_mass

    # --- eigenstates ----------------------------------------------------
    def compute_eigenstates(
        self,
        modes: int,
        basis_size: int = 64,
        max_iter: int = 200,
        tol: float = 1e-6,
    ) -> list[EigenState]:
        return compute_eigenstates(self.grid, self.potential, modes, basis_size, max_iter, tol)

    def apply_eigenstate(self, state: EigenState) -> None:
        psi = np.array(state.psi, dtype=complex)
        if psi.shape != self.grid.shape:
            raise ValueError(
                f"Eigenstate shape {psi.shape} does not match grid shape {self.grid.shape}."
            )
        self.psi = psi
        self.packets.clear()
        self.rebaseline()
