"""Mass diagnostics and the sticky instability monitor.

The monitor is a pair of pure transitions over an immutable
:class:`StabilityDiagnostics` value: :func:`refresh_baseline` starts a new
baseline and :func:`update_diagnostics` folds in a fresh
:class:`FieldMeasurement`. Instability is reported through the returned
value, never raised.

Two severities exist. ``unstable`` is sticky until the next baseline and is
what auto-pause reacts to. ``warning`` is re-evaluated on every update and
only reports suspicious but tolerated behaviour.

Interior checks depend on an interior guard decided at baseline time: when
the interior region is a negligible part of the grid, or holds a negligible
share of the initial mass, its relative drift is meaningless and the
interior checks are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .models import StabilityConfig


NON_FINITE_REASON = "psi contains NaN/Inf"
_MASS_FLOOR = 1e-15


@dataclass(frozen=True)
class FieldMeasurement:
    total_mass: float
    interior_mass: float
    left_mass: float
    right_mass: float
    all_finite: bool
    interior_area_fraction: float = 1.0


@dataclass(frozen=True)
class StabilityDiagnostics:
    initial_mass: float = 0.0
    initial_interior_mass: float = 0.0
    current_mass: float = 0.0
    current_interior_mass: float = 0.0
    left_mass: float = 0.0
    right_mass: float = 0.0
    rel_mass_drift: float = 0.0
    rel_interior_mass_drift: float = 0.0
    rel_interior_mass_drift_vs_total: float = 0.0
    steps_since_baseline: int = 0
    has_non_finite: bool = False
    unstable: bool = False
    reason: str = ""
    violation_metric: str = ""
    violation_value: float = 0.0
    violation_limit: float = 0.0
    warning: bool = False
    warning_reason: str = ""
    interior_guard_active: bool = True
    interior_guard_reason: str = ""

    def as_dict(self) -> dict[str, float | int | bool | str]:
        return {
            "initial_mass": self.initial_mass,
            "initial_interior_mass": self.initial_interior_mass,
            "current_mass": self.current_mass,
            "current_interior_mass": self.current_interior_mass,
            "left_mass": self.left_mass,
            "right_mass": self.right_mass,
            "rel_mass_drift": self.rel_mass_drift,
            "rel_interior_mass_drift": self.rel_interior_mass_drift,
            "rel_interior_mass_drift_vs_total": self.rel_interior_mass_drift_vs_total,
            "steps_since_baseline": self.steps_since_baseline,
            "has_non_finite": self.has_non_finite,
            "unstable": self.unstable,
            "reason": self.reason,
            "warning": self.warning,
            "warning_reason": self.warning_reason,
            "interior_guard_active": self.interior_guard_active,
            "interior_guard_reason": self.interior_guard_reason,
        }


def interior_slices(nx: int, ny: int, band_x: int, band_y: int) -> tuple[slice, slice]:
    """Row/column slices of the grid with the sponge band removed on all sides.

    Falls back to the whole grid when the band would consume it.
    """
    if 2 * band_x >= nx or 2 * band_y >= ny:
        return slice(0, ny), slice(0, nx)
    return slice(band_y, ny - band_y), slice(band_x, nx - band_x)


def measure_field(psi: np.ndarray, dx: float, dy: float, band_x: int, band_y: int) -> FieldMeasurement:
    ny, nx = psi.shape
    cell_area = dx * dy
    density = psi.real * psi.real + psi.imag * psi.imag
    mid = nx // 2
    left = float(np.sum(density[:, :mid]) * cell_area)
    right = float(np.sum(density[:, mid:]) * cell_area)
    rows, cols = interior_slices(nx, ny, band_x, band_y)
    interior_cells = density[rows, cols]
    return FieldMeasurement(
        total_mass=left + right,
        interior_mass=float(np.sum(interior_cells) * cell_area),
        left_mass=left,
        right_mass=right,
        all_finite=bool(np.all(np.isfinite(psi))),
        interior_area_fraction=interior_cells.size / density.size,
    )


def relative_drift(current: float, initial: float) -> float:
    return abs(current - initial) / max(_MASS_FLOOR, initial)


def interior_guard(measurement: FieldMeasurement, config: StabilityConfig) -> tuple[bool, str]:
    """Whether interior drift checks are meaningful for a baseline taken from ``measurement``."""
    area = measurement.interior_area_fraction
    if area < config.min_interior_area_fraction:
        return False, (
            f"interior area fraction {area:.3g} below minimum {config.min_interior_area_fraction:.3g}"
        )
    if measurement.total_mass <= _MASS_FLOOR:
        return False, "initial total mass is zero"
    share = measurement.interior_mass / measurement.total_mass
    if share < config.min_initial_interior_mass_fraction:
        return False, (
            f"initial interior mass fraction {share:.3g} below minimum "
            f"{config.min_initial_interior_mass_fraction:.3g}"
        )
    return True, ""


def refresh_baseline(
    measurement: FieldMeasurement,
    config: StabilityConfig | None = None,
) -> StabilityDiagnostics:
    """Start a new baseline from ``measurement``; clears the sticky flag and warmup counter."""
    guard_active, guard_reason = interior_guard(measurement, config or StabilityConfig())
    diagnostics = StabilityDiagnostics(
        initial_mass=measurement.total_mass,
        initial_interior_mass=measurement.interior_mass,
        current_mass=measurement.total_mass,
        current_interior_mass=measurement.interior_mass,
        left_mass=measurement.left_mass,
        right_mass=measurement.right_mass,
        has_non_finite=not measurement.all_finite,
        interior_guard_active=guard_active,
        interior_guard_reason=guard_reason,
    )
    if not measurement.all_finite:
        return _flag(diagnostics, NON_FINITE_REASON, "non_finite", float("nan"), 0.0)
    return diagnostics


def _flag(
    diagnostics: StabilityDiagnostics,
    reason: str,
    metric: str,
    value: float,
    limit: float,
) -> StabilityDiagnostics:
    return replace(
        diagnostics,
        unstable=True,
        reason=reason,
        violation_metric=metric,
        violation_value=value,
        violation_limit=limit,
    )


def update_diagnostics(
    previous: StabilityDiagnostics,
    measurement: FieldMeasurement,
    config: StabilityConfig,
    cap_enabled: bool,
    is_time_step: bool,
) -> StabilityDiagnostics:
    """Fold ``measurement`` into ``previous`` and evaluate the stability rules.

    Only time steps consume the warmup budget. The non-finite check runs
    before the warmup gate. With absorption enabled the total mass may only
    fall: growth past ``rel_cap_mass_growth_tol`` warns and growth past
    ``rel_mass_drift_tol`` is unstable. Without absorption, drift in either
    direction past ``rel_mass_drift_tol`` is unstable. While the interior
    guard is active, interior drift past its tolerance is unstable and
    interior drift not matched by total drift warns (or fails when
    ``interior_drift_hard_fail`` is set).
    """
    steps = previous.steps_since_baseline + (1 if is_time_step else 0)
    rel_mass = relative_drift(measurement.total_mass, previous.initial_mass)
    rel_interior = relative_drift(measurement.interior_mass, previous.initial_interior_mass)
    unexplained = (measurement.interior_mass - previous.initial_interior_mass) - (
        measurement.total_mass - previous.initial_mass
    )
    rel_vs_total = abs(unexplained) / max(_MASS_FLOOR, previous.initial_mass)
    diagnostics = replace(
        previous,
        current_mass=measurement.total_mass,
        current_interior_mass=measurement.interior_mass,
        left_mass=measurement.left_mass,
        right_mass=measurement.right_mass,
        rel_mass_drift=rel_mass,
        rel_interior_mass_drift=rel_interior,
        rel_interior_mass_drift_vs_total=rel_vs_total,
        steps_since_baseline=steps,
        has_non_finite=not measurement.all_finite,
    )

    if previous.unstable:
        return diagnostics
    diagnostics = replace(diagnostics, warning=False, warning_reason="")
    if not measurement.all_finite:
        return _flag(diagnostics, NON_FINITE_REASON, "non_finite", float("nan"), 0.0)
    if steps <= config.warmup_steps:
        return diagnostics

    warnings: list[str] = []
    tol = config.rel_mass_drift_tol
    if cap_enabled:
        limit = previous.initial_mass * (1.0 + tol)
        if measurement.total_mass > limit:
            return _flag(
                diagnostics,
                f"total mass grew to {measurement.total_mass:.6g} above {limit:.6g} "
                "while the absorbing boundary is enabled",
                "total_mass_growth",
                rel_mass,
                tol,
            )
        soft_limit = previous.initial_mass * (1.0 + config.rel_cap_mass_growth_tol)
        if measurement.total_mass > soft_limit:
            warnings.append(
                f"total mass grew to {measurement.total_mass:.6g} above {soft_limit:.6g} "
                "while the absorbing boundary is enabled"
            )
    elif rel_mass > tol:
        return _flag(
            diagnostics,
            f"total mass drift {rel_mass:.3g} exceeds tolerance {tol:.3g}",
            "rel_mass_drift",
            rel_mass,
            tol,
        )

    if previous.interior_guard_active:
        interior_tol = config.rel_interior_mass_drift_tol
        if rel_interior > interior_tol:
            return _flag(
                diagnostics,
                f"interior mass drift {rel_interior:.3g} exceeds tolerance {interior_tol:.3g}",
                "rel_interior_mass_drift",
                rel_interior,
                interior_tol,
            )
        vs_total_tol = config.interior_mass_drift_vs_total_tol
        if rel_vs_total > vs_total_tol:
            message = (
                f"interior mass drift vs total {rel_vs_total:.3g} exceeds tolerance {vs_total_tol:.3g}"
            )
            if config.interior_drift_hard_fail:
                return _flag(
                    diagnostics,
                    message,
                    "rel_interior_mass_drift_vs_total",
                    rel_vs_total,
                    vs_total_tol,
                )
            warnings.append(message)

    if warnings:
        return replace(diagnostics, warning=True, warning_reason="; ".join(warnings))
    return diagnostics
