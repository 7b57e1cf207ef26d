from __future__ import annotations

import numpy as np
import pytest

from wavesim.models import StabilityConfig
from wavesim.stability import (
    NON_FINITE_REASON,
    FieldMeasurement,
    interior_slices,
    measure_field,
    refresh_baseline,
    relative_drift,
    update_diagnostics,
)


def _m(
    total: float,
    interior: float | None = None,
    finite: bool = True,
    area: float = 0.64,
) -> FieldMeasurement:
    interior = total if interior is None else interior
    return FieldMeasurement(
        total_mass=total,
        interior_mass=interior,
        left_mass=0.5 * total,
        right_mass=0.5 * total,
        all_finite=finite,
        interior_area_fraction=area,
    )


def _run(diag, measurements, config, cap_enabled, is_time_step=True):
    for m in measurements:
        diag = update_diagnostics(diag, m, config, cap_enabled=cap_enabled, is_time_step=is_time_step)
    return diag


def test_measure_field_splits_mass_about_midline() -> None:
    psi = np.zeros((8, 10), dtype=complex)
    psi[2, 4] = 1.0
    psi[5, 5] = 2.0j
    m = measure_field(psi, 0.5, 0.5, 1, 1)
    assert m.left_mass == pytest.approx(0.25)
    assert m.right_mass == pytest.approx(1.0)
    assert m.total_mass == pytest.approx(1.25)
    assert m.all_finite


def test_measure_field_excludes_sponge_band_from_interior() -> None:
    psi = np.ones((10, 10), dtype=complex)
    m = measure_field(psi, 1.0, 1.0, 2, 3)
    assert m.total_mass == pytest.approx(100.0)
    assert m.interior_mass == pytest.approx(6.0 * 4.0)
    assert m.interior_area_fraction == pytest.approx(0.24)


def test_interior_falls_back_to_full_grid_when_band_consumes_it() -> None:
    rows, cols = interior_slices(10, 12, 5, 2)
    assert (rows, cols) == (slice(0, 12), slice(0, 10))
    rows, cols = interior_slices(10, 12, 2, 2)
    assert (rows, cols) == (slice(2, 10), slice(2, 8))


def test_measure_field_detects_non_finite_imaginary_part() -> None:
    psi = np.ones((8, 8), dtype=complex)
    psi[3, 3] = complex(0.0, np.inf)
    assert not measure_field(psi, 1.0, 1.0, 1, 1).all_finite


def test_relative_drift_guards_zero_baseline() -> None:
    assert relative_drift(0.0, 0.0) == 0.0
    assert relative_drift(1.0, 0.0) == pytest.approx(1e15)
    assert relative_drift(1.1, 1.0) == pytest.approx(0.1)


def test_non_finite_flagged_during_warmup() -> None:
    config = StabilityConfig(warmup_steps=100)
    diag = refresh_baseline(_m(1.0))
    diag = update_diagnostics(diag, _m(float("nan"), finite=False), config, cap_enabled=True, is_time_step=False)
    assert diag.unstable
    assert diag.has_non_finite
    assert "NaN/Inf" in diag.reason
    assert diag.reason == NON_FINITE_REASON


def test_warmup_suppresses_drift_checks_and_counts_only_time_steps() -> None:
    config = StabilityConfig(rel_mass_drift_tol=0.01, warmup_steps=3)
    diag = refresh_baseline(_m(1.0))
    diag = _run(diag, [_m(2.0)] * 5, config, cap_enabled=False, is_time_step=False)
    assert diag.steps_since_baseline == 0
    assert not diag.unstable

    diag = _run(diag, [_m(2.0)] * 3, config, cap_enabled=False)
    assert diag.steps_since_baseline == 3
    assert not diag.unstable

    diag = _run(diag, [_m(2.0)], config, cap_enabled=False)
    assert diag.unstable
    assert diag.violation_metric == "rel_mass_drift"
    assert diag.violation_value == pytest.approx(1.0)
    assert diag.violation_limit == pytest.approx(0.01)


def test_without_cap_mass_loss_is_also_flagged() -> None:
    config = StabilityConfig(rel_mass_drift_tol=0.05, rel_interior_mass_drift_tol=10.0, warmup_steps=0)
    diag = refresh_baseline(_m(1.0))
    diag = _run(diag, [_m(0.9)], config, cap_enabled=False)
    assert diag.unstable
    assert "total mass drift" in diag.reason


def test_with_cap_mass_loss_is_expected_but_growth_is_flagged() -> None:
    config = StabilityConfig(rel_mass_drift_tol=0.05, rel_interior_mass_drift_tol=10.0, warmup_steps=0)
    diag = refresh_baseline(_m(1.0))
    diag = _run(diag, [_m(0.5), _m(0.2)], config, cap_enabled=True)
    assert not diag.unstable
    assert diag.rel_mass_drift == pytest.approx(0.8)

    diag = _run(diag, [_m(1.06)], config, cap_enabled=True)
    assert diag.unstable
    assert diag.violation_metric == "total_mass_growth"


def test_interior_drift_flagged_in_either_direction() -> None:
    config = StabilityConfig(rel_mass_drift_tol=1.0, rel_interior_mass_drift_tol=0.2, warmup_steps=0)
    diag = refresh_baseline(_m(1.0, interior=0.8))
    flagged = _run(diag, [_m(0.9, interior=0.5)], config, cap_enabled=True)
    assert flagged.unstable
    assert flagged.violation_metric == "rel_interior_mass_drift"

    grown = _run(diag, [_m(1.0, interior=1.0)], config, cap_enabled=False)
    assert grown.unstable


def test_instability_is_sticky_until_baseline_refresh() -> None:
    config = StabilityConfig(rel_mass_drift_tol=0.05, warmup_steps=0)
    diag = refresh_baseline(_m(1.0))
    diag = _run(diag, [_m(2.0)], config, cap_enabled=False)
    reason = diag.reason
    diag = _run(diag, [_m(1.0)] * 4, config, cap_enabled=False)
    assert diag.unstable
    assert diag.reason == reason
    assert diag.current_mass == pytest.approx(1.0)

    fresh = refresh_baseline(_m(1.0))
    assert not fresh.unstable
    assert fresh.reason == ""
    assert fresh.steps_since_baseline == 0
    assert fresh.initial_mass == pytest.approx(1.0)


def test_transitions_do_not_mutate_previous_value() -> None:
    config = StabilityConfig(warmup_steps=0)
    diag = refresh_baseline(_m(1.0))
    after = update_diagnostics(diag, _m(3.0), config, cap_enabled=False, is_time_step=True)
    assert diag.current_mass == pytest.approx(1.0)
    assert not diag.unstable
    assert after.unstable


def test_stability_config_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        StabilityConfig(rel_mass_drift_tol=-0.1)
    with pytest.raises(ValueError):
        StabilityConfig(warmup_steps=-1)


def test_cap_growth_below_hard_limit_only_warns() -> None:
    config = StabilityConfig(
        rel_mass_drift_tol=0.15,
        rel_cap_mass_growth_tol=0.01,
        rel_interior_mass_drift_tol=10.0,
        warmup_steps=0,
    )
    diag = refresh_baseline(_m(1.0), config)
    warned = _run(diag, [_m(1.05)], config, cap_enabled=True)
    assert warned.warning
    assert not warned.unstable
    assert "total mass grew" in warned.warning_reason

    recovered = _run(warned, [_m(0.9)], config, cap_enabled=True)
    assert not recovered.warning
    assert recovered.warning_reason == ""


def test_interior_drift_not_matched_by_total_warns_or_fails() -> None:
    config = StabilityConfig(interior_mass_drift_vs_total_tol=0.05, warmup_steps=0)
    diag = refresh_baseline(_m(1.0, interior=0.8), config)
    warned = _run(diag, [_m(1.0, interior=0.7)], config, cap_enabled=False)
    assert warned.rel_interior_mass_drift_vs_total == pytest.approx(0.1)
    assert warned.warning
    assert "interior mass drift vs total" in warned.warning_reason
    assert not warned.unstable

    # Interior loss that shows up in the total mass as well is consistent.
    absorbed = _run(diag, [_m(0.9, interior=0.7)], config, cap_enabled=True)
    assert absorbed.rel_interior_mass_drift_vs_total == pytest.approx(0.0)
    assert not absorbed.warning

    strict = StabilityConfig(interior_mass_drift_vs_total_tol=0.05, interior_drift_hard_fail=True, warmup_steps=0)
    failed = _run(refresh_baseline(_m(1.0, interior=0.8), strict), [_m(1.0, interior=0.7)], strict, cap_enabled=False)
    assert failed.unstable
    assert failed.violation_metric == "rel_interior_mass_drift_vs_total"


def test_interior_guard_disabled_for_small_initial_interior_share() -> None:
    config = StabilityConfig(rel_interior_mass_drift_tol=1.0, warmup_steps=0)
    diag = refresh_baseline(_m(1.0, interior=0.01), config)
    assert not diag.interior_guard_active
    assert "interior mass fraction" in diag.interior_guard_reason

    moved_inward = _run(diag, [_m(0.98, interior=0.9)], config, cap_enabled=True)
    assert moved_inward.rel_interior_mass_drift > 1.0
    assert not moved_inward.unstable
    assert not moved_inward.warning


def test_interior_guard_disabled_for_small_interior_area_or_empty_field() -> None:
    config = StabilityConfig(min_interior_area_fraction=0.01)
    tiny = refresh_baseline(_m(1.0, area=0.004), config)
    assert not tiny.interior_guard_active
    assert "interior area fraction" in tiny.interior_guard_reason

    empty = refresh_baseline(_m(0.0), config)
    assert not empty.interior_guard_active

    healthy = refresh_baseline(_m(1.0, interior=0.5), config)
    assert healthy.interior_guard_active
    assert healthy.interior_guard_reason == ""
