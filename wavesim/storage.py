from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .models import (
    Box,
    Packet,
    RadialWell,
    SceneData,
    SimulationParameters,
    StabilityConfig,
)
from .paths import SCENES_DIR, ensure_data_dirs
from .simulation import Simulation


logger = logging.getLogger(__name__)

SCENE_FORMAT_VERSION = 2


class SceneFormatError(ValueError):
    pass


def _to_bool(val: Any, default: bool) -> bool:
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() not in ("false", "0", "no", "")
    if val is None:
        return default
    return bool(val)


def _as_float(raw: dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _as_int(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(round(value))


def slugify_name(name: str, fallback: str = "scene") -> str:
    value = re.sub(r"[^a-zA-Z0-9_-]+", "_", name.strip()).strip("_")
    return value or fallback


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def _read_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SceneFormatError(f"Cannot read scene file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SceneFormatError(f"Scene file '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SceneFormatError(f"Scene file '{path}' must contain a JSON object.")
    return payload


def serialize_scene(scene: SceneData) -> dict[str, Any]:
    return {
        "format_version": SCENE_FORMAT_VERSION,
        "name": scene.name,
        "Nx": scene.nx,
        "Ny": scene.ny,
        "dt": scene.dt,
        "cap_strength": scene.cap_strength,
        "cap_ratio": scene.cap_ratio,
        "rel_mass_drift_tol": scene.stability.rel_mass_drift_tol,
        "rel_interior_mass_drift_tol": scene.stability.rel_interior_mass_drift_tol,
        "stability_warmup_steps": scene.stability.warmup_steps,
        "rel_cap_mass_growth_tol": scene.stability.rel_cap_mass_growth_tol,
        "interior_mass_drift_vs_total_tol": scene.stability.interior_mass_drift_vs_total_tol,
        "min_initial_interior_mass_fraction": scene.stability.min_initial_interior_mass_fraction,
        "min_interior_area_fraction": scene.stability.min_interior_area_fraction,
        "interior_drift_hard_fail": scene.stability.interior_drift_hard_fail,
        "auto_pause_on_instability": scene.stability.auto_pause_on_instability,
        "steps": scene.steps,
        "boxes": [asdict(box) for box in scene.boxes],
        "wells": [asdict(well) for well in scene.wells],
        "packets": [asdict(packet) for packet in scene.packets],
    }


def _object_items(payload: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = payload.get(key, [])
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _deserialize_well(raw: dict[str, Any]) -> RadialWell | None:
    try:
        return RadialWell(
            cx=_as_float(raw, "cx", 0.0),
            cy=_as_float(raw, "cy", 0.0),
            strength=_as_float(raw, "strength", 0.0),
            radius=_as_float(raw, "radius", 0.0),
            profile=raw.get("profile", 0),
        )
    except ValueError as exc:
        logger.warning("Skipping radial well with invalid profile: %s", exc)
        return None


def deserialize_scene(payload: dict[str, Any]) -> SceneData:
    """Build a :class:`SceneData` from a scene payload.

    Missing or mistyped scalar keys fall back to defaults and malformed list
    items are skipped; out-of-range parameter values and files written by a
    newer format version raise :class:`SceneFormatError`.
    """
    version = payload.get("format_version", SCENE_FORMAT_VERSION)
    if isinstance(version, int) and not isinstance(version, bool) and version > SCENE_FORMAT_VERSION:
        raise SceneFormatError(
            f"Scene format version {version} is newer than supported version {SCENE_FORMAT_VERSION}."
        )
    defaults = SceneData()
    default_stability = StabilityConfig()
    try:
        params = SimulationParameters(
            nx=_as_int(payload, "Nx", defaults.nx),
            ny=_as_int(payload, "Ny", defaults.ny),
            dt=_as_float(payload, "dt", defaults.dt),
            cap_strength=_as_float(payload, "cap_strength", defaults.cap_strength),
            cap_ratio=_as_float(payload, "cap_ratio", defaults.cap_ratio),
        )
        stability = StabilityConfig(
            rel_mass_drift_tol=_as_float(
                payload, "rel_mass_drift_tol", default_stability.rel_mass_drift_tol
            ),
            rel_interior_mass_drift_tol=_as_float(
                payload, "rel_interior_mass_drift_tol", default_stability.rel_interior_mass_drift_tol
            ),
            warmup_steps=_as_int(payload, "stability_warmup_steps", default_stability.warmup_steps),
            auto_pause_on_instability=_to_bool(
                payload.get("auto_pause_on_instability"), default_stability.auto_pause_on_instability
            ),
            rel_cap_mass_growth_tol=_as_float(
                payload, "rel_cap_mass_growth_tol", default_stability.rel_cap_mass_growth_tol
            ),
            interior_mass_drift_vs_total_tol=_as_float(
                payload,
                "interior_mass_drift_vs_total_tol",
                default_stability.interior_mass_drift_vs_total_tol,
            ),
            min_initial_interior_mass_fraction=_as_float(
                payload,
                "min_initial_interior_mass_fraction",
                default_stability.min_initial_interior_mass_fraction,
            ),
            min_interior_area_fraction=_as_float(
                payload, "min_interior_area_fraction", default_stability.min_interior_area_fraction
            ),
            interior_drift_hard_fail=_to_bool(
                payload.get("interior_drift_hard_fail"), default_stability.interior_drift_hard_fail
            ),
        )
    except ValueError as exc:
        raise SceneFormatError(f"Invalid scene parameters: {exc}") from exc

    boxes = [
        Box(
            x0=_as_float(raw, "x0", 0.0),
            y0=_as_float(raw, "y0", 0.0),
            x1=_as_float(raw, "x1", 0.0),
            y1=_as_float(raw, "y1", 0.0),
            height=_as_float(raw, "height", 0.0),
        )
        for raw in _object_items(payload, "boxes")
    ]
    wells = [
        well
        for well in (_deserialize_well(raw) for raw in _object_items(payload, "wells"))
        if well is not None
    ]
    packets = [
        Packet(
            cx=_as_float(raw, "cx", 0.0),
            cy=_as_float(raw, "cy", 0.0),
            sigma=_as_float(raw, "sigma", 0.0),
            amplitude=_as_float(raw, "amplitude", 0.0),
            kx=_as_float(raw, "kx", 0.0),
            ky=_as_float(raw, "ky", 0.0),
        )
        for raw in _object_items(payload, "packets")
    ]
    return SceneData(
        nx=params.nx,
        ny=params.ny,
        dt=params.dt,
        cap_strength=params.cap_strength,
        cap_ratio=params.cap_ratio,
        stability=stability,
        boxes=boxes,
        wells=wells,
        packets=packets,
        steps=max(0, _as_int(payload, "steps", defaults.steps)),
        name=str(payload.get("name", defaults.name)),
    )


def save_scene(scene: SceneData, path: Path | None = None) -> Path:
    if path is None:
        ensure_data_dirs()
        path = SCENES_DIR / f"{slugify_name(scene.name)}.json"
    logger.info("Saving scene '%s' to %s", scene.name, path)
    return _write_json(Path(path), serialize_scene(scene))


def load_scene(path: str | Path) -> SceneData:
    return deserialize_scene(_read_json(Path(path)))


def list_scene_files() -> list[Path]:
    ensure_data_dirs()
    return sorted(SCENES_DIR.glob("*.json"))


def scene_from_simulation(sim: Simulation, steps: int = 600, name: str = "scene") -> SceneData:
    return SceneData(
        nx=sim.nx,
        ny=sim.ny,
        dt=sim.dt,
        cap_strength=sim.field.cap_strength,
        cap_ratio=sim.field.cap_ratio,
        stability=StabilityConfig(**asdict(sim.stability)),
        boxes=[Box(**asdict(box)) for box in sim.boxes],
        wells=[RadialWell(**asdict(well)) for well in sim.wells],
        packets=[Packet(**asdict(packet)) for packet in sim.packets],
        steps=steps,
        name=name,
    )


def apply_scene(scene: SceneData, sim: Simulation) -> Simulation:
    """Replace the simulation's sources and settings with ``scene`` and reset it."""
    sim.running = False
    sim.dt = scene.dt
    sim.field.cap_strength = scene.cap_strength
    sim.field.cap_ratio = scene.cap_ratio
    sim.field.boxes[:] = [Box(**asdict(box)) for box in scene.boxes]
    sim.field.wells[:] = [RadialWell(**asdict(well)) for well in scene.wells]
    sim.packets[:] = [Packet(**asdict(packet)) for packet in scene.packets]
    sim.stability = StabilityConfig(**asdict(scene.stability))
    sim.resize(scene.nx, scene.ny)
    return sim


def build_simulation(scene: SceneData) -> Simulation:
    sim = Simulation(
        SimulationParameters(
            nx=scene.nx,
            ny=scene.ny,
            dt=scene.dt,
            cap_strength=scene.cap_strength,
            cap_ratio=scene.cap_ratio,
        )
    )
    return apply_scene(scene, sim)
