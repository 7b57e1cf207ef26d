from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Sequence

from .models import SceneData
from .paths import DEFAULT_EXAMPLE_SCENE
from .presets import PRESETS, preset_scene
from .storage import SceneFormatError, build_simulation, list_scene_files, load_scene


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BAD_SCENE = 2
EXIT_UNSTABLE = 3


def run_example(
    scene: SceneData,
    steps: int | None = None,
    emit: Callable[[str], None] = print,
) -> int:
    """Run ``scene`` headless and report diagnostics; returns a process exit code."""
    sim = build_simulation(scene)
    n_steps = scene.steps if steps is None else max(0, int(steps))
    logger.info("Running scene '%s' for %d steps on %dx%d grid.", scene.name, n_steps, sim.nx, sim.ny)
    sim.step_n(n_steps)

    diag = sim.diagnostics
    left, right = sim.mass_split()
    emit("Diagnostics")
    emit(f"Nx={sim.nx} Ny={sim.ny} dt={sim.dt:g} steps={n_steps}")
    emit(
        f"Mass={sim.mass():.8g} Left={left:.8g} Right={right:.8g} "
        f"Interior={diag.current_interior_mass:.8g} "
        f"Drift={diag.rel_mass_drift:.8g} InteriorDrift={diag.rel_interior_mass_drift:.8g} "
        f"InteriorDriftVsTotal={diag.rel_interior_mass_drift_vs_total:.8g}"
    )
    if diag.warning:
        emit(f'Stability=WARNING reason="{diag.warning_reason}"')
    if not diag.interior_guard_active:
        emit(f'InteriorGuard=DISABLED reason="{diag.interior_guard_reason}"')
    if diag.unstable:
        emit(f'Stability=UNSTABLE reason="{diag.reason}"')
        return EXIT_UNSTABLE
    if not diag.warning:
        emit("Stability=OK")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavesim",
        description="Headless 2D Schrödinger wavepacket simulation.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--example",
        nargs="?",
        const=str(DEFAULT_EXAMPLE_SCENE),
        metavar="PATH",
        help="run a scene file (default: %(const)s)",
    )
    source.add_argument("--preset", choices=sorted(PRESETS), help="run a built-in scene preset")
    source.add_argument("--list-scenes", action="store_true", help="list saved scene files and exit")
    parser.add_argument("--steps", type=int, default=None, help="override the scene's step count")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.list_scenes:
        for path in list_scene_files():
            print(path)
        return EXIT_OK
    if args.preset:
        scene = preset_scene(args.preset)
    else:
        try:
            scene = load_scene(Path(args.example))
        except SceneFormatError as exc:
            logger.error("Failed to load scene: %s", exc)
            return EXIT_BAD_SCENE
    return run_example(scene, steps=args.steps)
