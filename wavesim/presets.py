from __future__ import annotations

import math
from typing import Callable

from .models import Box, Packet, RadialWell, SceneData


_PRESET_DT = 1e-4
_PRESET_GRID = 128


def _scene(name: str, dt: float = _PRESET_DT) -> SceneData:
    return SceneData(nx=_PRESET_GRID, ny=_PRESET_GRID, dt=dt, name=name)


def two_wall() -> SceneData:
    scene = _scene("two_wall")
    scene.boxes.append(Box(0.48, 0.0, 0.52, 1.0, 2400.0))
    scene.packets.append(Packet(0.25, 0.75, 0.05, 1.0, 10.0, -1.0))
    scene.packets.append(Packet(0.25, 0.25, 0.05, 1.0, 42.0, 4.0))
    return scene


def double_slit() -> SceneData:
    scene = _scene("double_slit")
    scene.boxes.append(Box(0.48, 0.0, 0.52, 0.4, 2400.0))
    scene.boxes.append(Box(0.48, 0.6, 0.52, 1.0, 2400.0))
    scene.boxes.append(Box(0.48, 0.45, 0.52, 0.55, 2400.0))
    scene.packets.append(Packet(0.25, 0.5, 0.05, 1.0, 24.0, 0.0))
    return scene


def double_slit_fast() -> SceneData:
    scene = _scene("double_slit_fast", dt=1e-5)
    scene.boxes.append(Box(0.48, 0.0, 0.52, 0.4, 100000.0))
    scene.boxes.append(Box(0.48, 0.6, 0.52, 1.0, 100000.0))
    scene.boxes.append(Box(0.48, 0.45, 0.52, 0.55, 100000.0))
    scene.packets.append(Packet(0.25, 0.5, 0.05, 1.0, 192.0, 0.0))
    return scene


def counterpropagating() -> SceneData:
    scene = _scene("counterpropagating")
    scene.packets.append(Packet(0.28, 0.5, 0.045, 0.8, 22.0, 0.0))
    scene.packets.append(Packet(0.72, 0.5, 0.045, 0.8, -22.0, 0.0))
    scene.packets.append(Packet(0.5, 0.68, 0.035, 0.6, -6.0, -10.0))
    return scene


def waveguide() -> SceneData:
    scene = _scene("waveguide")
    scene.boxes.append(Box(0.0, 0.0, 1.0, 0.08, 2200.0))
    scene.boxes.append(Box(0.0, 0.92, 1.0, 1.0, 2200.0))
    scene.boxes.append(Box(0.36, 0.0, 0.44, 0.38, 2200.0))
    scene.boxes.append(Box(0.56, 0.62, 0.64, 1.0, 2200.0))
    scene.packets.append(Packet(0.12, 0.5, 0.05, 1.0, 28.0, 0.0))
    return scene


def trap() -> SceneData:
    scene = _scene("trap")
    scene.boxes.append(Box(0.1, 0.1, 0.9, 0.12, 3400.0))
    scene.boxes.append(Box(0.1, 0.88, 0.9, 0.9, 3400.0))
    scene.boxes.append(Box(0.1, 0.1, 0.12, 0.9, 3400.0))
    scene.boxes.append(Box(0.88, 0.1, 0.9, 0.9, 3400.0))
    scene.boxes.append(Box(0.43, 0.43, 0.57, 0.57, 2800.0))
    scene.wells.append(RadialWell(0.5, 0.5, -320.0, 0.08, "soft_coulomb"))
    scene.packets.append(Packet(0.3, 0.5, 0.04, 0.7, 12.0, 6.0))
    scene.packets.append(Packet(0.7, 0.5, 0.04, 0.7, -12.0, -6.0))
    scene.packets.append(Packet(0.5, 0.3, 0.035, 0.6, 0.0, 14.0))
    return scene


def central_well() -> SceneData:
    scene = _scene("central_well", dt=2.5e-5)
    scene.wells.append(RadialWell(0.5, 0.5, -260.0, 0.075, "gaussian"))
    scene.packets.append(Packet(0.35, 0.5, 0.035, 0.85, 0.0, 14.0))
    scene.packets.append(Packet(0.65, 0.5, 0.035, 0.85, 0.0, -14.0))
    return scene


def central_well_inverse_square() -> SceneData:
    scene = _scene("central_well_inverse_square", dt=2.5e-5)
    scene.wells.append(RadialWell(0.5, 0.5, -500.0, 0.075, "inverse_square"))
    scene.packets.append(Packet(0.175, 0.5, 0.035, 0.85, 65.0, 25.0))
    return scene


def harmonic_trap() -> SceneData:
    scene = _scene("harmonic_trap", dt=2.5e-5)
    scene.wells.append(RadialWell(0.5, 0.5, -4000.0, 0.18, "harmonic_oscillator"))
    scene.packets.append(Packet(0.425, 0.5, 0.035, 0.85, 15.0, 0.0))
    return scene


def well_lattice() -> SceneData:
    scene = _scene("well_lattice", dt=2e-5)
    for row in range(4):
        for col in range(5):
            attractive = (row + col) % 2 == 0
            scene.wells.append(
                RadialWell(
                    cx=0.18 + col * 0.14,
                    cy=0.2 + row * 0.16,
                    strength=-320.0 if attractive else 320.0,
                    radius=0.05,
                    profile="soft_coulomb" if attractive else "gaussian",
                )
            )
    scene.packets.append(Packet(0.08, 0.25, 0.03, 0.85, 60.0, 2.0))
    scene.packets.append(Packet(0.08, 0.75, 0.03, 0.85, 55.0, -2.0))
    return scene


def ring_resonator() -> SceneData:
    scene = _scene("ring_resonator", dt=2e-5)
    segments = 12
    for i in range(segments):
        angle = 2.0 * math.pi * i / segments
        scene.wells.append(
            RadialWell(0.5 + 0.28 * math.cos(angle), 0.5 + 0.28 * math.sin(angle), 900.0, 0.045, "gaussian")
        )
    scene.wells.append(RadialWell(0.5, 0.5, -450.0, 0.07, "harmonic_oscillator"))
    scene.packets.append(Packet(0.35, 0.5, 0.035, 0.8, 0.0, 24.0))
    scene.packets.append(Packet(0.65, 0.5, 0.035, 0.8, 0.0, -24.0))
    scene.packets.append(Packet(0.5, 0.65, 0.03, 0.6, -18.0, 0.0))
    return scene


def barrier_gauntlet() -> SceneData:
    scene = _scene("barrier_gauntlet", dt=2e-5)
    scene.boxes.append(Box(0.12, 0.1, 0.88, 0.18, 3400.0))
    scene.boxes.append(Box(0.12, 0.82, 0.88, 0.9, 3400.0))
    scene.boxes.append(Box(0.12, 0.28, 0.32, 0.72, 3400.0))
    scene.boxes.append(Box(0.68, 0.28, 0.88, 0.72, 3400.0))
    scene.boxes.append(Box(0.44, 0.44, 0.56, 0.56, 4200.0))
    for i in range(3):
        scene.wells.append(
            RadialWell(0.35 + 0.15 * i, 0.3 if i % 2 == 0 else 0.7, -380.0, 0.06, "inverse_square")
        )
    scene.wells.append(RadialWell(0.85, 0.5, -520.0, 0.07, "soft_coulomb"))
    scene.packets.append(Packet(0.18, 0.5, 0.035, 0.9, 48.0, 0.0))
    scene.packets.append(Packet(0.22, 0.35, 0.025, 0.7, 60.0, 12.0))
    return scene


PRESETS: dict[str, Callable[[], SceneData]] = {
    "two_wall": two_wall,
    "double_slit": double_slit,
    "double_slit_fast": double_slit_fast,
    "counterpropagating": counterpropagating,
    "waveguide": waveguide,
    "trap": trap,
    "central_well": central_well,
    "central_well_inverse_square": central_well_inverse_square,
    "harmonic_trap": harmonic_trap,
    "well_lattice": well_lattice,
    "ring_resonator": ring_resonator,
    "barrier_gauntlet": barrier_gauntlet,
}


def preset_scene(name: str) -> SceneData:
    key = name.strip().lower().replace("-", "_")
    if key not in PRESETS:
        allowed = ", ".join(sorted(PRESETS))
        raise ValueError(f"Unknown preset '{name}'. Available presets: {allowed}.")
    return PRESETS[key]()
