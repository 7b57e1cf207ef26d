"""Two-dimensional time-dependent Schrödinger equation simulator."""

from .models import Box, Packet, RadialWell, SimulationParameters, StabilityConfig
from .simulation import Simulation
from .validation import ValidationReport, run_fast_validation_suite

__all__ = [
    "Box",
    "Packet",
    "RadialWell",
    "Simulation",
    "SimulationParameters",
    "StabilityConfig",
    "ValidationReport",
    "run_fast_validation_suite",
]
