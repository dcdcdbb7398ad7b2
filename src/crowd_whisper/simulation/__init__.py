"""
Simulation Module
=================

Synthetic crowd generation for load testing and demos.
"""

from crowd_whisper.simulation.simulator import (
    CrowdSimulator,
    SimulatedDevice,
    SimulationConfig,
)

__all__ = [
    "CrowdSimulator",
    "SimulatedDevice",
    "SimulationConfig",
]
