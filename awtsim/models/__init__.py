"""Simulation configuration models."""

from .simulation_config import ClientProfile, ResourceLimits, ServerProfile, SimulationConfig

__all__ = ["ClientProfile", "ResourceLimits", "ServerProfile", "SimulationConfig"]
