"""Core host loop."""

from .simulation import Simulation

__all__ = ["Simulation"]
