"""Central package for QuantumGuard data models."""

from .simulation_models import (
    ALLOWED_TRANSITIONS,
    Error,
    Idle,
    Loading,
    RequestState,
    SimulationParameters,
    SimulationRequest,
    Success,
    is_valid_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Error",
    "Idle",
    "Loading",
    "RequestState",
    "SimulationParameters",
    "SimulationRequest",
    "Success",
    "is_valid_transition",
]
