# models/simulation_models.py
"""Data structures for the key exchange simulation request lifecycle."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class SimulationParameters(BaseModel):
    """Knobs that shape the narrated BB84 exchange."""

    model_config = ConfigDict(frozen=True)

    photon_count: int = Field(20, ge=1)
    polarization_angles: tuple[int, ...] = (0, 45, 90, 135)
    measurement_bases: tuple[str, ...] = ("rectilinear [+]", "diagonal [x]")


@dataclass(frozen=True)
class SimulationRequest:
    """The in-flight attempt: the prompt sent and when it was sent."""

    prompt: str
    started_at: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


@dataclass(frozen=True)
class Idle:
    """No attempt has been made yet."""


@dataclass(frozen=True)
class Loading:
    """A request is in flight."""


@dataclass(frozen=True)
class Success:
    """The service answered; ``text`` is untrusted markup."""

    text: str


@dataclass(frozen=True)
class Error:
    """The attempt failed; ``message`` is shown in the alert region."""

    message: str


RequestState = Union[Idle, Loading, Success, Error]

# Every (from, to) pair the controller may perform.
ALLOWED_TRANSITIONS: frozenset[tuple[type, type]] = frozenset(
    {
        (Idle, Loading),
        (Loading, Success),
        (Loading, Error),
        (Success, Loading),
        (Error, Loading),
    }
)


def is_valid_transition(current: RequestState, new: RequestState) -> bool:
    """Return True when moving from ``current`` to ``new`` is allowed."""
    return (type(current), type(new)) in ALLOWED_TRANSITIONS
