# core/exceptions.py
"""Exception types raised by QuantumGuard components."""


class QuantumGuardError(Exception):
    """Base class for QuantumGuard errors."""


class ServiceError(QuantumGuardError):
    """The generation service could not produce text.

    Covers network failures, rejected requests and undecodable responses
    alike. The underlying exception, when there is one, is chained as
    ``__cause__``.
    """


class InvalidStateTransitionError(QuantumGuardError):
    """A request state change outside the allowed lifecycle was attempted."""
