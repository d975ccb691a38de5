"""General utility functions for the QuantumGuard demo."""

from .logging import setup_logging

__all__ = ["setup_logging"]
