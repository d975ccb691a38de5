"""Presentation of request state."""
