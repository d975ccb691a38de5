"""Boundary to the external generative text service."""
