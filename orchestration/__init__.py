"""Request lifecycle orchestration and the command-line runner."""
