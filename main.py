# main.py
"""CLI entry point for the QuantumGuard key exchange narrator."""

from __future__ import annotations

import argparse
import sys

from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and start the simulation."""
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single key exchange and exit (status 1 on failure)",
    )
    parser.add_argument(
        "--photons",
        type=int,
        default=None,
        help="Number of photons Alice sends in the narrated exchange",
    )
    args = parser.parse_args()
    if args.photons is not None and args.photons < 1:
        parser.error("--photons must be at least 1")
    sys.exit(run(once=args.once, photon_count=args.photons))


if __name__ == "__main__":
    main()
