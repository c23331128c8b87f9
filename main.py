"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the paddock package.
"""

from paddock.main import (
    device_data,
    run_sweeps,
    run_sweeps_pubsub,
)

__all__ = [
    "device_data",
    "run_sweeps",
    "run_sweeps_pubsub",
]
