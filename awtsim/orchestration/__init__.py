"""Replicate orchestration."""

from .orchestrator import (Orchestrator, ReplicateOutcome, aggregate_outcomes,
                           derive_replicate_seeds, run_replicate)

__all__ = [
    "Orchestrator",
    "ReplicateOutcome",
    "aggregate_outcomes",
    "derive_replicate_seeds",
    "run_replicate",
]
