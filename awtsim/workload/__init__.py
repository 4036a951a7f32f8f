"""Workload generation."""

from .arrival_process import ArrivalProcess
from .request_generator import RequestGenerator

__all__ = ["ArrivalProcess", "RequestGenerator"]
