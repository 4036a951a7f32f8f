"""Report generation."""

from .report_generator import generate_report

__all__ = ["generate_report"]
