"""Visualization utilities for simulation results."""

import math
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

sns.set_style("whitegrid")
sns.set_palette("husl")


def plot_results(outcomes: List, summary: Dict, output_dir: Path) -> List[Path]:
    """Generate all visualization plots.

    Args:
        outcomes: Replicate outcomes
        summary: Aggregated summary from ``aggregate_outcomes``
        output_dir: Directory to save plots

    Returns:
        Paths of the written figures
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    path = plot_metric_distributions(outcomes, output_dir / "metric_distributions.png")
    if path is not None:
        written.append(path)

    if summary.get('totals'):
        written.append(plot_request_outcomes(summary, output_dir / "request_outcomes.png"))

    return written


def plot_metric_distributions(outcomes: List, output_path: Path) -> Optional[Path]:
    """Plot one histogram per metric across completed replicates.

    Args:
        outcomes: Replicate outcomes
        output_path: Output file path

    Returns:
        Output path, or None when no metric has values
    """
    values: Dict[str, List[float]] = {}
    targets: Dict[str, float] = {}
    for outcome in outcomes:
        if not outcome.ok:
            continue
        for label, entry in outcome.results.get('metrics', {}).items():
            if entry['value'] is not None:
                values.setdefault(label, []).append(entry['value'])
                targets[label] = entry['target']

    if not values:
        return None

    labels = sorted(values)
    cols = min(3, len(labels))
    rows = math.ceil(len(labels) / cols)
    fig, axes = plt.subplots(rows, cols, figsize=(5 * cols, 4 * rows), squeeze=False)

    for ax, label in zip(axes.flat, labels):
        sns.histplot(values[label], ax=ax, color='steelblue', bins=min(20, max(5, len(values[label]))))
        ax.axvline(targets[label], color='coral', linestyle='--', linewidth=2, label='Target')
        ax.set_title(label)
        ax.set_xlabel('Value')
        ax.legend()

    for ax in list(axes.flat)[len(labels):]:
        ax.axis('off')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return Path(output_path)


def plot_request_outcomes(summary: Dict, output_path: Path) -> Path:
    """Plot pooled answered and abandoned counts.

    Args:
        summary: Aggregated summary
        output_path: Output file path
    """
    totals = summary['totals']
    labels = ['Arrived', 'Answered', 'Abandoned', 'Completed']
    keys = ['arrived_count', 'connected_count', 'abandoned_count', 'completed_count']

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.bar(labels, [totals.get(k, 0) for k in keys], color=['steelblue', 'lightgreen', 'coral', 'gray'])
    ax.set_ylabel('Requests (all replicates)')
    ax.set_title(f"Request Outcomes over {summary.get('completed', 0)} Replicates")
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return Path(output_path)
