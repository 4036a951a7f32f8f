"""Compare immediate and best-fit routing on a skills-based workload."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from awtsim.models.simulation_config import SimulationConfig
from awtsim.orchestration.orchestrator import Orchestrator, aggregate_outcomes
from awtsim.utils.logger import setup_logger
from configs import DEFAULT_CONFIG_PATH, load_config, merge_configs


def run_policy(base_config: dict, routing: dict) -> dict:
    """Run every replicate under one routing policy and aggregate."""
    config = SimulationConfig.from_dict(merge_configs(base_config, {'routing': routing}))
    outcomes = Orchestrator(config, show_progress=False).run()
    return aggregate_outcomes(outcomes)


def main():
    """Run the default scenario with both routing policies."""
    logger = setup_logger("RoutingComparison")

    base_config = merge_configs(load_config(DEFAULT_CONFIG_PATH), {
        'simulation': {'simulations': 4, 'tick_until': 7200},
    })

    policies = {
        'immediate': {'policy': 'immediate'},
        'best_fit (15s)': {'policy': 'best_fit', 'max_extra_wait': 15},
        'best_fit (60s)': {'policy': 'best_fit', 'max_extra_wait': 60},
    }

    summaries = {}
    for name, routing in policies.items():
        logger.info(f"Running {name} routing...")
        summaries[name] = run_policy(base_config, routing)

    logger.info("\n=== Comparison ===")
    labels = sorted({label for s in summaries.values() for label in s['metrics']})
    for label in labels:
        row = []
        for name, summary in summaries.items():
            mean = summary['metrics'].get(label, {}).get('mean')
            row.append(f"{name}: {'N/A' if mean is None else f'{mean:.3f}'}")
        logger.info(f"{label:<26} " + " | ".join(row))

    return summaries


if __name__ == "__main__":
    main()
