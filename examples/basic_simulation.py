"""Basic simulation example."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from awtsim.models.simulation_config import SimulationConfig
from awtsim.orchestration.orchestrator import Orchestrator, aggregate_outcomes
from awtsim.utils.logger import setup_logger
from configs import DEFAULT_CONFIG_PATH, load_config, merge_configs


def main():
    """Run a basic simulation."""
    logger = setup_logger("BasicSimulation")

    logger.info("=== Basic Contact Center Simulation ===")

    # Load configuration
    base_config = load_config(DEFAULT_CONFIG_PATH)

    # Customize for this example
    config = merge_configs(base_config, {
        'simulation': {
            'simulations': 4,
            'tick_until': 3600,  # one hour
            'max_workers': 1,
        },
        'clients': [
            {'name': 'general', 'handle_time': 180, 'abandon_time': 90, 'quantity': 100},
        ],
        'servers': [
            {'name': 'agents', 'quantity': 5},
        ],
        'metrics': [
            {'metric': 'ServiceLevel', 'sla': 20, 'target': 0.8},
            {'metric': 'AverageSpeedAnswer', 'target': 30},
            {'metric': 'AbandonRate', 'target': 0.05},
            {'metric': 'AnswerCount', 'target': 100},
        ],
    })
    config = SimulationConfig.from_dict(config)

    logger.info(f"Running {config.simulations} replicates of {config.tick_until:.0f}s")
    logger.info(f"Requests per replicate: {config.total_requests}")
    logger.info(f"Servers: {config.total_servers}")

    # Run replicates
    outcomes = Orchestrator(config, show_progress=False).run()
    summary = aggregate_outcomes(outcomes)

    # Print results
    logger.info("\n=== Results ===")
    logger.info(f"Completed replicates: {summary['completed']}/{summary['replicates']}")
    logger.info(f"Answered: {summary['totals']['connected_count']}")
    logger.info(f"Abandoned: {summary['totals']['abandoned_count']}")
    for label, entry in summary['metrics'].items():
        if entry['mean'] is None:
            logger.info(f"  {label}: no samples")
            continue
        logger.info(
            f"  {label}: {entry['mean']:.3f} "
            f"[{entry['ci_low']:.3f}, {entry['ci_high']:.3f}] "
            f"target {entry['condition']} {entry['target']}"
        )

    return summary


if __name__ == "__main__":
    main()
