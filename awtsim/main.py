"""Main entry point for the awtsim simulator."""

import argparse
import sys
from pathlib import Path

from awtsim.core.errors import ConfigurationError
from awtsim.models.simulation_config import SimulationConfig
from awtsim.orchestration.orchestrator import EXECUTORS, Orchestrator, aggregate_outcomes
from awtsim.reports.report_generator import REPORT_FORMATS, generate_report
from awtsim.utils.logger import setup_logger
from awtsim.utils.visualization import plot_results
from configs import load_layered_config, merge_configs


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="awtsim: contact center queueing simulator"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (defaults to the packaged default.yaml)",
    )
    parser.add_argument(
        "--override",
        type=str,
        default=None,
        help="Configuration file merged on top of --config",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="results",
        help="Directory to save results",
    )
    parser.add_argument(
        "--simulations",
        type=int,
        default=None,
        help="Number of replicates, overriding the configuration",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Master seed, overriding the configuration",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of parallel workers (1 runs replicates inline)",
    )
    parser.add_argument(
        "--executor",
        choices=EXECUTORS,
        default="process",
        help="Worker pool type",
    )
    parser.add_argument(
        "--format",
        choices=REPORT_FORMATS,
        default="json",
        help="Report format",
    )
    parser.add_argument(
        "--record-events",
        action="store_true",
        help="Write every lifecycle event to events.csv",
    )
    parser.add_argument(
        "--visualize",
        action="store_true",
        help="Generate visualization plots",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the progress bar",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main function."""
    args = parse_args(argv)

    # Setup logging
    log_level = "DEBUG" if args.verbose else "INFO"
    logger = setup_logger("awtsim", level=log_level)

    logger.info("=== awtsim: contact center queueing simulator ===")
    logger.info(f"Loading configuration from {args.config or 'packaged defaults'}")

    try:
        raw_config = load_layered_config(args.config, args.override)

        overrides = {}
        if args.simulations is not None:
            overrides['simulations'] = args.simulations
            if args.seed is None and 'rng_seeds' in raw_config.get('simulation', {}):
                overrides['rng_seeds'] = None
        if args.seed is not None:
            overrides['seed'] = args.seed
            overrides['rng_seeds'] = None
        if overrides:
            raw_config = merge_configs(raw_config, {'simulation': overrides})

        config = SimulationConfig.from_dict(raw_config)

        logger.info(f"Replicates: {config.simulations}")
        logger.info(f"Window: {config.tick_until}s in ticks of {config.tick_size}s")
        logger.info(f"Requests per replicate: {config.total_requests}")
        logger.info(f"Servers: {config.total_servers}")
        logger.info(f"Routing: {config.routing['policy']}")

        orchestrator = Orchestrator(
            config,
            max_workers=args.workers,
            executor=args.executor,
            record_events=args.record_events,
            show_progress=not args.no_progress,
        )
        outcomes = orchestrator.run()
        summary = aggregate_outcomes(outcomes)

        # Print results
        logger.info("\n=== Simulation Results ===")
        logger.info(f"Completed replicates: {summary['completed']}/{summary['replicates']}")
        for label, entry in summary['metrics'].items():
            mean = "N/A" if entry['mean'] is None else f"{entry['mean']:.4g}"
            logger.info(
                f"{label}: mean {mean} (target {entry['condition']} {entry['target']}, "
                f"on target in {entry['on_target_fraction']:.0%} of replicates)"
            )

        output_dir = Path(args.output_dir)
        report_path = generate_report(outcomes, summary, str(output_dir), format=args.format)
        logger.info(f"Results saved to {report_path}")

        # Generate visualizations
        if args.visualize:
            logger.info("Generating visualization plots...")
            plot_results(outcomes, summary, output_dir)
            logger.info(f"Plots saved to {output_dir}")

        if summary['completed'] == 0:
            logger.error("No replicate completed")
            return 1

        logger.info("Simulation completed successfully!")
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Simulation failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
