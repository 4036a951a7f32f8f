"""Tests for report writing, plots and the command line entry point."""

import json
import tempfile
import unittest
from pathlib import Path

import pandas as pd
import yaml

from awtsim.main import main
from awtsim.models.simulation_config import SimulationConfig
from awtsim.orchestration.orchestrator import Orchestrator, aggregate_outcomes
from awtsim.reports.report_generator import generate_report
from awtsim.utils.visualization import plot_results


CONFIG = {
    'simulation': {
        'simulations': 2,
        'tick_size': 1.0,
        'tick_until': 300,
        'seed': 3,
        'max_workers': 1,
    },
    'clients': [
        {'name': 'general', 'handle_time': 20, 'abandon_time': 15, 'quantity': 20},
    ],
    'servers': [
        {'name': 'agents', 'quantity': 2},
    ],
    'metrics': [
        {'metric': 'ServiceLevel', 'sla': 10, 'target': 0.8},
        {'metric': 'AverageSpeedAnswer', 'target': 5},
    ],
}


class TestReports(unittest.TestCase):
    """Test cases for report generation."""

    @classmethod
    def setUpClass(cls):
        config = SimulationConfig.from_dict(CONFIG)
        cls.outcomes = Orchestrator(config, record_events=True, show_progress=False).run()
        cls.summary = aggregate_outcomes(cls.outcomes)

    def test_generate_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            json_path = generate_report(self.outcomes, self.summary, tmp, format='both')

            with open(json_path) as f:
                summary = json.load(f)
            replicates = pd.read_csv(Path(tmp) / "replicates.csv")
            events = pd.read_csv(Path(tmp) / "events.csv")

            self.assertTrue((Path(tmp) / "summary.html").exists())

        self.assertEqual(summary['completed'], 2)
        self.assertIn('ServiceLevel(10s)', summary['metrics'])
        self.assertEqual(list(replicates['replicate']), [0, 1])
        self.assertIn('AverageSpeedAnswer', replicates.columns)
        self.assertEqual(set(events['replicate']), {0, 1})
        self.assertEqual(set(events['kind']) - {'arrived', 'connected', 'abandoned', 'completed'},
                         set())

    def test_unknown_format(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                generate_report(self.outcomes, self.summary, tmp, format='pdf')

    def test_plot_results(self):
        with tempfile.TemporaryDirectory() as tmp:
            written = plot_results(self.outcomes, self.summary, Path(tmp))

            self.assertTrue(written)
            self.assertTrue(all(path.exists() for path in written))


class TestMain(unittest.TestCase):
    """Test cases for the command line entry point."""

    def test_main_runs_configuration(self):
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.yaml"
            with open(config_path, 'w') as f:
                yaml.safe_dump(CONFIG, f)

            exit_code = main(['--config', str(config_path), '--output-dir', tmp,
                              '--no-progress', '--simulations', '1'])

            self.assertEqual(exit_code, 0)
            self.assertTrue((Path(tmp) / "summary.json").exists())
            self.assertTrue((Path(tmp) / "replicates.csv").exists())

    def test_main_reports_configuration_errors(self):
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.yaml"
            with open(config_path, 'w') as f:
                yaml.safe_dump({'simulation': {'tick_size': 1}}, f)

            self.assertEqual(main(['--config', str(config_path), '--output-dir', tmp]), 1)


if __name__ == '__main__':
    unittest.main()
