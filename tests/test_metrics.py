"""Tests for metric definitions and the metrics collector."""

import unittest

from awtsim.core.clock import TickClock
from awtsim.core.errors import ConfigurationError, InvariantViolationError
from awtsim.core.lifecycle import LifecycleEvent, TransitionKind
from awtsim.core.metrics_collector import (MetricDefinition, MetricsCollector, MetricType,
                                          TargetCondition, parse_duration)


def connected(request_id, tick, wait):
    return LifecycleEvent(request_id, TransitionKind.CONNECTED, tick, wait_time=wait, time_in_queue=wait)


def abandoned(request_id, tick, wait):
    return LifecycleEvent(request_id, TransitionKind.ABANDONED, tick, wait_time=wait, time_in_queue=wait)


def completed(request_id, tick, handle):
    return LifecycleEvent(request_id, TransitionKind.COMPLETED, tick, handle_time=handle)


class TestMetricDefinition(unittest.TestCase):
    """Test cases for metric definition parsing."""

    def test_service_level(self):
        definition = MetricDefinition.from_dict({'metric': 'ServiceLevel', 'sla': 20, 'target': 0.8})

        self.assertEqual(definition.metric, MetricType.SERVICE_LEVEL)
        self.assertEqual(definition.sla, 20.0)
        self.assertEqual(definition.label, "ServiceLevel(20s)")
        self.assertEqual(definition.condition, TargetCondition.GREATER_OR_EQUAL)

    def test_service_level_requires_sla(self):
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'ServiceLevel', 'target': 0.8})

    def test_fraction_targets_must_be_in_range(self):
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'ServiceLevel', 'sla': 20, 'target': 1.5})
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'AbandonRate', 'target': -0.1})
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'AbandonRate', 'target': "low"})

    def test_target_required(self):
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'AverageSpeedAnswer'})

    def test_unknown_and_unimplemented(self):
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'Happiness', 'target': 1})
        with self.assertRaises(ConfigurationError) as ctx:
            MetricDefinition.from_dict({'metric': 'UtilisationTime', 'target': 1})
        self.assertIn("not yet implemented", str(ctx.exception))

    def test_answer_count_is_integer(self):
        definition = MetricDefinition.from_dict({'metric': 'answer_count', 'target': 10})
        self.assertEqual(definition.metric, MetricType.ANSWER_COUNT)
        self.assertEqual(definition.condition, TargetCondition.EQUAL)
        with self.assertRaises(ConfigurationError):
            MetricDefinition.from_dict({'metric': 'AnswerCount', 'target': 2.5})

    def test_duration_forms(self):
        self.assertEqual(parse_duration(3), 3.0)
        self.assertEqual(parse_duration({'secs': 2, 'nanos': 500000000}), 2.5)
        with self.assertRaises(ConfigurationError):
            parse_duration(-1)
        with self.assertRaises(ConfigurationError):
            parse_duration("ten")


class TestMetricsCollector(unittest.TestCase):
    """Test cases for MetricsCollector."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = TickClock(tick_size=2.0, tick_until=1000)
        self.definitions = [
            MetricDefinition.from_dict({'metric': 'ServiceLevel', 'sla': 10, 'target': 0.5}),
            MetricDefinition.from_dict({'metric': 'AverageSpeedAnswer', 'target': 6}),
            MetricDefinition.from_dict({'metric': 'AverageWorkTime', 'target': 10}),
            MetricDefinition.from_dict({'metric': 'AverageTimeToAbandon', 'target': 5}),
            MetricDefinition.from_dict({'metric': 'AverageTimeInQueue', 'target': 100}),
            MetricDefinition.from_dict({'metric': 'AbandonRate', 'target': 0.2}),
            MetricDefinition.from_dict({'metric': 'AnswerCount', 'target': 3}),
        ]
        self.collector = MetricsCollector(self.definitions, self.clock)

        # Waits in ticks: answered after 0, 2 and 8 ticks, one abandon after 6
        for event in (connected(0, 0, 0), connected(1, 2, 2), completed(0, 5, 5),
                      abandoned(3, 6, 6), connected(2, 8, 8), completed(1, 9, 7)):
            self.collector.record(event)

    def test_metric_values(self):
        metrics = self.collector.compute_metrics()['metrics']

        # ServiceLevel(10s) means waits of at most 5 ticks
        self.assertAlmostEqual(metrics['ServiceLevel(10s)']['value'], 2 / 3)
        self.assertTrue(metrics['ServiceLevel(10s)']['on_target'])

        self.assertAlmostEqual(metrics['AverageSpeedAnswer']['value'], 20 / 3)
        self.assertFalse(metrics['AverageSpeedAnswer']['on_target'])

        self.assertAlmostEqual(metrics['AverageWorkTime']['value'], 12.0)
        self.assertAlmostEqual(metrics['AverageTimeToAbandon']['value'], 12.0)
        self.assertAlmostEqual(metrics['AverageTimeInQueue']['value'], 8.0)
        self.assertAlmostEqual(metrics['AbandonRate']['value'], 0.25)
        self.assertFalse(metrics['AbandonRate']['on_target'])

        self.assertEqual(metrics['AnswerCount']['value'], 3)
        self.assertTrue(metrics['AnswerCount']['on_target'])

    def test_distribution_statistics(self):
        results = self.collector.compute_metrics()

        self.assertEqual(results['connected_count'], 3)
        self.assertEqual(results['abandoned_count'], 1)
        self.assertAlmostEqual(results['mean_speed_answer'], 20 / 3)
        self.assertAlmostEqual(results['median_speed_answer'], 4.0)
        self.assertAlmostEqual(results['max_work_time'], 14.0)
        self.assertIn('p95_speed_answer', results)

    def test_no_samples(self):
        collector = MetricsCollector(self.definitions, self.clock)
        metrics = collector.compute_metrics()['metrics']

        for label in ('ServiceLevel(10s)', 'AverageSpeedAnswer', 'AbandonRate'):
            self.assertIsNone(metrics[label]['value'])
            self.assertFalse(metrics[label]['on_target'])
        self.assertEqual(metrics['AnswerCount']['value'], 0)
        self.assertEqual(collector.get_summary(), "No metrics collected")

    def test_out_of_order_events_rejected(self):
        with self.assertRaises(InvariantViolationError):
            self.collector.record(connected(9, 1, 0))

    def test_merge_is_commutative(self):
        other = MetricsCollector(self.definitions, self.clock)
        for event in (connected(0, 1, 1), abandoned(1, 30, 30)):
            other.record(event)

        left = self.collector.merge(other).compute_metrics()
        right = other.merge(self.collector).compute_metrics()

        self.assertEqual(left, right)
        self.assertEqual(left['connected_count'], 4)
        self.assertEqual(left['abandoned_count'], 2)

    def test_summary(self):
        summary = self.collector.get_summary()
        self.assertIn("Answered: 3", summary)
        self.assertIn("AbandonRate", summary)


if __name__ == '__main__':
    unittest.main()
