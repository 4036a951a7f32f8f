"""Tests for the main simulator."""

import unittest

from awtsim.core.attributes import AttributeSet
from awtsim.core.clock import TickClock
from awtsim.core.errors import InvariantViolationError, SimulationStateError
from awtsim.core.event_queue import Event, EventType
from awtsim.core.lifecycle import InMemoryEventSink, TransitionKind
from awtsim.core.metrics_collector import MetricDefinition, MetricsCollector
from awtsim.core.router import BestFitHoldPolicy
from awtsim.core.simulator import Simulator
from awtsim.models.simulation_config import ClientProfile, ServerProfile


METRICS = [
    MetricDefinition.from_dict({'metric': 'AnswerCount', 'target': 1}),
    MetricDefinition.from_dict({'metric': 'AbandonRate', 'target': 0.0}),
    MetricDefinition.from_dict({'metric': 'ServiceLevel', 'sla': 5, 'target': 0.8}),
    MetricDefinition.from_dict({'metric': 'AverageTimeToAbandon', 'target': 10}),
]


class TestSimulator(unittest.TestCase):
    """Test cases for Simulator class."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = TickClock(tick_size=1.0, tick_until=20)
        self.sink = InMemoryEventSink()
        self.collector = MetricsCollector(METRICS, self.clock)

    def _simulator(self, clock=None, policy=None):
        clock = clock or self.clock
        self.collector = MetricsCollector(METRICS, clock)
        return Simulator(clock, routing_policy=policy, event_sink=self.sink,
                         metrics_collector=self.collector, trace_ticks=True)

    def _kinds(self):
        return [(e.request_id, e.kind, e.tick) for e in self.sink.events]

    def test_single_request_is_served(self):
        """One idle server, one request: connect on arrival, complete 5 ticks later."""
        profile = ClientProfile(name="single", handle_time=5, abandon_time=100)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        simulator.add_client(profile, arrival_tick=3)

        results = simulator.run()

        self.assertEqual(self._kinds(), [
            (0, TransitionKind.ARRIVED, 3),
            (0, TransitionKind.CONNECTED, 3),
            (0, TransitionKind.COMPLETED, 8),
        ])
        self.assertEqual(results['requests_by_state']['completed'], 1)
        self.assertEqual(results['metrics']['AnswerCount']['value'], 1)
        self.assertTrue(results['metrics']['AnswerCount']['on_target'])
        self.assertEqual(results['metrics']['AbandonRate']['value'], 0.0)
        self.assertEqual(results['metrics']['ServiceLevel(5s)']['value'], 1.0)
        self.assertEqual(simulator.visited_ticks, [0, 3, 8])

    def test_unmatched_requests_abandon(self):
        """Nobody offers attribute A: every request abandons after its patience."""
        profile = ClientProfile(name="needs-a", handle_time=5, abandon_time=4,
                                quantity=2, required_attributes=AttributeSet.of("A"))
        simulator = self._simulator()
        simulator.add_server_profile(ServerProfile(name="plain", quantity=1))
        simulator.add_client(profile, arrival_tick=0)
        simulator.add_client(profile, arrival_tick=2)

        results = simulator.run()

        abandoned = self.sink.of_kind(TransitionKind.ABANDONED)
        self.assertEqual([(e.request_id, e.tick) for e in abandoned], [(0, 4), (1, 6)])
        self.assertEqual(results['metrics']['AbandonRate']['value'], 1.0)
        self.assertEqual(results['metrics']['AnswerCount']['value'], 0)
        self.assertIsNone(results['metrics']['ServiceLevel(5s)']['value'])
        self.assertFalse(results['metrics']['ServiceLevel(5s)']['on_target'])
        self.assertEqual(results['metrics']['AverageTimeToAbandon']['value'], 4.0)
        self.assertTrue(results['exhausted'])

    def test_contention_fast_forwards_to_release(self):
        """Two simultaneous requests, one server: the second connects when it frees."""
        clock = TickClock(1.0, 100)
        profile = ClientProfile(name="needs-b", handle_time=10, abandon_time=50,
                                required_attributes=AttributeSet.of("B"))
        simulator = self._simulator(clock)
        simulator.add_server(AttributeSet.of("A", "B"))
        simulator.add_client(profile, arrival_tick=0)
        simulator.add_client(profile, arrival_tick=0)

        results = simulator.run()

        connected = self.sink.of_kind(TransitionKind.CONNECTED)
        self.assertEqual([(e.request_id, e.tick, e.wait_time) for e in connected],
                         [(0, 0, 0), (1, 10, 10)])
        self.assertEqual(simulator.visited_ticks[:3], [0, 10, 20])
        for skipped in range(1, 10):
            self.assertNotIn(skipped, simulator.visited_ticks)

        # Both abandon events were superseded by connections
        self.assertEqual(results['stale_events'], 2)
        self.assertEqual(results['requests_by_state']['completed'], 2)

    def test_best_fit_waits_every_tick(self):
        """A time-sensitive policy revisits every tick while requests wait."""
        profile = ClientProfile(name="needs-b", handle_time=10, abandon_time=50,
                                required_attributes=AttributeSet.of("B"))
        simulator = self._simulator(policy=BestFitHoldPolicy(3))
        wide = simulator.add_server(AttributeSet.of("A", "B"))
        tight = simulator.add_server(AttributeSet.of("B"))
        simulator.add_client(profile, arrival_tick=0)
        simulator.add_client(profile, arrival_tick=1)

        simulator.run()

        connected = {e.request_id: e for e in self.sink.of_kind(TransitionKind.CONNECTED)}
        self.assertEqual((connected[0].server_id, connected[0].tick), (tight.server_id, 0))
        self.assertEqual((connected[1].server_id, connected[1].tick), (wide.server_id, 4))
        self.assertEqual(simulator.visited_ticks[:5], [0, 1, 2, 3, 4])

    def test_expiring_request_gets_last_routing_pass(self):
        """Zero patience still connects when a server is idle at arrival."""
        profile = ClientProfile(name="impatient", handle_time=2, abandon_time=0)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        simulator.add_client(profile, arrival_tick=1)
        simulator.add_client(profile, arrival_tick=1)

        results = simulator.run()

        self.assertEqual(results['requests_by_state']['completed'], 1)
        self.assertEqual(results['requests_by_state']['abandoned'], 1)
        abandoned = self.sink.of_kind(TransitionKind.ABANDONED)
        self.assertEqual([(e.request_id, e.tick, e.wait_time) for e in abandoned], [(1, 1, 0)])

    def test_patience_expiry_precedes_routing(self):
        """A request abandoning at the tick its server frees up does not connect."""
        profile = ClientProfile(name="tied", handle_time=5, abandon_time=5)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        simulator.add_client(profile, arrival_tick=0)
        simulator.add_client(profile, arrival_tick=0)

        results = simulator.run()

        self.assertEqual(results['requests_by_state']['completed'], 1)
        self.assertEqual(results['requests_by_state']['abandoned'], 1)
        abandoned = self.sink.of_kind(TransitionKind.ABANDONED)
        self.assertEqual([(e.request_id, e.tick, e.wait_time) for e in abandoned], [(1, 5, 5)])
        completed = self.sink.of_kind(TransitionKind.COMPLETED)
        self.assertEqual([(e.request_id, e.tick) for e in completed], [(0, 5)])
        self.assertEqual(results['metrics']['AnswerCount']['value'], 1)
        self.assertEqual(results['metrics']['AbandonRate']['value'], 0.5)

    def test_zero_handle_time_completes_in_same_tick(self):
        profile = ClientProfile(name="instant", handle_time=0, abandon_time=10)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        simulator.add_client(profile, arrival_tick=2)
        simulator.add_client(profile, arrival_tick=2)

        simulator.run()

        completed = self.sink.of_kind(TransitionKind.COMPLETED)
        self.assertEqual([(e.request_id, e.tick) for e in completed], [(0, 2), (1, 2)])

    def test_horizon_stops_the_run(self):
        profile = ClientProfile(name="late", handle_time=5, abandon_time=100)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        simulator.add_client(profile, arrival_tick=18)
        simulator.add_client(profile, arrival_tick=25)

        results = simulator.run()

        self.assertEqual(results['requests_by_state']['connected'], 1)
        self.assertEqual(results['requests_by_state']['pending'], 1)
        self.assertLessEqual(results['final_tick'], 20)
        self.assertTrue(all(tick <= 20 for tick in simulator.visited_ticks))

    def test_lifecycle_events_in_tick_order(self):
        profile = ClientProfile(name="busy", handle_time=3, abandon_time=4, quantity=1)
        simulator = self._simulator()
        simulator.add_server(AttributeSet())
        for arrival in (0, 0, 1, 1, 2, 5, 9):
            simulator.add_client(profile, arrival_tick=arrival)

        simulator.run()

        ticks = [e.tick for e in self.sink.events]
        self.assertEqual(ticks, sorted(ticks))
        arrived = len(self.sink.of_kind(TransitionKind.ARRIVED))
        answered = len(self.sink.of_kind(TransitionKind.CONNECTED))
        abandoned = len(self.sink.of_kind(TransitionKind.ABANDONED))
        self.assertEqual(arrived, 7)
        self.assertEqual(answered + abandoned, arrived)

    def test_lifecycle_phases(self):
        simulator = self._simulator()
        with self.assertRaises(SimulationStateError):
            simulator.tick()

        simulator.enable()
        with self.assertRaises(SimulationStateError):
            simulator.enable()
        with self.assertRaises(SimulationStateError):
            simulator.add_server(AttributeSet())
        with self.assertRaises(SimulationStateError):
            simulator.add_client(ClientProfile(name="x", handle_time=1, abandon_time=1), 0)

    def test_empty_simulation_finishes(self):
        simulator = self._simulator()
        results = simulator.run()

        self.assertEqual(results['total_requests'], 0)
        self.assertTrue(results['exhausted'])
        self.assertFalse(simulator.tick())

    def test_scheduling_in_the_past_raises(self):
        profile = ClientProfile(name="x", handle_time=1, abandon_time=1)
        simulator = self._simulator()
        request = simulator.add_client(profile, arrival_tick=5)
        simulator.enable()
        self.assertTrue(simulator.tick())

        self.assertEqual(simulator.current_time, 5)
        with self.assertRaises(InvariantViolationError):
            simulator.schedule(Event(time=4, event_type=EventType.REQUEST_ABANDON, request=request))


if __name__ == '__main__':
    unittest.main()
