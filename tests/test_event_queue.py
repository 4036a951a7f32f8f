"""Tests for the event queue."""

import unittest

from awtsim.core.event_queue import Event, EventType, EventQueue


class TestEventQueue(unittest.TestCase):
    """Test cases for EventQueue."""

    def test_empty_queue(self):
        """Test empty queue behavior."""
        queue = EventQueue()

        self.assertTrue(queue.is_empty())
        self.assertEqual(queue.size(), 0)
        self.assertIsNone(queue.peek())
        self.assertIsNone(queue.peek_next_due())
        self.assertEqual(queue.pop_due(100), [])

        with self.assertRaises(IndexError):
            queue.pop()

    def test_push_pop(self):
        """Test push and pop operations."""
        queue = EventQueue()

        event = Event(time=1, event_type=EventType.REQUEST_ARRIVAL)
        queue.push(event)

        self.assertFalse(queue.is_empty())
        self.assertEqual(queue.size(), 1)
        self.assertEqual(len(queue), 1)

        popped = queue.pop()
        self.assertIs(popped, event)
        self.assertTrue(queue.is_empty())
        self.assertEqual(queue.total_pushed, 1)

    def test_event_queue_ordering(self):
        """Test event queue maintains correct order."""
        queue = EventQueue()

        queue.push(Event(time=3, event_type=EventType.REQUEST_ARRIVAL))
        queue.push(Event(time=1, event_type=EventType.REQUEST_ARRIVAL))
        queue.push(Event(time=2, event_type=EventType.REQUEST_ARRIVAL))

        self.assertEqual([queue.pop().time for _ in range(3)], [1, 2, 3])

    def test_same_tick_is_fifo(self):
        """Events due at the same tick come out in insertion order."""
        queue = EventQueue()

        first = Event(time=5, event_type=EventType.SERVICE_COMPLETION)
        second = Event(time=5, event_type=EventType.REQUEST_ARRIVAL)
        third = Event(time=5, event_type=EventType.REQUEST_ABANDON)
        for event in (first, second, third):
            queue.push(event)

        self.assertEqual(queue.pop_due(5), [first, second, third])

    def test_pop_due(self):
        """pop_due returns every event due at or before the given tick, once."""
        queue = EventQueue()
        for time in (7, 2, 4, 4, 9):
            queue.push(Event(time=time, event_type=EventType.REQUEST_ARRIVAL))

        due = queue.pop_due(4)
        self.assertEqual([e.time for e in due], [2, 4, 4])
        self.assertTrue(all(e.time <= 4 for e in due))
        self.assertEqual(queue.pop_due(4), [])
        self.assertEqual(queue.peek_next_due(), 7)
        self.assertEqual(queue.size(), 2)

    def test_negative_time_rejected(self):
        """Events cannot be due before tick zero."""
        with self.assertRaises(ValueError):
            Event(time=-1, event_type=EventType.REQUEST_ARRIVAL)

    def test_clear(self):
        queue = EventQueue()
        queue.push(Event(time=1, event_type=EventType.REQUEST_ARRIVAL))
        queue.clear()
        self.assertTrue(queue.is_empty())
        self.assertIn("size=0", repr(queue))


if __name__ == '__main__':
    unittest.main()
