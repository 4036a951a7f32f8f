"""Server pool tracking idle and busy servers."""

from typing import Dict, Iterator, List, Optional

from .attributes import AttributeSet
from .clock import Tick
from .errors import InvariantViolationError
from .event_queue import Event, EventQueue, EventType
from .request import Request


class Server:
    """A server able to handle one request at a time."""

    __slots__ = ("server_id", "attributes", "profile_name", "request", "completion_tick")

    def __init__(self, server_id: int, attributes: AttributeSet, profile_name: str = ""):
        self.server_id = server_id
        self.attributes = attributes
        self.profile_name = profile_name
        self.request: Optional[Request] = None
        self.completion_tick: Optional[Tick] = None

    @property
    def is_idle(self) -> bool:
        return self.request is None

    def __repr__(self) -> str:
        status = "idle" if self.is_idle else f"busy(request={self.request.request_id})"
        return f"Server(id={self.server_id}, {self.attributes!r}, {status})"


class ServerPool:
    """Owns the servers of one simulation run.

    Servers are kept in creation order, and every search walks them in that
    order, so identical runs pick identical servers.
    """

    def __init__(self, event_queue: EventQueue):
        """Initialize an empty pool.

        Args:
            event_queue: Queue that receives service completion events
        """
        self.event_queue = event_queue
        self._servers: List[Server] = []
        self._by_id: Dict[int, Server] = {}
        self._busy = 0
        self._best_excess: Dict[AttributeSet, Optional[int]] = {}

    def add_server(self, attributes: AttributeSet, profile_name: str = "") -> Server:
        """Create a new idle server and return it."""
        server = Server(len(self._servers), attributes, profile_name)
        self._servers.append(server)
        self._by_id[server.server_id] = server
        self._best_excess.clear()
        return server

    def get_server(self, server_id: int) -> Server:
        return self._by_id[server_id]

    @property
    def servers(self) -> List[Server]:
        return list(self._servers)

    def idle_matching(self, required_attrs: AttributeSet) -> Iterator[Server]:
        """Lazily yield idle servers whose attributes satisfy ``required_attrs``."""
        for server in self._servers:
            if server.request is None and required_attrs.matches(server.attributes):
                yield server

    def assign(self, server: Server, request: Request, completion_tick: Tick) -> None:
        """Bind ``request`` to an idle ``server`` and schedule its completion.

        Raises:
            InvariantViolationError: If the server is already busy
        """
        if not server.is_idle:
            raise InvariantViolationError(
                f"Server is already serving request {server.request.request_id}",
                request_id=request.request_id, server_id=server.server_id,
                transition="assign",
            )
        server.request = request
        server.completion_tick = completion_tick
        self._busy += 1
        self.event_queue.push(Event(
            time=completion_tick,
            event_type=EventType.SERVICE_COMPLETION,
            request=request,
            generation=request.generation,
        ))

    def release(self, server: Server) -> Request:
        """Return a busy server to the idle pool.

        Returns:
            The request the server was handling

        Raises:
            InvariantViolationError: If the server is idle
        """
        if server.is_idle:
            raise InvariantViolationError(
                "Cannot release an idle server",
                server_id=server.server_id, transition="release",
            )
        request = server.request
        server.request = None
        server.completion_tick = None
        self._busy -= 1
        return request

    def best_possible_excess(self, required_attrs: AttributeSet) -> Optional[int]:
        """Smallest attribute excess over ``required_attrs`` among all matching servers.

        Busy servers count too. Returns None when no server can ever match.
        """
        if required_attrs not in self._best_excess:
            excesses = [
                server.attributes.excess_over(required_attrs)
                for server in self._servers
                if required_attrs.matches(server.attributes)
            ]
            self._best_excess[required_attrs] = min(excesses) if excesses else None
        return self._best_excess[required_attrs]

    def has_idle(self) -> bool:
        return self._busy < len(self._servers)

    def idle_count(self) -> int:
        return len(self._servers) - self._busy

    def busy_count(self) -> int:
        return self._busy

    def __len__(self) -> int:
        return len(self._servers)

    def __repr__(self) -> str:
        return f"ServerPool(size={len(self._servers)}, busy={self._busy})"
