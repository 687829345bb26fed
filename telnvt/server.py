"""
The ``main`` function here is wired to the command line tool by name
telnvt-server.  If this server's PID receives the SIGTERM signal, it
attempts to shutdown gracefully.

The :class:`TelnetServer` class accepts clients on a listening socket,
wrapping each in a :class:`~.TelnetConnection` with a unique id, and
delivers their lines from :meth:`TelnetServer.poll`, called in a loop by
:meth:`TelnetServer.serve_forever` or by the owner's own tick loop.
"""

from __future__ import annotations

# std imports
import signal
import socket
import logging
import argparse
import threading
import collections
from typing import Any, Dict, List, Union, Callable, Optional

# local
from . import accessories
from .connection import TelnetConnection

__all__ = ("TelnetServer", "run_server", "parse_server_args", "echo_line", "greet")

CONFIG = collections.namedtuple(
    "CONFIG",
    [
        "host",
        "port",
        "loglevel",
        "logfile",
        "logfmt",
        "encoding",
        "idle_max",
        "interval",
        "on_connect",
        "on_line",
    ],
)(
    host="localhost",
    port=6023,
    loglevel="info",
    logfile=None,
    logfmt=accessories._DEFAULT_LOGFMT,
    encoding="utf8",
    idle_max=0.2,
    interval=0.05,
    on_connect="telnvt.server.greet",
    on_line="telnvt.server.echo_line",
)

logger = logging.getLogger("telnvt.server")


class TelnetServer:
    """
    Threaded telnet server.

    An accept thread wraps each client in a started
    :class:`~.TelnetConnection`.  All callbacks fire from :meth:`poll`, in
    the thread calling it.

    :param host: Address to bind to.
    :param port: Port to bind to, 0 to choose any free port.
    :param on_connect: Called as ``on_connect(connection)`` for each new
        client.
    :param on_disconnect: Called as ``on_disconnect(connection)`` once a
        client is gone and its connection stopped.
    :param on_line: Called as ``on_line(connection, line)`` for each line
        received from any client.
    :param connection_kwargs: Additional arguments passed to
        :class:`~.TelnetConnection`.
    """

    #: Number of unaccepted connections the listener queues.
    backlog = 5

    #: Seconds a departing connection may spend sending queued text.
    flush_timeout = 1.0

    def __init__(
        self,
        host: str = CONFIG.host,
        port: int = CONFIG.port,
        on_connect: Optional[Callable[[TelnetConnection], Any]] = None,
        on_disconnect: Optional[Callable[[TelnetConnection], Any]] = None,
        on_line: Optional[Callable[[TelnetConnection, str], Any]] = None,
        **connection_kwargs: Any,
    ):
        self._host = host
        self._port = port
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.on_line = on_line
        self._connection_kwargs = connection_kwargs

        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._shutdown = threading.Event()
        self._lock = threading.Lock()
        self._next_id = 1
        self._connections: Dict[int, TelnetConnection] = {}
        self._new_connections: List[TelnetConnection] = []

    @property
    def port(self) -> int:
        """Port bound by :meth:`start`, or the port requested before then."""
        if self._listener is not None:
            return self._listener.getsockname()[1]
        return self._port

    @property
    def connections(self) -> List[TelnetConnection]:
        """Connections not yet reaped, ordered by id."""
        with self._lock:
            return [self._connections[key] for key in sorted(self._connections)]

    def start(self) -> None:
        """
        Bind, listen, and accept clients in a background thread.

        :raises RuntimeError: If already started.
        """
        if self._thread is not None:
            raise RuntimeError("Server already started")
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((self._host, self._port))
        listener.listen(self.backlog)
        self._listener = listener
        self._thread = threading.Thread(
            target=self._accept_loop, name="telnvt-accept", daemon=True)
        self._thread.start()
        logger.info("Server ready on {0}:{1}".format(self._host, self.port))

    def _accept_loop(self) -> None:
        assert self._listener is not None
        while not self._shutdown.is_set():
            try:
                sock, _ = self._listener.accept()
            except OSError as err:
                if not self._shutdown.is_set():
                    logger.error("accept failed: {0}".format(err))
                break
            with self._lock:
                conn_id, self._next_id = self._next_id, self._next_id + 1
                conn = TelnetConnection(
                    sock, conn_id, self._dispatch_line, **self._connection_kwargs)
                self._connections[conn_id] = conn
                self._new_connections.append(conn)
            logger.info("Connection from {0}, id={1}".format(conn.addrport(), conn_id))
            conn.start()

    def _dispatch_line(self, conn: TelnetConnection, line: str) -> None:
        if self.on_line is not None:
            self.on_line(conn, line)

    def poll(self) -> None:
        """
        Deliver pending connects, lines and disconnects to callbacks.

        Connections no longer alive are stopped and removed, after their
        remaining lines are delivered and their queued text is sent.
        """
        with self._lock:
            new_connections, self._new_connections = self._new_connections, []
        for conn in new_connections:
            if self.on_connect is not None:
                self.on_connect(conn)

        for conn in self.connections:
            # read before draining, so lines decoded by a dead reader are delivered
            alive = conn.alive
            conn.poll()
            if not alive:
                self._reap(conn)

    def _reap(self, conn: TelnetConnection) -> None:
        conn.flush(timeout=self.flush_timeout)
        conn.stop()
        with self._lock:
            self._connections.pop(conn.id, None)
        logger.info("Connection closed, id={0}".format(conn.id))
        if self.on_disconnect is not None:
            self.on_disconnect(conn)

    def serve_forever(self, interval: float = CONFIG.interval) -> None:
        """
        Call :meth:`poll` every ``interval`` seconds until :meth:`shutdown`.

        The server is started first, when it was not already.
        """
        if self._thread is None:
            self.start()
        while not self._shutdown.is_set():
            self.poll()
            self._shutdown.wait(interval)

    def shutdown(self) -> None:
        """Stop accepting clients, and stop all connections."""
        self._shutdown.set()
        if self._listener is not None:
            try:
                self._listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._listener.close()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        for conn in self.connections:
            conn.stop()
        with self._lock:
            self._connections.clear()
            self._new_connections.clear()


def echo_line(conn: TelnetConnection, line: str) -> None:
    """Echo ``line`` back to ``conn``, or disconnect on ``quit``."""
    if line.strip().lower() == "quit":
        conn.writeline("Goodbye!")
        conn.flush(timeout=1.0)
        conn.stop()
        return
    conn.writeline("Echo: {0}".format(line))


def greet(conn: TelnetConnection) -> None:
    """Send the echo service banner to a new client."""
    conn.writeline("Welcome! Type messages and they are echoed back.")
    conn.writeline("Type 'quit' to disconnect.")


def parse_server_args() -> Dict[str, Any]:
    """Return keyword arguments for :func:`run_server` parsed from ``sys.argv``."""
    parser = argparse.ArgumentParser(
        description="Telnet line server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("host", nargs="?", default=CONFIG.host, help="bind address")
    parser.add_argument(
        "port", nargs="?", type=int, default=CONFIG.port, help="bind port"
    )
    parser.add_argument("--loglevel", default=CONFIG.loglevel, help="level name")
    parser.add_argument("--logfile", default=CONFIG.logfile, help="filepath")
    parser.add_argument("--logfmt", default=CONFIG.logfmt, help="log format")
    parser.add_argument("--encoding", default=CONFIG.encoding, help="encoding name")
    parser.add_argument(
        "--idle-max",
        type=float,
        default=CONFIG.idle_max,
        help="maximum idle delay of writer threads",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=CONFIG.interval,
        help="seconds between polls of connections",
    )
    parser.add_argument(
        "--on-connect",
        default=CONFIG.on_connect,
        type=accessories.function_lookup,
        help="module.function_name called for each new client",
    )
    parser.add_argument(
        "--on-line",
        default=CONFIG.on_line,
        type=accessories.function_lookup,
        help="module.function_name called for each line received",
    )
    return vars(parser.parse_args())


def run_server(
    host: str = CONFIG.host,
    port: int = CONFIG.port,
    loglevel: str = CONFIG.loglevel,
    logfile: Optional[str] = CONFIG.logfile,
    logfmt: str = CONFIG.logfmt,
    encoding: str = CONFIG.encoding,
    idle_max: float = CONFIG.idle_max,
    interval: float = CONFIG.interval,
    on_connect: Union[str, Callable[[TelnetConnection], Any]] = CONFIG.on_connect,
    on_line: Union[str, Callable[[TelnetConnection, str], Any]] = CONFIG.on_line,
) -> None:
    """
    Program entry point for server daemon.

    This function configures a logger and serves clients for the given
    keyword arguments, completing only upon receipt of SIGTERM or SIGINT.
    The ``on_connect`` and ``on_line`` callbacks may be given as
    ``module.function_name`` strings.
    """
    accessories.make_logger(
        name="telnvt.server", loglevel=loglevel, logfile=logfile, logfmt=logfmt
    )
    if isinstance(on_connect, str):
        on_connect = accessories.function_lookup(on_connect)
    if isinstance(on_line, str):
        on_line = accessories.function_lookup(on_line)

    # log all function arguments.
    _locals = locals()
    logger.debug("Server configuration: {}".format(accessories.repr_mapping(
        collections.OrderedDict((field, _locals[field]) for field in CONFIG._fields))))

    server = TelnetServer(
        host,
        port,
        on_connect=on_connect,
        on_line=on_line,
        encoding=encoding,
        idle_max=idle_max,
    )

    def _sigterm_handler(signum, frame):
        logger.info("SIGTERM received, closing server.")
        server.shutdown()

    previous = signal.signal(signal.SIGTERM, _sigterm_handler)
    try:
        server.serve_forever(interval=interval)
    except KeyboardInterrupt:
        server.shutdown()
    finally:
        signal.signal(signal.SIGTERM, previous)

    logger.info("Server stop.")


def main() -> None:
    run_server(**parse_server_args())


if __name__ == "__main__":
    main()
