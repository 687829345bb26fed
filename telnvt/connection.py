r"""
Module provides :class:`TelnetConnection`, one accepted telnet client.

A connection owns its socket and runs two threads: a reader, decoding
received bytes into lines, and a writer, draining queued output.  Decoded
lines wait in a queue until the owner calls :meth:`TelnetConnection.poll`
from its own thread, usually once per tick of a server loop::

    def on_line(conn, line):
        conn.writeline('you said: {0}'.format(line))

    conn = TelnetConnection(sock, 1, on_line)
    conn.start()
    while conn.alive:
        conn.poll()
        time.sleep(0.05)
    conn.stop()
"""

from __future__ import annotations

# std imports
import time
import queue
import socket
import logging
import threading
from typing import Any, Callable, Optional

# local
from .pump import IdleBackoff, OutputPump
from .decoder import TelnetDecoder

__all__ = ("TelnetConnection",)


class TelnetConnection:
    """
    Telnet session of a single accepted socket.

    :param sock: Connected socket, owned and closed by this connection.
    :param conn_id: Identifier assigned by the owner, see :attr:`id`.
    :param on_line: Called as ``on_line(connection, line)`` for each line
        received, by :meth:`poll`.  With the default ``errors``, bytes
        not valid in ``encoding`` arrive as lone surrogates, such as
        ``'\\udcff'`` for an escaped IAC: encode such lines with the same
        handler before printing or logging them.
    :param encoding: Encoding of text in both directions.
    :param errors: Codec error handler in both directions.
    :param idle_step: Initial idle delay of the writer thread, in seconds.
    :param idle_max: Maximum idle delay of the writer thread, in seconds.
    :param bufsize: Maximum bytes received by the reader per call.
    :param log: Target logger, ``'telnvt.connection'`` when unset.
    """

    #: Default encoding of text in both directions.
    encoding = "utf8"

    #: Default codec error handler; keeps undecodable bytes as surrogates.
    errors = "surrogateescape"

    #: Default initial idle delay of the writer thread.
    idle_step = 0.02

    #: Default maximum idle delay of the writer thread.
    idle_max = 0.2

    #: Default maximum bytes received per call.
    bufsize = 4096

    #: Seconds :meth:`stop` waits for each worker thread to end.
    join_timeout = 2.0

    def __init__(
        self,
        sock: socket.socket,
        conn_id: int,
        on_line: Callable[["TelnetConnection", str], Any],
        encoding: Optional[str] = None,
        errors: Optional[str] = None,
        idle_step: Optional[float] = None,
        idle_max: Optional[float] = None,
        bufsize: Optional[int] = None,
        log: Optional[logging.Logger] = None,
    ):
        self._sock = sock
        self._id = conn_id
        self._on_line = on_line
        self.encoding = encoding or self.encoding
        self.errors = errors or self.errors
        self.bufsize = bufsize or self.bufsize
        self.log = log or logging.getLogger(__name__)

        try:
            self.peername = sock.getpeername()
        except OSError:
            self.peername = None

        self._inbound: queue.Queue[str] = queue.Queue()
        self._decoder = TelnetDecoder(
            on_line=self._inbound.put,
            send_iac=self._send_iac,
            encoding=self.encoding,
            errors=self.errors,
            log=self.log,
        )
        self._pump = OutputPump(
            send=sock.sendall,
            on_failure=self._on_send_failure,
            encoding=self.encoding,
            errors=self.errors,
            backoff=IdleBackoff(
                step=idle_step or self.idle_step,
                maximum=idle_max or self.idle_max,
            ),
            log=self.log,
        )
        self._reader = threading.Thread(
            target=self._run_reader, name="telnvt-reader-{0}".format(conn_id), daemon=True)
        self._writer = threading.Thread(
            target=self._run_writer, name="telnvt-writer-{0}".format(conn_id), daemon=True)

        self._lock = threading.Lock()
        self._started = False
        self._alive = False
        self._closed = False
        self._connect_time = time.time()
        self._last_input_time = time.time()

    def __repr__(self) -> str:
        if self._closed:
            state = "closed"
        elif self._alive:
            state = "alive"
        elif self._started:
            state = "dead"
        else:
            state = "new"
        return "<TelnetConnection id={0} peer={1} {2}>".format(
            self._id, self.addrport(), state)

    @property
    def id(self) -> int:
        """Identifier assigned by the owner of this connection."""
        return self._id

    @property
    def alive(self) -> bool:
        """
        Whether this connection is running.

        False before :meth:`start`, and once the remote end closes, the
        transport fails, or :meth:`stop` is called.  The owner should
        :meth:`stop` a started connection that is no longer alive.
        After the remote end closes, text already queued or written
        is still sent until :meth:`stop`.
        """
        return self._alive

    @property
    def connected(self) -> bool:
        """Whether the socket is still open, that is, :meth:`stop` was not called."""
        return not self._closed

    @property
    def connect_time(self) -> float:
        """Timestamp when this connection was created."""
        return self._connect_time

    @property
    def last_input_time(self) -> float:
        """Timestamp of the last bytes received."""
        return self._last_input_time

    def idle(self) -> float:
        """Seconds since bytes were last received."""
        return time.time() - self._last_input_time

    def duration(self) -> float:
        """Seconds since this connection was created."""
        return time.time() - self._connect_time

    def addrport(self) -> str:
        """Return remote ``IP:PORT`` as string, or ``'?'`` when unknown."""
        if not self.peername:
            return "?"
        return "{0}:{1}".format(*self.peername[:2])

    def write(self, text: str) -> None:
        """Queue ``text`` for transmission, as-is."""
        self._pump.put(text)

    def writeline(self, text: str) -> None:
        r"""Queue ``text`` for transmission, followed by ``'\r\n'``."""
        self._pump.put(text + "\r\n")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Block until all text queued so far is sent.

        :param timeout: Timeout in seconds, None to wait indefinitely.
        :returns: False if the timeout expired, or the connection stopped
            sending, before all text was sent.
        """
        return self._pump.flush(timeout)

    def start(self) -> None:
        """
        Start the reader and writer threads.

        :raises RuntimeError: If already started; connections are single-use.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Connection already started")
            self._started = True
            self._alive = True
        self.log.debug("{0}: start".format(self.addrport()))
        self._reader.start()
        self._writer.start()

    def stop(self) -> None:
        """
        Stop both threads and close the socket.

        Data still queued for transmission is discarded.  Closing the
        socket interrupts the reader thread blocked on receive.  Calling
        :meth:`stop` again has no effect.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._alive = False
        self.log.debug("{0}: stop".format(self.addrport()))
        self._pump.stop()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already disconnected by the remote end
            pass
        self._sock.close()

        current = threading.current_thread()
        for thread in (self._reader, self._writer):
            if thread.is_alive() and thread is not current:
                thread.join(timeout=self.join_timeout)

    def poll(self) -> int:
        """
        Deliver lines received since the last call to ``on_line``.

        Lines are delivered in the order received, from the calling
        thread.  This method does not block, and does nothing once the
        socket is closed.

        :returns: Number of lines delivered.
        """
        delivered = 0
        while not self._closed:
            try:
                line = self._inbound.get_nowait()
            except queue.Empty:
                break
            self._on_line(self, line)
            delivered += 1
        return delivered

    def _mark_dead(self, reason: str, stop_writer: bool = True) -> None:
        with self._lock:
            was_alive, self._alive = self._alive, False
        if was_alive:
            self.log.info("{0}: {1}".format(self.addrport(), reason))
        if stop_writer:
            self._pump.stop()

    def _send_iac(self, buf: bytes) -> None:
        self._pump.put(buf)

    def _on_send_failure(self, err: OSError) -> None:
        self._mark_dead("send failed: {0}".format(err))

    def _run_reader(self) -> None:
        """Receive and decode bytes until end-of-stream or failure."""
        reason = "reader failed"
        stop_writer = True
        try:
            while self._alive:
                try:
                    data = self._sock.recv(self.bufsize)
                except OSError as err:
                    reason = "recv failed: {0}".format(err)
                    break
                if not data:
                    self._decoder.eof()
                    reason = "connection closed by peer"
                    # the peer may only have stopped sending, and still reads
                    stop_writer = False
                    break
                self._last_input_time = time.time()
                self._decoder.feed(data)
            else:
                reason = "reader stopped"
        finally:
            if not self._closed:
                self._mark_dead(reason, stop_writer=stop_writer)

    def _run_writer(self) -> None:
        try:
            self._pump.run()
        finally:
            if not self._pump.stopped:
                # run() raised something other than a transport failure
                self._mark_dead("writer failed")
