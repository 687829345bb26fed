"""Module provides :class:`OutputPump`, draining outbound data to a socket."""

from __future__ import annotations

# std imports
import queue
import logging
import threading
from typing import Union, Callable, Optional

# local
from .telopt import IAC

__all__ = ("OutputPump", "IdleBackoff")

_STOP = object()


class IdleBackoff:
    """
    Linear backoff for an idle polling loop.

    The first delay is ``step``; each further idle cycle adds ``step``, up to
    ``maximum``.  Call :meth:`reset` once the loop has work again.

    :param step: Initial delay, and increment per idle cycle, in seconds.
    :param maximum: Upper bound of any delay, in seconds.
    """

    def __init__(self, step: float = 0.02, maximum: float = 0.2):
        if step <= 0 or maximum < step:
            raise ValueError(
                "backoff requires 0 < step <= maximum, got step={0}, maximum={1}"
                .format(step, maximum))
        self.step = step
        self.maximum = maximum
        self._current = step

    def __repr__(self) -> str:
        return "<IdleBackoff step={0} maximum={1} current={2}>".format(
            self.step, self.maximum, self._current)

    def next_delay(self) -> float:
        """Return the delay for this idle cycle, and increase the next."""
        delay = self._current
        self._current = min(self._current + self.step, self.maximum)
        return delay

    def reset(self) -> None:
        """Restart from the initial delay."""
        self._current = self.step


class OutputPump:
    """
    First-in, first-out queue of outbound data, drained by :meth:`run`.

    :meth:`run` is the target of a dedicated writer thread, the only caller
    of ``send``.  Any thread may :meth:`put` data while it runs.

    Entries of type ``str`` are application text: they are encoded and any
    ``IAC`` byte of the result is doubled.  Entries of type ``bytes`` are
    sent as-is, used for IAC command replies.

    :param send: Called with each ``bytes`` buffer to transmit, such as
        :meth:`socket.socket.sendall`.
    :param on_failure: Called with the :class:`OSError` raised by ``send``
        when the transport fails.  The failing entry is dropped, and the
        pump stops.
    :param encoding: Encoding of ``str`` entries.
    :param errors: Error handler used to encode ``str`` entries.
    :param backoff: Bounds how long the pump waits for data while idle,
        and so how long it takes to notice :meth:`stop`.
    :param log: Target logger, ``'telnvt.pump'`` when unset.
    """

    def __init__(
        self,
        send: Callable[[bytes], object],
        on_failure: Callable[[OSError], None],
        encoding: str = "utf8",
        errors: str = "surrogateescape",
        backoff: Optional[IdleBackoff] = None,
        log: Optional[logging.Logger] = None,
    ):
        self._send = send
        self._on_failure = on_failure
        self.encoding = encoding
        self.errors = errors
        self.backoff = backoff or IdleBackoff()
        self.log = log or logging.getLogger(__name__)
        self._queue: queue.Queue[Union[str, bytes, object]] = queue.Queue()
        self._stopped = threading.Event()

        # number of entries put and not yet sent or dropped
        self._unsent = 0
        self._sent = threading.Condition()

        #: Total bytes passed to ``send``.
        self.byte_count = 0

    def __repr__(self) -> str:
        return "<OutputPump pending={0} sent={1}{2}>".format(
            self.pending, self.byte_count, " stopped" if self.stopped else "")

    @property
    def pending(self) -> int:
        """Number of entries not yet sent."""
        return self._unsent

    @property
    def stopped(self) -> bool:
        """Whether :meth:`stop` was called, or the transport failed."""
        return self._stopped.is_set()

    def put(self, data: Union[str, bytes]) -> None:
        """
        Queue ``data`` for transmission, after all data already queued.

        :raises TypeError: ``data`` is neither ``str`` nor ``bytes``.
        """
        if not isinstance(data, (str, bytes, bytearray)):
            raise TypeError("data expected str or bytes, got {0}".format(type(data)))
        with self._sent:
            self._unsent += 1
        self._queue.put(data)

    def stop(self) -> None:
        """Stop :meth:`run` before it sends any further entry."""
        self._stopped.set()
        # wake run() without waiting out the idle delay
        self._queue.put(_STOP)
        with self._sent:
            self._sent.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every entry queued so far is sent, or the pump stops.

        :param timeout: Timeout in seconds, None to wait indefinitely.
        :returns: Whether all entries were sent.
        """
        with self._sent:
            self._sent.wait_for(lambda: not self._unsent or self.stopped, timeout)
            return not self._unsent

    def encode(self, data: Union[str, bytes]) -> bytes:
        """Return ``data`` as it should be written to the transport."""
        if isinstance(data, str):
            return data.encode(self.encoding, self.errors).replace(IAC, IAC + IAC)
        return bytes(data)

    def run(self) -> None:
        """
        Send queued entries, in order, until stopped.

        While the queue is empty, the pump waits up to the next
        :attr:`backoff` delay before checking whether it was stopped.
        """
        self.log.debug("pump started")
        while not self._stopped.is_set():
            try:
                data = self._queue.get(timeout=self.backoff.next_delay())
            except queue.Empty:
                continue
            if data is _STOP or self._stopped.is_set():
                break
            self.backoff.reset()
            buf = self.encode(data)
            try:
                self._send(buf)
            except OSError as err:
                self.log.debug("send failed, dropped {0} bytes: {1}".format(len(buf), err))
                self._stopped.set()
                self._on_failure(err)
                break
            else:
                self.byte_count += len(buf)
            finally:
                with self._sent:
                    self._unsent -= 1
                    self._sent.notify_all()
        self.log.debug("pump stopped, {0} entries unsent".format(self.pending))
