"""Test accessories for telnvt project."""
# std imports
import time
import socket
import contextlib

# 3rd-party
import pytest

__all__ = ('bind_host', 'unused_tcp_port', 'wait_for', 'recv_exactly',
           'socket_pair')


@pytest.fixture(scope="module", params=['127.0.0.1'])
def bind_host(request):
    """ Localhost bind address. """
    return request.param


@pytest.fixture
def unused_tcp_port(bind_host):
    """ A TCP port number free for binding on ``bind_host``. """
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind((bind_host, 0))
        return sock.getsockname()[1]


def wait_for(predicate, timeout=5.0, interval=0.01):
    """Return True once ``predicate()`` is true, False after ``timeout``."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def recv_exactly(sock, size, timeout=5.0):
    """Receive exactly ``size`` bytes from ``sock``, or fail the test."""
    sock.settimeout(timeout)
    buf = b''
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            pytest.fail('peer closed after {0!r}, expected {1} bytes'
                        .format(buf, size))
        buf += chunk
    return buf


@contextlib.contextmanager
def socket_pair():
    """Yield a connected (server, client) socket pair, closed on exit."""
    server_sock, client_sock = socket.socketpair()
    try:
        yield server_sock, client_sock
    finally:
        for sock in (server_sock, client_sock):
            sock.close()
