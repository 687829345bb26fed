"""Module provides :class:`TelnetDecoder`, an RFC 854 line decoder."""
# std imports
import logging

# local imports
from .telopt import IAC, NEGOTIATION_VERBS, name_command, refusal_for

__all__ = ("TelnetDecoder",)

CR, LF = b"\r", b"\n"


class TelnetDecoder:
    """
    Telnet IAC interpreter and line assembler.

    Every byte received from the remote end is passed to :meth:`feed_byte`.
    Payload bytes are accumulated until a line feed completes the line,
    which is decoded and passed to ``on_line``.  Carriage returns are
    discarded wherever they appear.

    ``IAC IAC`` is unescaped to a single literal ``0xff`` byte of payload.
    Option negotiation (``IAC DO``, ``DONT``, ``WILL`` or ``WONT`` followed
    by an option byte) is never agreed to: a refusal is passed to
    ``send_iac`` as soon as the option byte arrives, keeping the session in
    the plain NVT default.  Any other two-byte command is ignored.

    :param callable on_line: called with each decoded line, as ``str``,
        without its line terminator.
    :param callable send_iac: called with the ``bytes`` of each reply that
        should be written back to the remote end.
    :param str encoding: encoding of received lines.
    :param str errors: error handler used to decode received lines.  The
        default, ``'surrogateescape'``, keeps literal bytes that are not
        valid for ``encoding`` (such as an escaped ``IAC``) as lone
        surrogates.
    :param logging.Logger log: target logger, if None is given, one is
        created using the namespace ``'telnvt.decoder'``.
    """

    #: Decoder states: awaiting payload, awaiting the byte following
    #: ``IAC``, and awaiting the option byte following a negotiation verb.
    NORMAL, COMMAND, OPTION = "normal", "command", "option"

    #: Total bytes received by :meth:`feed_byte`
    byte_count = 0

    def __init__(self, on_line, send_iac, encoding="utf8",
                 errors="surrogateescape", log=None):
        self.on_line = on_line
        self.send_iac = send_iac
        self.encoding = encoding
        self.errors = errors
        self.log = log or logging.getLogger(__name__)

        #: Current state, one of :attr:`NORMAL`, :attr:`COMMAND` or
        #: :attr:`OPTION`.
        self.state = self.NORMAL

        #: The negotiation verb awaiting its option byte, while in
        #: :attr:`OPTION` state.
        self.verb = None

        #: Payload of the line currently being assembled.
        self._buffer = bytearray()

    def __repr__(self):
        """Description of decoder state."""
        info = [type(self).__name__, "state:{0}".format(self.state)]
        if self.verb is not None:
            info.append("verb:{0}".format(name_command(self.verb)))
        if self._buffer:
            info.append("{0} bytes".format(len(self._buffer)))
        return "<{0}>".format(" ".join(info))

    @property
    def pending(self):
        """Number of payload bytes received for an incomplete line."""
        return len(self._buffer)

    def feed(self, data):
        """Feed each byte of ``data`` to :meth:`feed_byte`."""
        for byte in data:
            self.feed_byte(bytes([byte]))

    def feed_byte(self, byte):
        """
        Feed a single byte into the decoder state machine.

        :param bytes byte: a bytes array of length 1.
        :raises TypeError: ``byte`` is not a bytes array of length 1.
        """
        if not isinstance(byte, (bytes, bytearray)) or len(byte) != 1:
            raise TypeError("byte expected bytes of length 1, got {0!r}".format(byte))
        self.byte_count += 1

        if self.state == self.OPTION:
            # 3rd and final byte of IAC DO, DONT, WILL, WONT.
            verb, self.verb = self.verb, None
            self.state = self.NORMAL
            reply = IAC + refusal_for(verb) + byte
            self.log.debug("recv IAC {0} {1}, send IAC {2} {1}".format(
                name_command(verb), name_command(byte),
                name_command(reply[1:2])))
            self.send_iac(reply)

        elif self.state == self.COMMAND:
            # 2nd byte of IAC.
            if byte == IAC:
                self.state = self.NORMAL
                self._buffer.extend(IAC)
            elif byte in NEGOTIATION_VERBS:
                self.state = self.OPTION
                self.verb = byte
            else:
                self.state = self.NORMAL
                self.log.debug("recv IAC {0}: ignored".format(name_command(byte)))

        elif byte == IAC:
            self.state = self.COMMAND

        elif byte == CR:
            pass

        elif byte == LF:
            line = self._buffer.decode(self.encoding, self.errors)
            self._buffer.clear()
            self.on_line(line)

        else:
            self._buffer.extend(byte)

    def eof(self):
        """
        Receive end-of-stream.

        An incomplete IAC command is aborted, and any payload received
        without a closing line feed is discarded.
        """
        if self.state != self.NORMAL:
            self.log.debug("eof: IAC command aborted in state {0}".format(self.state))
        self.state = self.NORMAL
        self.verb = None
        if self._buffer:
            self.log.debug("eof: discarding {0} bytes of incomplete line"
                           .format(len(self._buffer)))
            self._buffer.clear()
