"""Test the RFC 854 line decoder."""
# std imports
import logging

# 3rd party
import pytest

# local
from telnvt.decoder import TelnetDecoder
from telnvt.telopt import (AYT, DO, DONT, ECHO, IAC, NAWS, NOP, SGA, TTYPE,
                           WILL, WONT)


class Recorder:
    """Collects the lines and replies of a decoder."""

    def __init__(self):
        self.lines = []
        self.replies = []
        self.decoder = TelnetDecoder(on_line=self.lines.append,
                                     send_iac=self.replies.append)

    def feed(self, data):
        self.decoder.feed(data)
        return self


def test_plain_line():
    """Payload followed by LF decodes to the UTF-8 text."""
    rec = Recorder().feed('héllo wörld ✓'.encode('utf8') + b'\n')
    assert rec.lines == ['héllo wörld ✓']
    assert rec.replies == []


def test_hello_crlf():
    """``hello\\r\\n`` delivers exactly one line, ``hello``."""
    rec = Recorder().feed(b'hello\r\n')
    assert rec.lines == ['hello']
    assert rec.decoder.pending == 0


@pytest.mark.parametrize('given', [
    b'\rab\n', b'a\rb\n', b'ab\r\n', b'a\r\r\rb\r\n', b'\r\r\rab\n'])
def test_cr_stripped_anywhere(given):
    """Carriage returns never reach a line, wherever they appear."""
    assert Recorder().feed(given).lines == ['ab']


def test_empty_lines():
    """Consecutive terminators deliver empty lines."""
    assert Recorder().feed(b'\r\n\n').lines == ['', '']


def test_multiple_lines_in_order():
    rec = Recorder().feed(b'one\r\ntwo\r\nthree\r\npartial')
    assert rec.lines == ['one', 'two', 'three']
    assert rec.decoder.pending == len(b'partial')


def test_line_split_across_feeds():
    """A multi-byte character split between receives decodes whole."""
    encoded = 'añb'.encode('utf8')
    rec = Recorder()
    rec.feed(encoded[:2])
    assert rec.lines == []
    rec.feed(encoded[2:] + b'\n')
    assert rec.lines == ['añb']


def test_escaped_iac():
    """``IAC IAC`` becomes exactly one literal 0xff at its position."""
    rec = Recorder().feed(b'a' + IAC + IAC + b'b\n')
    assert len(rec.lines) == 1
    line = rec.lines[0]
    assert len(line) == 3
    assert line.encode('utf8', 'surrogateescape') == b'a\xffb'
    assert rec.replies == []


def test_escaped_iac_errors_replace():
    """A decoder using the 'replace' handler yields U+FFFD for 0xff."""
    lines = []
    decoder = TelnetDecoder(lines.append, lambda buf: None, errors='replace')
    decoder.feed(IAC + IAC + b'\n')
    assert lines == ['�']


@pytest.mark.parametrize('option', [ECHO, SGA, TTYPE, NAWS, b'\x00', b'\xff'])
def test_do_refused_with_wont(option):
    """``IAC DO o`` is answered ``IAC WONT o``."""
    rec = Recorder().feed(IAC + DO + option)
    assert rec.replies == [IAC + WONT + option]
    assert rec.lines == []


@pytest.mark.parametrize('option', [ECHO, SGA, TTYPE, NAWS, b'\x00', b'\xff'])
def test_will_refused_with_dont(option):
    """``IAC WILL o`` is answered ``IAC DONT o``."""
    rec = Recorder().feed(IAC + WILL + option)
    assert rec.replies == [IAC + DONT + option]
    assert rec.lines == []


@pytest.mark.parametrize('verb', [DONT, WONT])
def test_negative_verbs_answered_dont(verb):
    rec = Recorder().feed(IAC + verb + ECHO)
    assert rec.replies == [IAC + DONT + ECHO]


def test_will_echo_produces_no_line():
    """``IAC WILL 1`` writes back ``IAC DONT 1`` and decodes nothing."""
    rec = Recorder().feed(IAC + WILL + b'\x01')
    assert rec.replies == [b'\xff\xfe\x01']
    assert rec.lines == []
    assert rec.decoder.pending == 0
    assert rec.decoder.state == TelnetDecoder.NORMAL


def test_negotiation_within_line():
    """Negotiation interleaved with payload leaves the payload intact."""
    rec = Recorder().feed(b'ab' + IAC + DO + TTYPE + b'cd\r' + IAC + WILL + NAWS + b'\n')
    assert rec.lines == ['abcd']
    assert rec.replies == [IAC + WONT + TTYPE, IAC + DONT + NAWS]


def test_negotiation_split_across_feeds():
    rec = Recorder()
    rec.feed(IAC)
    assert rec.decoder.state == TelnetDecoder.COMMAND
    rec.feed(DO)
    assert rec.decoder.state == TelnetDecoder.OPTION
    assert rec.decoder.verb == DO
    assert rec.replies == []
    rec.feed(ECHO)
    assert rec.replies == [IAC + WONT + ECHO]
    assert rec.decoder.state == TelnetDecoder.NORMAL
    assert rec.decoder.verb is None


@pytest.mark.parametrize('cmd', [NOP, AYT])
def test_other_commands_ignored(cmd):
    """Two-byte commands other than negotiation are consumed silently."""
    rec = Recorder().feed(b'x' + IAC + cmd + b'y\n')
    assert rec.lines == ['xy']
    assert rec.replies == []


def test_eof_aborts_command():
    """End-of-stream within a command returns to normal decoding."""
    for partial in (IAC, IAC + WILL):
        rec = Recorder().feed(partial)
        rec.decoder.eof()
        assert rec.decoder.state == TelnetDecoder.NORMAL
        assert rec.decoder.verb is None
        assert rec.replies == []


def test_eof_discards_incomplete_line(caplog):
    rec = Recorder().feed(b'done\npartial')
    with caplog.at_level(logging.DEBUG, logger='telnvt.decoder'):
        rec.decoder.eof()
    assert rec.lines == ['done']
    assert rec.decoder.pending == 0
    assert 'discarding 7 bytes' in caplog.text


def test_feed_byte_type_checked():
    decoder = TelnetDecoder(lambda line: None, lambda buf: None)
    with pytest.raises(TypeError):
        decoder.feed_byte(65)
    with pytest.raises(TypeError):
        decoder.feed_byte(b'ab')


def test_byte_count_and_repr():
    rec = Recorder().feed(b'ab' + IAC + DO)
    assert rec.decoder.byte_count == 4
    assert repr(rec.decoder) == '<TelnetDecoder state:option verb:DO 2 bytes>'


def test_refusal_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger='telnvt.decoder'):
        Recorder().feed(IAC + WILL + ECHO)
    assert 'recv IAC WILL ECHO, send IAC DONT ECHO' in caplog.text
