"""Telnet command and option byte values of RFC 854 and common extensions."""

# commands
IAC = b"\xff"
DONT = b"\xfe"
DO = b"\xfd"
WONT = b"\xfc"
WILL = b"\xfb"
SB = b"\xfa"
GA = b"\xf9"
EL = b"\xf8"
EC = b"\xf7"
AYT = b"\xf6"
AO = b"\xf5"
IP = b"\xf4"
BRK = b"\xf3"
DM = b"\xf2"
NOP = b"\xf1"
SE = b"\xf0"
(EOF, SUSP, ABORT, CMD_EOR) = (bytes([const]) for const in range(236, 240))

# options
BINARY = b"\x00"
ECHO = b"\x01"
SGA = b"\x03"
STATUS = b"\x05"
TM = b"\x06"
LOGOUT = b"\x12"
TTYPE = b"\x18"
EOR = b"\x19"
NAWS = b"\x1f"
TSPEED = b" "
LFLOW = b"!"
LINEMODE = b'"'
XDISPLOC = b"#"
AUTHENTICATION = b"%"
ENCRYPT = b"&"
NEW_ENVIRON = b"'"
CHARSET = b"*"
(MCCP_COMPRESS, MCCP2_COMPRESS) = (bytes([85]), bytes([86]))
GMCP = bytes([201])

#: Option negotiation verbs, each followed by a single option byte.
NEGOTIATION_VERBS = (DO, DONT, WILL, WONT)

__all__ = (
    "ABORT",
    "AO",
    "AUTHENTICATION",
    "AYT",
    "BINARY",
    "BRK",
    "CHARSET",
    "CMD_EOR",
    "DM",
    "DO",
    "DONT",
    "EC",
    "ECHO",
    "EL",
    "ENCRYPT",
    "EOF",
    "EOR",
    "GA",
    "GMCP",
    "IAC",
    "IP",
    "LFLOW",
    "LINEMODE",
    "LOGOUT",
    "MCCP2_COMPRESS",
    "MCCP_COMPRESS",
    "NAWS",
    "NEGOTIATION_VERBS",
    "NEW_ENVIRON",
    "NOP",
    "SB",
    "SE",
    "SGA",
    "STATUS",
    "SUSP",
    "TM",
    "TSPEED",
    "TTYPE",
    "WILL",
    "WONT",
    "XDISPLOC",
    "name_command",
    "name_commands",
    "refusal_for",
)

#: Map of command and option byte values to their names, for logging.
_DEBUG_OPTS = dict(
    [
        (value, key)
        for key, value in globals().items()
        if key
        in (
            "BINARY",
            "ECHO",
            "SGA",
            "STATUS",
            "TM",
            "LOGOUT",
            "TTYPE",
            "EOR",
            "NAWS",
            "TSPEED",
            "LFLOW",
            "LINEMODE",
            "XDISPLOC",
            "AUTHENTICATION",
            "ENCRYPT",
            "NEW_ENVIRON",
            "CHARSET",
            "MCCP_COMPRESS",
            "MCCP2_COMPRESS",
            "GMCP",
            "EOF",
            "SUSP",
            "ABORT",
            "CMD_EOR",
            "SE",
            "NOP",
            "DM",
            "BRK",
            "IP",
            "AO",
            "AYT",
            "EC",
            "EL",
            "GA",
            "SB",
            "WILL",
            "WONT",
            "DO",
            "DONT",
            "IAC",
        )
    ]
)


def name_command(byte):
    """Return string description for (maybe) telnet command byte."""
    return _DEBUG_OPTS.get(byte, repr(byte))


def name_commands(cmds, sep=" "):
    """Return string description for array of (maybe) telnet command bytes."""
    return sep.join([name_command(bytes([byte])) for byte in cmds])


def refusal_for(verb):
    """
    Return the negative reply for negotiation ``verb``.

    A request to enable a local option (``DO``) is answered ``WONT``, every
    other verb is answered ``DONT``, so that no option is ever enabled on
    either end of the connection.

    :param bytes verb: one of ``DO``, ``DONT``, ``WILL``, ``WONT``.
    :raises ValueError: ``verb`` is not a negotiation verb.
    """
    if verb not in NEGOTIATION_VERBS:
        raise ValueError("not a negotiation verb: {0}".format(name_command(verb)))
    return WONT if verb == DO else DONT
