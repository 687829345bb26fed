"""Test telnet constants and their names."""
# 3rd party
import pytest

# local
from telnvt.telopt import (DO, DONT, ECHO, IAC, NAWS, SB, TTYPE, WILL, WONT,
                           name_command, name_commands, refusal_for)


def test_name_command():
    """ Test mapping of command bytes to their names. """
    given_expected = {
        IAC: 'IAC',
        DO: 'DO',
        DONT: 'DONT',
        WILL: 'WILL',
        WONT: 'WONT',
        SB: 'SB',
        ECHO: 'ECHO',
        NAWS: 'NAWS',
        TTYPE: 'TTYPE',
        b'\x99': repr(b'\x99'),
    }
    for given, expected in sorted(given_expected.items()):
        # exercise,
        result = name_command(given)

        # verify,
        assert result == expected


def test_name_commands():
    """ Test description of a whole IAC sequence. """
    assert name_commands(IAC + WILL + ECHO) == 'IAC WILL ECHO'
    assert name_commands(IAC + DO + NAWS, sep=',') == 'IAC,DO,NAWS'


def test_refusal_for():
    """ Each negotiation verb is answered negatively. """
    given_expected = {
        DO: WONT,
        WILL: DONT,
        DONT: DONT,
        WONT: DONT,
    }
    for given, expected in given_expected.items():
        assert refusal_for(given) == expected


def test_refusal_for_illegal_verb():
    """ Only negotiation verbs have a refusal. """
    with pytest.raises(ValueError):
        refusal_for(SB)
