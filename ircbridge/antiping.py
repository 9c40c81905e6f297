"""
Nickname decoration that keeps relayed lines from highlighting
anyone on the destination network.

IRC clients highlight a line when it contains a user's nickname as a
whole word. Inserting two invisible control characters right after the
first character keeps the name readable while breaking that match.
"""

#: The character inserted into nicknames. It is the IRC 'underline'
#: formatting toggle; two of them in a row render as nothing at all.
PING_BREAKER = "\x1f"

_INSERT = PING_BREAKER * 2


def break_ping(nickname: str) -> str:
    """Decorates a nickname so it no longer highlights its owner.

        >>> break_ping('bob')
        'b\\x1f\\x1fob'
        >>> len(break_ping('x'))
        3
        >>> break_ping('')
        ''

    Arguments:
        nickname {str} -- The nickname to decorate.

    Returns:
        str -- The decorated nickname, two characters longer.
    """

    if not nickname:
        return nickname

    return nickname[:1] + _INSERT + nickname[1:]

