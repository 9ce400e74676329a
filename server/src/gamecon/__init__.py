"""Gamecon - receive typed game events over a single TCP connection.

A game process streams small textual messages (``<name> <type> <content>``)
to this process. The connection engine owns the socket and a fixed-rate
tick on one background thread; the protocol dispatcher decodes each line
into a typed handler call on that same thread.
"""

__version__ = "0.1.0"
