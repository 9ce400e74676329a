"""gamecon bridge - game-side encoders and relay for the gamecon receiver.

A thin async relay that:
- Is launched with the game's stdout piped into its stdin
- Forwards protocol lines to the receiver over TCP (port 60000)
- Reconnects with backoff when the receiver goes away
"""

__version__ = "0.1.0"
