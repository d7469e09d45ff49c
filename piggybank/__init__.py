"""
piggybank — time-locked multi-token savings vaults.

A factory mints one isolated vault per savings goal, enforces the withdrawal
deadline, takes a protocol fee on ordinary withdrawal and lets creators rescue
tokens the allow-list does not recognize.

Only lightweight metadata is exposed at import time. Import the factory,
token and event modules explicitly:

    from piggybank.factory import PiggyFactory
    from piggybank.tokens import InMemoryToken, TokenRegistry
"""

from .version import __version__

__all__ = ["__version__"]
