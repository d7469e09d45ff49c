"""piggybank.state — journaled in-memory state shared by the factory and token collaborators."""

from .journal import Journal

__all__ = ["Journal"]
