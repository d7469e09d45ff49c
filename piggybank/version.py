"""
piggybank.version — package version, reported in factory deploy logs.

Keep in sync with `version` in pyproject.toml.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
