"""
.. include:: ../README.md
"""

__all__ = [
    "eventual",
    "provision",
    "cluster",
    "config",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
