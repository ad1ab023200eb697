"""
Base exception for user-facing errors.

All expected errors that a template author can fix (bad expression syntax,
missing modules, invalid directive values) inherit from FtlError.

Programming errors and bugs should NOT inherit from FtlError:
they propagate with full tracebacks.
"""

from __future__ import annotations


class FtlError(Exception):
    """
    Base class for all user-facing errors in ftl.

    These errors indicate problems in templates, expressions,
    host module registries or configuration.
    """
    pass


__all__ = ["FtlError"]
