"""
errors.py
---------

Exception types shared by the discovery engine.  Per-identifier failures
(``TransportError``, ``DecompileError``, ``MalformedURIError``) are caught by
the crawler and turned into an outcome for that identifier; only
``FatalEngineError`` escapes a crawl.
"""

from __future__ import annotations


class WebInfReconError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(WebInfReconError):
    """A request could not be completed (connection failure, timeout, ...)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class MalformedURIError(WebInfReconError):
    """An identifier could not be mapped onto a legal resource URI."""


class DecompileError(WebInfReconError):
    """The decompiler rejected the artifact or could not be run."""


class FatalEngineError(WebInfReconError):
    """A condition that prevents the crawl from continuing at all."""


class ConfigError(WebInfReconError):
    """The configuration file could not be read or holds invalid values."""
