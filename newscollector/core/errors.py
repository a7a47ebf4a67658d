from __future__ import annotations


class CollectorError(Exception):
    """Base error; ``message`` is safe to show without a traceback."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(CollectorError):
    """Invalid options, config file or selector overrides."""


class FetchError(CollectorError):
    """Navigation or HTTP failure while loading a page."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class BrowserError(FetchError):
    """Playwright could not be imported or the browser failed to start."""


class OutputError(CollectorError):
    """Output directory or result files could not be written."""
