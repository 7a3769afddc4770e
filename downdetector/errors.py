"""Exception hierarchy for the downdetector service."""

from __future__ import annotations


class DowndetectorError(Exception):
    """Base class for every error raised by downdetector."""


class ConfigError(DowndetectorError, ValueError):
    """Configuration could not be resolved. Always fatal at startup."""


class TimeoutConfigError(ConfigError):
    pass


class IntervalConfigError(ConfigError):
    pass


class WebhookConfigError(ConfigError):
    pass


class SiteUrlConfigError(ConfigError):
    def __init__(self, url: str, reason: str | None = None) -> None:
        self.url = url
        message = f"Invalid URL: {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ConfigDirectoryError(ConfigError):
    pass


class ConfigFileError(ConfigError):
    pass


class ConfigParseError(ConfigError):
    pass


class CheckError(DowndetectorError):
    """A check could not be attempted at all (client or request construction)."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


class NotifyError(DowndetectorError):
    """Posting to the webhook failed. Recovered locally by the worker."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
