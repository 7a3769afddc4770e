"""Website downtime detector with Discord webhook alerts."""

from .checker import is_url_up
from .config import RawConfig, ValidatedConfig, load_config, resolve_config
from .errors import CheckError, ConfigError, DowndetectorError, NotifyError
from .notifier import send_discord_notification
from .worker import MonitoringWorker, WorkerState, monitor_websites

__version__ = "0.1.0"

__all__ = [
    "CheckError",
    "ConfigError",
    "DowndetectorError",
    "MonitoringWorker",
    "NotifyError",
    "RawConfig",
    "ValidatedConfig",
    "WorkerState",
    "is_url_up",
    "load_config",
    "monitor_websites",
    "resolve_config",
    "send_discord_notification",
]
