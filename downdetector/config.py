"""Configuration loading and validation for downdetector.

The TOML file is parsed into a :class:`RawConfig` where every field is optional
or default-backed, then converted once by :func:`resolve_config` into a frozen
:class:`ValidatedConfig`. Nothing partially validated escapes that conversion.
"""

import os
import tomllib
from pathlib import Path
from typing import Annotated, Mapping, Optional

import platformdirs
import structlog
from dotenv import dotenv_values, find_dotenv
from pydantic import AnyUrl, BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

from .errors import (
    ConfigDirectoryError,
    ConfigFileError,
    ConfigParseError,
    IntervalConfigError,
    SiteUrlConfigError,
    TimeoutConfigError,
    WebhookConfigError,
)


logger = structlog.get_logger(__name__)

APP_NAME = "downdetector"
CONFIG_FILE_NAME = "config.toml"
DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.default.toml")
EXAMPLE_CONFIG_PATH = Path(__file__).with_name("config.example.toml")

DEFAULT_TIMEOUT_SECS = 30
DEFAULT_CHECK_INTERVAL_SECS = 300
MAX_CHECK_INTERVAL_SECS = 86400

WEBHOOK_URL_ENV = "WEBHOOK_URL"
DISCORD_ID_ENV = "DISCORD_ID"
OVERRIDE_NAMES = (WEBHOOK_URL_ENV, DISCORD_ID_ENV)

WEBHOOK_SCHEME = "https"
WEBHOOK_HOST = "discord.com"
WEBHOOK_PATH_PREFIX = "/api/webhooks/"

_SNOWFLAKE_MAX = 2**64 - 1
_URL_ADAPTER = TypeAdapter(AnyUrl)

Snowflake = Annotated[StrictInt, Field(ge=0, le=_SNOWFLAKE_MAX)]


class RawConfigOptions(BaseModel):
    """The ``[config]`` section as written in the file."""

    timeout_secs: StrictInt = Field(default=DEFAULT_TIMEOUT_SECS, description="HTTP check timeout in seconds")
    check_interval_secs: StrictInt = Field(
        default=DEFAULT_CHECK_INTERVAL_SECS, description="Seconds to sleep between check cycles"
    )
    webhook_url: Optional[StrictStr] = Field(default=None, description="Discord webhook for DOWN alerts")
    discord_id: Optional[Snowflake] = Field(default=None, description="Discord user id to mention in alerts")


class SiteList(BaseModel):
    """The ``[sites]`` section."""

    urls: list[StrictStr] = Field(default_factory=list, description="URLs to check, in order")


class RawConfig(BaseModel):
    """Deserialized config file. Only used as input to :func:`resolve_config`."""

    config: RawConfigOptions = Field(default_factory=RawConfigOptions)
    sites: SiteList = Field(default_factory=SiteList)


class ValidatedConfig(BaseModel):
    """Fully resolved runtime settings, read-only for the life of the process."""

    model_config = ConfigDict(frozen=True)

    timeout_secs: int = Field(..., gt=0, description="HTTP check timeout in seconds")
    check_interval_secs: int = Field(
        ..., ge=1, lt=MAX_CHECK_INTERVAL_SECS, description="Seconds to sleep between check cycles"
    )
    webhook_url: Optional[str] = Field(default=None, description="Discord webhook, stored exactly as supplied")
    discord_id: Optional[Snowflake] = Field(default=None, description="Discord user id to mention in alerts")
    monitored_urls: tuple[str, ...] = Field(default=(), description="URLs to check, in file order")


def validate_timeout(timeout_secs: int) -> int:
    if timeout_secs < 1:
        raise TimeoutConfigError("timeout_secs must be > 0")
    return timeout_secs


def validate_check_interval(check_interval_secs: int) -> int:
    if not 1 <= check_interval_secs < MAX_CHECK_INTERVAL_SECS:
        raise IntervalConfigError(f"check_interval_secs must be > 0 and < {MAX_CHECK_INTERVAL_SECS}")
    return check_interval_secs


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _parse_url(value: str) -> AnyUrl:
    return _URL_ADAPTER.validate_python(value)


def resolve_webhook_url(file_value: Optional[str], overrides: Mapping[str, Optional[str]]) -> Optional[str]:
    """Pick the webhook from env or file and check it is a Discord webhook.

    A blank value on either side counts as absent. The returned string is the
    input (minus surrounding whitespace), never the re-serialized URL.
    """
    webhook_url = _non_blank(overrides.get(WEBHOOK_URL_ENV))
    if webhook_url is not None:
        logger.debug("Using webhook URL from environment", variable=WEBHOOK_URL_ENV)
    else:
        webhook_url = _non_blank(file_value)
    if webhook_url is None:
        return None

    try:
        parsed = _parse_url(webhook_url)
    except ValidationError as exc:
        raise WebhookConfigError("Invalid webhook URL format") from exc

    path = parsed.path or ""
    if parsed.scheme != WEBHOOK_SCHEME or parsed.host != WEBHOOK_HOST or not path.startswith(WEBHOOK_PATH_PREFIX):
        raise WebhookConfigError(
            "Webhook URL must be a valid Discord webhook starting with "
            f"{WEBHOOK_SCHEME}://{WEBHOOK_HOST}{WEBHOOK_PATH_PREFIX}"
        )

    segments = path[len(WEBHOOK_PATH_PREFIX):].split("/")
    webhook_id = segments[0]
    webhook_token = segments[1] if len(segments) > 1 else ""
    if not webhook_id or not webhook_token:
        raise WebhookConfigError("Webhook URL must contain a webhook id and token")
    if _parse_snowflake(webhook_id) is None:
        raise WebhookConfigError(f"Webhook id must be an unsigned 64-bit integer, got {webhook_id!r}")

    return webhook_url


def _parse_snowflake(value: Optional[str]) -> Optional[int]:
    s = _non_blank(value)
    # ASCII digits only: no sign, no underscores, no other Unicode digits.
    if s is None or not (s.isascii() and s.isdigit()):
        return None
    n = int(s)
    if n > _SNOWFLAKE_MAX:
        return None
    return n


def resolve_discord_id(file_value: Optional[int], overrides: Mapping[str, Optional[str]]) -> Optional[int]:
    # The environment is best-effort here: garbage falls through to the file value.
    env_value = overrides.get(DISCORD_ID_ENV)
    discord_id = _parse_snowflake(env_value)
    if discord_id is not None:
        logger.debug("Using Discord id from environment", variable=DISCORD_ID_ENV)
        return discord_id
    if _non_blank(env_value) is not None:
        logger.warning("Ignoring unparsable Discord id from environment", variable=DISCORD_ID_ENV)
    return file_value


def validate_site_urls(urls: list[str]) -> tuple[str, ...]:
    for url in urls:
        try:
            _parse_url(url)
        except ValidationError as exc:
            errors = exc.errors()
            reason = errors[0].get("msg") if errors else None
            raise SiteUrlConfigError(url, reason) from exc
    return tuple(urls)


def resolve_config(raw: RawConfig, overrides: Optional[Mapping[str, Optional[str]]] = None) -> ValidatedConfig:
    """Convert a raw config plus env overrides into a :class:`ValidatedConfig`.

    Args:
        raw: Parsed config file.
        overrides: Override provider keyed by ``WEBHOOK_URL`` / ``DISCORD_ID``.
            ``None`` reads the process environment via :func:`load_env_overrides`.

    Raises:
        ConfigError: One of its subclasses, naming the first failing field.
    """
    if overrides is None:
        overrides = load_env_overrides()

    options = raw.config
    return ValidatedConfig(
        timeout_secs=validate_timeout(options.timeout_secs),
        check_interval_secs=validate_check_interval(options.check_interval_secs),
        webhook_url=resolve_webhook_url(options.webhook_url, overrides),
        discord_id=resolve_discord_id(options.discord_id, overrides),
        monitored_urls=validate_site_urls(raw.sites.urls),
    )


def load_env_overrides(dotenv_path: Optional[Path] = None) -> dict[str, Optional[str]]:
    """Read the override values from the environment, falling back to a ``.env`` file."""
    if dotenv_path is None:
        found = find_dotenv(usecwd=True)
        dotenv_path = Path(found) if found else None

    file_values: dict[str, Optional[str]] = {}
    if dotenv_path is not None and dotenv_path.is_file():
        file_values = dict(dotenv_values(dotenv_path))

    overrides: dict[str, Optional[str]] = {}
    for name in OVERRIDE_NAMES:
        value = os.environ.get(name)
        if value is None:
            value = file_values.get(name)
        overrides[name] = value
    return overrides


def parse_raw_config(text: str) -> RawConfig:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigParseError(f"TOML parse error: {exc}") from exc
    try:
        return RawConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigParseError(f"Invalid config file: {exc}") from exc


def find_config_path(config_dir: Optional[Path] = None) -> Path:
    """Return the config file path, writing the bundled default there on first run."""
    if config_dir is None:
        config_dir = Path(platformdirs.user_config_dir(APP_NAME))
    config_path = config_dir / CONFIG_FILE_NAME

    if config_path.exists():
        return config_path

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        config_path.write_text(DEFAULT_CONFIG_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    except OSError as exc:
        raise ConfigDirectoryError(f"Unable to create config file at {config_path}: {exc}") from exc

    logger.info("Created default config file", path=str(config_path))
    return config_path


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
) -> ValidatedConfig:
    """Locate, read, parse and resolve the configuration."""
    if config_path is None:
        config_path = find_config_path()

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigFileError(f"Unable to read config file {config_path}: {exc}") from exc

    logger.debug("Loaded config file", path=str(config_path))
    return resolve_config(parse_raw_config(text), overrides)
