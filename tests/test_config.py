from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from downdetector.config import (
    DEFAULT_CHECK_INTERVAL_SECS,
    DEFAULT_CONFIG_PATH,
    DEFAULT_TIMEOUT_SECS,
    EXAMPLE_CONFIG_PATH,
    RawConfig,
    RawConfigOptions,
    SiteList,
    ValidatedConfig,
    parse_raw_config,
    resolve_config,
)
from downdetector.errors import (
    ConfigError,
    ConfigParseError,
    IntervalConfigError,
    SiteUrlConfigError,
    TimeoutConfigError,
    WebhookConfigError,
)


WEBHOOK = "https://discord.com/api/webhooks/1234567890/abcdefg"
NO_ENV: dict[str, str | None] = {}


def _raw(**options) -> RawConfig:
    urls = options.pop("urls", ["https://www.google.com"])
    return RawConfig(config=RawConfigOptions(**options), sites=SiteList(urls=urls))


def test_default_config_is_valid() -> None:
    raw = parse_raw_config(DEFAULT_CONFIG_PATH.read_text(encoding="utf-8"))
    config = resolve_config(raw, NO_ENV)
    assert config.timeout_secs == DEFAULT_TIMEOUT_SECS
    assert config.check_interval_secs == DEFAULT_CHECK_INTERVAL_SECS
    assert config.webhook_url is None


def test_example_config_is_valid() -> None:
    raw = parse_raw_config(EXAMPLE_CONFIG_PATH.read_text(encoding="utf-8"))
    config = resolve_config(raw, NO_ENV)
    assert config.webhook_url is not None
    assert config.discord_id is not None
    assert len(config.monitored_urls) == 3


def test_load_config_from_toml() -> None:
    text = """
        [config]
        timeout_secs = 5
        check_interval_secs = 60
        webhook_url = "https://discord.com/api/webhooks/1234567890/abcdefg"
        discord_id = 1234567890

        [sites]
        urls = [
            "https://www.google.com",
            "https://www.python.org",
            "https://invalid.url"
        ]
    """
    config = resolve_config(parse_raw_config(text), NO_ENV)
    assert config.timeout_secs == 5
    assert config.check_interval_secs == 60
    assert config.monitored_urls == ("https://www.google.com", "https://www.python.org", "https://invalid.url")
    assert config.discord_id == 1234567890
    assert config.webhook_url == WEBHOOK


def test_partial_config_uses_defaults() -> None:
    text = """
        [config]
        webhook_url = "https://discord.com/api/webhooks/1234567890/abcdefg"

        [sites]
        urls = ["https://www.google.com"]
    """
    config = resolve_config(parse_raw_config(text), NO_ENV)
    assert config.timeout_secs == DEFAULT_TIMEOUT_SECS
    assert config.check_interval_secs == DEFAULT_CHECK_INTERVAL_SECS
    assert config.discord_id is None


def test_empty_sections_and_missing_sections() -> None:
    config = resolve_config(parse_raw_config("[config]\n[sites]\n"), NO_ENV)
    assert config.monitored_urls == ()

    config = resolve_config(parse_raw_config(""), NO_ENV)
    assert config.timeout_secs == DEFAULT_TIMEOUT_SECS
    assert config.monitored_urls == ()


@pytest.mark.parametrize(
    "text",
    [
        "[config\n",
        '[config]\ntimeout_secs = "5"\n',
        "[config]\ndiscord_id = -1\n",
        "[sites]\nurls = [1, 2]\n",
    ],
)
def test_malformed_file_is_parse_error(text: str) -> None:
    with pytest.raises(ConfigParseError):
        parse_raw_config(text)


def test_timeout_zero_is_rejected() -> None:
    with pytest.raises(TimeoutConfigError):
        resolve_config(_raw(timeout_secs=0), NO_ENV)
    with pytest.raises(TimeoutConfigError):
        resolve_config(_raw(timeout_secs=-3), NO_ENV)


@pytest.mark.parametrize("timeout_secs", [1, 5, 30, 3600])
def test_positive_timeout_is_accepted(timeout_secs: int) -> None:
    assert resolve_config(_raw(timeout_secs=timeout_secs), NO_ENV).timeout_secs == timeout_secs


@pytest.mark.parametrize("interval", [0, -1, 86400, 100_000])
def test_interval_out_of_range_is_rejected(interval: int) -> None:
    with pytest.raises(IntervalConfigError):
        resolve_config(_raw(check_interval_secs=interval), NO_ENV)


@pytest.mark.parametrize("interval", [1, 60, 86399])
def test_interval_boundaries_are_accepted(interval: int) -> None:
    assert resolve_config(_raw(check_interval_secs=interval), NO_ENV).check_interval_secs == interval


def test_valid_webhook_is_stored_verbatim() -> None:
    url = "https://discord.com/api/webhooks/123/token"
    assert resolve_config(_raw(webhook_url=url), NO_ENV).webhook_url == url


@pytest.mark.parametrize(
    "url",
    [
        "not-a-url",
        "https://evil.com/api/webhooks/123/token",
        "http://discord.com/api/webhooks/123/token",
        "https://discord.com/api/hooks/123/token",
        "https://discord.com/api/webhooks/abc/token",
        "https://discord.com/api/webhooks/123",
        "https://discord.com/api/webhooks/123/",
        "https://discord.com/api/webhooks//token",
    ],
)
def test_bad_webhook_is_rejected(url: str) -> None:
    with pytest.raises(WebhookConfigError):
        resolve_config(_raw(webhook_url=url), NO_ENV)


def test_blank_webhook_counts_as_absent() -> None:
    assert resolve_config(_raw(webhook_url="   "), NO_ENV).webhook_url is None
    assert resolve_config(_raw(webhook_url=""), {"WEBHOOK_URL": "  "}).webhook_url is None


def test_env_webhook_overrides_file() -> None:
    env_url = "https://discord.com/api/webhooks/999/from-env"
    config = resolve_config(_raw(webhook_url=WEBHOOK), {"WEBHOOK_URL": env_url})
    assert config.webhook_url == env_url


def test_file_webhook_used_when_env_blank_or_missing() -> None:
    assert resolve_config(_raw(webhook_url=WEBHOOK), {"WEBHOOK_URL": ""}).webhook_url == WEBHOOK
    assert resolve_config(_raw(webhook_url=WEBHOOK), {"WEBHOOK_URL": None}).webhook_url == WEBHOOK
    assert resolve_config(_raw(webhook_url=WEBHOOK), NO_ENV).webhook_url == WEBHOOK


def test_invalid_env_webhook_is_an_error() -> None:
    with pytest.raises(WebhookConfigError):
        resolve_config(_raw(webhook_url=WEBHOOK), {"WEBHOOK_URL": "https://evil.com/api/webhooks/1/x"})


def test_env_discord_id_overrides_file() -> None:
    assert resolve_config(_raw(discord_id=1), {"DISCORD_ID": "42"}).discord_id == 42


@pytest.mark.parametrize(
    "env_value",
    [None, "", "   ", "not-a-number", "-5", "+5", "1_000", "\u0661\u0662\u0663", "18446744073709551616"],
)
def test_file_discord_id_used_when_env_unusable(env_value: str | None) -> None:
    assert resolve_config(_raw(discord_id=7), {"DISCORD_ID": env_value}).discord_id == 7


def test_discord_id_absent_everywhere() -> None:
    assert resolve_config(_raw(), {"DISCORD_ID": "garbage"}).discord_id is None


def test_invalid_site_url_names_offender() -> None:
    with pytest.raises(SiteUrlConfigError) as exc_info:
        resolve_config(_raw(urls=["https://ok.example", "invalid-url", "also bad"]), NO_ENV)
    assert exc_info.value.url == "invalid-url"
    assert "invalid-url" in str(exc_info.value)


def test_duplicate_sites_are_kept_in_order() -> None:
    urls = ["https://b.example", "https://a.example", "https://b.example"]
    assert resolve_config(_raw(urls=urls), NO_ENV).monitored_urls == tuple(urls)


def test_resolution_is_deterministic() -> None:
    raw = _raw(webhook_url=WEBHOOK, discord_id=5, urls=["https://a.example", "https://b.example"])
    env = {"DISCORD_ID": "6"}
    assert resolve_config(raw, env) == resolve_config(raw, env)


def test_validated_config_is_frozen() -> None:
    config = resolve_config(_raw(), NO_ENV)
    with pytest.raises(ValidationError):
        config.timeout_secs = 99  # type: ignore[misc]


def test_config_errors_share_a_base() -> None:
    for exc_type in (TimeoutConfigError, IntervalConfigError, WebhookConfigError, SiteUrlConfigError, ConfigParseError):
        assert issubclass(exc_type, ConfigError)
        assert issubclass(exc_type, ValueError)


def test_resolver_reads_environment_when_no_overrides_given(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("WEBHOOK_URL", "https://discord.com/api/webhooks/77/env-token")
    monkeypatch.setenv("DISCORD_ID", "88")
    config = resolve_config(_raw(webhook_url=WEBHOOK, discord_id=1))
    assert config.webhook_url == "https://discord.com/api/webhooks/77/env-token"
    assert config.discord_id == 88


def test_validated_config_constructor_enforces_invariants() -> None:
    with pytest.raises(ValidationError):
        ValidatedConfig(timeout_secs=0, check_interval_secs=10)
    with pytest.raises(ValidationError):
        ValidatedConfig(timeout_secs=1, check_interval_secs=86400)


def test_env_discord_id_accepts_max_snowflake() -> None:
    assert resolve_config(_raw(), {"DISCORD_ID": " 18446744073709551615 "}).discord_id == 2**64 - 1


@pytest.mark.parametrize(
    "webhook_id",
    ["18446744073709551616", "+123", "1_000", "\u0661\u0662\u0663"],
)
def test_webhook_id_must_be_unsigned_64_bit(webhook_id: str) -> None:
    with pytest.raises(WebhookConfigError):
        resolve_config(_raw(webhook_url=f"https://discord.com/api/webhooks/{webhook_id}/token"), NO_ENV)


def test_webhook_id_at_upper_bound_is_accepted() -> None:
    url = "https://discord.com/api/webhooks/18446744073709551615/token"
    assert resolve_config(_raw(webhook_url=url), NO_ENV).webhook_url == url
