from __future__ import annotations

from urllib.parse import urlsplit

import httpx
import structlog

from .errors import NotifyError


logger = structlog.get_logger(__name__)

NOTIFY_TIMEOUT_SECS = 15.0


def build_down_message(url: str) -> str:
    return f"Alert: {url} is DOWN!"


def mention_prefix(discord_id: int | None) -> str:
    if discord_id is None:
        return ""
    return f"<@{discord_id}> "


def build_payload(message: str, discord_id: int | None = None) -> dict[str, str]:
    return {"content": f"{mention_prefix(discord_id)}{message}"}


def redact_webhook_url(text: str, webhook_url: str) -> str:
    """Strip the webhook token (last path segment) out of ``text``."""
    path = urlsplit(webhook_url).path.rstrip("/")
    token = path.rsplit("/", 1)[-1] if "/" in path else ""
    if token:
        text = text.replace(token, "<redacted>")
    return text


async def send_discord_notification(
    client: httpx.AsyncClient,
    webhook_url: str,
    message: str,
    discord_id: int | None = None,
) -> None:
    """Post ``message`` to the Discord webhook once.

    Raises:
        NotifyError: on transport failure or a non-2xx response.
    """
    payload = build_payload(message, discord_id)
    try:
        resp = await client.post(webhook_url, json=payload, timeout=NOTIFY_TIMEOUT_SECS)
    except httpx.HTTPError as e:
        msg = redact_webhook_url(f"{type(e).__name__}: {e}", webhook_url)
        raise NotifyError(f"Webhook request failed: {msg}") from e

    if not resp.is_success:
        body = redact_webhook_url((resp.text or "")[:300], webhook_url)
        raise NotifyError(
            f"Webhook returned HTTP {resp.status_code}: {body}",
            status_code=resp.status_code,
        )

    logger.debug("Webhook notification delivered", status_code=resp.status_code)
