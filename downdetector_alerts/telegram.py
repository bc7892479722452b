from __future__ import annotations

from dataclasses import dataclass

import httpx


DEFAULT_API_BASE = "https://api.telegram.org"


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str
    api_base: str = DEFAULT_API_BASE


class TelegramSendError(RuntimeError):
    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Telegram send failed: {status_code} {body}")


def _redact(text: str, config: TelegramConfig) -> str:
    if config.bot_token:
        return text.replace(config.bot_token, "<redacted>")
    return text


async def send_telegram_message(client: httpx.AsyncClient, config: TelegramConfig, text: str) -> dict:
    """
    Post one message to the Bot API.

    Raises TelegramSendError on transport errors and non-2xx replies; the bot
    token never appears in the error text.
    """
    url = f"{config.api_base.rstrip('/')}/bot{config.bot_token}/sendMessage"
    payload = {"chat_id": config.chat_id, "text": text, "disable_web_page_preview": True}
    try:
        resp = await client.post(url, json=payload, timeout=15.0)
    except httpx.RequestError as e:
        raise TelegramSendError(None, _redact(f"{type(e).__name__}: {e}", config)) from None

    if not resp.is_success:
        raise TelegramSendError(resp.status_code, _redact(resp.text or "", config))

    try:
        data = resp.json()
    except ValueError:
        data = {}
    return data if isinstance(data, dict) else {}

