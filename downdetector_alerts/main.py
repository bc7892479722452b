from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

import httpx

from downdetector_alerts.config import load_run_config, load_telegram_config
from downdetector_alerts.engine import RunSummary, run_alerts
from downdetector_alerts.provider import DowndetectorClient
from downdetector_alerts.state import load_state, save_state
from downdetector_alerts.telegram import send_telegram_message


LOGGER = logging.getLogger("downdetector-alerts")


async def run_once(config_path: Path, state_path: Path) -> RunSummary:
    # Both loaders raise before any network call or state write.
    config = load_run_config(config_path)
    telegram_cfg = load_telegram_config()

    state = load_state(state_path)
    base_url = (os.getenv("DOWNDETECTOR_BASE_URL") or "").strip() or None

    async with httpx.AsyncClient() as client:
        provider = DowndetectorClient(client, base_url=base_url)

        async def send(text: str) -> None:
            await send_telegram_message(client, telegram_cfg, text)

        state, summary = await run_alerts(config, state, fetch=provider.fetch, send=send)

    save_state(state_path, state)
    LOGGER.info(
        "Run complete: %d services, %d alerts, %d errors",
        summary.evaluated,
        summary.alerts_sent,
        summary.errors,
    )
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Downdetector report volume alerts")
    parser.add_argument(
        "--config",
        default=os.getenv("DOWNDETECTOR_CONFIG", "services.json"),
        help="Path to the services config (JSON or YAML)",
    )
    parser.add_argument(
        "--state",
        default=os.getenv("DOWNDETECTOR_STATE", "state.json"),
        help="Path to the cooldown state file",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # The bot token is part of the Telegram API URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    summary = asyncio.run(run_once(Path(args.config), Path(args.state)))
    print(f"Done. Alerts sent: {summary.alerts_sent}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
