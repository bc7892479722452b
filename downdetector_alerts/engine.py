from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Iterable

from downdetector_alerts.config import RunConfig, ServiceConfig
from downdetector_alerts.state import AlertState


LOGGER = logging.getLogger("downdetector-alerts.engine")

FetchFn = Callable[[str, str], Awaitable[Any]]
SendFn = Callable[[str], Awaitable[Any]]


@dataclass
class RunSummary:
    evaluated: int = 0
    alerts_sent: int = 0
    errors: int = 0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    s = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return s.replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime | None:
    s = str(value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def minutes_between(a: datetime, b: datetime) -> float:
    # Absolute on purpose: a clock that jumps backwards must not block alerts forever.
    return abs((b - a).total_seconds()) / 60.0


def should_alert(reports_now: float, threshold: float) -> bool:
    return reports_now > threshold


def is_cooled_down(last_sent: str | None, now: datetime, cooldown_minutes: float) -> bool:
    if not last_sent:
        return True
    last = parse_timestamp(last_sent)
    if last is None:
        LOGGER.warning("Ignoring unparsable lastSent timestamp %r", last_sent)
        return True
    return minutes_between(last, now) >= cooldown_minutes


def latest_value(series: Iterable[Any] | None) -> float:
    items = list(series or [])
    if not items:
        return 0
    last = items[-1]
    value = last.get("value") if isinstance(last, dict) else getattr(last, "value", None)
    return value if value is not None else 0


def _series(data: Any, name: str) -> Any:
    if data is None:
        return None
    if isinstance(data, dict):
        return data.get(name)
    return getattr(data, name, None)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_ratio(reports_now: float, baseline_now: float) -> str:
    if baseline_now > 0:
        # Half-up on the exact binary value: 1.25 renders as 1.3.
        ratio = Decimal(reports_now / baseline_now).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return str(ratio)
    return "∞"


def format_alert(service: ServiceConfig, reports_now: float, baseline_now: float, now: datetime) -> str:
    return "\n".join(
        [
            "🚨 Downdetector Alert",
            f"Servizio: {service.name}",
            f"Reports (ultimo punto): {format_number(reports_now)}",
            f"Baseline (ultimo punto): {format_number(baseline_now)}",
            f"Rapporto reports/baseline: {format_ratio(reports_now, baseline_now)}",
            f"Link: {service.url}",
            f"Time: {format_timestamp(now)}",
        ]
    )


def format_error_notice(service: ServiceConfig, error: BaseException, now: datetime) -> str:
    return "\n".join(
        [
            "⚠️ Downdetector Alert: errore",
            f"Servizio: {service.name}",
            f"Errore: {type(error).__name__}: {error}",
            f"Time: {format_timestamp(now)}",
        ]
    )


async def evaluate_service(
    service: ServiceConfig,
    *,
    config: RunConfig,
    state: AlertState,
    fetch: FetchFn,
    send: SendFn,
    now: datetime,
) -> bool:
    """
    Run the threshold and cooldown checks for one service.

    Returns True when an alert was sent. State is only updated after the
    notifier accepted the message.
    """
    data = await fetch(service.slug, config.country)
    reports_now = latest_value(_series(data, "reports"))
    baseline_now = latest_value(_series(data, "baseline"))

    if not should_alert(reports_now, config.threshold):
        LOGGER.debug("%s: %s reports, below threshold %s", service.slug, reports_now, config.threshold)
        return False

    last = state.last_sent.get(service.slug)
    if not is_cooled_down(last, now, config.cooldown_minutes):
        LOGGER.info("%s: %s reports but on cooldown since %s", service.slug, reports_now, last)
        return False

    await send(format_alert(service, reports_now, baseline_now, now))
    state.last_sent[service.slug] = format_timestamp(now)
    LOGGER.info("%s: alert sent (%s reports, baseline %s)", service.slug, reports_now, baseline_now)
    return True


async def run_alerts(
    config: RunConfig,
    state: AlertState,
    *,
    fetch: FetchFn,
    send: SendFn,
    now: Callable[[], datetime] = utc_now,
) -> tuple[AlertState, RunSummary]:
    summary = RunSummary()

    for service in config.services:
        summary.evaluated += 1
        ts = now()
        try:
            if await evaluate_service(service, config=config, state=state, fetch=fetch, send=send, now=ts):
                summary.alerts_sent += 1
        except Exception as e:
            summary.errors += 1
            LOGGER.error("[%s] error: %s: %s", service.slug, type(e).__name__, e)
            if config.notify_errors:
                try:
                    await send(format_error_notice(service, e, ts))
                except Exception as notify_exc:
                    LOGGER.error("[%s] error notice failed: %s", service.slug, notify_exc)

    return state, summary
