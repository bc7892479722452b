from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


LOGGER = logging.getLogger("downdetector-alerts.state")


@dataclass
class AlertState:
    # slug -> ISO-8601 timestamp of the last alert sent for it
    last_sent: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {"lastSent": dict(self.last_sent)}


def _coerce_last_sent(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    out: dict[str, str] = {}
    for k, v in value.items():
        if not isinstance(k, str) or not k:
            continue
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def load_state(path: Path) -> AlertState:
    """
    Best-effort load of the state file.
    Missing, unreadable or corrupt files yield an empty state.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return AlertState()
    except (OSError, ValueError) as e:
        LOGGER.warning("Ignoring unreadable state file %s: %s", path, e)
        return AlertState()

    if not isinstance(raw, dict):
        LOGGER.warning("Ignoring state file %s: expected a JSON object", path)
        return AlertState()
    return AlertState(last_sent=_coerce_last_sent(raw.get("lastSent")))


def save_state(path: Path, state: AlertState) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(state.to_json(), ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)
