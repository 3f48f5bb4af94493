from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AvailabilityEvent = Literal[
    "availability.fetched",
    "availability.fallback",
    "availability.preloaded",
    "availability.scan_exhausted",
]

_event_logger = logging.getLogger("availability")
_event_logger.setLevel(logging.INFO)
if not _event_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)
_event_logger.propagate = False


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_availability_event(
    *,
    event: AvailabilityEvent,
    product_key: str,
    date_from: date | str | None = None,
    date_to: date | str | None = None,
    slot_count: Optional[int] = None,
    source: Any = None,
    needs_reconciliation: bool = False,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit one compact JSON line describing an availability lifecycle event."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "warning" if needs_reconciliation else "info",
        "event": event,
        "request_id": get_request_id(),
        "product_key": product_key,
        "date_from": _to_str(date_from),
        "date_to": _to_str(date_to),
        "slot_count": slot_count,
        "source": _to_str(source),
    }
    if needs_reconciliation:
        payload["needs_reconciliation"] = True
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    compact_payload = {k: v for k, v in payload.items() if v is not None}
    _event_logger.info(json.dumps(compact_payload, ensure_ascii=True))
