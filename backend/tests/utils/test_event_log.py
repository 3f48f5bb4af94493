import json
from datetime import date
from typing import List

import pytest
from tour_availability.domain.entities import RecordSource
from tour_availability.utils import event_log
from tour_availability.utils.request_id import bind_request_id, reset_request_id


class DummyLogger:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)


def test_emit_availability_event_outputs_json(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = DummyLogger()
    monkeypatch.setattr(event_log, "_event_logger", logger)

    _, token = bind_request_id("req-123")
    try:
        event_log.emit_availability_event(
            event="availability.fetched",
            product_key="UJI_TOUR",
            date_from=date(2025, 6, 10),
            slot_count=3,
            source=RecordSource.PROVIDER,
        )
    finally:
        reset_request_id(token)

    assert len(logger.messages) == 1
    payload = json.loads(logger.messages[0])
    assert payload["event"] == "availability.fetched"
    assert payload["level"] == "info"
    assert payload["request_id"] == "req-123"
    assert payload["product_key"] == "UJI_TOUR"
    assert payload["date_from"] == "2025-06-10"
    assert payload["source"] == "provider"
    assert "date_to" not in payload
    assert "needs_reconciliation" not in payload
    assert "timestamp" in payload


def test_fallback_event_is_flagged_for_reconciliation(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = DummyLogger()
    monkeypatch.setattr(event_log, "_event_logger", logger)

    event_log.emit_availability_event(
        event="availability.fallback",
        product_key="UJI_TOUR",
        date_from="2025-06-10",
        slot_count=0,
        source=RecordSource.FALLBACK,
        needs_reconciliation=True,
        message="provider unavailable",
        extra={"fallback_dates": 1},
    )

    payload = json.loads(logger.messages[0])
    assert payload["level"] == "warning"
    assert payload["needs_reconciliation"] is True
    assert payload["slot_count"] == 0
    assert payload["source"] == "fallback"
    assert payload["message"] == "provider unavailable"
    assert payload["fallback_dates"] == 1
    assert "request_id" not in payload
