"""HTTP adapter for the Bokun availability API."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping

import httpx

from ..domain.entities import TimeSlot, normalize_tour_key
from ..domain.errors import AvailabilityProviderError, ProductMappingNotFoundError

logger = logging.getLogger(__name__)

UNLIMITED_SPOTS = 999


def bokun_timestamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def sign_request(*, secret_key: str, access_key: str, method: str, path: str, timestamp: str) -> str:
    """Bokun signature: base64(HMAC-SHA1(secret, date + accessKey + METHOD + path))."""
    message = f"{timestamp}{access_key}{method.upper()}{path}"
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def parse_availabilities(payload: Any) -> list[TimeSlot]:
    """Turn a Bokun availabilities payload into open time slots, keeping provider order."""
    if isinstance(payload, Mapping):
        payload = payload.get("availabilities")
    if not isinstance(payload, list):
        raise AvailabilityProviderError(f"unexpected availability payload: {type(payload).__name__}")

    slots: list[TimeSlot] = []
    for item in payload:
        if not isinstance(item, Mapping) or not item.get("startTime"):
            logger.warning("skipping malformed availability entry: %r", item)
            continue
        if item.get("soldOut"):
            continue
        if item.get("unlimitedAvailability"):
            slots.append(TimeSlot(time=str(item["startTime"]), available_spots=UNLIMITED_SPOTS))
            continue
        try:
            count = int(item.get("availabilityCount") or 0)
        except (TypeError, ValueError) as exc:
            raise AvailabilityProviderError(f"malformed availabilityCount in entry: {item!r}") from exc
        if count > 0:
            slots.append(TimeSlot(time=str(item["startTime"]), available_spots=count))
    return slots


class BokunAvailabilityProvider:
    """Fetches per-date time slots for a product key from Bokun."""

    def __init__(
        self,
        *,
        base_url: str,
        access_key: str,
        secret_key: str,
        product_ids: Mapping[str, int],
        currency: str = "USD",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_key = access_key
        self.secret_key = secret_key
        self.product_ids = {normalize_tour_key(k): v for k, v in product_ids.items()}
        self.currency = currency
        self.timeout = timeout
        self._client = client
        self._clock = clock

    def activity_id(self, product_key: str) -> int:
        try:
            return int(self.product_ids[normalize_tour_key(product_key)])
        except KeyError as exc:
            raise ProductMappingNotFoundError(f"no Bokun product mapping for {product_key}") from exc

    async def fetch_availability(self, product_key: str, day: date) -> list[TimeSlot]:
        activity_id = self.activity_id(product_key)
        path = (
            f"/activity.json/{activity_id}/availabilities"
            f"?start={day.isoformat()}&end={day.isoformat()}&currency={self.currency}"
        )
        timestamp = bokun_timestamp(self._clock())
        headers = {
            "X-Bokun-Date": timestamp,
            "X-Bokun-AccessKey": self.access_key,
            "X-Bokun-Signature": sign_request(
                secret_key=self.secret_key,
                access_key=self.access_key,
                method="GET",
                path=path,
                timestamp=timestamp,
            ),
            "Accept": "application/json",
        }

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self.timeout)
            close_client = True
        try:
            response = await client.get(f"{self.base_url}{path}", headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise AvailabilityProviderError(f"Bokun request failed for {product_key} on {day}: {exc}") from exc
        except ValueError as exc:
            raise AvailabilityProviderError(f"Bokun returned invalid JSON for {product_key} on {day}") from exc
        finally:
            if close_client:
                await client.aclose()

        return parse_availabilities(payload)
