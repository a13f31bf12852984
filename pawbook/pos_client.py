"""Clover POS gateway: order lifecycle and service catalog.

Purpose: The only code that talks to the POS. The coordinator depends on
the ``OrderGateway`` protocol, so tests inject fakes and production injects
a ``PosGateway`` instance (never a module-level singleton).

Resilience:
- Bounded retries with exponential backoff + jitter (tenacity)
- 429 honours Retry-After, taking the larger of server and local delay
- Per-request timeout
- Concurrent identical requests share one underlying HTTP call
- Idempotent reads cached for 5 minutes, invalidated by writes to the
  same resource
"""
import json
import random
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests
from tenacity import RetryCallState, Retrying, stop_after_attempt

from pawbook import config
from pawbook.cache import ResponseCache, request_key, resource_of
from pawbook.errors import ConfigurationError, ExternalServiceError, RateLimited
from pawbook.http_client import DEFAULT_TIMEOUT_SECONDS, create_http_session
from pawbook.logging_config import get_logger
from pawbook.models import BusinessHours, Service
from pawbook.retry import TransientPosError, retry_if_transient, wait_backoff_or_retry_after

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 5.0


class OrderGateway(Protocol):
    """What the booking coordinator needs from the POS."""

    def create_order(self, staff_id: str, total_cents: int, note: str) -> str:
        ...

    def delete_order(self, order_id: str) -> None:
        ...

    def add_line_item(self, order_id: str, service_id: str) -> Dict[str, Any]:
        ...

    def list_services(self, bypass_cache: bool = False) -> List[Service]:
        ...

    def get_business_hours(self) -> BusinessHours:
        ...


def _error_text(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()[:300]

    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)[:300]
    return str(data)[:300]


def _retry_after_seconds(response: requests.Response) -> float:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        return max(0.0, float(raw))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


def _clover_time(raw: Any) -> str:
    """Clover reports hours as hhmm (900, "0930"); "HH:MM" and 12-hour text pass through."""
    text = str(raw).strip()
    if text.isdigit():
        text = text.zfill(4)
        return f"{text[:2]}:{text[2:]}"
    return text


class PosGateway:
    """HTTP client for the Clover v3 merchant API."""

    def __init__(
        self,
        base_url: str,
        merchant_id: str,
        api_token: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = 3,
        cache_ttl: float = 300.0,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize gateway.

        Args:
            base_url: Clover API root, e.g. https://api.clover.com
            merchant_id: Merchant whose orders and items are managed
            api_token: Bearer token
            session: Pre-built session (tests pass mocks)
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt
            cache_ttl: Seconds a cached read stays fresh
            rng: Jitter source in [0, 1)
            sleep: Called with each retry delay
            clock: Time source for the cache
        """
        self.base_url = f"{base_url.rstrip('/')}/v3/merchants/{merchant_id}"
        self.session = session or create_http_session(api_token)
        self.timeout = timeout
        self.max_retries = max_retries
        self.cache = ResponseCache(ttl=cache_ttl, clock=clock)
        self._rng = rng
        self._sleep = sleep
        self._in_flight: Dict[str, Future] = {}
        self._in_flight_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: config.Settings) -> "PosGateway":
        if not settings.has_pos_credentials:
            raise ConfigurationError(
                "CLOVER_API_TOKEN and CLOVER_MERCHANT_ID are required for the POS gateway"
            )
        return cls(
            base_url=settings.clover_api_base,
            merchant_id=settings.clover_merchant_id,
            api_token=settings.clover_api_token,
            timeout=settings.pos_timeout_seconds,
            max_retries=settings.pos_max_retries,
            cache_ttl=settings.pos_cache_ttl_seconds,
        )

    # ===== ORDER LIFECYCLE =====

    def create_order(self, staff_id: str, total_cents: int, note: str) -> str:
        """
        Create an order for a groomer.

        Returns:
            The POS order id

        Raises:
            ExternalServiceError: If the POS rejects the order or stays
                unreachable after retries
        """
        data = self.request("POST", "/orders", payload={
            "employee": {"id": staff_id},
            "total": total_cents,
            "title": config.ORDER_TITLE,
            "note": note,
        })

        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            raise ExternalServiceError("POS created an order but returned no id")

        logger.info("pos_order_created", order_id=order_id, staff_id=staff_id, total=total_cents)
        return order_id

    def delete_order(self, order_id: str) -> None:
        """Delete an order. An order that is already gone counts as deleted."""
        self.request("DELETE", f"/orders/{order_id}", not_found_ok=True)
        logger.info("pos_order_deleted", order_id=order_id)

    def add_line_item(self, order_id: str, service_id: str) -> Dict[str, Any]:
        data = self.request(
            "POST",
            f"/orders/{order_id}/line_items",
            payload={"item": {"id": service_id}},
        )
        return data if isinstance(data, dict) else {}

    def get_order(self, order_id: str, bypass_cache: bool = False) -> Optional[Dict[str, Any]]:
        """Fetch an order, or None when it does not exist."""
        return self.request(
            "GET", f"/orders/{order_id}", bypass_cache=bypass_cache, not_found_ok=True
        )

    # ===== CATALOG =====

    def list_services(self, bypass_cache: bool = False) -> List[Service]:
        """
        Grooming services from the POS item catalog.

        Hidden items are skipped. ``price`` stays in cents.
        """
        data = self.request("GET", "/items", bypass_cache=bypass_cache) or {}
        elements = data.get("elements", []) if isinstance(data, dict) else data

        services = []
        for item in elements or []:
            try:
                if item.get("hidden"):
                    continue
                duration = item.get("duration_minutes") or item.get("duration")
                services.append(Service(
                    id=item["id"],
                    name=item.get("name") or item["id"],
                    price=int(item.get("price") or 0),
                    duration_minutes=int(duration) if duration else None,
                ))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.error("pos_catalog_item_invalid", item=str(item)[:200], error=str(e))
                raise ExternalServiceError(f"POS returned a malformed catalog item: {e}") from e
        return services

    def get_business_hours(self) -> BusinessHours:
        """
        Opening hours from the merchant's POS settings.

        Days the POS reports override the defaults; anything missing,
        unreadable or unreachable falls back to the default hours.
        """
        hours = dict(config.DEFAULT_BUSINESS_HOURS)
        try:
            data = self.request("GET", "/business_hours") or {}
        except ExternalServiceError as e:
            logger.warning("pos_business_hours_unavailable", error=e.message)
            return BusinessHours(hours=hours)

        elements = data.get("elements", []) if isinstance(data, dict) else []
        try:
            for day in elements or []:
                day_key = str(day.get("dayOfWeek", "")).strip().lower()
                if day_key not in hours:
                    continue
                default_open, default_close = hours[day_key]
                hours[day_key] = (
                    _clover_time(day["open"]) if day.get("open") else default_open,
                    _clover_time(day["close"]) if day.get("close") else default_close,
                )
            return BusinessHours(hours=hours)
        except (AttributeError, ValueError) as e:
            logger.warning("pos_business_hours_invalid", error=str(e))
            return BusinessHours()

    # ===== TRANSPORT =====

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        bypass_cache: bool = False,
        not_found_ok: bool = False
    ) -> Any:
        """
        Send a request with caching, de-duplication and retries.

        Args:
            method: HTTP method
            path: Path below the merchant root, e.g. /orders
            payload: JSON body
            bypass_cache: Skip the read cache for this call
            not_found_ok: Return None on 404 instead of raising

        Returns:
            Decoded JSON body ({} for empty bodies, None for tolerated 404s)

        Raises:
            ExternalServiceError: Terminal POS failure
        """
        method = method.upper()
        body = json.dumps(payload, sort_keys=True) if payload is not None else None
        key = request_key(method, path, body)
        resource = resource_of(path)
        is_read = method == "GET"

        if is_read and not bypass_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        with self._in_flight_lock:
            future = self._in_flight.get(key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._in_flight[key] = future

        if not is_owner:
            logger.debug("pos_request_joined", method=method, path=path)
            return future.result()

        try:
            data = self._send_with_retry(method, path, body, not_found_ok)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(data)
            if is_read and not bypass_cache and data is not None:
                self.cache.set(key, resource, data)
            return data
        finally:
            if not is_read:
                self.cache.invalidate_resource(resource)
            with self._in_flight_lock:
                self._in_flight.pop(key, None)

    def _send_with_retry(
        self,
        method: str,
        path: str,
        body: Optional[str],
        not_found_ok: bool
    ) -> Any:
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_backoff_or_retry_after(rng=self._rng),
            retry=retry_if_transient,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        attempts = self.max_retries + 1
        try:
            return retryer(self._send, method, path, body, not_found_ok)
        except RateLimited as e:
            raise ExternalServiceError(
                f"POS still rate limiting {method} {path} after {attempts} attempts",
                status_code=429,
            ) from e
        except TransientPosError as e:
            raise ExternalServiceError(
                f"POS failed {method} {path} after {attempts} attempts: {e}",
                status_code=e.status_code,
            ) from e
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError(f"POS unreachable for {method} {path}: {e}") from e

    def _send(self, method: str, path: str, body: Optional[str], not_found_ok: bool) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            data=body,
            timeout=self.timeout,
        )
        status = response.status_code

        if status == 429:
            raise RateLimited(
                f"POS rate limited {method} {path}",
                retry_after=_retry_after_seconds(response),
            )
        if status >= 500:
            raise TransientPosError(f"{status} {_error_text(response)}", status)
        if status == 404 and not_found_ok:
            return None
        if status >= 400:
            raise ExternalServiceError(
                f"POS rejected {method} {path}: {status} {_error_text(response)}",
                status_code=status,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _log_retry(self, retry_state: RetryCallState):
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        logger.warning(
            "pos_request_retry",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_retries + 1,
            delay_seconds=round(delay, 3) if delay is not None else None,
            error=str(exc),
        )
