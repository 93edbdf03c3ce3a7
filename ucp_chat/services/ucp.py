import logging
import uuid
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx

from ucp_chat.models.schemas import LogEntry
from ucp_chat.services.exceptions import UCPRequestError

logger = logging.getLogger(__name__)

LogListener = Callable[[list[LogEntry]], None]

UCP_RESOURCE_PREFIXES = ("/checkout-sessions", "/orders")


class UCPClient:
    """Talks to a UCP merchant through the proxy route and keeps a log of every exchange.

    One instance is shared by the chat controller, the orchestrator and the
    inspector of a single chat session.
    """

    def __init__(self, http_client: httpx.AsyncClient, proxy_url: str, agent_profile: str):
        self._client = http_client
        self.proxy_url = proxy_url
        self.agent_profile = agent_profile
        self.base_url = ""
        self._logs: list[LogEntry] = []
        self._listeners: list[LogListener] = []

    def set_base_url(self, url: str):
        self.base_url = url[:-1] if url.endswith("/") else url

    # -- Log channel --

    @property
    def logs(self) -> list[LogEntry]:
        """Snapshot of the log, newest first."""
        return list(self._logs)

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register a listener for log updates. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _record(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any,
        response_body: Any,
        status: int,
    ) -> LogEntry:
        entry = LogEntry(
            id=uuid.uuid4().hex[:10],
            method=method,
            url=url,
            request_headers=headers,
            request_body=body,
            response_body=response_body,
            status=status,
        )
        self._logs.insert(0, entry)
        snapshot = self.logs
        for listener in list(self._listeners):
            listener(snapshot)
        return entry

    # -- Low-level helpers --

    def _ucp_headers(self, method: str, path: str) -> dict[str, str]:
        """Commerce headers for writes and for checkout/order reads. Plain GETs get none."""
        headers: dict[str, str] = {}
        if method == "GET" and not path.startswith(UCP_RESOURCE_PREFIXES):
            return headers
        if method != "GET":
            headers["Content-Type"] = "application/json"
        headers["UCP-Agent"] = f'profile="{self.agent_profile}"'
        headers["Idempotency-Key"] = str(uuid.uuid4())
        headers["Request-Id"] = str(uuid.uuid4())
        headers["Request-Signature"] = "mock-signature"
        return headers

    @staticmethod
    def _error_message(data: Any) -> str | None:
        """Pull the server-provided message out of an error payload, if there is one."""
        if not isinstance(data, dict):
            return None
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        return None

    async def _request(self, method: str, path: str, body: Any = None) -> Any:
        """Relay one call through the proxy. Records exactly one log entry either way."""
        headers = self._ucp_headers(method, path)
        url = f"{self.base_url}{path}"

        try:
            response = await self._client.post(
                self.proxy_url,
                json={
                    "method": method,
                    "path": path,
                    "body": body,
                    "headers": headers,
                    "baseUrl": self.base_url,
                },
            )
            envelope = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"UCP proxy request error: {method} {url}: {e}")
            self._record(method, url, headers, body, {"error": str(e)}, 500)
            raise UCPRequestError(str(e) or type(e).__name__, status=500) from e

        data = envelope["data"] if isinstance(envelope, dict) and "data" in envelope else envelope
        self._record(method, url, headers, body, data, response.status_code)

        if not response.is_success:
            message = self._error_message(data) or f"API Error: {response.status_code}"
            logger.error(f"UCP request failed: {method} {url} -> {response.status_code}: {message}")
            raise UCPRequestError(message, status=response.status_code, body=data)
        return data

    # -- UCP methods --

    async def get_merchant_info(self) -> Any:
        return await self._request("GET", "/.well-known/ucp")

    async def get_catalog(self, filters: dict[str, Any] | None = None) -> Any:
        """List catalog items, optionally narrowed by merchant-specific filters."""
        path = "/catalog"
        if filters:
            path += f"?{urlencode(filters)}"
        return await self._request("GET", path)

    async def create_checkout(self, currency: str, line_items: list[dict], buyer: dict) -> Any:
        """Open a checkout session. Line items may reference the product as item_id or item.id."""
        formatted_line_items = [
            {
                "item": {"id": li.get("item_id") or (li.get("item") or {}).get("id")},
                "quantity": li.get("quantity"),
            }
            for li in line_items
        ]
        return await self._request(
            "POST",
            "/checkout-sessions",
            {"currency": currency, "line_items": formatted_line_items, "buyer": buyer},
        )

    async def get_checkout(self, checkout_id: str) -> Any:
        return await self._request("GET", f"/checkout-sessions/{checkout_id}")

    async def update_checkout(self, checkout_id: str, updates: dict) -> Any:
        return await self._request("PUT", f"/checkout-sessions/{checkout_id}", updates)

    async def complete_checkout(self, checkout_id: str, payment: dict) -> Any:
        return await self._request(
            "POST", f"/checkout-sessions/{checkout_id}/complete", {"payment": payment}
        )

    async def cancel_checkout(self, checkout_id: str) -> Any:
        return await self._request("POST", f"/checkout-sessions/{checkout_id}/cancel")

    async def get_order(self, order_id: str) -> Any:
        return await self._request("GET", f"/orders/{order_id}")
