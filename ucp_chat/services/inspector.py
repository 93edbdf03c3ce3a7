from ucp_chat.models.schemas import InspectorRow, LogEntry
from ucp_chat.services.ucp import UCPClient


def to_row(entry: LogEntry, base_url: str = "") -> InspectorRow:
    path = entry.url[len(base_url):] if base_url and entry.url.startswith(base_url) else entry.url
    return InspectorRow(
        id=entry.id,
        method=entry.method,
        url=entry.url,
        path=path or "/",
        status=entry.status,
        failed=entry.status is not None and entry.status >= 400,
        request_headers=entry.request_headers,
        request_body=entry.request_body,
        response_body=entry.response_body,
        timestamp=entry.timestamp,
    )


def inspect(ucp: UCPClient) -> list[InspectorRow]:
    """Read-only view of a client's UCP traffic, newest first."""
    return [to_row(entry, ucp.base_url) for entry in ucp.logs]
