import json
import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ucp_chat.dependencies import get_http_client
from ucp_chat.models.schemas import ProxyRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ucp", tags=["proxy"])


def parse_upstream_body(text: str):
    """JSON bodies are parsed; anything else is wrapped so the caller still gets a mapping."""
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"response": text}


@router.post("/proxy")
async def relay(
    raw: Request,
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    # Parsed here rather than by FastAPI so a malformed relay body is a 500 {error}, not a 422
    try:
        request = ProxyRequest.model_validate(await raw.json())
    except ValueError as e:
        logger.warning(f"Malformed proxy request: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)

    if not request.baseUrl:
        return JSONResponse({"error": "baseUrl is required"}, status_code=400)

    url = f"{request.baseUrl}{request.path}"
    try:
        response = await http_client.request(
            request.method,
            url,
            headers=request.headers,
            content=json.dumps(request.body) if request.body is not None else None,
        )
        data = parse_upstream_body(response.text)
    except Exception as e:
        logger.exception(f"Proxy relay to {url} failed")
        return JSONResponse({"error": str(e) or type(e).__name__}, status_code=500)

    return JSONResponse(
        {"data": data, "debug": {"sentHeaders": request.headers, "url": url}},
        status_code=response.status_code,
    )
