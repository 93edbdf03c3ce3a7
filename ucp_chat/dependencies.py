from functools import lru_cache

import httpx
from fastapi import Depends

from ucp_chat.config import settings
from ucp_chat.models.sessions import SessionStore
from ucp_chat.services.chat import ChatController
from ucp_chat.services.llm import AnthropicChatModel, ChatModel
from ucp_chat.services.ucp import UCPClient


@lru_cache()
def get_http_client() -> httpx.AsyncClient:
    """Shared HTTP client for proxy relays and merchant calls. Closed on app shutdown."""
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)


def get_proxy_client(http_client: httpx.AsyncClient = Depends(get_http_client)) -> httpx.AsyncClient:
    """Client UCPClient uses to reach the proxy route. Shares the upstream pool unless overridden."""
    return http_client


@lru_cache()
def get_chat_model() -> ChatModel:
    return AnthropicChatModel(
        api_key=settings.ANTHROPIC_API_KEY,
        model_name=settings.CLAUDE_MODEL,
        max_tokens=settings.LLM_MAX_TOKENS,
    )


@lru_cache()
def get_session_store() -> SessionStore:
    return SessionStore()


def new_chat_controller(
    http_client: httpx.AsyncClient = Depends(get_proxy_client),
    model: ChatModel = Depends(get_chat_model),
) -> ChatController:
    """Each chat session gets its own UCP client, and with it its own traffic log."""
    ucp = UCPClient(
        http_client,
        proxy_url=settings.PROXY_URL,
        agent_profile=settings.UCP_AGENT_PROFILE,
    )
    return ChatController(ucp, model, max_tool_rounds=settings.MAX_TOOL_ROUNDS)
