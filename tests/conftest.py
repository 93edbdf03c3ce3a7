import os

os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ["PROXY_URL"] = "http://testserver/api/ucp/proxy"

import httpx
import pytest

from ucp_chat.dependencies import get_chat_model, get_http_client, get_proxy_client, get_session_store
from ucp_chat.main import app
from ucp_chat.models.schemas import ModelTurn, ToolCall, ToolResult
from ucp_chat.models.sessions import SessionStore
from ucp_chat.services.llm import ChatModel, ChatSession
from ucp_chat.services.ucp import UCPClient

MERCHANT_URL = "https://shop.example.com"


class FakeMerchant:
    """Stands in for a UCP merchant behind httpx.MockTransport."""

    def __init__(self):
        self.routes: dict[tuple[str, str], dict | Exception] = {}
        self.requests: list[httpx.Request] = []

    def reply(self, method: str, path: str, status: int = 200, json=None, text: str | None = None):
        if text is not None:
            self.routes[(method, path)] = {"status_code": status, "text": text}
        else:
            self.routes[(method, path)] = {"status_code": status, "json": json if json is not None else {}}

    def fail(self, method: str, path: str, exc: Exception):
        self.routes[(method, path)] = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"No route for {request.url.path}"}})
        if isinstance(route, Exception):
            raise route
        return httpx.Response(**route)


class ScriptedChat(ChatSession):
    def __init__(self, turns: list[ModelTurn], system_prompt: str, tools: list[dict]):
        self.turns = list(turns)
        self.system_prompt = system_prompt
        self.tools = tools
        self.user_messages: list[str] = []
        self.result_batches: list[list[ToolResult]] = []

    async def send_message(self, text: str) -> ModelTurn:
        self.user_messages.append(text)
        return self.turns.pop(0)

    async def send_tool_results(self, results: list[ToolResult]) -> ModelTurn:
        self.result_batches.append(results)
        return self.turns.pop(0)


class ScriptedModel(ChatModel):
    """Plays back canned turns instead of calling a real model."""

    def __init__(self, turns: list[ModelTurn]):
        self.turns = turns
        self.sessions: list[ScriptedChat] = []

    def start_chat(self, system_prompt: str, tools: list[dict]) -> ChatSession:
        session = ScriptedChat(self.turns, system_prompt, tools)
        self.sessions.append(session)
        return session


def text_turn(text: str) -> ModelTurn:
    return ModelTurn(text=text)


def calls_turn(*calls: tuple[str, dict]) -> ModelTurn:
    return ModelTurn(
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)]
    )


@pytest.fixture
def merchant():
    return FakeMerchant()


@pytest.fixture
def upstream(merchant):
    """Route the proxy's outbound calls to the fake merchant."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(merchant))
    app.dependency_overrides[get_http_client] = lambda: client
    yield client
    app.dependency_overrides.pop(get_http_client, None)


@pytest.fixture
def proxy_client(upstream):
    """Reaches this app's proxy route in-process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
def ucp(proxy_client):
    client = UCPClient(proxy_client, proxy_url="/api/ucp/proxy", agent_profile="https://agent.test/profile")
    client.set_base_url(MERCHANT_URL)
    return client


@pytest.fixture
def scripted_model():
    return ScriptedModel


@pytest.fixture
def turns():
    return {"text": text_turn, "calls": calls_turn}


@pytest.fixture
def api(proxy_client):
    """App wiring for end-to-end session tests. Set the model via the returned dict."""
    store = SessionStore()
    wiring = {"model": ScriptedModel([]), "store": store}
    app.dependency_overrides[get_proxy_client] = lambda: proxy_client
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_chat_model] = lambda: wiring["model"]
    yield wiring
    for dep in (get_proxy_client, get_session_store, get_chat_model):
        app.dependency_overrides.pop(dep, None)
