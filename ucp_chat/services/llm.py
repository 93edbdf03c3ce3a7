import json
from abc import ABC, abstractmethod

from anthropic import AsyncAnthropic

from ucp_chat.models.schemas import ModelTurn, ToolCall, ToolResult


class ChatSession(ABC):
    """A running conversation with the model. Context accumulates across calls."""

    @abstractmethod
    async def send_message(self, text: str) -> ModelTurn:
        """Send a user message and return the model's next turn."""

    @abstractmethod
    async def send_tool_results(self, results: list[ToolResult]) -> ModelTurn:
        """Answer every tool call of the previous turn in one batch."""

    def discard_pending_tool_calls(self):
        """Forget a model turn whose tool calls will never be answered."""


class ChatModel(ABC):
    @abstractmethod
    def start_chat(self, system_prompt: str, tools: list[dict]) -> ChatSession:
        ...


class AnthropicChatSession(ChatSession):
    def __init__(
        self,
        client: AsyncAnthropic,
        model_name: str,
        max_tokens: int,
        system_prompt: str,
        tools: list[dict],
    ):
        self._client = client
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self.tools = tools
        self.history: list[dict] = []

    async def send_message(self, text: str) -> ModelTurn:
        if self.history and self.history[-1]["role"] == "user":
            # a user turn left over from an abandoned loop or a failed call; the API
            # needs roles to alternate, so the new text joins it
            pending = self.history[-1]["content"]
            if isinstance(pending, str):
                pending = [{"type": "text", "text": pending}]
            self.history[-1]["content"] = [*pending, {"type": "text", "text": text}]
        else:
            self.history.append({"role": "user", "content": text})
        return await self._complete()

    def discard_pending_tool_calls(self):
        if self.history and self.history[-1]["role"] == "assistant":
            self.history.pop()

    async def send_tool_results(self, results: list[ToolResult]) -> ModelTurn:
        self.history.append({
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": result.call_id,
                    "content": json.dumps(result.response, default=str),
                    "is_error": result.is_error,
                }
                for result in results
            ],
        })
        return await self._complete()

    async def _complete(self) -> ModelTurn:
        response = await self._client.messages.create(
            model=self.model_name,
            max_tokens=self.max_tokens,
            system=self.system_prompt,
            tools=self.tools,
            messages=self.history,
        )
        # The assistant turn (including tool_use blocks) must stay in history
        # so the following tool_result blocks can reference it.
        self.history.append({"role": "assistant", "content": response.content})

        texts = []
        calls = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))
        return ModelTurn(text="".join(texts), tool_calls=calls)


class AnthropicChatModel(ChatModel):
    def __init__(self, api_key: str, model_name: str, max_tokens: int = 1000):
        self._client = AsyncAnthropic(api_key=api_key)
        self.model_name = model_name
        self.max_tokens = max_tokens

    def start_chat(self, system_prompt: str, tools: list[dict]) -> ChatSession:
        return AnthropicChatSession(
            self._client,
            model_name=self.model_name,
            max_tokens=self.max_tokens,
            system_prompt=system_prompt,
            tools=tools,
        )
