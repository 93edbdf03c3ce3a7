import asyncio
import logging
import re

from ucp_chat.models.schemas import Message, Role, SessionState, Step
from ucp_chat.services.agent import ShoppingAgent, build_system_prompt
from ucp_chat.services.exceptions import UCPRequestError
from ucp_chat.services.llm import ChatModel
from ucp_chat.services.ucp import UCPClient

logger = logging.getLogger(__name__)

GREETING = "Hello! Welcome to the UCP Client. Before we begin, could you please tell me your name?"

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "[::1]")
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def normalize_merchant_url(value: str) -> str:
    """Turn what the user typed into a base URL. Local hosts get http, everything else https."""
    url = value.strip()
    if _SCHEME.match(url):
        return url
    if url.lower().startswith(LOOPBACK_HOSTS):
        return f"http://{url}"
    return f"https://{url}"


class ChatController:
    """Onboarding then free-form chat for one user.

    Steps only move forward: collecting-name -> collecting-merchant -> active.
    """

    def __init__(self, ucp: UCPClient, model: ChatModel, max_tool_rounds: int = 25):
        self.ucp = ucp
        self.model = model
        self.max_tool_rounds = max_tool_rounds
        self.state = SessionState()
        self.agent: ShoppingAgent | None = None
        self._messages: list[Message] = [Message(role=Role.ASSISTANT, content=GREETING)]
        self._lock = asyncio.Lock()

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _append(self, message: Message):
        self._messages.append(message)

    def _say(self, content: str, role: Role = Role.ASSISTANT):
        self._append(Message(role=role, content=content))

    async def handle_input(self, text: str) -> list[Message]:
        """Process one user input. Returns the messages appended to the transcript by it."""
        if not text.strip():
            return []

        async with self._lock:
            start = len(self._messages)
            self._say(text, role=Role.USER)

            if self.state.step == Step.COLLECTING_NAME:
                self._collect_name(text)
            elif self.state.step == Step.COLLECTING_MERCHANT:
                await self._connect(text)
            else:
                await self._chat(text)

            return self._messages[start:]

    def _collect_name(self, name: str):
        self.state.user_name = name
        self.state.step = Step.COLLECTING_MERCHANT
        self._say(
            f"Nice to meet you, {name}! Now, please provide the UCP profile URL of the merchant "
            f"you'd like to connect to (e.g., https://merchant.example.com)."
        )

    async def _connect(self, value: str):
        url = normalize_merchant_url(value)
        self.ucp.set_base_url(url)
        self.state.merchant_base_url = self.ucp.base_url

        try:
            info = await self.ucp.get_merchant_info()
        except UCPRequestError as e:
            logger.info(f"Could not connect to merchant at {url}: {e} (status={e.status}, body={e.body!r})")
            self._say(
                "I couldn't connect to that merchant. Please make sure the URL is correct and supports UCP."
            )
            return

        merchant = info.get("merchant") if isinstance(info, dict) else None
        if not isinstance(merchant, dict):
            merchant = {}
        name = merchant.get("name")
        description = merchant.get("description")
        self.state.merchant_display_name = str(name) if name else "the Merchant"
        self.state.merchant_description = str(description) if description else ""
        self.state.step = Step.ACTIVE

        self.agent = ShoppingAgent(
            self.ucp,
            self.model,
            build_system_prompt(
                self.state.merchant_display_name,
                self.state.merchant_description,
                self.state.user_name,
            ),
            max_tool_rounds=self.max_tool_rounds,
        )
        greeting = f"Connected to {self.state.merchant_display_name}!"
        if self.state.merchant_description:
            greeting += f" {self.state.merchant_description}"
        self._say(f"{greeting} How can I help you today, {self.state.user_name}?")

    async def _chat(self, text: str):
        try:
            reply = await self.agent.run(text, emit=self._append)
        except Exception as e:
            logger.error(f"Chat turn failed: {e}")
            self._say(f"Error: {e}", role=Role.SYSTEM)
            return
        self._say(reply)
