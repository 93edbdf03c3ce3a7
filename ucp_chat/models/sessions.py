import uuid

from ucp_chat.services.chat import ChatController


class SessionStore:
    """In-memory registry of chat sessions. Everything is lost on restart."""

    def __init__(self):
        self._sessions: dict[str, ChatController] = {}

    def create(self, controller: ChatController) -> str:
        """Register a new conversation. Returns the session_id."""
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = controller
        return session_id

    def get(self, session_id: str) -> ChatController | None:
        return self._sessions.get(session_id)

    def items(self) -> list[tuple[str, ChatController]]:
        return list(self._sessions.items())

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None
