from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ANTHROPIC_API_KEY: str
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    LLM_MAX_TOKENS: int = 1000
    MAX_TOOL_ROUNDS: int = 25

    # Where the commerce client relays merchant calls (this service's own proxy route)
    PROXY_URL: str = "http://127.0.0.1:8000/api/ucp/proxy"
    UCP_AGENT_PROFILE: str = "https://ucp-chat-client/profile"
    HTTP_TIMEOUT: float = 30.0

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings() #type: ignore
