"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Model channel configuration
    CHANNEL: str = "gemini"  # Options: gemini, openai, anthropic
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"

    # Remote tool servers
    MCP_API_KEY: str | None = None
    SEARCH_SERVER_URL: str = "https://mcp-red-xi.vercel.app/api/google"
    WORKSPACE_SERVER_URL: str = "https://mcp-red-xi.vercel.app/api/google-workspace"
    DATASTORE_SERVER_URL: str = "https://mcp-red-xi.vercel.app/api/mongodb"
    TOOL_TIMEOUT: float = 30.0

    # Retry policy for the model channel (tool calls are never retried)
    RETRY_ATTEMPTS: int = 5
    RETRY_INITIAL_DELAY_MS: int = 1000
    RETRY_BACKOFF_FACTOR: float = 2
    RETRY_ON_RATE_LIMIT: bool = False

    # Upper bound in seconds for a whole user message; None disables it
    RESPONSE_TIMEOUT: float | None = None

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
