"""Configuration settings for the runtime."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the runtime."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Model Configuration
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_API: str = "responses"  # Options: responses, chat_completions
    DEFAULT_MODEL: str = "gpt-4o"
    HTTP_TIMEOUT: float = 60.0

    # Run Configuration
    MAX_TURNS: int = 10
    STREAM_QUEUE_SIZE: int = 1000

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
