"""Configuration settings for the application."""

from typing import (
    Any,
    Dict,
)

from pydantic import TypeAdapter
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    DATA_DIR: str = "~/.rapidcli"
    LOG_LEVEL: str = "warning"  # Options: debug, info, warning, error, critical

    # Model provider
    PROVIDER: str = "chutes"  # Options: chutes, openai
    MODEL_BASE_URL: str = "https://llm.chutes.ai"
    CHUTES_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    MODEL: str = "zai-org/GLM-4.5-FP8"
    TEMPERATURE: float = 0.7
    TOP_P: float = 1.0
    MAX_TOKENS: int = 1024
    FREQUENCY_PENALTY: float = 0.0
    PRESENCE_PENALTY: float = 0.0
    STREAM: bool = True
    REQUEST_TIMEOUT_SEC: float = 120.0

    # Agent
    AGENT_ENABLED: bool = True
    AGENT_MODEL: str | None = None  # Falls back to MODEL
    AGENT_MAX_ITERATIONS: int = 8
    AGENT_ALLOW_FILE_WRITES: bool = True
    AGENT_WORKING_DIRECTORY: str | None = None  # Defaults to the current directory

    # Tool orchestration
    TOOLS_REGISTRY_PATH: str = "agent.tools.yaml"
    TOOLS_AUTO_EXECUTE: bool = True
    TOOLS_MAX_OUTPUT_CHARS: int = 8000
    TOOLS_TIMEOUT_SEC: int = 300

    # Conversation history
    HISTORY_TOKEN_BUDGET: int = 6000
    HISTORY_TAIL_WINDOW: int = 8
    SUMMARY_TEMPERATURE: float = 0.2

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Keys shown by `/config` and captured in each session's agent state
SNAPSHOT_KEYS = (
    "PROVIDER",
    "MODEL",
    "TEMPERATURE",
    "TOP_P",
    "MAX_TOKENS",
    "FREQUENCY_PENALTY",
    "PRESENCE_PENALTY",
    "STREAM",
    "AGENT_ENABLED",
    "AGENT_MODEL",
    "AGENT_MAX_ITERATIONS",
    "AGENT_ALLOW_FILE_WRITES",
    "AGENT_WORKING_DIRECTORY",
    "TOOLS_AUTO_EXECUTE",
)


def _field_name(key: str) -> str:
    """Map user-facing keys such as ``agent.max_iterations`` to field names."""
    return key.strip().replace(".", "_").replace("-", "_").upper()


def apply_override(settings: Settings, key: str, value: str) -> Any:
    """
    Validate *value* against the type of the setting named *key* and assign it.

    Returns the coerced value.

    Raises
    ------
    KeyError
        If *key* does not name a known setting.
    pydantic.ValidationError
        If *value* cannot be coerced to the setting's type.
    """
    name = _field_name(key)
    field = Settings.model_fields.get(name)
    if field is None:
        raise KeyError(f"Unknown setting '{key}'.")

    raw: Any = value
    if value.strip() == "" and field.default is None:
        raw = None
    coerced = TypeAdapter(field.annotation).validate_python(raw)
    setattr(settings, name, coerced)
    return coerced


def snapshot(settings: Settings) -> Dict[str, str]:
    """Return the user-relevant settings as lower-case, dotted string pairs."""
    result: Dict[str, str] = {}
    for name in SNAPSHOT_KEYS:
        key = name.lower().replace("agent_", "agent.", 1)
        value = getattr(settings, name)
        result[key] = "" if value is None else str(value)
    return result
