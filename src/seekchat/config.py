import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek/deepseek-chat"
REASONER_MODEL = "deepseek/deepseek-reasoner"

MODEL_ALIASES = {
    "chat": DEFAULT_MODEL,
    "deepseek": DEFAULT_MODEL,
    "deepseek-chat": DEFAULT_MODEL,
    "r1": REASONER_MODEL,
    "reasoner": REASONER_MODEL,
    "deepseek-r1": REASONER_MODEL,
    "deepseek-reasoner": REASONER_MODEL,
    "4o": "gpt-4o",
    "sonnet": "claude-sonnet-4-20250514",
}

ATTACHMENT_EXTENSIONS = (".txt", ".js", ".py", ".java")
MAX_ATTACHMENTS_PER_PICK = 10
STREAM_ERROR_MESSAGE = "ERROR: CONNECTION TERMINATED. RETRY SEQUENCE."


class ConfigError(Exception):
    pass


def resolve_model_alias(name: str) -> str:
    return MODEL_ALIASES.get(name.strip().lower(), name.strip())


def toggle_model(model: str) -> str:
    if resolve_model_alias(model) == DEFAULT_MODEL:
        return REASONER_MODEL
    return DEFAULT_MODEL


def get_optional_env(name: str, default: str) -> str:
    return os.environ.get(name, default)


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class ServerConfig:
    data_dir: str = field(
        default_factory=lambda: get_optional_env("SEEKCHAT_DATA_DIR", "data")
    )
    host: str = field(default_factory=lambda: get_optional_env("SEEKCHAT_HOST", "127.0.0.1"))
    port: int = 5000
    cors_origins: list[str] = field(
        default_factory=lambda: _split_csv(get_optional_env("SEEKCHAT_CORS_ORIGINS", "*"))
    )

    @classmethod
    def from_env(cls) -> "ServerConfig":
        raw_port = get_optional_env("SEEKCHAT_PORT", "5000")
        try:
            port = int(raw_port)
        except ValueError as e:
            raise ConfigError(f"SEEKCHAT_PORT must be an integer, got {raw_port!r}") from e
        return cls(port=port)

    def validate(self) -> None:
        if not self.data_dir:
            raise ConfigError("data_dir must not be empty")
        if not 0 < self.port < 65536:
            raise ConfigError("port must be between 1 and 65535")


@dataclass
class ClientConfig:
    server_url: str = field(
        default_factory=lambda: get_optional_env("SEEKCHAT_SERVER_URL", "http://localhost:5000")
    )
    model: str = field(
        default_factory=lambda: resolve_model_alias(get_optional_env("SEEKCHAT_MODEL", DEFAULT_MODEL))
    )
    api_base: str | None = field(
        default_factory=lambda: os.environ.get("SEEKCHAT_API_BASE") or None
    )
    temperature: float = 0.0
    max_tokens: int = 4096
    request_timeout_s: float = 30.0
    stream_error_message: str = STREAM_ERROR_MESSAGE

    def validate(self) -> None:
        if not self.server_url.startswith(("http://", "https://")):
            raise ConfigError(f"server_url must be an http(s) URL, got {self.server_url!r}")
        if not self.model:
            raise ConfigError("model must not be empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigError("temperature must be between 0 and 2")
        if self.max_tokens < 1:
            raise ConfigError("max_tokens must be at least 1")
        if self.request_timeout_s <= 0:
            raise ConfigError("request_timeout_s must be > 0")

    def completion_kwargs(self) -> dict:
        kwargs: dict = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs
