from datetime import timedelta

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Configuration for the upstream chat-completion provider."""

    provider_name: str = Field(
        default="DeepSeek", description="Human-readable provider name"
    )
    endpoint: str = Field(
        default="https://api.deepseek.com/v1",
        description="OpenAI-compatible base URL of the provider",
    )
    api_key: str = Field(
        default="",
        description="Provider API key; chat requests fail until it is set",
    )
    default_model: str = Field(
        default="deepseek-chat",
        description="Model used when the request names none or an unknown one",
    )
    allowed_models: list[str] = Field(
        default_factory=lambda: [
            "deepseek-chat",
            "deepseek-coder",
            "deepseek-reasoner",
            "deepseek-v3",
        ],
        description="Models a caller may select",
    )
    top_p: float = Field(default=0.9, description="Top-p sampling parameter")
    frequency_penalty: float = Field(default=0.0)
    presence_penalty: float = Field(default=0.0)
    request_timeout: timedelta = Field(
        default=timedelta(seconds=60),
        description="Timeout for a single provider call",
    )
    max_retries: int = Field(
        default=0, description="Retries performed by the openai SDK"
    )
    user_agent: str = Field(default="chatrelay/0.1.0")


class ChatConfig(BaseModel):
    """Configuration for chat request handling."""

    system_prompt: str = Field(
        default=(
            "You are a friendly and helpful AI assistant. Answer the user's "
            "questions concisely and accurately. If a question touches on "
            "sensitive content, politely decline and explain why."
        ),
        description="System instruction prepended to every conversation",
    )
    max_message_length: int = Field(
        default=4000, description="Maximum characters in the new user message"
    )
    max_history_messages: int = Field(
        default=10, description="Most recent history messages forwarded"
    )
    default_temperature: float = Field(default=0.7)
    min_temperature: float = Field(default=0.0)
    max_temperature: float = Field(default=2.0)
    default_max_tokens: int = Field(default=1000)
    max_response_tokens: int = Field(
        default=4000, description="Upper bound for a caller's maxTokens"
    )


class CORSConfig(BaseModel):
    """Cross-origin policy.

    ``*`` inside an origin matches any run of characters, so
    ``https://*.pages.dev`` admits every Pages preview deployment.
    """

    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "https://hinatayuan.github.io",
            "https://*.pages.dev",
        ],
    )
    extra_origins: list[str] = Field(
        default_factory=list,
        description="Deployment-specific origins appended to the defaults",
    )
    allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"]
    )
    allow_headers: list[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization"]
    )
    max_age: int = Field(default=86400, description="Preflight cache seconds")

    @property
    def origins(self) -> list[str]:
        return [o for o in self.allowed_origins + self.extra_origins if o]


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8787)
    environment: str = Field(
        default="unknown", description="Deployment environment label"
    )
    version: str = Field(default="0.1.0")
    metrics_enabled: bool = Field(
        default=True, description="Expose Prometheus metrics on /metrics"
    )


class LoggingConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default="INFO")
    json_output: bool = Field(
        default=True, description="JSON lines when true, coloured text otherwise"
    )


class TracingConfig(BaseModel):
    """OpenTelemetry tracing settings (disabled by default)."""

    enabled: bool = Field(default=False)
    endpoint: str = Field(default="", description="OTLP HTTP traces endpoint")
    username: str = Field(default="")
    password: str = Field(default="")
    service_name: str = Field(default="chatrelay")
    sample_rate: float = Field(default=1.0)
    excluded_urls: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics"]
    )
