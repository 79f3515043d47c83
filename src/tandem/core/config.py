"""
Tandem Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (and an optional .env).

Every upstream provider gets its own block of TANDEM_<NAME>_* variables:

    TANDEM_DEEPSEEK_BASE_URL, TANDEM_DEEPSEEK_MODEL, TANDEM_DEEPSEEK_TIMEOUT,
    TANDEM_DEEPSEEK_BODY='{"temperature": 0.6}', TANDEM_QWEN_MODELS=qwen-plus,qwen-max
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


# Built-in provider defaults. Anything here can be overridden per field via env.
_PROVIDER_DEFAULTS: dict[str, dict] = {
    "deepseek": {
        "kind": "deepseek",
        "base_url": "https://api.deepseek.com/chat/completions",
        "model": "deepseek-reasoner",
        "max_tokens": 8192,
    },
    "anthropic": {
        "kind": "anthropic",
        "base_url": "https://api.anthropic.com/v1/messages",
        "model": "claude-3-5-sonnet-20241022",
        "max_tokens": 8192,
    },
    "qwen": {
        "kind": "openai",
        "base_url": "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        "model": "qwen-plus",
        "max_tokens": 8192,
        "models": ("qwen-plus", "qwen-max", "qwen-turbo"),
    },
}


def _env_prefix(name: str) -> str:
    return "TANDEM_" + name.upper().replace("-", "_") + "_"


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _json_object(var: str, raw: str) -> dict:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{var} is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError(f"{var} must be a JSON object")
    return value


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/"

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.getenv("TANDEM_HOST", "0.0.0.0"),
            port=int(os.getenv("TANDEM_PORT", "3000")),
            path=os.getenv("TANDEM_PATH", "/"),
        )


@dataclass(frozen=True)
class ProviderConfig:
    """One upstream model provider.

    default_body is merged into every wire request before the per-request
    override body, so request overrides always win.
    """

    name: str
    kind: str = "openai"
    base_url: str = ""
    model: str = ""
    max_tokens: int = 8192
    timeout: float = 120.0  # seconds to wait for the next upstream frame
    connect_timeout: float = 10.0
    api_key: str = ""
    default_body: dict = field(default_factory=dict, hash=False)
    models: tuple[str, ...] = ()

    @classmethod
    def from_env(cls, name: str) -> ProviderConfig:
        defaults = _PROVIDER_DEFAULTS.get(name, {})
        prefix = _env_prefix(name)

        body_var = prefix + "BODY"
        raw_body = os.getenv(body_var, "")
        models_raw = os.getenv(prefix + "MODELS")

        return cls(
            name=name,
            kind=os.getenv(prefix + "KIND", defaults.get("kind", "openai")),
            base_url=os.getenv(prefix + "BASE_URL", defaults.get("base_url", "")),
            model=os.getenv(prefix + "MODEL", defaults.get("model", "")),
            max_tokens=int(
                os.getenv(prefix + "MAX_TOKENS", str(defaults.get("max_tokens", 8192)))
            ),
            timeout=float(os.getenv(prefix + "TIMEOUT", "120")),
            connect_timeout=float(os.getenv(prefix + "CONNECT_TIMEOUT", "10")),
            api_key=os.getenv(prefix + "API_KEY", ""),
            default_body=_json_object(body_var, raw_body) if raw_body else {},
            models=(
                _split_csv(models_raw)
                if models_raw is not None
                else defaults.get("models", ())
            ),
        )

    def serves(self, model: str) -> bool:
        """True if a client-supplied model id selects this provider."""
        return model == self.name or model == self.model or model in self.models


@dataclass(frozen=True)
class PipelineConfig:
    """Which provider plays which role."""

    reasoning: str = "deepseek"
    generation: str = "anthropic"
    alternates: tuple[str, ...] = ("qwen",)

    @classmethod
    def from_env(cls) -> PipelineConfig:
        return cls(
            reasoning=os.getenv("TANDEM_REASONING_PROVIDER", "deepseek"),
            generation=os.getenv("TANDEM_GENERATION_PROVIDER", "anthropic"),
            alternates=_split_csv(os.getenv("TANDEM_ALTERNATE_PROVIDERS", "qwen")),
        )

    def provider_names(self) -> tuple[str, ...]:
        names = [self.reasoning, self.generation]
        for name in self.alternates:
            if name not in names:
                names.append(name)
        return tuple(names)


@dataclass(frozen=True)
class TandemConfig:
    """Root configuration — one object to rule them all."""

    server: ServerConfig = field(default_factory=ServerConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    providers: tuple[ProviderConfig, ...] = ()

    @classmethod
    def from_env(cls) -> TandemConfig:
        pipeline = PipelineConfig.from_env()
        return cls(
            server=ServerConfig.from_env(),
            pipeline=pipeline,
            providers=tuple(
                ProviderConfig.from_env(name) for name in pipeline.provider_names()
            ),
        )

    def provider(self, name: str) -> ProviderConfig:
        for provider in self.providers:
            if provider.name == name:
                return provider
        raise KeyError(f"Provider not configured: {name}")


# Singleton — import this wherever you need config
config = TandemConfig.from_env()


def reload_config() -> TandemConfig:
    """Re-read the environment. Only for startup and tests."""
    global config
    config = TandemConfig.from_env()
    return config
