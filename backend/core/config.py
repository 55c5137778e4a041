"""Runtime configuration read from the environment.

Collaborator credentials are collected once into an explicit Settings
object that is passed to the adapters. A missing MCP setup is represented
by MCPUnconfigured rather than None so callers can log the reason.
"""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MCPServerConfig:
    """Credentials for the Zapier MCP calendar server."""
    api_key: str
    server_url: str
    server_label: str = "zapier"
    timeout: float = 30.0
    health_timeout: float = 5.0


@dataclass(frozen=True)
class MCPUnconfigured:
    """Calendar tools are disabled; ``reason`` names the missing variable."""
    reason: str


MCPConfig = MCPServerConfig | MCPUnconfigured


def _env_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Application settings.

    Attributes:
        openai_api_key: Key for the Responses API. Empty means unconfigured.
        openai_model: Model used for both chat paths.
        mcp: Zapier MCP server config or the reason it is unavailable.
        rate_limit_per_min: Max POST /api/chat calls per client per minute.
        cors_origins: Allowed origins for the browser UI.
    """
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    mcp: MCPConfig = field(default_factory=lambda: MCPUnconfigured("ZAPIER_MCP_API_KEY is not set"))
    rate_limit_per_min: int = 20
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (after load_dotenv)."""
        origins = os.environ.get("CORS_ORIGINS", "*")
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o"),
            mcp=load_mcp_config(),
            rate_limit_per_min=_env_number("RATE_LIMIT_PER_MIN", "20", int),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


def load_mcp_config() -> MCPConfig:
    """Read the Zapier MCP variables.

    Returns:
        MCPServerConfig when both key and URL are set, else MCPUnconfigured.
    """
    api_key = os.environ.get("ZAPIER_MCP_API_KEY", "")
    server_url = os.environ.get("ZAPIER_MCP_URL", "")

    if not api_key:
        return MCPUnconfigured("ZAPIER_MCP_API_KEY is not set")
    if not server_url:
        return MCPUnconfigured("ZAPIER_MCP_URL is not set")

    return MCPServerConfig(
        api_key=api_key,
        server_url=server_url.rstrip("/"),
        timeout=_env_number("MCP_TIMEOUT", "30", float),
        health_timeout=_env_number("MCP_HEALTH_TIMEOUT", "5", float),
    )
