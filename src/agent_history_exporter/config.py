# Copyright (c) 2026, WSO2 LLC. (https://www.wso2.com).
#
# WSO2 LLC. licenses this file to you under the Apache License,
# Version 2.0 (the "License"); you may not use this file except
# in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""
Configuration loader for the agent history exporter.
Loads configuration from environment variables using Pydantic Settings.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://api.voltagent.dev"
DEFAULT_AGENT_ID = "ai-assistant"
DEFAULT_INSTRUMENTATION_SCOPE = "ai"


class ExporterConfig(BaseSettings):
    """Exporter configuration loaded from environment."""

    # Remote history sink
    public_key: str = Field(default="", description="Public key sent as x-public-key")
    secret_key: str = Field(default="", description="Secret key sent as x-secret-key")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="History sink base URL")
    timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    event_batch_size: int = Field(default=50, description="Buffered events that trigger an HTTP flush")

    # Hierarchy reconstruction
    default_agent_id: str = Field(default=DEFAULT_AGENT_ID, description="Agent used when no owner can be resolved")
    instrumentation_scope: str = Field(
        default=DEFAULT_INSTRUMENTATION_SCOPE, description="Instrumentation scope name of accepted spans"
    )
    max_propagation_depth: int = Field(default=10, description="Maximum ancestor hops for one event")
    defer_unresolved_tool_spans: bool = Field(
        default=True, description="Retry tool spans that fell back to the default agent"
    )

    debug: bool = Field(default=False, description="Enable debug logging for the exporter")

    model_config = SettingsConfigDict(
        env_prefix="AGENT_EXPORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so endpoint paths can be appended."""
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Invalid timeout {v}. Must be greater than 0")
        return v

    @field_validator("event_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid event_batch_size {v}. Must be at least 1")
        return v

    @field_validator("max_propagation_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Invalid max_propagation_depth {v}. Must be 0 or greater")
        return v

    @field_validator("default_agent_id", "instrumentation_scope")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value must not be empty")
        return v.strip()


# Global config instance (lazy loaded)
_config: Optional[ExporterConfig] = None


def get_config() -> ExporterConfig:
    """
    Get the global configuration instance.

    Automatically loads from environment variables and .env file.

    Usage:
        from agent_history_exporter.config import get_config

        config = get_config()
        print(f"Sink: {config.base_url}")
    """
    global _config
    if _config is None:
        _config = ExporterConfig()
    return _config


def reload_config() -> ExporterConfig:
    """Reload configuration from environment variables."""
    global _config
    _config = ExporterConfig()
    return _config
