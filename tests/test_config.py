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
Tests for configuration management using Pydantic Settings.
"""

import pytest
from pydantic import ValidationError

from agent_history_exporter import config as config_module
from agent_history_exporter.config import ExporterConfig, get_config, reload_config


class TestExporterConfig:
    """Test ExporterConfig loading and validation."""

    def test_default_values(self, config):
        assert config.public_key == ""
        assert config.secret_key == ""
        assert config.base_url == "https://api.voltagent.dev"
        assert config.timeout == 30.0
        assert config.debug is False
        assert config.default_agent_id == "ai-assistant"
        assert config.instrumentation_scope == "ai"
        assert config.max_propagation_depth == 10
        assert config.event_batch_size == 50
        assert config.defer_unresolved_tool_spans is True

    def test_loads_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("AGENT_EXPORTER_PUBLIC_KEY", "pk_123")
        monkeypatch.setenv("AGENT_EXPORTER_SECRET_KEY", "sk_456")
        monkeypatch.setenv("AGENT_EXPORTER_MAX_PROPAGATION_DEPTH", "3")
        monkeypatch.setenv("AGENT_EXPORTER_DEBUG", "true")

        config = ExporterConfig(_env_file=None)
        assert config.public_key == "pk_123"
        assert config.secret_key == "sk_456"
        assert config.max_propagation_depth == 3
        assert config.debug is True

    def test_env_prefix_required(self, monkeypatch):
        """Unprefixed variables are not loaded."""
        monkeypatch.setenv("PUBLIC_KEY", "wrong")
        monkeypatch.delenv("AGENT_EXPORTER_PUBLIC_KEY", raising=False)

        assert ExporterConfig(_env_file=None).public_key == ""

    def test_base_url_trailing_slash_removed(self):
        assert ExporterConfig(_env_file=None, base_url="http://localhost:3000/").base_url == "http://localhost:3000"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("timeout", 0),
            ("event_batch_size", 0),
            ("max_propagation_depth", -1),
            ("default_agent_id", "  "),
            ("instrumentation_scope", ""),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            ExporterConfig(_env_file=None, **{field: value})

    def test_default_agent_id_is_stripped(self):
        assert ExporterConfig(_env_file=None, default_agent_id=" bot ").default_agent_id == "bot"


class TestGlobalConfig:
    """Test the lazily built module-level instance."""

    def test_get_config_is_cached(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)
        assert get_config() is get_config()

    def test_reload_config_picks_up_changes(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)
        monkeypatch.setenv("AGENT_EXPORTER_DEFAULT_AGENT_ID", "first")
        assert get_config().default_agent_id == "first"

        monkeypatch.setenv("AGENT_EXPORTER_DEFAULT_AGENT_ID", "second")
        assert get_config().default_agent_id == "first"
        assert reload_config().default_agent_id == "second"
        assert get_config().default_agent_id == "second"
