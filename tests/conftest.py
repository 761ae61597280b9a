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
Shared fixtures for exporter tests.
"""

import logging

import pytest
from opentelemetry.trace import StatusCode

from agent_history_exporter.config import ExporterConfig
from agent_history_exporter.exporter import AgentHistoryExporter
from agent_history_exporter.sink import InMemoryHistorySink
from agent_history_exporter.trace.models import Span


TRACE_ID = "0af7651916cd43dd8448eb211c80319c"
BASE_TIME_NS = 1_769_472_000_000_000_000  # 2026-01-27T00:00:00Z
MS = 1_000_000


def make_span(
    span_id,
    name="ai.generateText",
    trace_id=TRACE_ID,
    parent_span_id=None,
    start_ms=0,
    end_ms=100,
    status_code=StatusCode.OK,
    status_message=None,
    scope="ai",
    **attributes,
):
    """
    Build a Span with times given in milliseconds after BASE_TIME_NS.

    Keyword arguments become attributes; use metadata-style shortcuts
    agent_id / parent_agent_id / display_name for telemetry metadata.
    """
    attrs = {}
    shortcuts = {
        "agent_id": "ai.telemetry.metadata.agentId",
        "parent_agent_id": "ai.telemetry.metadata.parentAgentId",
        "display_name": "ai.telemetry.metadata.displayName",
        "tool_name": "ai.toolCall.name",
    }
    for key, value in attributes.items():
        attrs[shortcuts.get(key, key)] = value

    return Span(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=parent_span_id,
        name=name,
        start_time=BASE_TIME_NS + start_ms * MS,
        end_time=None if end_ms is None else BASE_TIME_NS + end_ms * MS,
        status_code=status_code,
        status_message=status_message,
        attributes=attrs,
        instrumentation_scope=scope,
    )


@pytest.fixture
def config(monkeypatch):
    """Exporter config isolated from the environment."""
    for name in (
        "AGENT_EXPORTER_DEFAULT_AGENT_ID",
        "AGENT_EXPORTER_MAX_PROPAGATION_DEPTH",
        "AGENT_EXPORTER_INSTRUMENTATION_SCOPE",
        "AGENT_EXPORTER_DEFER_UNRESOLVED_TOOL_SPANS",
        "AGENT_EXPORTER_BASE_URL",
        "AGENT_EXPORTER_EVENT_BATCH_SIZE",
        "AGENT_EXPORTER_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    return ExporterConfig(_env_file=None)


@pytest.fixture
def sink():
    return InMemoryHistorySink()


@pytest.fixture
def test_logger():
    return logging.getLogger("agent_history_exporter.tests")


@pytest.fixture
def exporter(config, sink, test_logger):
    """Exporter writing into an in-memory sink."""
    return AgentHistoryExporter(config=config, sink=sink, logger=test_logger)
