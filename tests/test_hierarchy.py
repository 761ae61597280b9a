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
Tests for agent discovery and dependency sorting.
"""

import logging

import pytest

from agent_history_exporter.hierarchy import AgentDiscoverer, sort_agents_by_dependency
from agent_history_exporter.state import HierarchyState
from agent_history_exporter.trace.models import AgentInfo

from conftest import make_span


@pytest.fixture
def state():
    return HierarchyState()


@pytest.fixture
def discoverer(state, test_logger):
    return AgentDiscoverer(state, "ai-assistant", test_logger)


class TestResolveAgentId:
    """Test the agent resolution strategies."""

    def test_declared_agent_id(self, discoverer):
        span = make_span("g1", agent_id="writer")
        assert discoverer.resolve_agent_id(span, [span]) == "writer"

    def test_tool_inherits_from_parent_chain(self, discoverer):
        generation = make_span("g1", agent_id="writer")
        wrapper = make_span("w1", name="ai.generateText.doGenerate", parent_span_id="g1")
        tool = make_span("t1", name="ai.toolCall", parent_span_id="w1")
        spans = [generation, wrapper, tool]

        assert discoverer.resolve_agent_id(tool, spans) == "writer"

    def test_tool_uses_closest_generation_span(self, discoverer):
        early = make_span("g1", agent_id="early", start_ms=0)
        late = make_span("g2", agent_id="late", start_ms=1000)
        tool = make_span("t1", name="ai.toolCall", start_ms=900)

        assert discoverer.resolve_agent_id(tool, [early, late, tool]) == "late"

    def test_closest_generation_ignores_undeclared_generations(self, discoverer):
        declared = make_span("g1", agent_id="declared", start_ms=0)
        undeclared = make_span("g2", start_ms=500)
        tool = make_span("t1", name="ai.toolCall", start_ms=500)

        assert discoverer.resolve_agent_id(tool, [declared, undeclared, tool]) == "declared"

    def test_parent_chain_beats_closest_generation(self, discoverer):
        parent = make_span("g1", agent_id="owner", start_ms=0)
        nearby = make_span("g2", agent_id="neighbour", start_ms=499)
        tool = make_span("t1", name="ai.toolCall", parent_span_id="g1", start_ms=500)

        assert discoverer.resolve_agent_id(tool, [parent, nearby, tool]) == "owner"

    def test_default_agent_for_lone_tool(self, discoverer):
        tool = make_span("t1", name="ai.toolCall")
        assert discoverer.resolve_agent_id(tool, [tool]) == "ai-assistant"

    def test_generation_without_agent_id_uses_default(self, discoverer):
        """Generation spans never inherit an agent from other spans."""
        parent = make_span("g1", agent_id="owner")
        child = make_span("g2", parent_span_id="g1")
        assert discoverer.resolve_agent_id(child, [parent, child]) == "ai-assistant"

    def test_cyclic_parent_chain_terminates(self, discoverer):
        a = make_span("a", name="ai.toolCall", parent_span_id="b")
        b = make_span("b", name="ai.toolCall", parent_span_id="a")
        assert discoverer.resolve_agent_id(a, [a, b]) == "ai-assistant"

    def test_self_parented_span_terminates(self, discoverer):
        tool = make_span("t1", name="ai.toolCall", parent_span_id="t1")
        assert discoverer.resolve_agent_id(tool, [tool]) == "ai-assistant"


class TestToolSpanCache:
    """Test caching of tool span resolutions."""

    def test_resolution_is_cached(self, discoverer, state):
        generation = make_span("g1", agent_id="writer")
        tool = make_span("t1", name="ai.toolCall", parent_span_id="g1")

        discoverer.resolve_agent_id(tool, [generation, tool])

        assert state.tool_span_agents.get("t1") == "writer"
        # Cached answer wins even without candidates
        assert discoverer.resolve_agent_id(tool, [tool]) == "writer"

    def test_default_is_cached(self, discoverer, state):
        tool = make_span("t1", name="ai.toolCall")
        discoverer.resolve_agent_id(tool, [tool])
        assert state.tool_span_agents.get("t1") == "ai-assistant"

    def test_clear_cached(self, discoverer, state):
        tool = make_span("t1", name="ai.toolCall")
        discoverer.resolve_agent_id(tool, [tool])
        discoverer.clear_cached("t1")

        generation = make_span("g1", agent_id="writer")
        assert discoverer.resolve_agent_id(tool, [generation, tool]) == "writer"

    def test_generation_spans_are_not_cached(self, discoverer, state):
        span = make_span("g1", agent_id="writer")
        discoverer.resolve_agent_id(span, [span])
        assert len(state.tool_span_agents) == 0


class TestDefaultAgentGuidance:
    """Test the one-time guidance message."""

    def test_logged_once_per_trace(self, discoverer, caplog):
        caplog.set_level(logging.INFO, logger="agent_history_exporter")
        first = make_span("t1", name="ai.toolCall")
        second = make_span("t2", name="ai.toolCall")

        discoverer.resolve_agent_id(first, [first, second])
        discoverer.resolve_agent_id(second, [first, second])

        guidance = [r for r in caplog.records if "Using default agent" in r.getMessage()]
        assert len(guidance) == 1
        assert guidance[0].levelno == logging.INFO
        assert guidance[0].trace_id == first.trace_id

    def test_logged_again_for_another_trace(self, discoverer, caplog):
        caplog.set_level(logging.INFO, logger="agent_history_exporter")
        first = make_span("t1", name="ai.toolCall")
        other = make_span("t2", name="ai.toolCall", trace_id="1" * 32)

        discoverer.resolve_agent_id(first, [first])
        discoverer.resolve_agent_id(other, [other])

        guidance = [r for r in caplog.records if "Using default agent" in r.getMessage()]
        assert len(guidance) == 2


class TestDiscoverAgents:
    """Test grouping of spans into agents."""

    def test_groups_spans_in_first_seen_order(self, discoverer):
        spans = [
            make_span("g1", agent_id="planner", display_name="Planner", start_ms=0),
            make_span("g2", agent_id="writer", parent_agent_id="planner", start_ms=10),
            make_span("t1", name="ai.toolCall", parent_span_id="g2", start_ms=20),
            make_span("g3", agent_id="planner", start_ms=30),
        ]

        agents = discoverer.discover_agents(spans)

        assert list(agents) == ["planner", "writer"]
        assert [s.span_id for s in agents["planner"].spans] == ["g1", "g3"]
        assert [s.span_id for s in agents["writer"].spans] == ["g2", "t1"]
        assert agents["planner"].display_name == "Planner"
        assert agents["planner"].parent_agent_id is None
        assert agents["writer"].parent_agent_id == "planner"
        assert agents["writer"].start_time == "2026-01-27T00:00:00.010Z"

    def test_parent_read_from_first_span_only(self, discoverer):
        spans = [
            make_span("g1", agent_id="writer", start_ms=0),
            make_span("g2", agent_id="writer", parent_agent_id="planner", start_ms=10),
        ]
        agents = discoverer.discover_agents(spans)
        assert agents["writer"].parent_agent_id is None


def _agent(agent_id, parent=None):
    return AgentInfo(agent_id=agent_id, start_time="2026-01-27T00:00:00.000Z", parent_agent_id=parent)


class TestSortAgentsByDependency:
    """Test parent-before-child ordering."""

    def test_parents_before_children(self):
        agents = {
            "grandchild": _agent("grandchild", "child"),
            "child": _agent("child", "root"),
            "root": _agent("root"),
        }
        order = [agent_id for agent_id, _ in sort_agents_by_dependency(agents)]
        assert order == ["root", "child", "grandchild"]

    def test_missing_parent_is_emitted(self):
        agents = {"orphan": _agent("orphan", "elsewhere"), "root": _agent("root")}
        order = [agent_id for agent_id, _ in sort_agents_by_dependency(agents)]
        assert order == ["root", "orphan"]

    def test_cycle_terminates_with_every_agent_once(self):
        agents = {"a": _agent("a", "b"), "b": _agent("b", "a")}
        order = [agent_id for agent_id, _ in sort_agents_by_dependency(agents)]
        assert sorted(order) == ["a", "b"]
        assert len(order) == 2

    def test_self_parent_terminates(self):
        agents = {"a": _agent("a", "a")}
        assert [agent_id for agent_id, _ in sort_agents_by_dependency(agents)] == ["a"]

    def test_empty(self):
        assert sort_agents_by_dependency({}) == []
