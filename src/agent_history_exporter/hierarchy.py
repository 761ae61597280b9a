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
Agent discovery and dependency ordering.

Spans only carry best-effort agent metadata: generation spans usually
declare the agent they run for, tool spans rarely do and inherit their
owner from whoever invoked them. The discoverer resolves an owning agent
for every span and groups spans into AgentInfo entries; the sorter orders
those agents so a parent's history always exists before its children's.
"""

from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

from .state import HierarchyState
from .trace.attributes import (
    classify_span,
    get_declared_agent_id,
    get_declared_display_name,
    get_declared_parent_agent_id,
    ns_to_iso,
)
from .trace.models import AgentInfo, Span, SpanType


logger = logging.getLogger(__name__)


DEFAULT_AGENT_GUIDANCE = (
    "Using default agent '%s' for tracking. For better tracking, add agentId to your "
    "telemetry metadata: experimental_telemetry={isEnabled: true, metadata: {agentId: 'my-agent'}}"
)


class AgentDiscoverer:
    """
    Resolves the owning agent of each span and builds the agent map of a trace.

    Resolution order for a span:
    1. (tool spans) a cached answer for the span id
    2. the agent id declared in the span's own metadata
    3. (tool spans) the declared agent id of the nearest ancestor span
    4. (tool spans) the declared agent id of the generation span whose start
       time is closest to the tool span's start time
    5. the default agent id

    Tool span answers are cached by span id, including the default.
    """

    def __init__(
        self,
        state: HierarchyState,
        default_agent_id: str,
        logger: Optional[logging.Logger] = None,
    ):
        self.state = state
        self.default_agent_id = default_agent_id
        self.logger = logger or logging.getLogger(__name__)

    def resolve_agent_id(self, span: Span, candidates: Sequence[Span]) -> str:
        """Resolve the agent that owns a span, searching candidates for related spans."""
        span_type = classify_span(span)
        is_tool = span_type == SpanType.TOOL

        if is_tool:
            cached = self.state.tool_span_agents.get(span.span_id)
            if cached:
                self.logger.debug(f"Found cached agentId for tool span {span.name}: {cached}")
                return cached

        declared = get_declared_agent_id(span)
        if declared:
            if is_tool:
                self.state.tool_span_agents.set(span.span_id, declared)
            return declared

        if is_tool:
            found = self.find_agent_id_from_parent_chain(span, candidates)
            if not found:
                found = self.find_agent_id_from_closest_generation(span, candidates)
            if found:
                self.state.tool_span_agents.set(span.span_id, found)
                return found

        self.show_default_agent_guidance(span.trace_id)
        if is_tool:
            self.state.tool_span_agents.set(span.span_id, self.default_agent_id)
        return self.default_agent_id

    def clear_cached(self, span_id: str) -> None:
        """Forget the cached resolution of a tool span."""
        self.state.tool_span_agents.delete(span_id)

    def find_agent_id_from_parent_chain(self, span: Span, candidates: Sequence[Span]) -> Optional[str]:
        """Walk up the parent chain within candidates until a span declares an agent id."""
        spans_by_id = {s.span_id: s for s in candidates}
        visited: Set[str] = {span.span_id}
        current = span

        while current.parent_span_id:
            parent_id = current.parent_span_id
            if parent_id in visited:
                self.logger.debug(f"Cycle detected in span parent chain at {parent_id}")
                return None
            visited.add(parent_id)

            parent = spans_by_id.get(parent_id)
            if parent is None:
                self.logger.debug(f"Parent span {parent_id} not found in current spans list")
                return None

            agent_id = get_declared_agent_id(parent)
            if agent_id:
                self.logger.debug(f"Found agentId from parent span {parent.name}: {agent_id}")
                return agent_id
            current = parent

        self.logger.debug(f"No parent span ID found for {span.name}")
        return None

    def find_agent_id_from_closest_generation(self, span: Span, candidates: Sequence[Span]) -> Optional[str]:
        """Declared agent id of the generation span that started closest in time to span."""
        closest: Optional[Tuple[int, str]] = None

        for other in candidates:
            if other is span or classify_span(other) != SpanType.GENERATION:
                continue
            agent_id = get_declared_agent_id(other)
            if not agent_id:
                continue
            time_diff = abs(span.start_time - other.start_time)
            if closest is None or time_diff < closest[0]:
                closest = (time_diff, agent_id)

        if closest is None:
            return None

        self.logger.debug(f"Found agentId from closest generation span: {closest[1]} (time diff: {closest[0]}ns)")
        return closest[1]

    def show_default_agent_guidance(self, trace_id: str) -> None:
        """Log the default agent guidance once per trace."""
        if trace_id in self.state.guidance_shown:
            return
        self.state.guidance_shown.add(trace_id)
        self.logger.info(DEFAULT_AGENT_GUIDANCE, self.default_agent_id, extra={"trace_id": trace_id})

    def discover_agents(self, spans: Sequence[Span]) -> Dict[str, AgentInfo]:
        """
        Group the spans of one trace by owning agent.

        The returned dict keeps agents in first-seen order. An agent's parent
        and display name are read from the span that created its entry.
        """
        agents: Dict[str, AgentInfo] = {}

        for span in spans:
            agent_id = self.resolve_agent_id(span, spans)
            agent = agents.get(agent_id)
            if agent is None:
                agent = AgentInfo(
                    agent_id=agent_id,
                    parent_agent_id=get_declared_parent_agent_id(span),
                    display_name=get_declared_display_name(span),
                    start_time=ns_to_iso(span.start_time),
                )
                agents[agent_id] = agent
            agent.spans.append(span)

        self.logger.debug(f"Discovered {len(agents)} agents in trace: {list(agents)}")
        return agents


def sort_agents_by_dependency(
    agents: Dict[str, AgentInfo], logger: Optional[logging.Logger] = None
) -> List[Tuple[str, AgentInfo]]:
    """
    Order agents so that a declared parent comes before its children.

    Agents without a declared parent are visited first, then the rest (whose
    parent may be missing from the trace). An agent reached again while it is
    still being visited is part of a cycle and is skipped at that point; it is
    emitted when its own visit completes or by the leftover pass.
    """
    log = logger or logging.getLogger(__name__)
    result: List[Tuple[str, AgentInfo]] = []
    processed: Set[str] = set()
    visiting: Set[str] = set()

    def add_with_dependencies(agent_id: str, agent: AgentInfo) -> None:
        if agent_id in processed:
            return
        if agent_id in visiting:
            log.debug(f"Circular dependency detected: {agent_id}, skipping to prevent infinite loop")
            return

        visiting.add(agent_id)
        parent_id = agent.parent_agent_id
        if parent_id and parent_id in agents and parent_id not in processed:
            add_with_dependencies(parent_id, agents[parent_id])

        if agent_id not in processed:
            result.append((agent_id, agent))
            processed.add(agent_id)
        visiting.discard(agent_id)

    roots = [(agent_id, agent) for agent_id, agent in agents.items() if not agent.parent_agent_id]
    children = [(agent_id, agent) for agent_id, agent in agents.items() if agent.parent_agent_id]

    for agent_id, agent in roots:
        add_with_dependencies(agent_id, agent)
    for agent_id, agent in children:
        add_with_dependencies(agent_id, agent)

    log.debug(
        "Sorted agents by dependency: %s",
        [f"{agent_id} (parent: {agent.parent_agent_id})" if agent.parent_agent_id else f"{agent_id} (root)"
         for agent_id, agent in result],
    )
    return result
