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
Timeline event construction and upward propagation.

Generation spans become agent:start / agent:success / agent:error events,
tool spans become tool:start / tool:success / tool:error events. Every
event is written to the owning agent's history and then copied into the
history of each ancestor agent, so a parent's history shows everything its
sub-agents did. Copies keep the original agentId and add attribution keys:

    fromChildAgent      the immediate child the copy came through
    originalAgentId     the agent that produced the event
    propagationDepth    1 for the parent, 2 for the grandparent, ...
    propagationPath     "<original> → ... → <ancestor>"
"""

from typing import Any, Dict, FrozenSet, List, Optional
import logging

from .history import HistoryManager
from .sink import HistorySink
from .state import HierarchyState
from .trace.attributes import (
    classify_span,
    ns_to_iso,
    parse_completion_start_time,
    parse_input,
    parse_model_parameters,
    parse_output,
    parse_span_metadata,
    parse_usage,
)
from .trace.models import AgentInfo, EventStatus, Span, SpanType, TimelineEvent


logger = logging.getLogger(__name__)

DEFAULT_AGENT_ERROR_MESSAGE = "Unknown error"
DEFAULT_TOOL_ERROR_MESSAGE = "Tool execution failed"


# ============================================================================
# EVENT CONSTRUCTION
# ============================================================================


def _is_first_generation_span(span: Span, agent: AgentInfo) -> bool:
    generations = [s for s in agent.spans if classify_span(s) == SpanType.GENERATION]
    if not generations:
        return False
    return min(generations, key=lambda s: s.start_time) is span


def _is_last_generation_span(span: Span, agent: AgentInfo) -> bool:
    generations = [s for s in agent.spans if classify_span(s) == SpanType.GENERATION and s.is_ended]
    if not generations:
        return False
    return max(generations, key=lambda s: s.end_time) is span


def build_generation_events(span: Span, agent_id: str, agent: Optional[AgentInfo]) -> List[TimelineEvent]:
    """
    Build the agent events of a generation span.

    agent:start is emitted for the agent's first generation span, agent:error
    for any span with an error status and agent:success for the agent's
    last ended generation span.
    """
    span_metadata = parse_span_metadata(span)
    display_name = (agent.display_name if agent else None) or span_metadata.get("displayName") or agent_id
    start_time = ns_to_iso(span.start_time)
    end_time = ns_to_iso(span.end_time) if span.is_ended else None

    metadata: Dict[str, Any] = {
        "displayName": display_name,
        "id": agent_id,
        "agentId": agent_id,
    }
    if agent and agent.parent_agent_id:
        metadata["parentAgentId"] = agent.parent_agent_id
    usage = parse_usage(span.attributes)
    if usage is not None:
        metadata["usage"] = usage.to_dict()
    metadata["modelParameters"] = parse_model_parameters(span.attributes)
    completion_start_time = parse_completion_start_time(span)
    if completion_start_time:
        metadata["completionStartTime"] = completion_start_time

    events: List[TimelineEvent] = []

    if agent and _is_first_generation_span(span, agent):
        start_metadata = dict(metadata)
        if span_metadata.get("instructions") is not None:
            start_metadata["instructions"] = span_metadata["instructions"]
        events.append(
            TimelineEvent(
                name="agent:start",
                type="agent",
                start_time=agent.start_time,
                status=EventStatus.RUNNING,
                input={"input": parse_input(span)},
                metadata=start_metadata,
            )
        )

    if span.has_error:
        events.append(
            TimelineEvent(
                name="agent:error",
                type="agent",
                start_time=start_time,
                end_time=end_time,
                status=EventStatus.ERROR,
                level="ERROR",
                metadata=dict(metadata),
                error={"message": span.status_message or DEFAULT_AGENT_ERROR_MESSAGE},
            )
        )
    elif end_time and agent and _is_last_generation_span(span, agent):
        events.append(
            TimelineEvent(
                name="agent:success",
                type="agent",
                start_time=end_time,
                end_time=end_time,
                status=EventStatus.COMPLETED,
                output=parse_output(span),
                metadata=dict(metadata),
            )
        )

    return events


def build_tool_events(span: Span, agent_id: str) -> List[TimelineEvent]:
    """Build tool:start and, once the span ended, tool:success or tool:error."""
    tool_name = parse_span_metadata(span).get("toolName") or span.name
    metadata = {"displayName": tool_name, "id": tool_name, "agentId": agent_id}
    start_time = ns_to_iso(span.start_time)

    events = [
        TimelineEvent(
            name="tool:start",
            type="tool",
            start_time=start_time,
            status=EventStatus.RUNNING,
            input=parse_input(span),
            metadata=dict(metadata),
        )
    ]

    if not span.is_ended:
        return events

    end_time = ns_to_iso(span.end_time)
    if span.has_error:
        events.append(
            TimelineEvent(
                name="tool:error",
                type="tool",
                start_time=start_time,
                end_time=end_time,
                status=EventStatus.ERROR,
                level="ERROR",
                metadata=dict(metadata),
                error={"message": span.status_message or DEFAULT_TOOL_ERROR_MESSAGE},
            )
        )
    else:
        events.append(
            TimelineEvent(
                name="tool:success",
                type="tool",
                start_time=end_time,
                end_time=end_time,
                status=EventStatus.COMPLETED,
                output=parse_output(span),
                metadata=dict(metadata),
            )
        )
    return events


def build_span_events(span: Span, agent_id: str, agent: Optional[AgentInfo]) -> List[TimelineEvent]:
    """Events for any span; unknown spans produce none."""
    span_type = classify_span(span)
    if span_type == SpanType.GENERATION:
        return build_generation_events(span, agent_id, agent)
    if span_type == SpanType.TOOL:
        return build_tool_events(span, agent_id)
    logger.debug(f"Unknown span type for span: {span.name}")
    return []


def build_propagation_path(original_agent_id: str, ancestor_agent_id: str) -> str:
    return f"{original_agent_id} → ... → {ancestor_agent_id}"


# ============================================================================
# PROPAGATION
# ============================================================================


class EventPropagator:
    """Writes events to the owning history and copies them to every ancestor history."""

    def __init__(
        self,
        state: HierarchyState,
        histories: HistoryManager,
        sink: HistorySink,
        max_depth: int = 10,
        logger: Optional[logging.Logger] = None,
    ):
        self.state = state
        self.histories = histories
        self.sink = sink
        self.max_depth = max_depth
        self.logger = logger or logging.getLogger(__name__)

    def add_event(self, agent_id: str, trace_id: str, event: TimelineEvent) -> None:
        """
        Write an event to the agent's own history, then to its ancestors.

        Raises:
            HistoryNotFoundError: If the agent has no history in the trace
            SinkError: If the sink rejects a write
        """
        history_id = self.histories.get_history_id(agent_id, trace_id)
        self.sink.add_event(history_id, event)
        self.logger.debug(
            f"Added event {event.name} to agent {agent_id} history {history_id}",
            extra={"trace_id": trace_id, "agent_id": agent_id, "history_id": history_id},
        )
        self.propagate_to_ancestors(agent_id, trace_id, event, agent_id, 0, frozenset({agent_id}))

    def propagate_to_ancestors(
        self,
        agent_id: str,
        trace_id: str,
        event: TimelineEvent,
        original_agent_id: str,
        depth: int,
        visited: FrozenSet[str],
    ) -> None:
        """Copy event into the parent of agent_id and continue upwards."""
        if depth >= self.max_depth:
            self.logger.debug(f"Max propagation depth reached for agent {agent_id}")
            return

        parent_agent_id = self.state.find_parent(agent_id)
        if not parent_agent_id:
            return

        if parent_agent_id in visited:
            self.logger.debug(f"Circular reference detected: {agent_id} → {parent_agent_id}, stopping propagation")
            return

        parent_history_id = self.histories.find_history_id(parent_agent_id, trace_id, include_global=True)
        if not parent_history_id:
            self.logger.debug(
                f"Parent {parent_agent_id} history not found for event propagation (depth: {depth + 1})"
            )
            return

        propagated = event.with_metadata(
            fromChildAgent=agent_id,
            originalAgentId=original_agent_id,
            propagationDepth=depth + 1,
            propagationPath=build_propagation_path(original_agent_id, parent_agent_id),
        )
        self.sink.add_event(parent_history_id, propagated)
        self.logger.debug(
            f"Propagated event {event.name} from {original_agent_id} to ancestor {parent_agent_id} "
            f"(depth: {depth + 1}, immediate child: {agent_id}, "
            f"cross-trace: {agent_id not in self.state.parent_map})",
            extra={"trace_id": trace_id, "agent_id": parent_agent_id, "history_id": parent_history_id},
        )

        self.propagate_to_ancestors(
            parent_agent_id, trace_id, event, original_agent_id, depth + 1, visited | {parent_agent_id}
        )
