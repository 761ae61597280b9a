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
History lifecycle: one history per agent per trace.

Histories are created in dependency order so that a child can reference
its parent's history id, and ended once every span of the trace has
ended, using the output and usage of the agent's last span.
"""

from typing import Any, Dict, Optional, Sequence
import logging
import uuid

from .errors import HistoryNotFoundError, SinkError
from .hierarchy import sort_agents_by_dependency
from .sink import HistorySink
from .state import HierarchyState
from .trace.attributes import (
    find_root_span,
    ns_to_iso,
    parse_completion_start_time,
    parse_input,
    parse_model_parameters,
    parse_output,
    parse_usage,
)
from .trace.models import AgentInfo, HistoryRecord, Span, TraceMetadata


logger = logging.getLogger(__name__)


def first_span(agent: AgentInfo) -> Optional[Span]:
    """The agent's chronologically first span."""
    if not agent.spans:
        return None
    return min(agent.spans, key=lambda s: s.start_time)


def last_ended_span(agent: AgentInfo) -> Optional[Span]:
    """The agent's span with the latest end time, among spans that ended."""
    ended = [s for s in agent.spans if s.is_ended]
    if not ended:
        return None
    return max(ended, key=lambda s: s.end_time)


class HistoryManager:
    """Creates, looks up and ends agent histories."""

    def __init__(self, state: HierarchyState, sink: HistorySink, logger: Optional[logging.Logger] = None):
        self.state = state
        self.sink = sink
        self.logger = logger or logging.getLogger(__name__)

    def find_history_id(self, agent_id: str, trace_id: str, include_global: bool = False) -> Optional[str]:
        """
        Look up the history of an agent.

        Args:
            agent_id: Agent to look up
            trace_id: Trace the history belongs to
            include_global: Fall back to the agent's most recent history from any trace

        Returns:
            History id, or None when not found
        """
        history_id = self.state.trace_histories.get((agent_id, trace_id))
        if history_id is None and include_global:
            history_id = self.state.global_histories.get(agent_id)
        return history_id

    def get_history_id(self, agent_id: str, trace_id: str) -> str:
        """History of an agent in a trace. Raises HistoryNotFoundError when missing."""
        history_id = self.find_history_id(agent_id, trace_id)
        if history_id is None:
            raise HistoryNotFoundError(agent_id, trace_id)
        return history_id

    def create_histories(
        self,
        trace_id: str,
        agents: Dict[str, AgentInfo],
        trace_metadata: TraceMetadata,
        spans: Sequence[Span],
    ) -> Dict[str, str]:
        """
        Create a history for every agent of the trace that does not have one yet.

        Returns:
            Mapping of agent id to history id for the agents created by this call
        """
        root_span = find_root_span(spans)
        created: Dict[str, str] = {}

        for agent_id, agent in sort_agents_by_dependency(agents, self.logger):
            if (agent_id, trace_id) in self.state.trace_histories:
                self.logger.debug(f"Using existing history for agent: {agent_id}")
                continue

            agent_first_span = first_span(agent) or root_span
            metadata = self._build_metadata(agent_id, trace_id, trace_metadata, agent_first_span)

            record = HistoryRecord(
                id=str(uuid.uuid4()),
                agent_id=agent_id,
                input=parse_input(agent_first_span),
                metadata=metadata,
                user_id=trace_metadata.user_id,
                conversation_id=trace_metadata.conversation_id,
                tags=trace_metadata.tags or None,
                completion_start_time=metadata.get("completionStartTime"),
                start_time=ns_to_iso(agent_first_span.start_time) if agent_first_span else agent.start_time,
            )
            self.sink.create_history(record)

            self.state.trace_histories.set((agent_id, trace_id), record.id)
            self.state.global_histories.set(agent_id, record.id)
            self.state.open_histories.add(record.id)
            created[agent_id] = record.id

            self.logger.debug(
                f"Created new history {record.id} for agent {agent_id} "
                f"(parent: {metadata.get('parentAgentId') or 'none'})",
                extra={"trace_id": trace_id, "agent_id": agent_id, "history_id": record.id},
            )

        return created

    def _build_metadata(
        self,
        agent_id: str,
        trace_id: str,
        trace_metadata: TraceMetadata,
        span: Optional[Span],
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = dict(trace_metadata.metadata)
        metadata["modelParameters"] = parse_model_parameters(span.attributes) if span else {}

        completion_start_time = parse_completion_start_time(span) if span else None
        if completion_start_time:
            metadata["completionStartTime"] = completion_start_time

        metadata["agentId"] = agent_id

        parent_agent_id = self.state.find_parent(agent_id)
        if parent_agent_id:
            metadata["parentAgentId"] = parent_agent_id
            parent_history_id = self.find_history_id(parent_agent_id, trace_id, include_global=True)
            if parent_history_id:
                metadata["parentHistoryId"] = parent_history_id
            else:
                self.logger.debug(f"Parent {parent_agent_id} history not found in trace {trace_id} or globally")

        return metadata

    def complete_histories(self, trace_id: str, agents: Dict[str, AgentInfo]) -> None:
        """
        End the open histories of a trace.

        Each history ends with the output and usage of the agent's latest
        ending span. Agents without an ended span keep their history open.
        """
        for agent_id, agent in agents.items():
            history_id = self.find_history_id(agent_id, trace_id)
            if history_id is None or history_id not in self.state.open_histories:
                self.logger.debug(f"No open history found for agent {agent_id} in trace {trace_id}")
                continue

            agent_last_span = last_ended_span(agent)
            if agent_last_span is None:
                continue

            self.sink.end_history(
                history_id,
                output=parse_output(agent_last_span),
                usage=parse_usage(agent_last_span.attributes),
                end_time=ns_to_iso(agent_last_span.end_time),
                status="completed",
            )
            self.state.open_histories.discard(history_id)
            self.logger.debug(
                f"Agent {agent_id} history completed",
                extra={"trace_id": trace_id, "agent_id": agent_id, "history_id": history_id},
            )

    def end_open_histories(self) -> int:
        """
        End every history that is still open. Failures are logged and skipped.

        Returns:
            Number of histories that could not be ended
        """
        failed = 0
        for history_id in sorted(self.state.open_histories):
            try:
                self.sink.end_history(history_id, status="completed")
            except SinkError as e:
                failed += 1
                self.logger.warning(f"Failed to end history {history_id}: {e}", extra={"history_id": history_id})
            else:
                self.state.open_histories.discard(history_id)
        return failed
