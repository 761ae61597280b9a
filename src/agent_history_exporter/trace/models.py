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
Data models for span ingestion and history export.

Spans are the immutable input: one completed unit of work recorded by the
AI SDK instrumentation. Everything else in this module is derived while a
trace is processed:

1. AgentInfo - the agents discovered in one trace and the spans they own
2. TraceMetadata - user, conversation, tags and custom metadata of a trace
3. Usage - token counts reported by generation spans
4. TimelineEvent - the agent/tool events written into histories
5. HistoryRecord - the payload used to create a remote history
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from opentelemetry.trace import StatusCode


# ============================================================================
# SPANS
# ============================================================================


class SpanType(str, Enum):
    """Semantic kind of a span as seen by the exporter."""

    GENERATION = "generation"
    TOOL = "tool"
    UNKNOWN = "unknown"


@dataclass(frozen=True, eq=False)
class Span:
    """
    A single completed span.

    Times are nanoseconds since the epoch, as recorded by OpenTelemetry.
    Spans compare by identity so that the same span object can be located in
    an agent's span list even when two spans carry identical data.
    """

    trace_id: str
    span_id: str
    name: str
    start_time: int
    end_time: Optional[int] = None
    parent_span_id: Optional[str] = None
    status_code: StatusCode = StatusCode.UNSET
    status_message: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    instrumentation_scope: Optional[str] = None

    @property
    def is_ended(self) -> bool:
        """Check if the span reported a usable end time."""
        return self.end_time is not None and self.end_time > 0

    @property
    def has_error(self) -> bool:
        """Check if the span finished with an error status."""
        return self.status_code == StatusCode.ERROR


# ============================================================================
# DERIVED TRACE STRUCTURES
# ============================================================================


@dataclass
class AgentInfo:
    """
    An agent discovered within one trace, with the spans it owns.

    start_time, parent_agent_id and display_name come from the first span
    that resolved to the agent in arrival order. That span is not always the
    earliest one: exporters usually deliver child spans before their parents.
    """

    agent_id: str
    start_time: str  # ISO 8601
    parent_agent_id: Optional[str] = None
    display_name: Optional[str] = None
    spans: List[Span] = field(default_factory=list)


@dataclass
class TraceMetadata:
    """Trace-level metadata aggregated from every span of a trace."""

    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Usage:
    """Token usage reported by a generation span."""

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }

    def to_final_dict(self) -> Dict[str, int]:
        """Usage with missing counts filled in, as sent when a history ends."""
        prompt = self.prompt_tokens or 0
        completion = self.completion_tokens or 0
        return {
            "promptTokens": prompt,
            "completionTokens": completion,
            "totalTokens": self.total_tokens or (prompt + completion),
        }


# ============================================================================
# EVENTS AND HISTORIES
# ============================================================================


class EventStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class TimelineEvent:
    """
    One agent or tool event written to a history.

    Events are immutable: propagation to ancestors produces copies with
    extra metadata via with_metadata().
    """

    name: str  # "agent:start", "tool:success", ...
    type: str  # "agent" or "tool"
    start_time: str
    status: EventStatus
    metadata: Dict[str, Any] = field(default_factory=dict)
    end_time: Optional[str] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None
    level: Optional[str] = None

    def with_metadata(self, **extra: Any) -> "TimelineEvent":
        """Return a copy whose metadata is extended with the given keys."""
        return replace(self, metadata={**self.metadata, **extra})

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "startTime": self.start_time,
            "status": self.status.value,
            "metadata": dict(self.metadata),
        }
        if self.end_time is not None:
            data["endTime"] = self.end_time
        if self.input is not None:
            data["input"] = self.input
        if self.output is not None:
            data["output"] = self.output
        if self.error is not None:
            data["error"] = self.error
        if self.level is not None:
            data["level"] = self.level
        return data


@dataclass
class HistoryRecord:
    """Payload for creating one agent history in the remote sink."""

    id: str
    agent_id: str
    start_time: str
    input: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    tags: Optional[List[str]] = None
    completion_start_time: Optional[str] = None
    status: str = "working"
    version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "agent_id": self.agent_id,
            "input": self.input,
            "metadata": {**self.metadata, "agentId": self.agent_id},
            "status": self.status,
            "startTime": self.start_time,
            "version": self.version,
        }
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.conversation_id is not None:
            data["conversationId"] = self.conversation_id
        if self.tags:
            data["tags"] = list(self.tags)
        if self.completion_start_time is not None:
            data["completionStartTime"] = self.completion_start_time
        return data
