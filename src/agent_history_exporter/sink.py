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
History sinks: where histories and their events are written.

HistorySink is the contract the exporter depends on. Two implementations
ship with the package:

1. HttpHistorySink - the remote history API, over requests
2. InMemoryHistorySink - records every call, for dry runs and tests

Example:
    >>> from agent_history_exporter.sink import HttpHistorySink
    >>> sink = HttpHistorySink(
    ...     base_url="https://api.voltagent.dev",
    ...     public_key="pk_...",
    ...     secret_key="sk_...",
    ... )
    >>> sink.create_history(record)
    >>> sink.add_event(record.id, event)
    >>> sink.flush()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

import requests

from .errors import SinkError
from .trace.models import HistoryRecord, TimelineEvent, Usage


logger = logging.getLogger(__name__)


class HistorySink(ABC):
    """
    Destination for agent histories and their timeline events.

    Every method blocks until the write is accepted (or buffered) and raises
    SinkError when it is rejected.
    """

    @abstractmethod
    def create_history(self, history: HistoryRecord) -> None:
        """Create a new history in the working state."""

    @abstractmethod
    def add_event(self, history_id: str, event: TimelineEvent) -> None:
        """Append an event to an existing history."""

    @abstractmethod
    def end_history(
        self,
        history_id: str,
        output: Optional[Any] = None,
        usage: Optional[Usage] = None,
        end_time: Optional[str] = None,
        status: str = "completed",
    ) -> None:
        """Mark a history as finished."""

    def flush(self) -> None:
        """Write out anything buffered. No-op for unbuffered sinks."""

    def close(self) -> None:
        """Release resources. No-op by default."""


def event_to_dto(history_id: str, event: TimelineEvent) -> Dict[str, Any]:
    """Convert an event to the snake_case body of POST /history-events."""
    error = event.error
    return {
        "history_id": history_id,
        "event_type": event.type,
        "event_name": event.name,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "status": event.status.value,
        "status_message": error.get("message") if error else None,
        "level": event.level,
        "metadata": dict(event.metadata),
        "input": event.input,
        "output": event.output,
        "error": error,
    }


class HttpHistorySink(HistorySink):
    """
    History sink backed by the remote history HTTP API.

    Endpoints:
        POST  {base_url}/history          create a history
        PATCH {base_url}/history/{id}     end a history
        POST  {base_url}/history-events   add one event

    Histories are created and ended immediately. Events are buffered and
    posted in arrival order on flush() or when event_batch_size events are
    waiting, so events never overtake the history they belong to.
    """

    def __init__(
        self,
        base_url: str,
        public_key: str = "",
        secret_key: str = "",
        timeout: float = 30.0,
        event_batch_size: int = 50,
        headers: Optional[Dict[str, str]] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        if event_batch_size < 1:
            raise ValueError("event_batch_size must be at least 1")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.event_batch_size = event_batch_size
        self.headers = {
            "Content-Type": "application/json",
            "x-public-key": public_key,
            "x-secret-key": secret_key,
            **(headers or {}),
        }
        self._session = requests.Session()
        self._pending_events: List[Dict[str, Any]] = []

    @classmethod
    def from_config(cls, config) -> "HttpHistorySink":
        """Build a sink from an ExporterConfig."""
        return cls(
            base_url=config.base_url,
            public_key=config.public_key,
            secret_key=config.secret_key,
            timeout=config.timeout,
            event_batch_size=config.event_batch_size,
        )

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise SinkError(408, "Request timeout") from e
        except requests.exceptions.RequestException as e:
            raise SinkError(0, f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not 200 <= response.status_code < 300:
            message = "An error occurred"
            errors = None
            if isinstance(data, dict):
                message = data.get("message") or message
                errors = data.get("errors")
            raise SinkError(response.status_code, message, errors)

        return data

    def create_history(self, history: HistoryRecord) -> None:
        self._request("POST", "/history", history.to_dict())
        logger.debug(f"Created history {history.id} for agent {history.agent_id}")

    def add_event(self, history_id: str, event: TimelineEvent) -> None:
        self._pending_events.append(event_to_dto(history_id, event))
        if len(self._pending_events) >= self.event_batch_size:
            self.flush()

    def end_history(
        self,
        history_id: str,
        output: Optional[Any] = None,
        usage: Optional[Usage] = None,
        end_time: Optional[str] = None,
        status: str = "completed",
    ) -> None:
        # Pending events for this history must land before it is closed
        self.flush()
        payload: Dict[str, Any] = {"output": output, "status": status}
        if usage is not None:
            payload["usage"] = usage.to_final_dict()
        if end_time is not None:
            payload["endTime"] = end_time
        self._request("PATCH", f"/history/{history_id}", payload)
        logger.debug(f"Ended history {history_id} with status {status}")

    def flush(self) -> None:
        """
        Post buffered events in order.

        On failure the failing event and every event after it are dropped
        and the error is raised. Events are never resent.
        """
        pending, self._pending_events = self._pending_events, []
        for index, dto in enumerate(pending):
            try:
                self._request("POST", "/history-events", dto)
            except SinkError:
                logger.warning(
                    f"Dropping {len(pending) - index} buffered events after failed post",
                    extra={"history_id": dto.get("history_id")},
                )
                raise

    def close(self) -> None:
        self._session.close()


@dataclass
class EndedHistory:
    history_id: str
    output: Optional[Any]
    usage: Optional[Usage]
    end_time: Optional[str]
    status: str


@dataclass
class InMemoryHistorySink(HistorySink):
    """
    Sink that keeps every write in memory.

    Attributes:
        histories: created histories by id, in creation order
        events: (history id, event) pairs in write order
        ended: end calls in call order
    """

    histories: Dict[str, HistoryRecord] = field(default_factory=dict)
    events: List[Tuple[str, TimelineEvent]] = field(default_factory=list)
    ended: List[EndedHistory] = field(default_factory=list)
    flush_count: int = 0
    closed: bool = False

    def create_history(self, history: HistoryRecord) -> None:
        self.histories[history.id] = history

    def add_event(self, history_id: str, event: TimelineEvent) -> None:
        self.events.append((history_id, event))

    def end_history(
        self,
        history_id: str,
        output: Optional[Any] = None,
        usage: Optional[Usage] = None,
        end_time: Optional[str] = None,
        status: str = "completed",
    ) -> None:
        self.ended.append(EndedHistory(history_id, output, usage, end_time, status))

    def flush(self) -> None:
        self.flush_count += 1

    def close(self) -> None:
        self.closed = True

    def events_for(self, history_id: str) -> List[TimelineEvent]:
        """Events written to one history, in write order."""
        return [event for hid, event in self.events if hid == history_id]

    def history_for_agent(self, agent_id: str) -> List[HistoryRecord]:
        """Histories created for one agent, in creation order."""
        return [h for h in self.histories.values() if h.agent_id == agent_id]

    def summary(self) -> Dict[str, Any]:
        """JSON-serializable view of everything written."""
        ended_ids = {e.history_id for e in self.ended}
        return {
            "histories": [
                {
                    **history.to_dict(),
                    "ended": history.id in ended_ids,
                    "events": [event.to_dict() for event in self.events_for(history.id)],
                }
                for history in self.histories.values()
            ],
            "eventCount": len(self.events),
        }
