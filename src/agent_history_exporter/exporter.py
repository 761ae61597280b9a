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
OpenTelemetry span exporter that turns AI SDK spans into agent histories.

Each exported batch is grouped by trace. For every trace the exporter:

1. Aggregates trace metadata (user, conversation, tags, custom metadata)
2. Discovers the agents of the trace and the spans each one owns
3. Records parent/child agent relationships
4. Creates one history per agent, parents before children
5. Emits agent and tool events per span, propagating them to ancestors
6. Retries tool spans that could only be attributed to the default agent
7. Ends the histories once every span of the trace has ended

Example:
    >>> from opentelemetry.sdk.trace import TracerProvider
    >>> from opentelemetry.sdk.trace.export import BatchSpanProcessor
    >>> from agent_history_exporter import AgentHistoryExporter
    >>>
    >>> provider = TracerProvider()
    >>> provider.add_span_processor(BatchSpanProcessor(AgentHistoryExporter()))
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union
import logging

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .config import ExporterConfig, get_config
from .deferred import DeferredSpanQueue
from .errors import SinkError
from .events import EventPropagator, build_span_events
from .hierarchy import AgentDiscoverer
from .history import HistoryManager
from .logging_utils import configure_logging
from .sink import HistorySink, HttpHistorySink
from .state import HierarchyState, InMemoryStore, StoreFactory
from .trace.attributes import classify_span, extract_trace_metadata, is_trace_complete
from .trace.models import AgentInfo, Span, SpanType
from .trace.otel import to_spans


logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Outcome of one export call, passed to the optional result callback."""

    code: SpanExportResult
    error: Optional[BaseException] = None


@dataclass
class ExportStats:
    """Counters accumulated across export calls."""

    spans_received: int = 0
    spans_ignored: int = 0
    traces_processed: int = 0
    spans_deferred: int = 0
    failed_batches: int = 0
    histories_created: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "spansReceived": self.spans_received,
            "spansIgnored": self.spans_ignored,
            "tracesProcessed": self.traces_processed,
            "spansDeferred": self.spans_deferred,
            "failedBatches": self.failed_batches,
            "historiesCreated": self.histories_created,
        }


ResultCallback = Callable[[ExportResult], None]


class AgentHistoryExporter(SpanExporter):
    """
    SpanExporter that writes one history per agent per trace.

    Args:
        config: Exporter settings (defaults to the environment via get_config())
        sink: History sink (defaults to an HttpHistorySink built from config)
        logger: Logger for diagnostics (defaults to the module logger)
        store_factory: Factory for the relationship maps
    """

    def __init__(
        self,
        config: Optional[ExporterConfig] = None,
        sink: Optional[HistorySink] = None,
        logger: Optional[logging.Logger] = None,
        store_factory: StoreFactory = InMemoryStore,
    ):
        self.config = config if config is not None else get_config()
        if logger is None:
            configure_logging(debug=self.config.debug)
            logger = logging.getLogger(__name__)
        self.logger = logger
        self.sink = sink if sink is not None else HttpHistorySink.from_config(self.config)

        self.state = HierarchyState(store_factory)
        self.discoverer = AgentDiscoverer(self.state, self.config.default_agent_id, self.logger)
        self.histories = HistoryManager(self.state, self.sink, self.logger)
        self.propagator = EventPropagator(
            self.state,
            self.histories,
            self.sink,
            max_depth=self.config.max_propagation_depth,
            logger=self.logger,
        )
        self.deferred = DeferredSpanQueue()
        self.stats = ExportStats()
        self._shutdown = False

        self.logger.debug(
            f"AgentHistoryExporter initialized (sink: {type(self.sink).__name__}, "
            f"scope: {self.config.instrumentation_scope})"
        )

    # ========================================================================
    # SpanExporter interface
    # ========================================================================

    def export(
        self,
        spans: Sequence[Union[ReadableSpan, Span]],
        callback: Optional[ResultCallback] = None,
    ) -> SpanExportResult:
        """
        Export a batch of finished spans.

        Returns SUCCESS when every trace of the batch was processed and the
        sink was flushed, FAILURE otherwise. The same result is passed to
        callback when one is given.
        """
        if self._shutdown:
            self.logger.warning("Exporter already shut down, ignoring export call")
            return self._report(SpanExportResult.FAILURE, None, callback)

        self.logger.debug(f"Exporting {len(spans)} spans...")

        try:
            traces = self._group_by_trace(to_spans(spans))
            for trace_id, trace_spans in traces.items():
                self._process_trace(trace_id, trace_spans)
            self.logger.debug(f"Processed {len(traces)} traces.")
            self.sink.flush()
        except Exception as e:
            self.stats.failed_batches += 1
            self.logger.error(f"Error exporting spans: {e}", exc_info=True)
            return self._report(SpanExportResult.FAILURE, e, callback)

        return self._report(SpanExportResult.SUCCESS, None, callback)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """
        End every open history, reset all relationship state and flush the sink.

        Histories created before a flush are never reused afterwards.
        """
        failed = self.histories.end_open_histories()
        if failed:
            self.logger.warning(f"{failed} histories could not be ended during flush")

        self.state.clear()
        self.deferred.clear()

        try:
            self.sink.flush()
        except SinkError as e:
            self.logger.error(f"Failed to flush history sink: {e}", exc_info=True)
            return False
        return True

    def shutdown(self) -> None:
        """Flush and close the sink. Later calls are no-ops."""
        if self._shutdown:
            return
        self._shutdown = True
        self.force_flush()
        self.sink.close()
        self.logger.debug("AgentHistoryExporter shut down")

    # ========================================================================
    # Trace processing
    # ========================================================================

    def _report(
        self,
        code: SpanExportResult,
        error: Optional[BaseException],
        callback: Optional[ResultCallback],
    ) -> SpanExportResult:
        if callback is not None:
            callback(ExportResult(code=code, error=error))
        return code

    def _group_by_trace(self, spans: List[Span]) -> "OrderedDict[str, List[Span]]":
        """Group accepted spans by trace id, keeping arrival order."""
        traces: "OrderedDict[str, List[Span]]" = OrderedDict()
        scope = self.config.instrumentation_scope

        for span in spans:
            self.stats.spans_received += 1
            if span.instrumentation_scope != scope:
                self.stats.spans_ignored += 1
                self.logger.debug(f"Ignoring span {span.name} from scope {span.instrumentation_scope}")
                continue
            traces.setdefault(span.trace_id, []).append(span)

        return traces

    def _process_trace(self, trace_id: str, spans: List[Span]) -> None:
        trace_metadata = extract_trace_metadata(spans)

        agents = self.discoverer.discover_agents(spans)
        if len(agents) > 1:
            self.logger.debug(f"Multi-agent scenario detected in trace {trace_id}: {list(agents)}")

        relationships = {
            agent_id: agent.parent_agent_id for agent_id, agent in agents.items() if agent.parent_agent_id
        }
        self.state.rebuild_parent_map(relationships)
        for agent_id, parent_agent_id in relationships.items():
            self.logger.debug(f"Parent-child relationship: {agent_id} -> {parent_agent_id}")

        created = self.histories.create_histories(trace_id, agents, trace_metadata, spans)
        self.stats.histories_created += len(created)

        for span in spans:
            agent_id = self.discoverer.resolve_agent_id(span, spans)
            if self._should_defer(span, agent_id) and self.deferred.defer(span):
                self.stats.spans_deferred += 1
                self.logger.debug(
                    f"Deferring tool span {span.name}, no agent found yet",
                    extra={"trace_id": trace_id, "span_id": span.span_id},
                )
                continue
            self._emit_span_events(trace_id, span, agent_id, agents)

        self._process_deferred_spans(trace_id, spans, agents)

        if is_trace_complete(spans):
            self.histories.complete_histories(trace_id, agents)
        else:
            self.logger.debug(f"Trace {trace_id} has unfinished spans, histories stay open")

        self.stats.traces_processed += 1

    def _should_defer(self, span: Span, agent_id: str) -> bool:
        return (
            self.config.defer_unresolved_tool_spans
            and agent_id == self.config.default_agent_id
            and classify_span(span) == SpanType.TOOL
        )

    def _process_deferred_spans(self, trace_id: str, spans: List[Span], agents: Dict[str, AgentInfo]) -> None:
        """Resolve each deferred tool span of the trace again and emit its events."""
        for span in self.deferred.pop_for_trace(trace_id):
            self.discoverer.clear_cached(span.span_id)
            agent_id = self.discoverer.resolve_agent_id(span, spans)

            if self.histories.find_history_id(agent_id, trace_id) is None:
                self.logger.debug(f"No history for {agent_id} in trace {trace_id}, using default agent")
                agent_id = self.config.default_agent_id
            elif agent_id != self.config.default_agent_id:
                self.logger.debug(f"Found agentId on retry: {agent_id} for tool span {span.name}")
            else:
                self.logger.debug(f"Tool execution tracked under default agent: {span.name}")

            self._emit_span_events(trace_id, span, agent_id, agents)

    def _emit_span_events(self, trace_id: str, span: Span, agent_id: str, agents: Dict[str, AgentInfo]) -> None:
        for event in build_span_events(span, agent_id, agents.get(agent_id)):
            self.propagator.add_event(agent_id, trace_id, event)
