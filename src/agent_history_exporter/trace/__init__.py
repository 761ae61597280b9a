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
Span model, attribute extraction and span sources.

    >>> from agent_history_exporter.trace import Span, classify_span, load_spans
"""

from .models import (
    Span,
    SpanType,
    AgentInfo,
    TraceMetadata,
    Usage,
    EventStatus,
    TimelineEvent,
    HistoryRecord,
)
from .attributes import (
    classify_span,
    extract_trace_metadata,
    find_root_span,
    is_trace_complete,
    ns_to_iso,
    parse_completion_start_time,
    parse_input,
    parse_model_parameters,
    parse_output,
    parse_span_metadata,
    parse_usage,
)
from .otel import from_readable_span, to_spans
from .loader import load_spans, parse_span

__all__ = [
    # Models
    "Span",
    "SpanType",
    "AgentInfo",
    "TraceMetadata",
    "Usage",
    "EventStatus",
    "TimelineEvent",
    "HistoryRecord",
    # Attribute extraction
    "classify_span",
    "extract_trace_metadata",
    "find_root_span",
    "is_trace_complete",
    "ns_to_iso",
    "parse_completion_start_time",
    "parse_input",
    "parse_model_parameters",
    "parse_output",
    "parse_span_metadata",
    "parse_usage",
    # Span sources
    "from_readable_span",
    "to_spans",
    "load_spans",
    "parse_span",
]
