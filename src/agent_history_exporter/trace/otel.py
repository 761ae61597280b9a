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
Conversion of OpenTelemetry SDK spans into exporter spans.
"""

from typing import Iterable, List, Optional, Union

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.trace import StatusCode, format_span_id, format_trace_id

from .models import Span


def _scope_name(span: ReadableSpan) -> Optional[str]:
    scope = span.instrumentation_scope
    if scope is not None:
        return scope.name
    return None


def from_readable_span(span: ReadableSpan) -> Span:
    """Convert an OpenTelemetry ReadableSpan into a Span."""
    context = span.context
    parent = span.parent
    status = span.status

    return Span(
        trace_id=format_trace_id(context.trace_id),
        span_id=format_span_id(context.span_id),
        parent_span_id=format_span_id(parent.span_id) if parent is not None else None,
        name=span.name,
        start_time=span.start_time or 0,
        end_time=span.end_time,
        status_code=status.status_code if status is not None else StatusCode.UNSET,
        status_message=status.description if status is not None else None,
        attributes=dict(span.attributes or {}),
        instrumentation_scope=_scope_name(span),
    )


def to_spans(spans: Iterable[Union[ReadableSpan, Span]]) -> List[Span]:
    """Normalize a mixed batch of ReadableSpan and Span objects."""
    return [s if isinstance(s, Span) else from_readable_span(s) for s in spans]
