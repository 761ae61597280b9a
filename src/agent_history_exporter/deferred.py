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
Queue of tool spans whose owning agent could not be resolved on first sight.
"""

from collections import OrderedDict
from typing import Dict, List

from .trace.models import Span


class DeferredSpanQueue:
    """
    Tool spans waiting for a second resolution attempt, grouped by trace.

    A span id is queued at most once while its trace's retry is pending.
    The retry pass emits events directly and never defers again, so a span
    is retried exactly once. Nothing is kept for a trace after its spans are
    popped.
    """

    def __init__(self):
        self._pending: Dict[str, "OrderedDict[str, Span]"] = {}

    def defer(self, span: Span) -> bool:
        """Queue a span. Returns False if the span is already queued."""
        pending = self._pending.setdefault(span.trace_id, OrderedDict())
        if span.span_id in pending:
            return False
        pending[span.span_id] = span
        return True

    def pop_for_trace(self, trace_id: str) -> List[Span]:
        """Remove and return the queued spans of a trace in the order they were deferred."""
        pending = self._pending.pop(trace_id, None)
        return list(pending.values()) if pending else []

    def __len__(self) -> int:
        return sum(len(spans) for spans in self._pending.values())

    def clear(self) -> None:
        self._pending.clear()
