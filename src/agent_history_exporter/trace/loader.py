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
Loads serialized spans from JSON files for replay.

Accepted layouts are a list of span objects or an object with a "spans"
list. Span objects use camelCase keys:

    {
        "traceId": "...", "spanId": "...", "parentSpanId": "...",
        "name": "ai.generateText",
        "startTime": "2026-01-27T00:00:00.000Z",   # or integer nanoseconds
        "endTime": 1769472001000000000,
        "status": "OK", "statusMessage": null,
        "attributes": {...},
        "instrumentationScope": "ai"
    }
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging

from opentelemetry.trace import StatusCode

from ..errors import SpanLoadError
from .models import Span


logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp_ns(raw_timestamp: Any) -> Optional[int]:
    """Parse a timestamp given as epoch nanoseconds or an ISO 8601 string."""
    if raw_timestamp is None:
        return None

    if isinstance(raw_timestamp, bool):
        return None

    if isinstance(raw_timestamp, int):
        return raw_timestamp

    if isinstance(raw_timestamp, float):
        return int(raw_timestamp)

    if isinstance(raw_timestamp, str):
        try:
            if raw_timestamp.endswith("Z"):
                raw_timestamp = raw_timestamp[:-1] + "+00:00"
            moment = datetime.fromisoformat(raw_timestamp)
        except (ValueError, TypeError):
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        delta = moment - _EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000

    return None


def _parse_status(raw_status: Any) -> StatusCode:
    if isinstance(raw_status, str):
        try:
            return StatusCode[raw_status.upper()]
        except KeyError:
            return StatusCode.UNSET
    if isinstance(raw_status, int):
        try:
            return StatusCode(raw_status)
        except ValueError:
            return StatusCode.UNSET
    return StatusCode.UNSET


def parse_span(data: Dict[str, Any]) -> Span:
    """Parse one serialized span."""
    if not isinstance(data, dict):
        raise SpanLoadError(f"Span must be a JSON object, got {type(data).__name__}")

    try:
        trace_id = data["traceId"]
        span_id = data["spanId"]
        name = data["name"]
    except KeyError as e:
        raise SpanLoadError(f"Span is missing required field {e}") from e

    attributes = data.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise SpanLoadError(f"Span {span_id} attributes must be a JSON object")

    start_time = _parse_timestamp_ns(data.get("startTime"))
    if start_time is None:
        raise SpanLoadError(f"Span {span_id} has no valid startTime")

    return Span(
        trace_id=str(trace_id),
        span_id=str(span_id),
        parent_span_id=data.get("parentSpanId"),
        name=str(name),
        start_time=start_time,
        end_time=_parse_timestamp_ns(data.get("endTime")),
        status_code=_parse_status(data.get("status")),
        status_message=data.get("statusMessage"),
        attributes=dict(attributes),
        instrumentation_scope=data.get("instrumentationScope"),
    )


def load_spans(file_path: Union[str, Path]) -> List[Span]:
    """
    Load all spans from a JSON file.

    Raises:
        SpanLoadError: If the file is missing, not valid JSON, or malformed
    """
    path = Path(file_path)
    if not path.exists():
        raise SpanLoadError(f"Span file not found: {path}")

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SpanLoadError(f"Failed to parse JSON from {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("spans", [])
    if not isinstance(data, list):
        raise SpanLoadError(f"Unexpected JSON structure in {path}")

    spans = [parse_span(item) for item in data]
    logger.debug(f"Loaded {len(spans)} spans from {path}")
    return spans
