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
Tests for loading serialized spans.
"""

import json
from pathlib import Path

import pytest
from opentelemetry.trace import StatusCode

from agent_history_exporter.errors import SpanLoadError
from agent_history_exporter.trace.loader import load_spans, parse_span


FIXTURES = Path(__file__).parent / "fixtures"


class TestParseSpan:
    """Test parsing of individual span objects."""

    def test_iso_and_nanosecond_times(self):
        span = parse_span(
            {
                "traceId": "t1",
                "spanId": "s1",
                "name": "ai.generateText",
                "startTime": "2026-01-27T00:00:00.250Z",
                "endTime": 1_769_472_001_000_000_000,
            }
        )
        assert span.start_time == 1_769_472_000_250_000_000
        assert span.end_time == 1_769_472_001_000_000_000

    def test_optional_fields(self):
        span = parse_span(
            {
                "traceId": "t1",
                "spanId": "s1",
                "parentSpanId": "p1",
                "name": "ai.toolCall",
                "startTime": 1,
                "status": "error",
                "statusMessage": "boom",
                "attributes": {"ai.toolCall.name": "search"},
                "instrumentationScope": "ai",
            }
        )
        assert span.parent_span_id == "p1"
        assert span.status_code == StatusCode.ERROR
        assert span.status_message == "boom"
        assert span.attributes == {"ai.toolCall.name": "search"}
        assert span.instrumentation_scope == "ai"
        assert span.end_time is None

    def test_numeric_status(self):
        span = parse_span({"traceId": "t", "spanId": "s", "name": "n", "startTime": 1, "status": 2})
        assert span.status_code == StatusCode.ERROR

    def test_unknown_status_is_unset(self):
        span = parse_span({"traceId": "t", "spanId": "s", "name": "n", "startTime": 1, "status": "weird"})
        assert span.status_code == StatusCode.UNSET

    def test_missing_required_field(self):
        with pytest.raises(SpanLoadError, match="spanId"):
            parse_span({"traceId": "t", "name": "n", "startTime": 1})

    def test_invalid_start_time(self):
        with pytest.raises(SpanLoadError, match="startTime"):
            parse_span({"traceId": "t", "spanId": "s", "name": "n", "startTime": "yesterday"})


class TestLoadSpans:
    """Test loading span files."""

    def test_fixture_file(self):
        spans = load_spans(FIXTURES / "multi_agent_trace.json")

        assert [s.span_id for s in spans] == ["a1b2c3d4e5f60001", "a1b2c3d4e5f60002", "a1b2c3d4e5f60003"]
        assert spans[1].attributes["ai.telemetry.metadata.parentAgentId"] == "marketing-agent"

    def test_list_layout(self, tmp_path):
        path = tmp_path / "spans.json"
        path.write_text(json.dumps([{"traceId": "t", "spanId": "s", "name": "n", "startTime": 1}]))
        assert len(load_spans(path)) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpanLoadError, match="not found"):
            load_spans(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(SpanLoadError, match="Failed to parse JSON"):
            load_spans(path)

    def test_unexpected_structure(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('"spans"')
        with pytest.raises(SpanLoadError, match="Unexpected JSON structure"):
            load_spans(path)

    @pytest.mark.parametrize(
        "content",
        [
            [1],
            ["span"],
            [{"traceId": "t", "spanId": "s", "name": "n", "startTime": 1, "attributes": [["key", "value", "extra"]]}],
            [{"traceId": "t", "spanId": "s", "name": "n", "startTime": 1, "attributes": "key=value"}],
        ],
    )
    def test_malformed_span_entries(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(content))
        with pytest.raises(SpanLoadError, match="must be a JSON object"):
            load_spans(path)
