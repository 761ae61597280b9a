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
Span classification and attribute extraction.

The AI SDK instrumentation records everything in a flat attribute bag:
prompts and responses under ``ai.*``, semantic-convention values under
``gen_ai.*`` and user supplied telemetry metadata under
``ai.telemetry.metadata.*``. Attribute names changed across SDK releases,
so most extractors try several generations of keys in order.

All functions here are pure. Missing or malformed attributes yield None
(or an omitted key) rather than an exception.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import json
import math
import logging

from .models import Span, SpanType, TraceMetadata, Usage


logger = logging.getLogger(__name__)


# ============================================================================
# ATTRIBUTE KEYS
# ============================================================================

METADATA_PREFIX = "ai.telemetry.metadata."

AGENT_ID_KEY = METADATA_PREFIX + "agentId"
PARENT_AGENT_ID_KEY = METADATA_PREFIX + "parentAgentId"
DISPLAY_NAME_KEY = METADATA_PREFIX + "displayName"
AGENT_NAME_KEY = METADATA_PREFIX + "agentName"
USER_ID_KEY = METADATA_PREFIX + "userId"
CONVERSATION_ID_KEY = METADATA_PREFIX + "conversationId"

TOOL_CALL_NAME_KEY = "ai.toolCall.name"
TOOL_CALL_ID_KEY = "ai.toolCall.id"
TOOL_CALL_ARGS_KEY = "ai.toolCall.args"
TOOL_CALL_RESULT_KEY = "ai.toolCall.result"

# Name fragments of generation spans (ai.generateText, ai.streamObject.doStream, ...)
GENERATION_NAME_MARKERS = ("generate", "stream", "generateobject", "streamobject")
TOOL_NAME_MARKER = "tool"

# (prompt, completion) token keys, newest semantic conventions last
_PROMPT_TOKEN_KEYS = ("gen_ai.usage.prompt_tokens", "gen_ai.usage.input_tokens", "ai.usage.promptTokens")
_COMPLETION_TOKEN_KEYS = (
    "gen_ai.usage.completion_tokens",
    "gen_ai.usage.output_tokens",
    "ai.usage.completionTokens",
)

# Model parameter name -> attribute keys in order of preference
_MODEL_PARAMETER_KEYS: Dict[str, Sequence[str]] = {
    "toolChoice": ("ai.prompt.toolChoice",),
    "maxTokens": ("gen_ai.request.max_tokens",),
    "finishReason": ("gen_ai.response.finish_reasons", "gen_ai.finishReason"),
    "system": ("gen_ai.system", "ai.model.provider"),
    "maxRetries": ("ai.settings.maxRetries",),
    "mode": ("ai.settings.mode",),
    "output": ("ai.settings.output",),
    "temperature": ("gen_ai.request.temperature",),
    "model": ("ai.response.model", "gen_ai.request.model", "ai.model.id"),
}

_MS_TO_FIRST_CHUNK_KEYS = ("ai.response.msToFirstChunk", "ai.stream.msToFirstChunk")


# ============================================================================
# HELPERS
# ============================================================================


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ns_to_datetime(nanos: int) -> datetime:
    """Convert epoch nanoseconds to an aware UTC datetime (microsecond precision)."""
    return _EPOCH + timedelta(microseconds=nanos // 1000)


def format_iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ns_to_iso(nanos: int) -> str:
    """Convert epoch nanoseconds to an ISO 8601 UTC string with millisecond precision."""
    return format_iso(ns_to_datetime(nanos))


def safe_json_parse(value: Any) -> Any:
    """Decode a JSON string, returning the input unchanged when it is not valid JSON."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        return value


def _present(attrs: Mapping[str, Any], key: str) -> bool:
    return attrs.get(key) not in (None, "")


def _first_present(attrs: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in attrs and attrs[key] is not None:
            return attrs[key]
    return None


def _stringify(value: Any) -> str:
    # Sequence attributes (finish reasons) are joined the way JS stringifies arrays
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(str(value)))
    except (ValueError, TypeError):
        return None


# ============================================================================
# SPAN CLASSIFIER
# ============================================================================


def classify_span(span: Span) -> SpanType:
    """
    Classify a span as generation, tool or unknown.

    The generation check runs first, so a name matching both wins as generation.
    """
    name = span.name.lower()
    if any(marker in name for marker in GENERATION_NAME_MARKERS):
        return SpanType.GENERATION
    if TOOL_NAME_MARKER in name or _present(span.attributes, TOOL_CALL_NAME_KEY):
        return SpanType.TOOL
    return SpanType.UNKNOWN


# ============================================================================
# DECLARED AGENT FIELDS
# ============================================================================


def get_declared_agent_id(span: Span) -> Optional[str]:
    """Agent id declared in the span's telemetry metadata."""
    if _present(span.attributes, AGENT_ID_KEY):
        return str(span.attributes[AGENT_ID_KEY])
    return None


def get_declared_parent_agent_id(span: Span) -> Optional[str]:
    if _present(span.attributes, PARENT_AGENT_ID_KEY):
        return str(span.attributes[PARENT_AGENT_ID_KEY])
    return None


def get_declared_display_name(span: Span) -> Optional[str]:
    """Display name, falling back to the declared agent name."""
    for key in (DISPLAY_NAME_KEY, AGENT_NAME_KEY):
        if _present(span.attributes, key):
            return str(span.attributes[key])
    return None


# ============================================================================
# INPUT / OUTPUT
# ============================================================================


def parse_input(span: Optional[Span]) -> Any:
    """Parse span input from prompt messages, prompt text or tool arguments."""
    if span is None:
        return None

    attrs = span.attributes
    if _present(attrs, "ai.prompt.messages"):
        return safe_json_parse(attrs["ai.prompt.messages"])
    if _present(attrs, "ai.prompt"):
        return attrs["ai.prompt"]
    if _present(attrs, TOOL_CALL_ARGS_KEY):
        return safe_json_parse(attrs[TOOL_CALL_ARGS_KEY])
    return None


def parse_output(span: Optional[Span]) -> Any:
    """
    Parse span output.

    Priority: structured response object (merged with response text when
    both exist), response text, result text, tool result, tool calls,
    embedding(s).
    """
    if span is None:
        return None

    attrs = span.attributes
    if _present(attrs, "ai.response.object"):
        output: Dict[str, Any] = {"object": safe_json_parse(attrs["ai.response.object"])}
        if _present(attrs, "ai.response.text"):
            output["text"] = attrs["ai.response.text"]
        return output
    if _present(attrs, "ai.response.text"):
        return {"text": attrs["ai.response.text"]}
    if _present(attrs, "ai.result.text"):
        return {"text": attrs["ai.result.text"]}
    if _present(attrs, TOOL_CALL_RESULT_KEY):
        return safe_json_parse(attrs[TOOL_CALL_RESULT_KEY])
    if _present(attrs, "ai.response.toolCalls"):
        return safe_json_parse(attrs["ai.response.toolCalls"])
    if _present(attrs, "ai.embedding"):
        return {"embedding": safe_json_parse(attrs["ai.embedding"])}
    if _present(attrs, "ai.embeddings"):
        return {"embeddings": safe_json_parse(attrs["ai.embeddings"])}
    return None


# ============================================================================
# USAGE AND MODEL PARAMETERS
# ============================================================================


def parse_usage(attributes: Mapping[str, Any]) -> Optional[Usage]:
    """Parse token usage, tolerating three generations of attribute names."""
    prompt_tokens = _to_int(_first_present(attributes, _PROMPT_TOKEN_KEYS))
    completion_tokens = _to_int(_first_present(attributes, _COMPLETION_TOKEN_KEYS))

    if prompt_tokens is None and completion_tokens is None:
        return None

    total_tokens = None
    if prompt_tokens is not None and completion_tokens is not None:
        total_tokens = prompt_tokens + completion_tokens

    return Usage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens, total_tokens=total_tokens)


def parse_model_parameters(attributes: Mapping[str, Any]) -> Dict[str, str]:
    """Parse model parameters. Each parameter is independently optional."""
    parameters: Dict[str, str] = {}
    for name, keys in _MODEL_PARAMETER_KEYS.items():
        value = _first_present(attributes, keys)
        if value is not None:
            parameters[name] = _stringify(value)
    return parameters


def parse_completion_start_time(span: Span) -> Optional[str]:
    """Start time plus time-to-first-chunk, when the span records one."""
    raw = _first_present(span.attributes, _MS_TO_FIRST_CHUNK_KEYS)
    if raw is None:
        return None
    try:
        ms_to_first_chunk = float(raw)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(ms_to_first_chunk):
        return None

    completion_start = ns_to_datetime(span.start_time) + timedelta(milliseconds=ms_to_first_chunk)
    return format_iso(completion_start)


# ============================================================================
# METADATA
# ============================================================================


def parse_custom_metadata(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy every telemetry metadata attribute with the namespace prefix stripped."""
    return {
        key[len(METADATA_PREFIX) :]: value
        for key, value in attributes.items()
        if key.startswith(METADATA_PREFIX) and value is not None
    }


def parse_span_metadata(span: Span) -> Dict[str, Any]:
    """Parse tool, agent, schema and custom metadata from a span."""
    attrs = span.attributes
    metadata: Dict[str, Any] = {}

    if _present(attrs, TOOL_CALL_NAME_KEY):
        metadata["toolName"] = attrs[TOOL_CALL_NAME_KEY]
    if _present(attrs, TOOL_CALL_ID_KEY):
        metadata["toolId"] = attrs[TOOL_CALL_ID_KEY]
    if _present(attrs, DISPLAY_NAME_KEY):
        metadata["displayName"] = attrs[DISPLAY_NAME_KEY]
    if _present(attrs, AGENT_ID_KEY):
        metadata["agentId"] = attrs[AGENT_ID_KEY]

    # Object generation schema
    if _present(attrs, "ai.schema"):
        metadata["schema"] = safe_json_parse(attrs["ai.schema"])
    if _present(attrs, "ai.schema.name"):
        metadata["schemaName"] = attrs["ai.schema.name"]
    if _present(attrs, "ai.schema.description"):
        metadata["schemaDescription"] = attrs["ai.schema.description"]

    metadata.update(parse_custom_metadata(attrs))
    return metadata


def parse_tags(spans: Iterable[Span]) -> List[str]:
    """Collect unique string tags declared in span metadata, in first-seen order."""
    tags: List[str] = []
    for span in spans:
        raw = parse_span_metadata(span).get("tags")
        if isinstance(raw, (list, tuple)) and all(isinstance(tag, str) for tag in raw):
            for tag in raw:
                if tag not in tags:
                    tags.append(tag)
    return tags


def extract_trace_metadata(spans: Sequence[Span]) -> TraceMetadata:
    """Aggregate trace-level metadata. Later spans overwrite earlier values."""
    trace_metadata = TraceMetadata()

    for span in spans:
        attrs = span.attributes
        if _present(attrs, USER_ID_KEY):
            trace_metadata.user_id = str(attrs[USER_ID_KEY])
        if _present(attrs, CONVERSATION_ID_KEY):
            trace_metadata.conversation_id = str(attrs[CONVERSATION_ID_KEY])
        trace_metadata.metadata.update(parse_custom_metadata(attrs))

    trace_metadata.tags = parse_tags(spans)
    return trace_metadata


# ============================================================================
# TRACE STRUCTURE
# ============================================================================


def find_root_span(spans: Sequence[Span]) -> Optional[Span]:
    """
    Find the root span: the first span whose parent is absent or outside the set.

    Falls back to the first span when every span has an in-set parent (a cycle).
    """
    if not spans:
        return None

    span_ids = {s.span_id for s in spans}
    for span in spans:
        if not span.parent_span_id or span.parent_span_id not in span_ids:
            return span
    return spans[0]


def is_trace_complete(spans: Iterable[Span]) -> bool:
    """Check if every span of the trace has ended."""
    return all(span.is_ended for span in spans)
