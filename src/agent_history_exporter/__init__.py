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
Multi-agent history exporter for AI SDK OpenTelemetry spans.

Import Structure:
-----------------

Tier 1 - Main module (agent_history_exporter):
    The exporter, its configuration and the sinks.

    >>> from agent_history_exporter import (
    ...     AgentHistoryExporter,                   # SpanExporter
    ...     ExporterConfig, get_config,             # Configuration
    ...     HttpHistorySink, InMemoryHistorySink,   # Sinks
    ... )

Tier 2 - Submodules for the individual stages:

    >>> from agent_history_exporter.trace import Span, classify_span
    >>> from agent_history_exporter.hierarchy import AgentDiscoverer, sort_agents_by_dependency
    >>> from agent_history_exporter.events import EventPropagator
"""

__version__ = "0.0.0.dev0"

# ============================================================================
# EXPORTER
# ============================================================================
from .exporter import AgentHistoryExporter, ExportResult, ExportStats

# ============================================================================
# CONFIGURATION
# ============================================================================
from .config import ExporterConfig, get_config, reload_config

# ============================================================================
# SINKS
# ============================================================================
from .sink import HistorySink, HttpHistorySink, InMemoryHistorySink

# ============================================================================
# STATE
# ============================================================================
from .state import KeyValueStore, InMemoryStore, HierarchyState

# ============================================================================
# ERRORS
# ============================================================================
from .errors import (
    ExporterError,
    ConfigurationError,
    HistoryNotFoundError,
    SinkError,
    SpanLoadError,
)

__all__ = [
    "__version__",
    # Exporter
    "AgentHistoryExporter",
    "ExportResult",
    "ExportStats",
    # Configuration
    "ExporterConfig",
    "get_config",
    "reload_config",
    # Sinks
    "HistorySink",
    "HttpHistorySink",
    "InMemoryHistorySink",
    # State
    "KeyValueStore",
    "InMemoryStore",
    "HierarchyState",
    # Errors
    "ExporterError",
    "ConfigurationError",
    "HistoryNotFoundError",
    "SinkError",
    "SpanLoadError",
]
