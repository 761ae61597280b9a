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
Exception types raised by the exporter.
"""

from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter errors."""

    pass


class ConfigurationError(ExporterError):
    """Raised when required configuration is missing or invalid."""

    pass


class HistoryNotFoundError(ExporterError):
    """
    Raised when an agent has no history in the given trace.

    Histories are created for every discovered agent before any event is
    written, so hitting this error means the processing order was broken.
    """

    def __init__(self, agent_id: str, trace_id: str):
        self.agent_id = agent_id
        self.trace_id = trace_id
        super().__init__(f"No history ID found for agent {agent_id} in trace {trace_id}")


class SinkError(ExporterError):
    """
    Raised when the remote history sink rejects a request.

    Attributes:
        status: HTTP status code (0 for network errors, 408 for timeouts)
        message: Error message reported by the sink
        errors: Optional validation details returned by the sink
    """

    def __init__(self, status: int, message: str, errors: Optional[object] = None):
        self.status = status
        self.message = message
        self.errors = errors
        super().__init__(f"[{status}] {message}")


class SpanLoadError(ExporterError):
    """Raised when serialized spans cannot be loaded."""

    pass
