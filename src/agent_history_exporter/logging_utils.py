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
Logging setup for the agent_history_exporter package.
"""

import json
import logging
import sys

PACKAGE_LOGGER = "agent_history_exporter"

# Structured fields passed through ``extra=`` that the JSON formatter renders
STRUCTURED_FIELDS = ("trace_id", "agent_id", "history_id", "span_id")


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record):
        log_entry = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        for field_name in STRUCTURED_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_entry[field_name] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["trace"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_entry["stack"] = self.formatStack(record.stack_info)
        return json.dumps(log_entry)


def configure_logging(debug: bool = False, json_output: bool = False) -> logging.Logger:
    """
    Configure logging for the package.

    With debug enabled, DEBUG records go to stderr for the whole package.
    Otherwise a NullHandler keeps the library silent unless the host
    application configures logging itself.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if debug:
        if not any(isinstance(h, logging.StreamHandler) for h in package_logger.handlers):
            handler = logging.StreamHandler(sys.stderr)
            if json_output:
                handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
            else:
                handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            package_logger.addHandler(handler)
        package_logger.setLevel(logging.DEBUG)
    elif not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())
    return package_logger
