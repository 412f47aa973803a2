# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""BuildData / BuildRow request handling.

Takes one request (a dict or a JSON string) and returns one response: the
serialized row tree, or ``{"error": message}`` when the call fails on its
configuration. Nothing is retained past the call.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from tabledata.config import EngineConfig
from tabledata.engine import builder
from tabledata.errors import ConfigurationError, TableDataError
from tabledata.schemas import parse_build_data_request, parse_build_row_request

logger = logging.getLogger(__name__)


def _load(request: Any) -> Any:
    if isinstance(request, (bytes, bytearray)):
        try:
            request = request.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigurationError(f"Request is not valid UTF-8: {e}")
    if isinstance(request, str):
        try:
            return json.loads(request)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON request: {e}")
    return request


def error_response(message: str) -> dict[str, str]:
    return {"error": message}


def is_error(response: Any) -> bool:
    """Check whether a response is the error envelope."""
    return isinstance(response, dict) and "error" in response and len(response) == 1


def build_data(request: Any, config: EngineConfig | None = None) -> dict[str, Any]:
    """Handle a BuildData request.

    Args:
        request: ``{calculation_data, widget}`` as a dict or JSON string
        config: Engine configuration (defaults when None)

    Returns:
        The root row as a dict, or ``{"error": message}``
    """
    try:
        parsed = parse_build_data_request(_load(request))
        row = builder.build_data(parsed.calculation_data, parsed.widget, config)
    except TableDataError as e:
        logger.error("BuildData error: %s", e)
        return error_response(str(e))
    return row.to_dict()


def build_row(request: Any, config: EngineConfig | None = None) -> dict[str, Any]:
    """Handle a BuildRow request.

    Args:
        request: ``{breakdown_label, breakdown_tooltip, row_data, widget}``
        config: Engine configuration (defaults when None)

    Returns:
        A single row as a dict (no children), or ``{"error": message}``
    """
    try:
        parsed = parse_build_row_request(_load(request))
        row = builder.build_row(
            parsed.breakdown_label,
            parsed.breakdown_tooltip,
            parsed.row_data,
            parsed.widget,
            config,
        )
    except TableDataError as e:
        logger.error("BuildRow error: %s", e)
        return error_response(str(e))
    return row.to_dict()


def build_data_json(request_json: str, config: EngineConfig | None = None) -> str:
    """JSON-in, JSON-out variant of build_data."""
    return json.dumps(build_data(request_json, config))


def build_row_json(request_json: str, config: EngineConfig | None = None) -> str:
    """JSON-in, JSON-out variant of build_row."""
    return json.dumps(build_row(request_json, config))
