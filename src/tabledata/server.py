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

"""FastAPI server exposing BuildData / BuildRow over HTTP."""

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from rich.console import Console

from tabledata import __version__, service
from tabledata.config import EngineConfig

console = Console()


class HealthOutput(BaseModel):
    status: str
    version: str
    config: Dict[str, Any]


def _respond(result: Dict[str, Any]) -> JSONResponse:
    status_code = 422 if service.is_error(result) else 200
    return JSONResponse(content=result, status_code=status_code)


def create_app(config: Optional[EngineConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    engine_config = config or EngineConfig()

    app = FastAPI(
        title="Table Data Engine",
        description="Hierarchical summary tables for survey-response widgets",
        version=__version__,
    )

    @app.get("/health", response_model=HealthOutput)
    def health() -> HealthOutput:
        return HealthOutput(status="ok", version=__version__, config=engine_config.to_dict())

    # Plain `def` endpoints run in the worker threadpool; builds share no state.
    @app.post("/build-data")
    def build_data(payload: Any = Body(...)) -> JSONResponse:
        """Build the full row tree for a widget."""
        return _respond(service.build_data(payload, engine_config))

    @app.post("/build-row")
    def build_row(payload: Any = Body(...)) -> JSONResponse:
        """Build a single row for a pre-grouped slice."""
        return _respond(service.build_row(payload, engine_config))

    return app


def start_server(host: str, port: int, config: Optional[EngineConfig] = None) -> None:
    """Start the FastAPI server with uvicorn."""
    import uvicorn

    app = create_app(config)

    console.print(f"[green]Table data engine:[/green] http://{host}:{port}")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]")

    uvicorn.run(app, host=host, port=port, log_level="warning")
