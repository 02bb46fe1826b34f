"""FastAPI application exposing cherry runs over HTTP."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..errors import ConfigurationError, RuleEvaluationError
from ..orchestrator import Orchestrator, RunOutcome


class RunRequest(BaseModel):
    path: str
    metric: Optional[str] = None
    owners: List[str] = Field(default_factory=list)


class OccurrenceModel(BaseModel):
    metric_name: str
    text: str
    value: Optional[float] = None
    url: Optional[str] = None
    owners: List[str] = Field(default_factory=list)


class RunResponse(BaseModel):
    totals: Dict[str, float]
    occurrences: List[OccurrenceModel]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing metric runs."""

    app = FastAPI(title="Cherry Service", version=__version__)

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/run", response_model=RunResponse)
    async def run_metrics(
        payload: RunRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RunResponse:
        def _run() -> RunOutcome:
            return orchestrator.run(
                payload.path,
                owners=payload.owners or None,
                metric=payload.metric,
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run)
        return RunResponse(
            totals={name: float(total) for name, total in outcome.totals.items()},
            occurrences=[
                OccurrenceModel(
                    metric_name=occurrence.metric_name,
                    text=occurrence.text,
                    value=occurrence.value,
                    url=occurrence.url,
                    owners=list(occurrence.owners),
                )
                for occurrence in outcome.occurrences
            ],
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        _: Any, exc: ConfigurationError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuleEvaluationError)
    async def rule_error_handler(
        _: Any, exc: RuleEvaluationError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=422, content={"detail": str(exc), "metric": exc.metric_name})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)
