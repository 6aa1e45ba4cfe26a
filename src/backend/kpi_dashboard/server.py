from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, Dict, List, Optional, Union

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, RootModel

from .configuration import DashboardConfig, load_config
from .errors import ValidationError
from .models import report_as_dict
from .repository import RecordRepository, build_repository_from_config
from .service import REPORTS, ReportService
from .storage import build_view_store_from_config
from .views import ViewStore

SUMMARY_REPORTS = tuple(report for report in REPORTS if report != "new_user_time")


class PointPayload(BaseModel):
    category: str
    value: Union[int, float]


class SummaryReportResponse(RootModel[Dict[str, List[PointPayload]]]):
    """{segment: [{category, value}, ...]} as drawn by the bar and line charts."""


class TimeReportResponse(RootModel[Dict[str, Dict[str, float]]]):
    """{step: {date: fraction}} for the new user time series."""


class SegmentationsResponse(RootModel[Dict[str, List[str]]]):
    pass


def create_app(
    config: Optional[DashboardConfig] = None,
    repository: Optional[RecordRepository] = None,
    view_store: Optional[ViewStore] = None,
) -> FastAPI:
    """
    Build the dashboard API.

    Collaborators not passed in are built from the configuration: records come
    from the data remote, and the view store is used only when a database URL
    is configured.
    """

    cfg = config or load_config()
    if repository is None:
        repository = build_repository_from_config(cfg)
    if view_store is None:
        view_store = build_view_store_from_config(cfg)
    service = ReportService(cfg, repository, view_store)

    api = FastAPI(title="KPI Dashboard API", version="0.1.0")
    api.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    api.state.service = service

    @api.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @api.get("/data/segmentations", response_model=SegmentationsResponse)
    async def segmentations() -> Dict[str, List[str]]:
        return service.segmentations()

    @api.get("/data/new_user_time", response_model=TimeReportResponse)
    async def new_user_time_endpoint(
        start: Optional[int] = Query(None, description="Inclusive lower bound, seconds since epoch"),
        end: Optional[int] = Query(None, description="Inclusive upper bound, seconds since epoch"),
    ) -> Dict[str, Dict[str, float]]:
        return await _run(service.new_user_time, start, end)

    @api.get("/data/{report}", response_model=SummaryReportResponse)
    async def report_endpoint(
        report: str,
        segmentation: Optional[str] = Query(None, description="OS, Browser, Locale or unset for totals"),
        start: Optional[int] = Query(None, description="Inclusive lower bound, seconds since epoch"),
        end: Optional[int] = Query(None, description="Inclusive upper bound, seconds since epoch"),
    ) -> Dict[str, List[Dict[str, Any]]]:
        if report not in SUMMARY_REPORTS:
            raise HTTPException(status_code=404, detail=f"Unknown report: {report}")
        result = await _run(getattr(service, report), segmentation, start, end)
        return report_as_dict(result)

    return api


async def _run(builder: Callable[..., Any], *args: Any) -> Any:
    try:
        return await asyncio.to_thread(builder, *args)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # fetch failures bubble up to the client
        raise HTTPException(status_code=500, detail=str(exc)) from exc


app = create_app()


def main() -> None:
    uvicorn.run(
        app,
        host=os.getenv("KPI_DASHBOARD_HOST", "127.0.0.1"),
        port=int(os.getenv("KPI_DASHBOARD_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
