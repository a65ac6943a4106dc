import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from mailtriage.config import TriageConfig
from mailtriage.dependencies import build_pipeline, get_ignore_list, get_scheduler
from mailtriage.exceptions import StoreError
from mailtriage.main import configure_logging
from mailtriage.services.email.filter.ignore_list import IgnoreList
from mailtriage.services.email.pipeline import PassReport, Status
from mailtriage.services.scheduler import TriageScheduler

logger = logging.getLogger(__name__)


# --- Lifecycle Events ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv()
    config = getattr(app.state, "config", None) or TriageConfig()
    config.validate()
    configure_logging(config.log_level)
    app.state.config = config

    pipeline = getattr(app.state, "pipeline", None) or build_pipeline(config)
    app.state.pipeline = pipeline
    app.state.scheduler = TriageScheduler(pipeline, interval_seconds=config.interval_seconds)

    monitoring_task = None
    if getattr(app.state, "autostart", True):
        monitoring_task = asyncio.create_task(app.state.scheduler.start_monitoring())
    try:
        yield
    finally:
        app.state.scheduler.stop()
        if monitoring_task:
            await monitoring_task
        logger.info("Triage worker shut down.")


app = FastAPI(
    title="mailtriage",
    description="Status and control surface for the email triage worker",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Pydantic Models ---
class MessageResultOut(BaseModel):
    message_id: str
    stage: str
    status: str
    reason: str = ""
    sender: str = ""
    subject: str = ""
    label: Optional[str] = None


class PassReportOut(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    query: str = ""
    listed: int = 0
    replied: int = 0
    skipped: int = 0
    failed: int = 0
    checkpoint: Optional[int] = None
    error: Optional[str] = None
    results: List[MessageResultOut] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: PassReport) -> "PassReportOut":
        return cls(
            started_at=report.started_at,
            finished_at=report.finished_at,
            query=report.query,
            listed=report.listed,
            replied=report.count(Status.DONE),
            skipped=report.count(Status.SKIPPED),
            failed=report.count(Status.FAILED),
            checkpoint=report.checkpoint,
            error=report.error,
            results=[
                MessageResultOut(
                    message_id=r.message_id,
                    stage=r.stage.value,
                    status=r.status.value,
                    reason=r.reason,
                    sender=r.sender,
                    subject=r.subject,
                    label=r.decision.label.value if r.decision else None,
                )
                for r in report.results
            ],
        )


class WorkerStatus(BaseModel):
    is_running: bool
    pass_count: int
    interval_seconds: float
    last_pass: Optional[PassReportOut] = None


class IgnorePatternsRequest(BaseModel):
    patterns: List[str] = Field(min_length=1)


class IgnorePatternsResponse(BaseModel):
    patterns: List[str]


# --- Endpoints ---
@app.get("/status", response_model=WorkerStatus)
async def get_status(scheduler: TriageScheduler = Depends(get_scheduler)):
    last = scheduler.last_report
    return WorkerStatus(
        is_running=scheduler.is_running,
        pass_count=scheduler.pass_count,
        interval_seconds=scheduler.interval_seconds,
        last_pass=PassReportOut.from_report(last) if last else None,
    )


@app.post("/passes", response_model=PassReportOut)
async def run_pass(scheduler: TriageScheduler = Depends(get_scheduler)):
    report = await scheduler.run_pass()
    if report is None:
        raise HTTPException(status_code=500, detail="Triage pass failed, see worker logs")
    return PassReportOut.from_report(report)


@app.get("/ignore-patterns", response_model=IgnorePatternsResponse)
def list_ignore_patterns(ignore_list: IgnoreList = Depends(get_ignore_list)):
    return IgnorePatternsResponse(patterns=ignore_list.patterns())


@app.post("/ignore-patterns", response_model=IgnorePatternsResponse)
def add_ignore_patterns(request: IgnorePatternsRequest, ignore_list: IgnoreList = Depends(get_ignore_list)):
    try:
        merged = ignore_list.add_patterns(request.patterns)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return IgnorePatternsResponse(patterns=merged)


if __name__ == "__main__":
    uvicorn.run("mailtriage.api:app", host="0.0.0.0", port=8000)
