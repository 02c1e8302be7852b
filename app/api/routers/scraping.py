"""
app/api/routers/scraping.py

Scrape submission, task status and refresh scheduler endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.scheduler.refresh import RefreshScheduler
from app.schemas.scraping import (
    ProductScrapeRequest,
    RefreshSchedulerStatusResponse,
    ScrapeErrorDetail,
    ScrapeTaskAcceptedResponse,
    ScrapeTaskStatusResponse,
)
from app.scraping.errors import (
    AlreadyInFlightError,
    InvalidFormatError,
    InvalidInputError,
    ProviderError,
    ScrapeError,
)
from app.scraping.product_orchestrator import ProductScrapeOrchestrator
from app.scraping.registry import ScrapeTask, TaskStatus
from app.scraping.review_orchestrator import ReviewScrapeOrchestrator
from app.services.scraping_runtime import (
    get_product_orchestrator,
    get_refresh_scheduler,
    get_review_orchestrator,
)

router = APIRouter(prefix="/scraping", tags=["scraping"])


@router.post(
    "/products",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ScrapeTaskAcceptedResponse,
)
def start_product_scraping(
    payload: ProductScrapeRequest,
    orchestrator: ProductScrapeOrchestrator = Depends(get_product_orchestrator),
) -> ScrapeTaskAcceptedResponse:
    """
    Submit ASINs for product scraping. Returns immediately with the task id.
    """

    try:
        task_id = orchestrator.start_scraping(payload.asins)
    except ScrapeError as exc:
        raise _to_http_error(exc) from exc
    return ScrapeTaskAcceptedResponse(task_id=task_id, status=TaskStatus.PENDING)


@router.get("/products/tasks/{task_id}", response_model=ScrapeTaskStatusResponse)
def get_product_task(
    task_id: str,
    orchestrator: ProductScrapeOrchestrator = Depends(get_product_orchestrator),
) -> ScrapeTaskStatusResponse:
    return _task_or_404(orchestrator.get_task_status(task_id), task_id)


@router.post(
    "/reviews/{asin}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ScrapeTaskAcceptedResponse,
)
def start_review_scraping(
    asin: str,
    orchestrator: ReviewScrapeOrchestrator = Depends(get_review_orchestrator),
) -> ScrapeTaskAcceptedResponse:
    try:
        task_id = orchestrator.start_scraping(asin)
    except ScrapeError as exc:
        raise _to_http_error(exc) from exc
    return ScrapeTaskAcceptedResponse(task_id=task_id, status=TaskStatus.PENDING)


@router.get("/reviews/tasks/{task_id}", response_model=ScrapeTaskStatusResponse)
def get_review_task(
    task_id: str,
    orchestrator: ReviewScrapeOrchestrator = Depends(get_review_orchestrator),
) -> ScrapeTaskStatusResponse:
    return _task_or_404(orchestrator.get_task_status(task_id), task_id)


@router.get("/refresh", response_model=RefreshSchedulerStatusResponse)
def get_refresh_status(
    scheduler: RefreshScheduler = Depends(get_refresh_scheduler),
) -> RefreshSchedulerStatusResponse:
    return _refresh_status(scheduler)


@router.post("/refresh/start", response_model=RefreshSchedulerStatusResponse)
def start_refresh(
    scheduler: RefreshScheduler = Depends(get_refresh_scheduler),
) -> RefreshSchedulerStatusResponse:
    scheduler.start()
    return _refresh_status(scheduler)


@router.post("/refresh/stop", response_model=RefreshSchedulerStatusResponse)
def stop_refresh(
    scheduler: RefreshScheduler = Depends(get_refresh_scheduler),
) -> RefreshSchedulerStatusResponse:
    scheduler.stop()
    return _refresh_status(scheduler)


def _to_http_error(exc: ScrapeError) -> HTTPException:
    if isinstance(exc, AlreadyInFlightError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (InvalidInputError, InvalidFormatError)):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ProviderError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    detail = ScrapeErrorDetail(message=str(exc), identifiers=getattr(exc, "identifiers", []))
    return HTTPException(status_code=status_code, detail=detail.model_dump())


def _task_or_404(task: ScrapeTask | None, task_id: str) -> ScrapeTaskStatusResponse:
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scrape task not found: {task_id}",
        )
    return ScrapeTaskStatusResponse(
        task_id=task.id,
        subject_ids=task.subject_ids,
        status=task.status,
        progress=task.progress,
        error=task.error,
        started_at=task.started_at,
        completed_at=task.completed_at,
    )


def _refresh_status(scheduler: RefreshScheduler) -> RefreshSchedulerStatusResponse:
    return RefreshSchedulerStatusResponse(
        running=scheduler.is_running,
        retry_pending=scheduler.retry_pending,
        batch_size=scheduler.settings.batch_size,
        check_interval_seconds=scheduler.settings.check_interval_seconds,
        retry_delay_seconds=scheduler.settings.retry_delay_seconds,
    )
