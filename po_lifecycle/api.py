"""
FastAPI REST API for the purchase-order lifecycle service.
Can be run with: uvicorn po_lifecycle.api:app --reload
"""

import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from po_lifecycle import __version__
from po_lifecycle.errors import NotFoundError, POLifecycleError, ValidationFailedError
from po_lifecycle.main import ServiceContainer, build_container
from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)

METRIC_CATEGORIES = ("calendar", "financial", "operational", "product", "processing")
UPLOAD_CHUNK_BYTES = 1024 * 1024


class StatusChangeRequest(BaseModel):
    status: str
    data: Dict[str, Any] = Field(default_factory=dict)
    user: str = "system"
    notes: Optional[str] = None


class TransitionCheckRequest(BaseModel):
    current: Optional[str] = None
    next: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class BulkOperationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    po_numbers: List[str]
    operation: str = "status"
    status: str
    data: Dict[str, Any] = Field(default_factory=dict)
    user: str = "system"
    notes: Optional[str] = None


class MetricsQuery(BaseModel):
    """Custom metrics request; an empty `categories` list returns every category."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    period: Optional[str] = None
    status: Optional[str] = None
    buyer: Optional[str] = None
    location: Optional[str] = None
    categories: List[str] = Field(default_factory=list)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


router = APIRouter()


# Health and configuration

@router.get("/health")
async def health(container: ServiceContainer = Depends(get_container)):
    return {
        "status": "healthy",
        "version": __version__,
        "pos": container.repository.count(),
        "cache": container.cache.stats(),
        "cacheSweeperRunning": container.cache.running,
    }


@router.get("/config")
async def get_configuration(container: ServiceContainer = Depends(get_container)):
    """Public configuration (no credentials)."""
    config = container.config
    return {
        "llmProvider": config.LLM_PROVIDER,
        "llmModel": config.LLM_MODEL,
        "mockMode": config.LLM_MOCK_MODE,
        "extractionMaxAttempts": config.EXTRACTION_MAX_ATTEMPTS,
        "maxUploadBytes": config.MAX_UPLOAD_BYTES,
        "metricsCacheTtl": config.METRICS_CACHE_TTL,
        "metricsMaxEvents": config.METRICS_MAX_EVENTS,
        "initialStatus": container.registry.get_initial_status().value,
    }


# Purchase orders

@router.get("/pos")
def list_pos(
    status: Optional[str] = None,
    buyer: Optional[str] = None,
    location: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    container: ServiceContainer = Depends(get_container),
):
    pos = container.service.find_pos(status, buyer, location, limit, offset)
    return {"data": pos, "count": len(pos)}


@router.get("/pos/search")
def search_pos(
    query: Optional[str] = None,
    status: Optional[str] = None,
    buyer: Optional[str] = None,
    location: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    container: ServiceContainer = Depends(get_container),
):
    result = container.service.search_pos(query, status, buyer, location, limit, offset)
    return result.model_dump()


@router.get("/pos/buyers")
def list_buyers(container: ServiceContainer = Depends(get_container)):
    return {"data": container.service.get_buyers()}


@router.get("/pos/locations")
def list_locations(container: ServiceContainer = Depends(get_container)):
    return {"data": container.service.get_locations()}


@router.get("/pos/distribution/status")
def status_board(container: ServiceContainer = Depends(get_container)):
    """PO numbers grouped by status."""
    return {"data": container.service.get_status_board()}


@router.get("/pos/distribution/locations")
def location_summary(container: ServiceContainer = Depends(get_container)):
    return {"data": container.service.get_location_summary()}


@router.post("/pos/bulk-operations")
def bulk_operation(request: BulkOperationRequest, container: ServiceContainer = Depends(get_container)):
    """Apply a status change to several POs; each PO reports its own outcome."""
    if request.operation != "status":
        raise ValidationFailedError(f"Invalid operation: {request.operation}", [{"field": "operation", "supported": ["status"]}])

    return container.service.bulk_update_status(
        request.po_numbers,
        request.status,
        data=request.data,
        user=request.user,
        notes=request.notes,
    )


@router.post("/pos/upload")
async def upload_po(
    file: UploadFile = File(...),
    user: str = Query("system"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Extract a purchase order from an uploaded PDF and store it.

    Args:
        file: PO PDF
        user: who uploaded it (recorded in status history)

    Returns:
        The stored PO document
    """
    if not file.filename or Path(file.filename).suffix.lower() != ".pdf":
        raise ValidationFailedError("Only PDF files are accepted", [{"field": "file", "filename": file.filename}])

    max_bytes = container.config.MAX_UPLOAD_BYTES
    size = 0
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".pdf")
    try:
        with tmp:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationFailedError(
                        "File too large",
                        [{"field": "file", "size": size, "maxSize": max_bytes}],
                    )
                tmp.write(chunk)

        po = await container.service.upload_po(tmp.name, user=user)
    finally:
        Path(tmp.name).unlink(missing_ok=True)

    return JSONResponse(content=po, status_code=200 if po.get("isExisting") else 201)


@router.get("/pos/{po_number}")
def get_po(po_number: str, container: ServiceContainer = Depends(get_container)):
    return container.service.get_po(po_number)


@router.post("/pos")
def create_po(data: Dict[str, Any] = Body(...), container: ServiceContainer = Depends(get_container)):
    po = container.service.create_po(data)
    return JSONResponse(content=po, status_code=200 if po.get("isExisting") else 201)


@router.put("/pos/{po_number}")
def update_po(po_number: str, data: Dict[str, Any] = Body(...), container: ServiceContainer = Depends(get_container)):
    return container.service.update_po(po_number, data)


@router.delete("/pos/{po_number}")
def delete_po(po_number: str, container: ServiceContainer = Depends(get_container)):
    return container.service.delete_po(po_number)


@router.post("/pos/{po_number}/status")
def change_status(
    po_number: str,
    request: StatusChangeRequest,
    container: ServiceContainer = Depends(get_container),
):
    return container.service.update_status(
        po_number,
        request.status,
        data=request.data,
        user=request.user,
        notes=request.notes,
    )


# Status workflow

@router.get("/statuses")
def list_statuses(container: ServiceContainer = Depends(get_container)):
    return {
        "data": [
            definition.model_dump(mode="json")
            for definition in container.registry.get_all_definitions().values()
        ]
    }


@router.get("/statuses/initial")
def initial_status(container: ServiceContainer = Depends(get_container)):
    initial = container.registry.get_initial_status()
    return container.registry.get_definition(initial).model_dump(mode="json")


@router.post("/statuses/validate-transition")
def validate_transition(request: TransitionCheckRequest, container: ServiceContainer = Depends(get_container)):
    """Check a transition without applying it. Always 200; `valid` carries the verdict."""
    validation = container.validator.validate_status_transition(request.model_dump())
    return validation.model_dump(mode="json")


@router.get("/statuses/{status}")
def get_status(status: str, container: ServiceContainer = Depends(get_container)):
    definition = container.registry.get_definition(status)
    if definition is None:
        raise NotFoundError(f"Unknown status: {status}", {"status": status})
    return definition.model_dump(mode="json")


@router.get("/statuses/{status}/transitions")
def get_transitions(status: str, container: ServiceContainer = Depends(get_container)):
    transitions = container.validator.get_available_transitions(status)
    return {"status": status, "transitions": [s.value for s in transitions]}


@router.get("/statuses/{status}/requirements")
def get_requirements(status: str, container: ServiceContainer = Depends(get_container)):
    requirements = container.validator.get_status_requirements(status)
    return {
        "status": status,
        "requirements": {name: req.model_dump(mode="json") for name, req in requirements.items()},
    }


# Metrics

@router.get("/metrics")
def get_metrics(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    status: Optional[str] = None,
    buyer: Optional[str] = None,
    location: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    snapshot = container.service.get_metrics(startDate, endDate, status, buyer, location)
    return snapshot.to_response()


def _detailed_response(result: Dict[str, Any], categories: Optional[List[str]] = None) -> Dict[str, Any]:
    snapshot = result["data"].to_response()
    if categories:
        unknown = sorted(set(categories) - set(METRIC_CATEGORIES))
        if unknown:
            raise ValidationFailedError(
                f"Unknown metrics categories: {', '.join(unknown)}",
                [{"field": "categories", "unknown": unknown, "categories": list(METRIC_CATEGORIES)}],
            )
        snapshot = {category: snapshot.get(category, {}) for category in categories}
    return {"data": snapshot, "metadata": result["metadata"]}


@router.get("/metrics/detailed")
def get_detailed_metrics(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    period: Optional[str] = None,
    status: Optional[str] = None,
    buyer: Optional[str] = None,
    location: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    result = container.service.get_detailed_metrics(startDate, endDate, period, status, buyer, location)
    return _detailed_response(result)


@router.post("/metrics")
def query_metrics(query: MetricsQuery, container: ServiceContainer = Depends(get_container)):
    """Metrics for a custom range and filter set, limited to the requested categories."""
    result = container.service.get_detailed_metrics(
        query.start_date,
        query.end_date,
        query.period,
        query.status,
        query.buyer,
        query.location,
    )
    return _detailed_response(result, query.categories)


@router.get("/metrics/{category}")
def get_metric_category(
    category: str,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    if category not in METRIC_CATEGORIES:
        raise NotFoundError(f"Unknown metrics category: {category}", {"categories": list(METRIC_CATEGORIES)})

    snapshot = container.service.get_metrics(startDate, endDate).to_response()
    return {category: snapshot.get(category, {})}


@router.post("/metrics/events/{metric_type}", status_code=201)
def record_metric_event(
    metric_type: str,
    data: Dict[str, Any] = Body(...),
    container: ServiceContainer = Depends(get_container),
):
    return container.recorder.record_metric(metric_type, data)


@router.get("/metrics/events/{metric_type}")
def get_metric_events(metric_type: str, container: ServiceContainer = Depends(get_container)):
    events = container.recorder.get_metrics(metric_type)
    return {"type": metric_type, "count": len(events), "data": events}


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: prebuilt collaborators; built from configuration at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container()
        app.state.container.start()
        logger.info(f"PO Lifecycle API v{__version__} started")

        yield

        app.state.container.stop()
        logger.info("PO Lifecycle API stopped")

    app = FastAPI(
        title="PO Lifecycle API",
        description="Purchase order status workflow, validation and metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container
    app.include_router(router)

    @app.exception_handler(POLifecycleError)
    async def lifecycle_error_handler(request: Request, exc: POLifecycleError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_type} on {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.error_type} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "SYSTEM_ERROR",
                "message": "An internal error occurred",
                "details": None,
            },
        )

    return app


app = create_app()
