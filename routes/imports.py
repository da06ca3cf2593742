"""
Marketplace import API routes.

One upload per request: parse and match for review, then confirm the
approved results into the monthly sales ledger. Operators teach the
matcher through the learn endpoint.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
import structlog

from models.matching import ImportPreviewResponse
from models.ledger import ConfirmRequest, WriteResult
from models.learned_mapping import (
    LearnRequest,
    LearnedMapping,
    LearnedMappingListResponse,
    MappingResetResponse,
)
from parsers.marketplace_adapters import list_adapters
from services.sales_import_service import SalesImportService
from routes.common import handle_error, get_sales_import_service
from exceptions import ListingFileEmptyError

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/channels")
async def list_channels():
    """Marketplace channels that can be imported, with their column layout."""
    return {"data": [adapter.to_dict() for adapter in list_adapters()]}


# ===================
# PARSE / CONFIRM
# ===================

@router.post("/{channel}/parse", response_model=ImportPreviewResponse)
async def parse_import(
    channel: str,
    request: Request,
    report_month: Optional[str] = Query(None, description="YYYY-MM"),
    sale_month: Optional[str] = Query(None, description="Alias of report_month"),
    filename: Optional[str] = Query(None, description="Original filename for raw-body uploads"),
    service: SalesImportService = Depends(get_sales_import_service),
):
    """
    Parse and match one marketplace export.

    Accepts multipart/form-data (file, report_month or sale_month) or the
    raw file as the request body with query parameters. When no month is
    given it is taken from a YYYY.MM pattern in the filename.

    Returns:
        ImportPreviewResponse; nothing is written
    """
    try:
        month = report_month or sale_month
        content_type = request.headers.get("content-type", "")

        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            upload = form.get("file")
            if upload is None or not hasattr(upload, "read"):
                raise ListingFileEmptyError(filename)
            content = await upload.read()
            filename = upload.filename or filename
            month = form.get("report_month") or form.get("sale_month") or month
        else:
            content = await request.body()

        return service.preview(channel, content, report_month=month, filename=filename)

    except Exception as e:
        return handle_error(e)


@router.post("/{channel}/confirm", response_model=WriteResult)
async def confirm_import(
    channel: str,
    data: ConfirmRequest,
    service: SalesImportService = Depends(get_sales_import_service),
):
    """
    Write operator-approved results to the monthly sales ledger.

    Re-confirming the same results for the same month overwrites the
    channel's counts; it never adds to them. Items with learn=true also
    store their title as a learned mapping.

    Returns:
        WriteResult with success, error and skipped counts
    """
    try:
        return service.confirm(channel, data)
    except Exception as e:
        return handle_error(e)


# ===================
# LEARNING
# ===================

@router.post("/{channel}/learn", response_model=LearnedMapping, status_code=201)
async def learn_mapping(
    channel: str,
    data: LearnRequest,
    service: SalesImportService = Depends(get_sales_import_service),
):
    """Store an operator-confirmed title -> product mapping."""
    try:
        return service.learn(channel, data.source_title, data.product_id)
    except Exception as e:
        return handle_error(e)


@router.get("/{channel}/mappings", response_model=LearnedMappingListResponse)
async def list_mappings(
    channel: str,
    service: SalesImportService = Depends(get_sales_import_service),
):
    try:
        mappings = service.list_mappings(channel)
        return LearnedMappingListResponse(
            channel=channel.lower(),
            data=mappings,
            total=len(mappings)
        )
    except Exception as e:
        return handle_error(e)


@router.delete("/{channel}/mappings", response_model=MappingResetResponse)
async def reset_mappings(
    channel: str,
    service: SalesImportService = Depends(get_sales_import_service),
):
    """Delete every learned mapping of a channel."""
    try:
        deleted = service.reset_mappings(channel)
        return MappingResetResponse(channel=channel.lower(), deleted=deleted)
    except Exception as e:
        return handle_error(e)
