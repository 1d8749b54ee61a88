import json
import os
import zipfile
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, HTTPException, status
from fastapi.responses import Response
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from installment_recon.core.config import settings
from installment_recon.core.database import get_db
from installment_recon.schemas.transaction_import import (
    ErrorExportRequest,
    ImportMapping,
    ImportRequest,
    ImportResult,
    RetryRequest,
    RetryResponse,
)
from installment_recon.services.import_service import TransactionImportService
from installment_recon.services.spreadsheet_io import export_errors_csv, read_spreadsheet
from installment_recon.tasks.overdue_tasks import trigger_overdue_check

router = APIRouter()


def get_overdue_trigger():
    return trigger_overdue_check


@router.post("/transactions", response_model=ImportResult)
def import_transactions(
    request: ImportRequest,
    db: Session = Depends(get_db),
    overdue_trigger=Depends(get_overdue_trigger)
):
    """Import transaction rows already read from a spreadsheet"""
    return TransactionImportService.import_transactions(
        db=db,
        rows=request.rows,
        mapping=request.mapping,
        overdue_trigger=overdue_trigger
    )


@router.post("/transactions/upload", response_model=ImportResult)
def upload_transactions(
    file: UploadFile = File(...),
    mapping: str = Form(...),
    sheet_name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    overdue_trigger=Depends(get_overdue_trigger)
):
    """Import transactions from a CSV or XLSX upload"""
    
    # Validate file extension
    file_ext = os.path.splitext(file.filename or "")[1].lower()
    if file_ext not in settings.ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type {file_ext} not allowed"
        )
    
    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File size exceeds maximum allowed"
        )
    
    try:
        column_mapping = ImportMapping.model_validate(json.loads(mapping))
    except (ValueError, SchemaValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid column mapping: {exc}"
        )
    
    try:
        rows = read_spreadsheet(content, file.filename, sheet_name=sheet_name)
    except (ValueError, zipfile.BadZipFile) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not read spreadsheet: {exc}"
        )
    
    return TransactionImportService.import_transactions(
        db=db,
        rows=rows,
        mapping=column_mapping,
        overdue_trigger=overdue_trigger
    )


@router.post("/transactions/retry", response_model=RetryResponse)
def retry_transaction_row(
    request: RetryRequest,
    db: Session = Depends(get_db),
    overdue_trigger=Depends(get_overdue_trigger)
):
    """Re-import one corrected row"""
    return TransactionImportService.import_single_row(
        db=db,
        row=request.row,
        mapping=request.mapping,
        row_number=request.row_number,
        overdue_trigger=overdue_trigger
    )


@router.post("/errors/export")
def export_import_errors(request: ErrorExportRequest):
    """Download failed rows with their error messages as CSV"""
    return Response(
        content=export_errors_csv(request.errors),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="import_errors.csv"'}
    )
