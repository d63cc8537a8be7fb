import os

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from stock_ledger.dependencies import get_clock, get_company, get_current_user, get_db_session
from stock_ledger.exceptions import RequestValidationFailed
from stock_ledger.models.company import Company
from stock_ledger.models.stock_import import StockImport
from stock_ledger.schemas.stock_import import StockImportEnvelope, StockImportListEnvelope
from stock_ledger.services.spreadsheet_reader import CSV_EXTENSIONS, EXCEL_EXTENSIONS
from stock_ledger.services.stock_import_service import create_from_upload, queue_stock_import
from stock_ledger.utils.clock import SystemClock

router = APIRouter(tags=["Stock Imports"], dependencies=[Depends(get_current_user)])

IMPORT_NOT_FOUND_MESSAGE = "Stock import not found."


def _find_import(db: Session, import_id: str) -> StockImport:
    stock_import = db.get(StockImport, import_id)
    if stock_import is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=IMPORT_NOT_FOUND_MESSAGE)
    return stock_import


@router.post(
    "/companies/{company_id}/stock-imports",
    response_model=StockImportEnvelope,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload a price spreadsheet",
    response_description="The queued import; poll GET /stock-imports/{id} for progress.",
)
def upload_stock_import(
    file: UploadFile = File(..., description="CSV or Excel file with date and stock_price columns."),
    company: Company = Depends(get_company),
    db: Session = Depends(get_db_session),
    clock: SystemClock = Depends(get_clock),
):
    """
    Store the uploaded spreadsheet, create the import and queue it.

    Raises:
        RequestValidationFailed: If the file is missing, empty or not a spreadsheet
        ImportDispatchError: If the preparation task cannot be queued (the import is marked failed)
    """
    extension = os.path.splitext(file.filename or "")[1].lower()
    if extension not in CSV_EXTENSIONS | EXCEL_EXTENSIONS:
        raise RequestValidationFailed({"file": ["The file must be a CSV or Excel spreadsheet."]})

    content = file.file.read()
    if not content:
        raise RequestValidationFailed({"file": ["The file must not be empty."]})

    stock_import = create_from_upload(db, company.id, content, file.filename)
    queue_stock_import(db, stock_import, clock=clock)
    db.refresh(stock_import)

    return {"data": stock_import}


@router.get(
    "/companies/{company_id}/stock-imports",
    response_model=StockImportListEnvelope,
    summary="List the imports of a company",
)
def list_stock_imports(company: Company = Depends(get_company), db: Session = Depends(get_db_session)):
    stock_imports = (
        db.query(StockImport)
        .filter(StockImport.company_id == company.id)
        .order_by(StockImport.created_at.desc())
        .all()
    )
    return {"data": stock_imports}


@router.get("/stock-imports/{import_id}", response_model=StockImportEnvelope, summary="Show import progress")
def show_stock_import(import_id: str, db: Session = Depends(get_db_session)):
    return {"data": _find_import(db, import_id)}


@router.post(
    "/stock-imports/{import_id}/queue",
    response_model=StockImportEnvelope,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Re-queue an unfinished import",
)
def requeue_stock_import(
    import_id: str,
    db: Session = Depends(get_db_session),
    clock: SystemClock = Depends(get_clock),
):
    """
    Queue a pending, queued or processing import again.

    Raises:
        HTTPException: 409 when the import already completed or failed
    """
    stock_import = _find_import(db, import_id)

    if not queue_stock_import(db, stock_import, clock=clock):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Stock import has already finished.")

    db.refresh(stock_import)
    return {"data": stock_import}
