from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from stock_ledger.dependencies import get_company, get_current_user, get_db_session
from stock_ledger.exceptions import RequestValidationFailed
from stock_ledger.models.company import Company
from stock_ledger.schemas.company import CompanyCreate, CompanyResponse, slugify
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)
router = APIRouter(prefix="/companies", tags=["Companies"], dependencies=[Depends(get_current_user)])


@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED, summary="Create a company")
def create_company(payload: CompanyCreate, db: Session = Depends(get_db_session)):
    """
    Raises:
        RequestValidationFailed: If the symbol or slug is already taken
    """
    slug = payload.slug or slugify(payload.name)

    errors = {}
    if db.query(Company).filter(Company.symbol == payload.symbol).first() is not None:
        errors["symbol"] = ["The symbol has already been taken."]
    if db.query(Company).filter(Company.slug == slug).first() is not None:
        errors["slug"] = ["The slug has already been taken."]
    if errors:
        raise RequestValidationFailed(errors)

    company = Company(name=payload.name.strip(), symbol=payload.symbol, slug=slug)
    db.add(company)
    db.commit()

    logger.info(f"Created company {company.symbol} ({company.id})")
    return company


@router.get("/{company_id}", response_model=CompanyResponse, summary="Show a company")
def show_company(company: Company = Depends(get_company)):
    return company
