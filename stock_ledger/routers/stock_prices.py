from datetime import date, datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from stock_ledger.dependencies import get_cache_store, get_company, get_current_user, get_db_session
from stock_ledger.exceptions import RequestValidationFailed
from stock_ledger.models.company import Company
from stock_ledger.models.enums import StockPerformancePeriod
from stock_ledger.schemas.stock_price import ComparisonEnvelope, PerformanceEnvelope
from stock_ledger.services.cache_store import CacheStore
from stock_ledger.services.performance_summary import StockPerformanceSummaryBuilder
from stock_ledger.services.stock_comparison import ResolveStockPriceComparison

router = APIRouter(
    prefix="/companies/{company_id}/stock-prices",
    tags=["Stock Prices"],
    dependencies=[Depends(get_current_user)],
)

DATE_FORMAT = "%Y-%m-%d"


def _parse_date(field: str, value: Optional[str], required: bool, errors: dict) -> Optional[date]:
    if value is None or value == "":
        if required:
            errors[field] = [f"The {field} field is required."]
        return None

    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        errors[field] = [f"The {field} field must match the format Y-m-d."]
        return None


def comparison_dates(
    from_: Optional[str] = Query(None, alias="from", description="Start date (YYYY-MM-DD)."),
    to: Optional[str] = Query(None, description="End date (YYYY-MM-DD), on or after from."),
) -> Tuple[date, date]:
    """
    Validate the comparison date range.

    Raises:
        RequestValidationFailed: On missing, malformed or reversed dates
    """
    errors = {}
    from_date = _parse_date("from", from_, True, errors)
    to_date = _parse_date("to", to, True, errors)

    if from_date is not None and to_date is not None and to_date < from_date:
        errors["to"] = ["The to field must be a date after or equal to from."]

    if errors:
        raise RequestValidationFailed(errors)

    return from_date, to_date


def performance_options(request: Request) -> Tuple[Optional[date], Optional[List[StockPerformancePeriod]]]:
    """
    Validate as_of and the requested periods.

    Periods may be repeated (periods[]=1M&periods[]=1Y) or comma separated
    (periods=1M,1Y). No periods means all of them.

    Raises:
        RequestValidationFailed: On a malformed date or an unknown period
    """
    errors = {}
    as_of = _parse_date("as_of", request.query_params.get("as_of"), False, errors)

    values = []
    for raw in request.query_params.getlist("periods[]") + request.query_params.getlist("periods"):
        values.extend(part.strip() for part in raw.split(",") if part.strip())

    periods = []
    for index, value in enumerate(values):
        try:
            periods.append(StockPerformancePeriod(value))
        except ValueError:
            errors[f"periods.{index}"] = [f"The selected periods.{index} is invalid."]

    if errors:
        raise RequestValidationFailed(errors)

    return as_of, periods or None


@router.get(
    "/comparison",
    response_model=ComparisonEnvelope,
    summary="Compare the prices of two dates",
    response_description="Percentage change between the prices traded on both dates.",
)
def compare_stock_prices(
    dates: Tuple[date, date] = Depends(comparison_dates),
    company: Company = Depends(get_company),
    db: Session = Depends(get_db_session),
):
    """
    Percentage change between the prices traded exactly on `from` and `to`.

    Returns:
        dict: {"data": {"change": ..., "formatted": ...}}
    """
    from_date, to_date = dates
    return {"data": ResolveStockPriceComparison(db).handle(company, from_date, to_date)}


@router.get(
    "/performance",
    response_model=PerformanceEnvelope,
    summary="Performance over standard periods",
    response_description="Percentage change per period, newest price against each period's baseline.",
)
def stock_performance(
    options=Depends(performance_options),
    company: Company = Depends(get_company),
    db: Session = Depends(get_db_session),
    cache: CacheStore = Depends(get_cache_store),
):
    """
    Performance summary of a company, as of a date or the newest price.

    Returns:
        dict: {"data": {"periods": [{"period", "change", "formatted"}, ...]}}
    """
    as_of, periods = options
    summary = StockPerformanceSummaryBuilder(db, cache).build(company, as_of=as_of, periods=periods)
    return {"data": summary}
