from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from stock_ledger.dependencies import get_db_session
from stock_ledger.schemas.auth import LoginRequest, TokenResponse
from stock_ledger.services.auth_service import authenticate_user, issue_api_token

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an API token",
    responses={422: {"description": "Invalid payload or incorrect credentials."}},
)
def login(payload: LoginRequest, db: Session = Depends(get_db_session)):
    """
    Exchange email and password for a bearer token.

    Raises:
        RequestValidationFailed: If the credentials are incorrect
    """
    user = authenticate_user(db, payload.email, payload.password)
    _, plain_text_token = issue_api_token(db, user, payload.token_name)
    return {"token": plain_text_token}
