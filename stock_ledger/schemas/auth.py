import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LoginRequest(BaseModel):
    email: str = Field(..., description="Email address of the API user.")
    password: str = Field(..., min_length=1, description="Password of the API user.")
    token_name: Optional[str] = Field(None, max_length=255, description="Label stored with the issued token.")

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("The email field must be a valid email address.")
        return value


class TokenResponse(BaseModel):
    token: str = Field(..., description="Bearer token, shown only once.")
