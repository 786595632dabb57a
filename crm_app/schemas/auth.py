"""Authentication schemas."""
from pydantic import BaseModel, EmailStr, Field

from crm_app.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Email is matched case-insensitively across tenants."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Access and refresh tokens carrying user, tenant and role claims."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class LoginResponse(BaseModel):
    user: UserResponse
    tokens: TokenResponse


class RefreshTokenRequest(BaseModel):
    refresh_token: str
