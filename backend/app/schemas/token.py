from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str
    role: str
    type: str = "access"
    exp: Optional[int] = None
    employee_id: Optional[str] = None
    manager_id: Optional[str] = None


class RefreshRequest(BaseModel):
    # Browsers send the cookie; non-browser clients may post the raw token
    refreshToken: Optional[str] = Field(default=None)
