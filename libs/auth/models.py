from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user decoded from a bearer token.
    """

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "shopper"  # shopper | seller | admin

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
