from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Authenticated principal issued by the identity collaborator.

    ``account_type`` is the marketplace role claim ("brand" or "creator");
    ``is_admin`` marks platform operators.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    account_type: Optional[str] = None
    is_admin: bool = False
