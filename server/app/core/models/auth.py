from typing import Literal

from pydantic import BaseModel

UserRole = Literal["Admin", "I.T.", "HR", "User"]


class TokenPayload(BaseModel):
    sub: str  # user_id
    email: str
    role: UserRole
    exp: int


class CurrentUser(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
