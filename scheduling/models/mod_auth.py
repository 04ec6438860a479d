from enum import Enum
from pydantic import BaseModel, EmailStr
from typing import Optional

class UserRole(str, Enum):
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    TRAINER = "trainer"
    TRAINEE = "trainee"

class CallerContext(BaseModel):
    """Identity of the caller, handed explicitly to every scheduling operation."""
    id: str
    role: UserRole
    email: Optional[EmailStr] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

class TokenData(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: UserRole = UserRole.TRAINEE
    exp: Optional[float] = None
