from pydantic import BaseModel, Field
from typing import Optional

class UserLogin(BaseModel):
    username: str = Field(..., min_length=1, description="Staff username, student name or student ID")
    password: str = Field(..., min_length=1)

class AccountResponse(BaseModel):
    id: str
    role: str
    name: Optional[str] = None  # Students
    studentId: Optional[str] = None  # Students
    username: Optional[str] = None  # Staff

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AccountResponse
