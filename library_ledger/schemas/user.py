from pydantic import BaseModel, Field

class StudentCreate(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    student_id: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6)
    confirm_password: str

class StaffUserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    role: str = Field("librarian", pattern="^(librarian|admin)$")
    password: str = Field(..., min_length=6)
    confirm_password: str

class StudentResponse(BaseModel):
    id: str
    name: str
    studentId: str
    role: str

class StaffUserResponse(BaseModel):
    id: str
    username: str
    role: str

class DelinquencyResponse(BaseModel):
    overdueBooksCount: int
    unpaidFinesCount: int
    isDelinquent: bool
