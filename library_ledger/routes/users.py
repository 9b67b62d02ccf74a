from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from library_ledger.models.user import StaffUser, Student
from library_ledger.services.auth import Account, get_current_user, require_admin, require_staff
from library_ledger.services.ledger import LibraryLedger, get_ledger
from library_ledger.schemas.user import (
    StudentCreate, StudentResponse,
    StaffUserCreate, StaffUserResponse,
    DelinquencyResponse
)

router = APIRouter(prefix="/api/users", tags=["Accounts"])

@router.get("/students", response_model=List[StudentResponse])
async def list_students(
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    return [StudentResponse.model_validate(s.to_dict()) for s in ledger.students.list()]

@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def add_student(
    data: StudentCreate,
    current_user: StaffUser = Depends(require_admin),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Register a student account. Admins only."""
    student = ledger.add_student(data.full_name, data.student_id, data.password, data.confirm_password)
    return StudentResponse.model_validate(student.to_dict())

@router.post("/staff", response_model=StaffUserResponse, status_code=status.HTTP_201_CREATED)
async def add_staff_user(
    data: StaffUserCreate,
    current_user: StaffUser = Depends(require_admin),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Register a librarian or admin account. Admins only."""
    user = ledger.add_staff_user(data.username, data.role, data.password, data.confirm_password)
    return StaffUserResponse.model_validate(user.to_dict())

@router.get("/students/{student_id}/delinquency", response_model=DelinquencyResponse)
async def get_delinquency(
    student_id: int,
    current_user: Account = Depends(get_current_user),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Overdue and unpaid-fine counts for a student. Students may only see their own."""
    if isinstance(current_user, Student) and current_user.student_id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Students can only view their own status"
        )
    return DelinquencyResponse.model_validate(ledger.get_delinquency_status(student_id).to_dict())
