from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from library_ledger.database import get_db
from library_ledger.schemas.auth import UserLogin, AccountResponse, Token
from library_ledger.services.auth import (
    Account,
    authenticate,
    create_token_for,
    get_current_user
)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """Login as staff (username) or student (name or student ID) and get access token."""
    account = authenticate(db, user_data.username, user_data.password)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password. Please try again."
        )

    access_token = create_token_for(account)
    return Token(
        access_token=access_token,
        token_type="bearer",
        user=AccountResponse.model_validate(account.to_dict())
    )

@router.get("/me", response_model=AccountResponse)
async def get_current_user_info(current_user: Account = Depends(get_current_user)):
    """Get current authenticated account information."""
    return AccountResponse.model_validate(current_user.to_dict())
