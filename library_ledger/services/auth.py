import logging
from datetime import timedelta
from typing import Optional, Union
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from library_ledger.config import settings
from library_ledger.models.user import StaffUser, Student
from library_ledger.database import get_db
from library_ledger.repositories import StaffRepository, StudentRepository
from library_ledger.utils.timezone import now

logger = logging.getLogger(__name__)

Account = Union[Student, StaffUser]

# HTTP Bearer token - auto_error=False so we can handle errors ourselves
security = HTTPBearer(auto_error=False)

# Password hashing context - using bcrypt with automatic salt generation
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        # If hash is not a valid bcrypt hash, return False
        logger.error(f"Password verification error: {e}. Hash format may be invalid.")
        return False

def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)

def subject_for(account: Account) -> str:
    """Token subject: account kind plus id, since students and staff live in separate tables."""
    if isinstance(account, Student):
        return f"student:{account.student_id}"
    return f"staff:{account.user_id}"

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = now() + expires_delta
    else:
        expire = now() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return encoded_jwt

def create_token_for(account: Account) -> str:
    return create_access_token(data={"sub": subject_for(account), "role": account.role})

def authenticate(db: Session, username: str, password: str) -> Optional[Account]:
    """Staff log in by username; students by full name or student ID. Matching ignores case."""
    staff = StaffRepository(db).find_by_username(username)
    if staff and verify_password(password, staff.password_hash):
        return staff

    students = StudentRepository(db)
    student = students.find_by_name(username) or students.find_by_student_number(username)
    if student and verify_password(password, student.password_hash):
        return student
    return None

def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Account:
    """Get current authenticated student or staff member from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials. Please provide a valid Authorization header with Bearer token.",
        headers={"WWW-Authenticate": "Bearer"},
    )

    # Check if credentials were provided
    if credentials is None:
        auth_header = request.headers.get("Authorization")
        if auth_header:
            logger.warning(f"Authorization header present but invalid format: {auth_header[:50]}")
        else:
            logger.warning("Authorization header missing")
        raise credentials_exception

    try:
        token = credentials.credentials
        if not token:
            raise credentials_exception

        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        subject: str = payload.get("sub")
        if subject is None:
            raise credentials_exception
        kind, _, raw_id = subject.partition(":")
        account_id = int(raw_id)
    except JWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise credentials_exception
    except (ValueError, TypeError) as e:
        logger.warning(f"Token parsing error: {str(e)}")
        raise credentials_exception

    if kind == "student":
        account = db.query(Student).filter(Student.student_id == account_id).first()
    elif kind == "staff":
        account = db.query(StaffUser).filter(StaffUser.user_id == account_id).first()
    else:
        account = None
    if account is None:
        raise credentials_exception
    return account

def require_student(current_user: Account = Depends(get_current_user)) -> Student:
    if not isinstance(current_user, Student):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only students can perform this action"
        )
    return current_user

def require_staff(current_user: Account = Depends(get_current_user)) -> StaffUser:
    if not isinstance(current_user, StaffUser):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only librarians and admins can perform this action"
        )
    return current_user

def require_admin(current_user: StaffUser = Depends(require_staff)) -> StaffUser:
    if current_user.user_role != 'admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can perform this action"
        )
    return current_user
