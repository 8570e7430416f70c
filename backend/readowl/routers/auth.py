import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from readowl.core.auth import get_current_user
from readowl.core.config import settings
from readowl.core.security import create_access_token, get_password_hash, verify_password
from readowl.database import get_db
from readowl.models import User, UserRole
from readowl.schemas.user import RegisterRequest, RegisterResponse, Token, UserLogin, UserResponse
from readowl.utils.instrumentation import log_event_best_effort

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

email_adapter = TypeAdapter(EmailStr)
PASSWORD_MIN_LENGTH = 6


def _field_errors(status_code: int = status.HTTP_400_BAD_REQUEST, **errors: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": errors})


@router.post("/register", response_model=RegisterResponse)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an email/password account.

    Validation failures return 400 with ``{"error": {field: message}}``.
    """
    name = (payload.name or "").strip()
    email = (payload.email or "").strip().lower()
    password = payload.password or ""

    missing = {}
    if not name:
        missing["name"] = "Username is required."
    if not email:
        missing["email"] = "Email is required."
    if not password:
        missing["password"] = "Password is required."
    if missing:
        return _field_errors(**missing)

    try:
        email = email_adapter.validate_python(email).lower()
    except ValidationError:
        return _field_errors(email="Invalid email format.")
    if len(password) < PASSWORD_MIN_LENGTH:
        return _field_errors(password=f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")

    if db.query(User.id).filter(User.email == email).first():
        return _field_errors(email="An account with this email already exists.")

    role = UserRole.ADMIN if email in settings.admin_emails else UserRole.USER
    user = User(name=name, email=email, password_hash=get_password_hash(password), role=role)
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        return _field_errors(email="An account with this email already exists.")

    log_event_best_effort("user_registered", user_id=user.id, properties={"role": role.value})
    logger.info("User registered: id=%s role=%s", user.id, role.value)
    return RegisterResponse(id=str(user.id), email=user.email, name=user.name)


@router.post("/auth/login", response_model=Token)
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate with email and password and return a JWT.

    ``remember`` stretches the token lifetime from the idle window to
    JWT_REMEMBER_EXPIRE_DAYS.
    """
    user = db.query(User).filter(User.email == user_data.email.strip().lower()).first()
    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user_data.remember:
        expires = timedelta(days=settings.JWT_REMEMBER_EXPIRE_DAYS)
    else:
        expires = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=expires,
    )
    return Token(access_token=access_token, expires_in=int(expires.total_seconds()))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return UserResponse(
        id=str(user.id),
        name=user.name,
        email=user.email,
        image=user.image,
        role=user.role,
        created_at=user.created_at,
    )
