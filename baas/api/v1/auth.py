import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session, select

from baas.api.deps import get_current_user
from baas.core.config import get_settings
from baas.core.rate_limit import client_ip
from baas.core.security import create_access_token, get_password_hash, verify_password
from baas.db.session import get_session
from baas.models.base import utcnow
from baas.models.user import User
from baas.schemas.auth import TokenResponse, UserLogin, UserRegister, UserResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    session: Session = Depends(get_session)
):
    """Register a dashboard user."""
    existing_user = session.exec(select(User).where(User.email == user_data.email)).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        is_active=True
    )

    session.add(user)
    session.commit()
    session.refresh(user)

    logger.info(f"New user registered: {user.email}")

    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    user_data: UserLogin,
    request: Request,
    session: Session = Depends(get_session)
):
    """Exchange email and password for a dashboard bearer token."""
    user = session.exec(select(User).where(User.email == user_data.email)).first()
    if not user or not verify_password(user_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for {user_data.email} from {client_ip(request)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled"
        )

    access_token = create_access_token({"sub": user.id, "email": user.email})

    user.last_login = utcnow()
    session.add(user)
    session.commit()

    logger.info(f"User {user.email} logged in from {client_ip(request)}")

    return TokenResponse(
        access_token=access_token,
        expires_in=get_settings().ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get the signed-in dashboard user."""
    return UserResponse.model_validate(current_user)
