"""
Authentication endpoints: register, login, profile and token refresh.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.db.session import get_db
from event_booking.core.security import create_token_for, get_current_user
from event_booking.models.user import User
from event_booking.schemas.user import UserCreate, UserResponse, UserLogin, Token, LoginResponse
from event_booking.services.auth_service import register_user, authenticate_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user account."""
    user = await register_user(db, user_data)
    return user


@router.post("/login", response_model=LoginResponse)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    user, token = await authenticate_user(db, login_data)
    return LoginResponse(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def profile(user: User = Depends(get_current_user)):
    return user


@router.post("/refresh", response_model=Token)
async def refresh(user: User = Depends(get_current_user)):
    """Issue a new token for a still-valid one."""
    return Token(access_token=create_token_for(user))
