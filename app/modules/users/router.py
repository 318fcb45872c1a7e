from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from redis import asyncio as aioredis

from app.core.database import get_db, get_redis
from app.core.dependencies import get_current_user, oauth2_scheme
from app.modules.users.models import User
from app.modules.users import schemas, services

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/register", response_model=schemas.RegistrationResponse)
async def register_user(
    user_data: schemas.UserRegistrationRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user with phone number and password.

    - Phone number must be unique
    - Password is stored as a bcrypt hash
    """
    await services.UserService.register_user(db, user_data)
    return {"success": True, "message": "Welcome to Alkebulan freedom."}


@router.post("/login", response_model=schemas.LoginResponse)
async def login(
    login_data: schemas.UserLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Login with phone number and password.

    Returns the user summary and a JWT access token. Administrators are
    regular accounts holding the admin role.
    """
    user = await services.UserService.authenticate_user(
        db,
        login_data.phone_number,
        login_data.password
    )
    tokens = services.UserService.create_token(user)
    return {"success": True, "user": user, **tokens}


@router.post("/logout", response_model=schemas.MessageResponse)
async def logout(
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    redis: aioredis.Redis = Depends(get_redis)
):
    """Logout current user by revoking the presented token"""
    await services.UserService.logout_user(redis, token)
    return {"success": True, "message": "Successfully logged out"}


@router.get("/me", response_model=schemas.UserProfileResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile"""
    return current_user
