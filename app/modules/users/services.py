from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Optional
import logging

from app.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    mask_phone
)
from app.core.config import settings
from app.core.exceptions import AuthError, ConflictError, StorageError
from app.modules.users.models import User, UserRole
from app.modules.users import schemas

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user management operations"""

    @staticmethod
    async def get_user_by_phone(db: AsyncSession, phone_number: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.phone_number == phone_number))
        return result.scalar_one_or_none()

    @staticmethod
    async def register_user(
        db: AsyncSession,
        user_data: schemas.UserRegistrationRequest,
        role: UserRole = UserRole.USER
    ) -> User:
        """Register a new user"""

        if await UserService.get_user_by_phone(db, user_data.phone_number):
            raise ConflictError("Phone number already exists.")

        user = User(
            phone_number=user_data.phone_number,
            hashed_password=get_password_hash(user_data.password),
            role=role
        )

        try:
            db.add(user)
            await db.commit()
            await db.refresh(user)
        except IntegrityError:
            # Lost a race against a concurrent registration of the same phone
            await db.rollback()
            raise ConflictError("Phone number already exists.")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("User registration failed")
            raise StorageError(str(e)) from e

        logger.info(f"Registered user {user.id} ({mask_phone(user.phone_number)})")
        return user

    @staticmethod
    async def authenticate_user(db: AsyncSession, phone_number: str, password: str) -> User:
        """Authenticate user with phone number and password"""
        user = await UserService.get_user_by_phone(db, phone_number)

        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login for {mask_phone(phone_number)}")
            raise AuthError("Invalid credentials.")

        return user

    @staticmethod
    def create_token(user: User) -> dict:
        """Create an access token for the user"""
        access_token = create_access_token(data={"sub": str(user.id), "role": user.role.value})

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    @staticmethod
    async def logout_user(redis, token: str):
        """Logout user by blacklisting token"""
        await redis.setex(
            f"blacklist:{token}",
            settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "1"
        )

    @staticmethod
    async def ensure_admin(db: AsyncSession) -> Optional[User]:
        """
        Seed the administrator account from ADMIN_PHONE_NUMBER / ADMIN_PASSWORD.

        An existing user with that phone number is promoted to admin; the
        stored password is left as is.
        """
        if not settings.ADMIN_PHONE_NUMBER or not settings.ADMIN_PASSWORD:
            return None

        user = await UserService.get_user_by_phone(db, settings.ADMIN_PHONE_NUMBER)
        if user is None:
            return await UserService.register_user(
                db,
                schemas.UserRegistrationRequest(
                    phone_number=settings.ADMIN_PHONE_NUMBER,
                    password=settings.ADMIN_PASSWORD
                ),
                role=UserRole.ADMIN
            )

        if not user.is_admin:
            user.role = UserRole.ADMIN
            await db.commit()
            await db.refresh(user)
            logger.info(f"Promoted user {user.id} to admin")
        return user
