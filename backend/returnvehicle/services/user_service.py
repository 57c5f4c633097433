"""
User service: identity upsert, self-service role selection and admin moderation.
"""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.core.config import get_settings
from returnvehicle.core.exceptions import NotFoundError, ValidationError
from returnvehicle.core.logging import get_logger
from returnvehicle.models.status import UserRole, UserStatus
from returnvehicle.models.user import User
from returnvehicle.services.common import like_pattern, paginate

logger = get_logger(__name__)
settings = get_settings()

SELF_SERVICE_ROLES = {UserRole.USER.value, UserRole.DRIVER.value}


async def get_user(db: AsyncSession, uid: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.uid == uid))
    return result.scalar_one_or_none()


async def upsert_identity(db: AsyncSession, identity) -> User:
    """
    Mirror a verified identity into the users table.
    Profile fields follow the identity provider; role and status are local.
    """
    user = await get_user(db, identity.uid)

    if user is None:
        role = UserRole.ADMIN if identity.uid in settings.bootstrap_admin_uids else UserRole.USER
        user = User(
            uid=identity.uid,
            email=identity.email,
            display_name=identity.display_name,
            photo_url=identity.photo_url,
            role=role.value,
            status=UserStatus.APPROVED.value,
        )
        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            # A concurrent first request inserted the same uid
            user = await get_user(db, identity.uid)
        else:
            logger.info("user_registered", uid=identity.uid, role=role.value)
        await db.commit()
        return user

    changed = False
    for field in ("email", "display_name", "photo_url"):
        value = getattr(identity, field)
        if value and getattr(user, field) != value:
            setattr(user, field, value)
            changed = True
    if changed:
        await db.commit()
    return user


async def set_role(
    db: AsyncSession,
    user: User,
    role: str,
    display_name: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> User:
    """
    Choose user/driver after sign-up. A role other than the default that was
    already assigned (driver, admin) is kept as is.
    """
    role = (role or "").strip().lower()
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError("invalid role")

    if user.role != UserRole.USER.value and user.role != role:
        logger.info("role_change_ignored", uid=user.uid, current=user.role, requested=role)
        return user

    user.role = role
    if display_name:
        user.display_name = display_name
    if photo_url:
        user.photo_url = photo_url
    await db.commit()

    logger.info("role_set", uid=user.uid, role=role)
    return user


async def list_users(
    db: AsyncSession,
    query: str = "",
    role: str = "",
    status: str = "",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], int]:
    stmt = select(User)
    if query.strip():
        pattern = like_pattern(query.strip())
        stmt = stmt.where(
            or_(User.email.ilike(pattern, escape="\\"), User.display_name.ilike(pattern, escape="\\"), User.uid == query.strip())
        )
    if role.strip():
        stmt = stmt.where(User.role == role.strip())
    if status.strip():
        stmt = stmt.where(User.status == status.strip())

    return await paginate(db, stmt, User.created_at.desc(), page, limit)


async def admin_update_user(
    db: AsyncSession,
    uid: str,
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
) -> User:
    user = await get_user(db, uid)
    if user is None:
        raise NotFoundError("user not found")

    if role is not None:
        user.role = UserRole(role).value
    if status is not None:
        user.status = UserStatus(status).value
    await db.commit()

    logger.info("user_moderated", uid=uid, role=user.role, status=user.status)
    return user


async def promote_to_admin(db: AsyncSession, uid: Optional[str] = None, email: Optional[str] = None) -> User:
    if not uid and not email:
        raise ValidationError("uid or email is required")

    stmt = select(User).where(User.uid == uid) if uid else select(User).where(User.email == email)
    user = (await db.execute(stmt.limit(1))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("no user with that identifier; sign in once so the account exists")

    user.role = UserRole.ADMIN.value
    await db.commit()
    logger.info("user_promoted_admin", uid=user.uid)
    return user
