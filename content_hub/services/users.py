import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from content_hub.core.errors import Conflict, InvalidArgument, InvalidOperation, InvalidState, NotFound, Unauthenticated
from content_hub.core.security import generate_password, hash_password, verify_password
from content_hub.models.user import User, ROLE_ADMIN, ROLE_USER

log = logging.getLogger(__name__)

ROLES = (ROLE_ADMIN, ROLE_USER)

ADMIN_FLOOR_MESSAGE = "At least one admin must remain"


def _other_admins_exist(user_id: int):
    # evaluated by the database inside the mutating statement; aliased so it
    # is not correlated to the row being changed
    admins = aliased(User)
    others = (
        select(func.count(admins.id))
        .where(admins.role == ROLE_ADMIN, admins.id != user_id)
        .scalar_subquery()
    )
    return others >= 1


def lock_admins():
    # concurrent demotions queue on these row locks until the first commits;
    # SQLite has no row locks and serializes writers instead
    return select(User.id).where(User.role == ROLE_ADMIN).with_for_update()


async def ensure_admin_will_remain(session: AsyncSession, target: User) -> None:
    if target.role != ROLE_ADMIN:
        return

    await session.execute(lock_admins())
    result = await session.execute(
        select(func.count(User.id)).where(User.role == ROLE_ADMIN, User.id != target.id)
    )
    if result.scalar_one() < 1:
        raise InvalidState(ADMIN_FLOOR_MESSAGE)


async def get_user_or_404(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def authenticate(session: AsyncSession, username: str, password: str) -> User:
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        raise Unauthenticated("Invalid credentials")
    return user


async def create_user(session: AsyncSession, username: str, password: str, role: str = ROLE_USER) -> User:
    if role not in ROLES:
        raise InvalidArgument(f"Unknown role: {role}")

    existing = await session.execute(select(User.id).where(User.username == username))
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Username already taken")

    user = User(username=username, hashed_password=hash_password(password), role=role)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Username already taken")

    log.info("user_created id=%s username=%s role=%s", user.id, user.username, user.role)
    return user


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def set_role(session: AsyncSession, user_id: int, new_role: str) -> User:
    if new_role not in ROLES:
        raise InvalidArgument(f"Unknown role: {new_role}")

    target = await get_user_or_404(session, user_id)
    if target.role == new_role:
        return target

    stmt = update(User).where(User.id == target.id).values(role=new_role)
    if target.role == ROLE_ADMIN:
        await ensure_admin_will_remain(session, target)
        stmt = stmt.where(_other_admins_exist(target.id))

    result = await session.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        await session.rollback()
        raise InvalidState(ADMIN_FLOOR_MESSAGE)
    await session.commit()
    await session.refresh(target)

    log.info("user_role_changed id=%s role=%s", target.id, target.role)
    return target


async def delete_user(session: AsyncSession, requester_id: int, user_id: int) -> int:
    target = await get_user_or_404(session, user_id)

    if target.id == requester_id:
        raise InvalidOperation("You can not delete the account you are signed in with")

    await ensure_admin_will_remain(session, target)

    stmt = delete(User).where(User.id == target.id)
    if target.role == ROLE_ADMIN:
        stmt = stmt.where(_other_admins_exist(target.id))

    result = await session.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        await session.rollback()
        raise InvalidState(ADMIN_FLOOR_MESSAGE)
    await session.commit()

    log.info("user_deleted id=%s username=%s", target.id, target.username)
    return target.id


async def reset_password(session: AsyncSession, user_id: int, new_password: Optional[str] = None) -> tuple[User, str]:
    """
    Set a new password, generating one when none is given. The plaintext is
    handed back so an admin can pass it on to the user.
    """
    target = await get_user_or_404(session, user_id)

    password = new_password or generate_password(12)
    target.hashed_password = hash_password(password)
    await session.commit()

    log.info("user_password_reset id=%s generated=%s", target.id, not new_password)
    return target, password


async def seed_admin(session: AsyncSession, username: str, password: str) -> Optional[User]:
    result = await session.execute(select(func.count(User.id)).where(User.role == ROLE_ADMIN))
    if result.scalar_one() > 0:
        return None

    taken = await session.execute(select(User.id).where(User.username == username))
    if taken.scalar_one_or_none() is not None:
        log.error("admin_seed_skipped username=%s reason=username_taken", username)
        return None

    admin = User(username=username, hashed_password=hash_password(password), role=ROLE_ADMIN)
    session.add(admin)
    await session.commit()
    log.warning("admin_seeded username=%s", username)
    return admin
