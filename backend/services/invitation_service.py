"""
Admin invitations.

An existing admin invites an email address; the invitee registers with the
token before it expires (ADMIN_INVITATION_TTL_HOURS). A token works once.
"""
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import AdminInvitation, User
from domain.enums import UserRole, UserStatus
from domain.errors import ValidationError
from services import auth_service
from utils.validators import normalize_email

logger = logging.getLogger(__name__)


async def _open_invitation_for(db: AsyncSession, email: str) -> AdminInvitation | None:
    res = await db.execute(
        select(AdminInvitation).where(
            AdminInvitation.email == email,
            AdminInvitation.used.is_(False),
            AdminInvitation.expires_at > datetime.utcnow(),
        )
    )
    return res.scalars().first()


async def create_invitation(db: AsyncSession, *, admin: User, email: str) -> AdminInvitation:
    email = normalize_email(email)
    if await auth_service.get_user_by_email(db, email):
        raise ValidationError("User with this email already exists", field="email")
    if await _open_invitation_for(db, email):
        raise ValidationError("An active invitation already exists for this email", field="email")

    invitation = AdminInvitation(
        token=secrets.token_hex(32),
        email=email,
        creator=admin,
        expires_at=datetime.utcnow() + timedelta(hours=settings.admin_invitation_ttl_hours),
    )
    db.add(invitation)
    await db.flush()
    # No e-mail provider is configured; the inviting admin shares the token.
    logger.info(f"Admin invitation for {email} created by {admin.email}")
    return invitation


async def list_invitations(db: AsyncSession) -> list[AdminInvitation]:
    res = await db.execute(
        select(AdminInvitation)
        .order_by(AdminInvitation.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def register_admin(
    db: AsyncSession,
    *,
    token: str,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str,
) -> User:
    """Create an active admin from an open invitation and consume it (flush only)."""
    res = await db.execute(select(AdminInvitation).where(AdminInvitation.token == token))
    invitation = res.scalar_one_or_none()
    if not invitation or not invitation.is_open():
        raise ValidationError("Invalid or expired invitation token", field="token")
    if normalize_email(email) != invitation.email:
        raise ValidationError("Email does not match invitation", field="email")

    user = await auth_service.create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        phone=phone,
        role=UserRole.ADMIN.value,
        status=UserStatus.ACTIVE.value,
    )
    invitation.used = True
    invitation.used_at = datetime.utcnow()
    invitation.registered_user = user
    await db.flush()
    logger.info(f"Admin {user.email} registered from invitation {invitation.id}")
    return user
