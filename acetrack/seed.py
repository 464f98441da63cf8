"""Seed the platform super admin if configured and not present."""
import logging

from acetrack.api.deps import get_password_hash
from acetrack.config import settings
from acetrack.models.user import User

logger = logging.getLogger(__name__)

SUPER_ADMIN_FIRST_NAME = "AceTrack"
SUPER_ADMIN_LAST_NAME = "Administrator"


async def seed_super_admin():
    if not settings.super_admin_password:
        logger.info("SUPER_ADMIN_PASSWORD not set; skipping super admin seed")
        return
    existing = await User.find_one(User.email == settings.super_admin_email)
    if existing:
        return
    await User(
        email=settings.super_admin_email,
        hashed_password=get_password_hash(settings.super_admin_password),
        is_super_admin=True,
        first_name=SUPER_ADMIN_FIRST_NAME,
        last_name=SUPER_ADMIN_LAST_NAME,
    ).insert()
    logger.info("Seeded super admin %s", settings.super_admin_email)
