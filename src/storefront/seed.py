"""Bootstrap an admin account and a small demo catalog.

Run with ``python -m storefront.seed``. Both steps are idempotent: the admin
is created (or promoted and given the configured password) only when
``ADMIN_EMAIL`` and ``ADMIN_PASSWORD`` are set, and demo apps are inserted
only into an empty catalog.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .config import Settings, settings
from .credentials import hash_password
from .database import (
    ROLE_ADMIN,
    ROLE_USER,
    STATUS_APPROVED,
    STATUS_PENDING,
    App,
    SessionLocal,
    init_db,
)
from .models.user import User

logger = logging.getLogger(__name__)

DEMO_DEVELOPER_EMAIL = "dev@storefront.local"
DEMO_DEVELOPER_NAME = "Storefront Dev"

DEMO_APPS: List[Dict[str, object]] = [
    {
        "name": "Neon Notes",
        "short_description": "Capture your glowing thoughts.",
        "full_description": "A minimal, dark-themed note taking app for night owls. "
        "Syncs across devices and supports markdown.",
        "icon_url": "https://images.unsplash.com/photo-1517849845537-4d257902454a?w=100&h=100&fit=crop",
        "pwa_url": "https://neon-notes.example.com",
        "category": "Productivity",
        "screenshots": [
            "https://images.unsplash.com/photo-1517849845537-4d257902454a?w=800&q=80",
            "https://images.unsplash.com/photo-1507925921958-8a62f3d1a50d?w=800&q=80",
        ],
        "status": STATUS_APPROVED,
    },
    {
        "name": "CyberChat",
        "short_description": "Encrypted messaging for the future.",
        "full_description": "End-to-end encrypted chat with self-destructing messages "
        "and zero logs.",
        "icon_url": "https://images.unsplash.com/photo-1611162617474-5b21e879e113?w=100&h=100&fit=crop",
        "pwa_url": "https://cyberchat.example.com",
        "category": "Social",
        "screenshots": [
            "https://images.unsplash.com/photo-1611162617474-5b21e879e113?w=800&q=80"
        ],
        "status": STATUS_APPROVED,
    },
    {
        "name": "Retro Racer",
        "short_description": "8-bit racing madness.",
        "full_description": "Race through synthwave tracks with global leaderboards "
        "and controller support.",
        "icon_url": "https://images.unsplash.com/photo-1550745165-9bc0b252726f?w=100&h=100&fit=crop",
        "apk_url": "https://downloads.example.com/retro-racer-1.2.0.apk",
        "file_size": 18_874_368,
        "version_name": "1.2.0",
        "version_code": 12,
        "category": "Games",
        "screenshots": [],
        "status": STATUS_APPROVED,
    },
    {
        "name": "Zen Focus",
        "short_description": "Soundscapes for deep work.",
        "full_description": "Curated ambient sounds with a Pomodoro timer and usage "
        "analytics.",
        "icon_url": "https://images.unsplash.com/photo-1519834785169-98be25ec3f84?w=100&h=100&fit=crop",
        "pwa_url": "https://zen-focus.example.com",
        "category": "Health & Fitness",
        "screenshots": [],
        "status": STATUS_PENDING,
    },
]


def ensure_admin(session: Session, config: Settings = settings) -> Optional[User]:
    """Create or promote the configured admin account."""
    email = (config.admin_email or "").strip()
    password = config.admin_password or ""
    if not email or not password:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")
        return None

    user = session.query(User).filter(User.email == email).first()
    if user is None:
        user = User(
            email=email,
            name=config.admin_name,
            role=ROLE_ADMIN,
            password_hash=hash_password(password),
        )
        session.add(user)
        logger.info("created admin account %s", email)
    else:
        user.role = ROLE_ADMIN
        user.password_hash = hash_password(password)
        logger.info("updated admin account %s", email)
    session.commit()
    session.refresh(user)
    return user


def seed_demo_apps(session: Session) -> int:
    """Insert the demo catalog if no apps exist. Returns the number inserted."""
    if session.query(App.id).first() is not None:
        return 0

    developer = session.query(User).filter(User.email == DEMO_DEVELOPER_EMAIL).first()
    if developer is None:
        # Placeholder credential; this account cannot sign in
        developer = User(
            email=DEMO_DEVELOPER_EMAIL,
            name=DEMO_DEVELOPER_NAME,
            role=ROLE_USER,
            password_hash="!",
        )
        session.add(developer)
        session.flush()

    for entry in DEMO_APPS:
        session.add(App(developer_id=developer.id, **entry))
    session.commit()
    logger.info("seeded %d demo apps", len(DEMO_APPS))
    return len(DEMO_APPS)


def seed_database(config: Settings = settings) -> None:
    session: Session = SessionLocal()
    try:
        ensure_admin(session, config)
        seed_demo_apps(session)
    except Exception:
        session.rollback()
        logger.exception("failed to seed database")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    seed_database()
