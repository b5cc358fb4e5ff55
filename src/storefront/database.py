"""Database setup for the app catalog and its reviews."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from .config import settings

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
APP_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

APP_CATEGORIES = (
    "Games",
    "Productivity",
    "Social",
    "Utilities",
    "Entertainment",
    "Education",
    "Finance",
    "Health & Fitness",
)


def _connect_args(url: str) -> dict:
    # FastAPI runs sync endpoints in a thread pool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url, connect_args=_connect_args(settings.database_url), future=True
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


class App(Base):
    """A submitted listing, either a web app or an installable package."""

    __tablename__ = "apps"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    short_description = Column(String(200), nullable=False)
    full_description = Column(Text, nullable=False)
    icon_url = Column(String, nullable=False)
    pwa_url = Column(String, nullable=True)
    apk_url = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    version_name = Column(String(50), nullable=True)
    version_code = Column(Integer, nullable=True)
    category = Column(String(50), index=True, nullable=False)
    screenshots = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default=STATUS_PENDING, index=True, nullable=False)
    developer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    reviews = relationship("Review", back_populates="app", cascade="all, delete-orphan")


class Review(Base):
    """A rating and comment left by one user on one app."""

    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("app_id", "user_id", name="uq_reviews_app_user"),)

    id = Column(Integer, primary_key=True, index=True)
    app_id = Column(
        Integer, ForeignKey("apps.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    app = relationship("App", back_populates="reviews")


def init_db() -> None:
    """Create database tables if they do not exist."""
    from .models import user  # noqa: F401  registers the users table

    Base.metadata.create_all(bind=engine)
