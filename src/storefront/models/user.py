from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from ..database import ROLE_ADMIN, ROLE_USER, Base


class User(Base):
    """SQLAlchemy model for marketplace accounts."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, default=ROLE_USER, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
