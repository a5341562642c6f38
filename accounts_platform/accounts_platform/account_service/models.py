from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Index, JSON, LargeBinary
from datetime import datetime
from .db import Base
from sqlalchemy.orm import relationship
import uuid


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    # Stored lowercased; the unique index backs up the availability check
    email = Column(String(254), unique=True, index=True, nullable=False)
    # No unique constraint: concurrent registrations can race on usernames
    username = Column(String(32), index=True, nullable=True)
    picture = Column(String(2083), nullable=True)
    # NULL salt and hash mark a federated-only account
    salt = Column(LargeBinary, nullable=True)
    password_hash = Column(String(255), nullable=True)
    auth_provider = Column(String(32), nullable=True)

    token = relationship(
        "Token",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_federated_only(self) -> bool:
        return not self.password_hash


class Token(Base):
    __tablename__ = "tokens"
    access_token = Column(String(64), primary_key=True)
    rel_user = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        unique=True,
        nullable=False,
    )
    expire_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="token")


AUTH_EVENT_TYPES = (
    "register",
    "login_success",
    "login_failure",
    "federated_login",
    "profile_update",
    "logout",
    "profile_delete",
    "delete_failure",
)


class AuthEvent(Base):
    __tablename__ = "auth_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Plain column so the trail outlives deleted accounts
    user_id = Column(Integer, nullable=True)
    email = Column(String, nullable=True)
    event_type = Column(Enum(*AUTH_EVENT_TYPES, name="auth_event_type"), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_auth_events_email', 'email'),
        Index('ix_auth_events_timestamp', 'timestamp'),
        Index('ix_auth_events_event_type', 'event_type'),
    )

    def to_dict(self) -> dict:
        """
        Serialize AuthEvent to dictionary for API responses.

        Returns:
            Dictionary with all event fields, UUIDs as strings,
            datetimes in ISO 8601 format
        """
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "email": self.email,
            "event_type": self.event_type,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "metadata": self.event_metadata or {}
        }
