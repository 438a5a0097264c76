from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, ForeignKey, DateTime, Index, func

from app.database.connection import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(Text, unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    image_uri = Column(Text, nullable=True)

    notifications = relationship(
        "Notification",
        back_populates="recipient",
        foreign_keys="Notification.recipient_id",
        cascade="all, delete-orphan",
    )
    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_post_id = Column(Integer, nullable=True)
    related_comment_id = Column(Integer, nullable=True)
    related_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    priority = Column(String(20), default="medium", nullable=False)
    category = Column(String(20), default="connection", nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    recipient = relationship("User", back_populates="notifications", foreign_keys=[recipient_id])
    sender = relationship("User", foreign_keys=[sender_id])

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_read_created", "recipient_id", "is_read", "created_at"),
        Index("ix_notifications_recipient_type_created", "recipient_id", "type", "created_at"),
    )


class UserSettings(Base):
    __tablename__ = "user_settings"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    notifications = Column(JSON, nullable=False)
    privacy = Column(JSON, nullable=False)
    communication = Column(JSON, nullable=False)
    display = Column(JSON, nullable=False)
    security = Column(JSON, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="settings")
