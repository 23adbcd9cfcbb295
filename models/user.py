from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Enum
from database import Base
from sqlalchemy.sql import func

USER_ROLES = ("user", "admin", "moderator")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(100), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(Enum(*USER_ROLES, name="user_role"), nullable=False, default="user", index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    telegram_id = Column(String(32), nullable=True, unique=True)
    last_login_at = Column(DateTime, nullable=True)
    last_login_ip = Column(String(45), nullable=True)
    ip = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.current_timestamp())
    updated_at = Column(
        DateTime,
        default=func.current_timestamp(),
        onupdate=func.current_timestamp()
    )
