from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .base import Base, utcnow

ROLE_VALUES = ("user", "premium", "admin")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    username = Column(String(100), unique=True, nullable=True)
    avatar = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(Enum(*ROLE_VALUES, name="user_role", create_constraint=False), nullable=False, default="user")
    is_guest = Column(Boolean, nullable=False, default=False)
    reputation = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    experience = Column(Integer, nullable=False, default=0)
    preferences = Column(JSON, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    two_factor_secret = Column(String(64), nullable=True)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_backup_codes = Column(JSON, nullable=True)
    last_active = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    wallets = relationship("Wallet", back_populates="user")
    strategies = relationship("Strategy", back_populates="author", foreign_keys="Strategy.author_id", passive_deletes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True)
    address = Column(String(42), unique=True, nullable=False)
    chain = Column(String(50), nullable=False, default="ethereum")
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    nonce = Column(String(64), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="wallets")
