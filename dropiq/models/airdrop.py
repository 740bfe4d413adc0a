from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, utcnow

AIRDROP_STATUS_VALUES = ("pending", "approved", "rejected")
USER_AIRDROP_STATUS_VALUES = ("interested", "in_progress", "completed", "claimed", "skipped")


class Airdrop(Base):
    __tablename__ = "airdrops"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, default="Other")
    logo_url = Column(String(500), nullable=True)
    website_url = Column(String(500), nullable=True)
    twitter_url = Column(String(500), nullable=True)
    discord_url = Column(String(500), nullable=True)
    telegram_url = Column(String(500), nullable=True)
    status = Column(Enum(*AIRDROP_STATUS_VALUES, name="airdrop_status", create_constraint=False), nullable=False, default="pending")
    risk_score = Column(Integer, nullable=False, default=0)
    hype_score = Column(Integer, nullable=False, default=0)
    requirements = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    campaigns = relationship("Campaign", back_populates="airdrop", cascade="all, delete-orphan")
    user_statuses = relationship("UserAirdropStatus", back_populates="airdrop", cascade="all, delete-orphan")


class UserAirdropStatus(Base):
    __tablename__ = "user_airdrop_statuses"
    __table_args__ = (UniqueConstraint("user_id", "airdrop_id", name="uq_user_airdrop"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    airdrop_id = Column(Integer, ForeignKey("airdrops.id", ondelete="CASCADE"), nullable=False)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="SET NULL"), nullable=True)
    status = Column(Enum(*USER_AIRDROP_STATUS_VALUES, name="user_airdrop_status", create_constraint=False), nullable=False, default="interested")
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    airdrop = relationship("Airdrop", back_populates="user_statuses")
    wallet = relationship("Wallet")
