from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .base import Base, utcnow

TIER_VALUES = ("basic", "standard", "premium")
CAMPAIGN_STATUS_VALUES = ("pending", "paid", "approved", "rejected")
PAYMENT_STATUS_VALUES = ("pending", "paid", "failed", "refunded")
ACTIVE_CAMPAIGN_STATUSES = ("pending", "paid", "approved")


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True)
    airdrop_id = Column(Integer, ForeignKey("airdrops.id", ondelete="CASCADE"), nullable=False)
    tier = Column(Enum(*TIER_VALUES, name="campaign_tier", create_constraint=False), nullable=False)
    amount = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="usd")
    stripe_session_id = Column(String(255), unique=True, nullable=True)
    stripe_invoice_id = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String(255), nullable=True)
    status = Column(Enum(*CAMPAIGN_STATUS_VALUES, name="campaign_status", create_constraint=False), nullable=False, default="pending")
    payment_status = Column(Enum(*PAYMENT_STATUS_VALUES, name="campaign_payment_status", create_constraint=False), nullable=False, default="pending")
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(255), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    airdrop = relationship("Airdrop", back_populates="campaigns")
