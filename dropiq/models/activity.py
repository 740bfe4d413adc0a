from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from .base import Base, utcnow


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True)
    type = Column(String(50), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="SET NULL"), nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
