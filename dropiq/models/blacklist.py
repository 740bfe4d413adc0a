from sqlalchemy import Column, DateTime, Enum, Integer, String, UniqueConstraint

from .base import Base, utcnow

BLACKLIST_TYPES = ("domain", "contract_address")


class BlacklistEntry(Base):
    __tablename__ = "blacklist"
    __table_args__ = (UniqueConstraint("type", "value", name="uq_blacklist_type_value"),)

    id = Column(Integer, primary_key=True)
    type = Column(Enum(*BLACKLIST_TYPES, name="blacklist_type", create_constraint=False), nullable=False)
    value = Column(String(255), nullable=False)
    source = Column(String(100), nullable=False, default="admin_manual")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
