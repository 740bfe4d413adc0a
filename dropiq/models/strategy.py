from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, utcnow

RISK_LEVELS = ("low", "medium", "high", "extreme")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced", "expert")


class Strategy(Base):
    __tablename__ = "strategies"

    id = Column(Integer, primary_key=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    difficulty = Column(Enum(*DIFFICULTY_LEVELS, name="strategy_difficulty", create_constraint=False), nullable=False, default="beginner")
    risk_level = Column(Enum(*RISK_LEVELS, name="strategy_risk_level", create_constraint=False), nullable=False, default="medium")
    estimated_time = Column(Integer, nullable=True)
    required_actions = Column(JSON, nullable=True)
    potential_reward = Column(Float, nullable=True)
    estimated_profit = Column(Float, nullable=True)
    success_rate = Column(Float, nullable=True)
    tags = Column(JSON, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    metrics = Column(JSON, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    original_strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    author = relationship("User", back_populates="strategies", foreign_keys=[author_id])
    comments = relationship("StrategyComment", back_populates="strategy", cascade="all, delete-orphan")
    ratings = relationship("StrategyRating", back_populates="strategy", cascade="all, delete-orphan")
    like_rows = relationship("StrategyLike", cascade="all, delete-orphan")
    tips = relationship("StrategyTip", back_populates="strategy", cascade="all, delete-orphan")
    requirements = relationship("StrategyRequirement", back_populates="strategy", cascade="all, delete-orphan")
    share_rows = relationship("StrategyShare", cascade="all, delete-orphan")


class StrategyComment(Base):
    __tablename__ = "strategy_comments"

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    parent_id = Column(Integer, ForeignKey("strategy_comments.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    strategy = relationship("Strategy", back_populates="comments")
    user = relationship("User")


class StrategyRating(Base):
    __tablename__ = "strategy_ratings"
    __table_args__ = (UniqueConstraint("strategy_id", "user_id", name="uq_strategy_rating"),)

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    strategy = relationship("Strategy", back_populates="ratings")


class StrategyLike(Base):
    __tablename__ = "strategy_likes"
    __table_args__ = (UniqueConstraint("strategy_id", "user_id", name="uq_strategy_like"),)

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class StrategyTip(Base):
    __tablename__ = "strategy_tips"

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    order = Column(Integer, nullable=False, default=0)

    strategy = relationship("Strategy", back_populates="tips")


class StrategyRequirement(Base):
    __tablename__ = "strategy_requirements"

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    is_required = Column(Boolean, nullable=False, default=True)

    strategy = relationship("Strategy", back_populates="requirements")


class StrategyShare(Base):
    __tablename__ = "strategy_shares"

    id = Column(Integer, primary_key=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    platform = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
