from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint

from .base import Base, utcnow


class UserBehaviorEvent(Base):
    __tablename__ = "user_behavior_events"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String(100), nullable=False)
    event_data = Column(JSON, nullable=True)
    duration = Column(Float, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ActivityPattern(Base):
    __tablename__ = "activity_patterns"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    daily_active_minutes = Column(Float, nullable=False, default=0)
    weekly_active_days = Column(Integer, nullable=False, default=0)
    weekend_activity = Column(Float, nullable=False, default=0)
    peak_hours = Column(JSON, nullable=True)
    time_slots = Column(JSON, nullable=True)
    average_session_duration = Column(Float, nullable=False, default=0)
    tasks_per_session = Column(Float, nullable=False, default=0)
    consistency_score = Column(Float, nullable=False, default=0)
    productivity = Column(JSON, nullable=True)
    seasonal = Column(JSON, nullable=True)
    insights = Column(JSON, nullable=True)
    analyzed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PreferenceEvolution(Base):
    __tablename__ = "preference_evolutions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(50), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    change_reason = Column(String(100), nullable=False)
    trigger = Column(String(100), nullable=True)
    confidence = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class PreferenceInsight(Base):
    __tablename__ = "preference_insights"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    insight_type = Column(String(50), nullable=False)
    category = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False, default=0.5)
    actionable = Column(JSON, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RiskProfile(Base):
    __tablename__ = "risk_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    risk_tolerance_score = Column(Integer, nullable=False)
    assessment_data = Column(JSON, nullable=True)
    financial_capacity = Column(String(20), nullable=False)
    loss_acceptance = Column(Integer, nullable=False)
    time_horizon = Column(String(20), nullable=False)
    experience_level = Column(String(20), nullable=False)
    technical_knowledge = Column(Integer, nullable=False)
    security_consciousness = Column(Integer, nullable=False)
    risk_factors = Column(JSON, nullable=True)
    confidence_score = Column(Float, nullable=False, default=0.5)
    last_assessment_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ChainPreference(Base):
    __tablename__ = "chain_preferences"
    __table_args__ = (UniqueConstraint("user_id", "chain_id", name="uq_chain_preference_user_chain"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chain_id = Column(String(50), nullable=False)
    chain_name = Column(String(100), nullable=False)
    preference_score = Column(Float, nullable=False, default=0)
    usage_frequency = Column(Integer, nullable=False, default=0)
    total_gas_spent = Column(Float, nullable=False, default=0)
    success_rate = Column(Float, nullable=False, default=0)
    avg_gas_cost = Column(Float, nullable=False, default=0)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    factors = Column(JSON, nullable=True)
    trend = Column(String(20), nullable=False, default="stable")
    recommendation = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
