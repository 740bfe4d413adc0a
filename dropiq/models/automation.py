from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .base import Base, utcnow

TASK_TYPES = (
    "token_approval",
    "contract_interaction",
    "swap",
    "bridge",
    "stake",
    "unstake",
    "claim",
    "delegate",
    "vote",
    "custom",
)
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
EXECUTION_MODES = ("manual", "scheduled", "conditional", "batch")
TASK_STATUSES = ("pending", "approved", "rejected", "executing", "completed", "failed", "cancelled")
EXECUTION_STATUSES = ("executing", "completed", "failed")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
BATCH_STATUSES = ("pending", "executing", "completed", "failed")


class AutomatedTask(Base):
    __tablename__ = "automated_tasks"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    task_type = Column(Enum(*TASK_TYPES, name="task_type", create_constraint=False), nullable=False)
    priority = Column(Enum(*TASK_PRIORITIES, name="task_priority", create_constraint=False), nullable=False, default="medium")
    execution_mode = Column(Enum(*EXECUTION_MODES, name="task_execution_mode", create_constraint=False), nullable=False, default="manual")
    status = Column(Enum(*TASK_STATUSES, name="task_status", create_constraint=False), nullable=False, default="pending")
    contract_address = Column(String(42), nullable=True)
    abi = Column(JSON, nullable=True)
    function_name = Column(String(255), nullable=True)
    parameters = Column(JSON, nullable=True)
    value = Column(String(100), nullable=True)
    gas_settings = Column(JSON, nullable=True)
    security_settings = Column(JSON, nullable=True)
    estimated_gas = Column(Integer, nullable=True)
    approval_required = Column(Boolean, nullable=False, default=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    conditions = Column(JSON, nullable=True)
    batch_id = Column(Integer, ForeignKey("task_batches.id", ondelete="SET NULL"), nullable=True)
    batch_order = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    executions = relationship("TaskExecution", back_populates="task", cascade="all, delete-orphan")
    approvals = relationship("TaskApproval", back_populates="task", cascade="all, delete-orphan")
    batch = relationship("TaskBatch", back_populates="tasks")


class TaskExecution(Base):
    __tablename__ = "task_executions"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("automated_tasks.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(*EXECUTION_STATUSES, name="task_execution_status", create_constraint=False), nullable=False, default="executing")
    transaction_hash = Column(String(66), nullable=True)
    block_number = Column(Integer, nullable=True)
    gas_used = Column(Integer, nullable=True)
    gas_price = Column(String(100), nullable=True)
    cost = Column(Float, nullable=True)
    error = Column(Text, nullable=True)
    logs = Column(JSON, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    task = relationship("AutomatedTask", back_populates="executions")


class TaskApproval(Base):
    __tablename__ = "task_approvals"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("automated_tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(*APPROVAL_STATUSES, name="task_approval_status", create_constraint=False), nullable=False, default="pending")
    reason = Column(Text, nullable=True)
    requested_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    task = relationship("AutomatedTask", back_populates="approvals")


class TaskBatch(Base):
    __tablename__ = "task_batches"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    execution_order = Column(String(20), nullable=False, default="sequential")
    status = Column(Enum(*BATCH_STATUSES, name="task_batch_status", create_constraint=False), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    tasks = relationship("AutomatedTask", back_populates="batch", order_by="AutomatedTask.batch_order")


class AutomationSettings(Base):
    __tablename__ = "automation_settings"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=False)
    max_daily_transactions = Column(Integer, nullable=False, default=10)
    max_daily_spend = Column(Float, nullable=True)
    default_gas_settings = Column(JSON, nullable=True)
    default_security_settings = Column(JSON, nullable=True)
    notification_settings = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
