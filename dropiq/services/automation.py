import logging
import random
import secrets
import time
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, select

from dropiq.errors import APIError, BadRequest, Conflict, Forbidden, NotFound, TooManyRequests
from dropiq.models import AutomatedTask, AutomationSettings, TaskApproval, TaskBatch, TaskExecution
from dropiq.models.base import utcnow
from dropiq.serializers import (
    approval_to_dict,
    automation_settings_to_dict,
    batch_to_dict,
    execution_to_dict,
    task_to_dict,
)

logger = logging.getLogger(__name__)

EXECUTABLE_STATUSES = ("pending", "approved", "failed")
LOCKED_FOR_UPDATE = ("executing",)
LOCKED_FOR_DELETE = ("executing", "completed")
BASE_GAS = 21000


class TaskExecutionFailed(Exception):
    pass


class SimulatedExecutor:
    """Stand-in for an on-chain signer: returns a plausible receipt without broadcasting."""

    def __init__(self, delay: float = 0):
        self.delay = delay

    def __call__(self, task: AutomatedTask) -> Dict:
        if self.delay:
            time.sleep(self.delay)
        gas_settings = task.gas_settings or {}
        gas_used = random.randint(BASE_GAS, task.estimated_gas or BASE_GAS + 100000)
        return {
            "transactionHash": "0x" + secrets.token_hex(32),
            "blockNumber": random.randint(1, 20_000_000),
            "gasUsed": gas_used,
            "gasPrice": str(gas_settings.get("maxGasPrice", "50")),
            "cost": round(random.random() * 0.01, 6),
            "logs": [f"{task.task_type} {task.function_name or ''}".strip()],
        }


def estimate_gas(task_type: str) -> int:
    return BASE_GAS + random.randint(0, 100000)


class AutomationService:
    """Automated on-chain tasks with an approval gate and batch execution."""

    def __init__(self, executor=None):
        self.executor = executor or SimulatedExecutor()

    # settings

    def get_settings(self, session, user_id: int) -> AutomationSettings:
        settings = session.execute(
            select(AutomationSettings).where(AutomationSettings.user_id == user_id)
        ).scalar_one_or_none()
        if settings is None:
            settings = AutomationSettings(user_id=user_id, is_enabled=False, max_daily_transactions=10)
            session.add(settings)
            session.flush()
        return settings

    def update_settings(self, session, user_id: int, payload) -> Dict:
        settings = self.get_settings(session, user_id)
        for field, value in payload.model_dump(exclude_unset=True, by_alias=False).items():
            if field in ("default_gas_settings", "default_security_settings") and value is not None:
                value = getattr(payload, field).model_dump(by_alias=True)
            setattr(settings, field, value)
        session.commit()
        logger.info("Automation settings updated for user %s (enabled=%s)", user_id, settings.is_enabled)
        return automation_settings_to_dict(settings)

    def _check_security(self, session, user_id: int, contract_address: Optional[str], security: Dict):
        settings = self.get_settings(session, user_id)
        if not settings.is_enabled:
            raise Forbidden("Automation is disabled for this user")
        if not contract_address:
            return
        target = contract_address.lower()
        if target in [c.lower() for c in security.get("blockedContracts") or []]:
            raise BadRequest("Contract is blocked by the task security settings")
        allowed = [c.lower() for c in security.get("allowedContracts") or []]
        if allowed and target not in allowed:
            raise BadRequest("Contract is not in the allowed contracts list")

    # tasks

    def _get_owned(self, session, task_id: int, user_id: int) -> AutomatedTask:
        task = session.get(AutomatedTask, task_id)
        if task is None:
            raise NotFound("Task not found")
        if task.user_id != user_id:
            raise Forbidden("Not allowed to access this task")
        return task

    def create_task(self, session, user_id: int, payload) -> Dict:
        gas_settings = payload.gas_settings.model_dump(by_alias=True)
        security_settings = payload.security_settings.model_dump(by_alias=True)
        self._check_security(session, user_id, payload.contract_address, security_settings)

        task = AutomatedTask(
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            task_type=payload.task_type,
            priority=payload.priority,
            execution_mode=payload.execution_mode,
            status="pending",
            contract_address=payload.contract_address,
            abi=payload.abi,
            function_name=payload.function_name,
            parameters=payload.parameters,
            value=payload.value,
            gas_settings=gas_settings,
            security_settings=security_settings,
            approval_required=payload.approval_required,
            scheduled_at=payload.scheduled_at,
            conditions=payload.conditions,
            tags=payload.tags,
            extra=payload.metadata,
        )
        if payload.execution_mode != "manual":
            task.estimated_gas = estimate_gas(payload.task_type)
        if payload.approval_required:
            task.approvals.append(TaskApproval(user_id=user_id, status="pending"))
        session.add(task)
        session.commit()
        logger.info("Task %s (%s) created for user %s", task.id, task.task_type, user_id)
        return task_to_dict(task, include_history=True)

    def list_tasks(self, session, user_id: int, status=None, task_type=None, execution_mode=None, limit: int = 50, offset: int = 0) -> Dict:
        filters = [AutomatedTask.user_id == user_id]
        if status:
            filters.append(AutomatedTask.status == status)
        if task_type:
            filters.append(AutomatedTask.task_type == task_type)
        if execution_mode:
            filters.append(AutomatedTask.execution_mode == execution_mode)
        total = session.execute(select(func.count(AutomatedTask.id)).where(*filters)).scalar_one()
        tasks = session.execute(
            select(AutomatedTask)
            .where(*filters)
            .order_by(AutomatedTask.created_at.desc(), AutomatedTask.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        items = []
        for task in tasks:
            data = task_to_dict(task)
            latest = max(task.executions, key=lambda e: e.started_at, default=None)
            data["latestExecution"] = execution_to_dict(latest) if latest else None
            data["pendingApprovals"] = [approval_to_dict(a) for a in task.approvals if a.status == "pending"]
            items.append(data)
        return {"tasks": items, "total": total}

    def get_task(self, session, task_id: int, user_id: int) -> Dict:
        return task_to_dict(self._get_owned(session, task_id, user_id), include_history=True)

    def update_task(self, session, task_id: int, user_id: int, payload) -> Dict:
        task = self._get_owned(session, task_id, user_id)
        if task.status in LOCKED_FOR_UPDATE:
            raise Conflict("Cannot update task while executing")
        for field, value in payload.model_dump(exclude_unset=True).items():
            if field in ("gas_settings", "security_settings") and value is not None:
                value = getattr(payload, field).model_dump(by_alias=True)
            setattr(task, field, value)
        session.commit()
        return task_to_dict(task, include_history=True)

    def delete_task(self, session, task_id: int, user_id: int) -> None:
        task = self._get_owned(session, task_id, user_id)
        if task.status in LOCKED_FOR_DELETE:
            raise Conflict("Cannot delete task in current state")
        session.delete(task)
        session.commit()
        logger.info("Task %s deleted by user %s", task_id, user_id)

    def schedule_task(self, session, task_id: int, user_id: int, scheduled_at) -> Dict:
        task = self._get_owned(session, task_id, user_id)
        if task.status in LOCKED_FOR_DELETE:
            raise Conflict("Cannot schedule task in current state")
        task.execution_mode = "scheduled"
        task.scheduled_at = scheduled_at
        if task.estimated_gas is None:
            task.estimated_gas = estimate_gas(task.task_type)
        session.commit()
        return task_to_dict(task)

    def _executions_today(self, session, user_id: int) -> int:
        since = utcnow() - timedelta(days=1)
        return session.execute(
            select(func.count(TaskExecution.id))
            .join(AutomatedTask, TaskExecution.task_id == AutomatedTask.id)
            .where(AutomatedTask.user_id == user_id, TaskExecution.started_at >= since)
        ).scalar_one()

    def _run(self, session, task: AutomatedTask) -> TaskExecution:
        """Execute an owned task, recording the outcome. Raises TaskExecutionFailed on executor errors."""
        if task.status not in EXECUTABLE_STATUSES:
            raise Conflict("Task cannot be executed in current state")
        if task.approval_required and not any(a.status == "approved" for a in task.approvals):
            raise Forbidden("Task requires approval before execution")
        settings = self.get_settings(session, task.user_id)
        if self._executions_today(session, task.user_id) >= settings.max_daily_transactions:
            raise TooManyRequests("Daily transaction limit reached")

        now = utcnow()
        execution = TaskExecution(status="executing", started_at=now)
        task.executions.append(execution)
        task.status = "executing"
        task.executed_at = now
        session.commit()

        try:
            receipt = self.executor(task)
        except Exception as exc:
            logger.error("Task %s failed: %s", task.id, exc)
            execution.status = "failed"
            execution.error = str(exc)
            execution.completed_at = utcnow()
            task.status = "failed"
            session.commit()
            raise TaskExecutionFailed(str(exc)) from exc

        execution.status = "completed"
        execution.transaction_hash = receipt.get("transactionHash")
        execution.block_number = receipt.get("blockNumber")
        execution.gas_used = receipt.get("gasUsed")
        execution.gas_price = receipt.get("gasPrice")
        execution.cost = receipt.get("cost")
        execution.logs = receipt.get("logs") or []
        execution.completed_at = utcnow()
        task.status = "completed"
        task.completed_at = execution.completed_at
        session.commit()
        logger.info("Task %s completed in tx %s", task.id, execution.transaction_hash)
        return execution

    def execute_task(self, session, task_id: int, user_id: int) -> Dict:
        task = self._get_owned(session, task_id, user_id)
        try:
            execution = self._run(session, task)
        except TaskExecutionFailed as exc:
            raise APIError("Task execution failed", details=str(exc), status_code=500)
        return execution_to_dict(execution)

    # approvals

    def respond_to_approval(self, session, approval_id: int, user_id: int, action: str, reason: Optional[str] = None) -> Dict:
        approval = session.get(TaskApproval, approval_id)
        if approval is None:
            raise NotFound("Approval not found")
        if approval.user_id != user_id:
            raise Forbidden(f"Not allowed to {action} this task")
        if approval.status != "pending":
            raise Conflict("Approval has already been answered")
        approval.status = "approved" if action == "approve" else "rejected"
        approval.reason = reason
        approval.responded_at = utcnow()
        approval.task.status = approval.status
        session.commit()
        logger.info("Approval %s %s by user %s", approval.id, approval.status, user_id)
        return approval_to_dict(approval)

    # batches

    def create_batch(self, session, user_id: int, payload) -> Dict:
        if len(set(payload.task_ids)) != len(payload.task_ids):
            raise BadRequest("Duplicate task ids in batch")
        tasks = [self._get_owned(session, task_id, user_id) for task_id in payload.task_ids]
        for task in tasks:
            if task.status in LOCKED_FOR_DELETE:
                raise Conflict(f"Task {task.id} cannot be batched in its current state")
        batch = TaskBatch(
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            execution_order=payload.execution_order,
            status="pending",
        )
        session.add(batch)
        session.flush()
        for order, task in enumerate(tasks):
            task.batch_id = batch.id
            task.batch_order = order
        session.commit()
        session.refresh(batch)
        return batch_to_dict(batch)

    def execute_batch(self, session, batch_id: int, user_id: int) -> Dict:
        """Run a batch in order. Sequential batches stop at the first failure, parallel ones carry on."""
        batch = session.get(TaskBatch, batch_id)
        if batch is None:
            raise NotFound("Batch not found")
        if batch.user_id != user_id:
            raise Forbidden("Not allowed to execute this batch")
        if batch.status == "executing":
            raise Conflict("Batch is already executing")

        batch.status = "executing"
        session.commit()

        executions: List[Dict] = []
        failures: List[Dict] = []
        for task in list(batch.tasks):
            try:
                executions.append(execution_to_dict(self._run(session, task)))
            except (TaskExecutionFailed, APIError) as exc:
                failures.append({"taskId": task.id, "error": str(exc)})
                if batch.execution_order == "sequential":
                    break

        batch.status = "completed" if len(executions) == len(batch.tasks) else "failed"
        batch.completed_at = utcnow()
        session.commit()
        logger.info("Batch %s finished with status %s", batch.id, batch.status)
        return {"batch": batch_to_dict(batch), "executions": executions, "failures": failures}
