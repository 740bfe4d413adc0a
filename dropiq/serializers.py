from datetime import datetime
from typing import Any, Dict, Optional


def _ts(val: Optional[datetime]) -> Optional[str]:
    return val.isoformat() if val else None


def user_to_dict(model, include_private: bool = False) -> Dict[str, Any]:
    if model is None:
        return {}
    data = {
        "id": model.id,
        "email": model.email,
        "name": model.name,
        "username": model.username,
        "avatar": model.avatar,
        "bio": model.bio,
        "role": model.role,
        "isGuest": bool(model.is_guest),
        "reputation": model.reputation,
        "level": model.level,
        "experience": model.experience,
        "createdAt": _ts(model.created_at),
    }
    if include_private:
        data["preferences"] = model.preferences or {}
        data["twoFactorEnabled"] = bool(model.two_factor_enabled)
        data["wallets"] = [wallet_to_dict(w) for w in getattr(model, "wallets", [])]
        data["lastActive"] = _ts(model.last_active)
    return data


def wallet_to_dict(model) -> Dict[str, Any]:
    if model is None:
        return {}
    return {
        "id": model.id,
        "address": model.address,
        "chain": model.chain,
        "userId": model.user_id,
        "isPrimary": bool(model.is_primary),
        "lastUsedAt": _ts(model.last_used_at),
        "createdAt": _ts(model.created_at),
    }


def airdrop_to_dict(model) -> Dict[str, Any]:
    if model is None:
        return {}
    return {
        "id": model.id,
        "name": model.name,
        "slug": model.slug,
        "description": model.description,
        "category": model.category,
        "logoUrl": model.logo_url,
        "websiteUrl": model.website_url,
        "twitterUrl": model.twitter_url,
        "discordUrl": model.discord_url,
        "telegramUrl": model.telegram_url,
        "status": model.status,
        "riskScore": model.risk_score,
        "hypeScore": model.hype_score,
        "requirements": model.requirements or {},
        "notes": model.notes,
        "metadata": model.extra or {},
        "endDate": _ts(model.end_date),
        "createdAt": _ts(model.created_at),
        "updatedAt": _ts(model.updated_at),
    }


def user_airdrop_status_to_dict(model, include_airdrop: bool = False) -> Dict[str, Any]:
    if model is None:
        return {}
    data = {
        "id": model.id,
        "userId": model.user_id,
        "airdropId": model.airdrop_id,
        "walletId": model.wallet_id,
        "status": model.status,
        "notes": model.notes,
        "startedAt": _ts(model.started_at),
        "completedAt": _ts(model.completed_at),
        "claimedAt": _ts(model.claimed_at),
        "updatedAt": _ts(model.updated_at),
    }
    if include_airdrop:
        data["airdrop"] = airdrop_to_dict(model.airdrop)
        data["wallet"] = wallet_to_dict(model.wallet) if model.wallet else None
    return data


def campaign_to_dict(model, include_airdrop: bool = False) -> Dict[str, Any]:
    if model is None:
        return {}
    data = {
        "id": model.id,
        "airdropId": model.airdrop_id,
        "tier": model.tier,
        "amount": model.amount,
        "currency": model.currency,
        "stripeSessionId": model.stripe_session_id,
        "startDate": _ts(model.start_date),
        "endDate": _ts(model.end_date),
        "submittedBy": model.submitted_by,
        "status": model.status,
        "paymentStatus": model.payment_status,
        "approvedAt": _ts(model.approved_at),
        "approvedBy": model.approved_by,
        "rejectedAt": _ts(model.rejected_at),
        "rejectedBy": model.rejected_by,
        "notes": model.notes,
        "metadata": model.extra or {},
        "createdAt": _ts(model.created_at),
        "updatedAt": _ts(model.updated_at),
    }
    if include_airdrop:
        data["airdrop"] = airdrop_to_dict(model.airdrop)
    return data


def blacklist_entry_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "type": model.type,
        "value": model.value,
        "source": model.source,
        "createdAt": _ts(model.created_at),
    }


def strategy_to_dict(model, include_details: bool = False) -> Dict[str, Any]:
    if model is None:
        return {}
    author = model.author
    data = {
        "id": model.id,
        "authorId": model.author_id,
        "author": {"id": author.id, "name": author.name, "username": author.username, "avatar": author.avatar} if author else None,
        "title": model.title,
        "description": model.description,
        "content": model.content,
        "category": model.category,
        "difficulty": model.difficulty,
        "riskLevel": model.risk_level,
        "estimatedTime": model.estimated_time,
        "requiredActions": model.required_actions or [],
        "potentialReward": model.potential_reward,
        "estimatedProfit": model.estimated_profit,
        "successRate": model.success_rate,
        "tags": model.tags or [],
        "isPublic": bool(model.is_public),
        "isVerified": bool(model.is_verified),
        "views": model.views,
        "likes": model.likes,
        "shares": model.shares,
        "metrics": model.metrics or {},
        "metadata": model.extra or {},
        "originalStrategyId": model.original_strategy_id,
        "createdAt": _ts(model.created_at),
        "updatedAt": _ts(model.updated_at),
    }
    if include_details:
        ratings = [r.rating for r in model.ratings]
        data["averageRating"] = round(sum(ratings) / len(ratings), 2) if ratings else None
        data["ratingCount"] = len(ratings)
        data["tips"] = [
            {"id": tip.id, "title": tip.title, "content": tip.content, "order": tip.order}
            for tip in sorted(model.tips, key=lambda t: t.order)
        ]
        data["requirements"] = [
            {"id": req.id, "type": req.type, "description": req.description, "isRequired": bool(req.is_required)}
            for req in model.requirements
        ]
    return data


def comment_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "strategyId": model.strategy_id,
        "userId": model.user_id,
        "user": {"id": model.user.id, "name": model.user.name, "username": model.user.username} if model.user else None,
        "content": model.content,
        "parentId": model.parent_id,
        "createdAt": _ts(model.created_at),
    }


def rating_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "strategyId": model.strategy_id,
        "userId": model.user_id,
        "rating": model.rating,
        "review": model.review,
        "updatedAt": _ts(model.updated_at),
    }


def task_to_dict(model, include_history: bool = False) -> Dict[str, Any]:
    if model is None:
        return {}
    data = {
        "id": model.id,
        "userId": model.user_id,
        "name": model.name,
        "description": model.description,
        "taskType": model.task_type,
        "priority": model.priority,
        "executionMode": model.execution_mode,
        "status": model.status,
        "contractAddress": model.contract_address,
        "abi": model.abi,
        "functionName": model.function_name,
        "parameters": model.parameters or [],
        "value": model.value,
        "gasSettings": model.gas_settings or {},
        "securitySettings": model.security_settings or {},
        "estimatedGas": model.estimated_gas,
        "approvalRequired": bool(model.approval_required),
        "scheduledAt": _ts(model.scheduled_at),
        "executedAt": _ts(model.executed_at),
        "completedAt": _ts(model.completed_at),
        "conditions": model.conditions,
        "batchId": model.batch_id,
        "batchOrder": model.batch_order,
        "tags": model.tags or [],
        "metadata": model.extra or {},
        "createdAt": _ts(model.created_at),
        "updatedAt": _ts(model.updated_at),
    }
    if include_history:
        data["executions"] = [execution_to_dict(e) for e in model.executions]
        data["approvals"] = [approval_to_dict(a) for a in model.approvals]
    return data


def execution_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "taskId": model.task_id,
        "status": model.status,
        "transactionHash": model.transaction_hash,
        "blockNumber": model.block_number,
        "gasUsed": model.gas_used,
        "gasPrice": model.gas_price,
        "cost": model.cost,
        "error": model.error,
        "logs": model.logs or [],
        "startedAt": _ts(model.started_at),
        "completedAt": _ts(model.completed_at),
    }


def approval_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "taskId": model.task_id,
        "userId": model.user_id,
        "status": model.status,
        "reason": model.reason,
        "requestedAt": _ts(model.requested_at),
        "respondedAt": _ts(model.responded_at),
    }


def batch_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "userId": model.user_id,
        "name": model.name,
        "description": model.description,
        "executionOrder": model.execution_order,
        "status": model.status,
        "tasks": [task_to_dict(t) for t in model.tasks],
        "createdAt": _ts(model.created_at),
        "completedAt": _ts(model.completed_at),
    }


def automation_settings_to_dict(model) -> Dict[str, Any]:
    return {
        "userId": model.user_id,
        "isEnabled": bool(model.is_enabled),
        "maxDailyTransactions": model.max_daily_transactions,
        "maxDailySpend": model.max_daily_spend,
        "defaultGasSettings": model.default_gas_settings or {},
        "defaultSecuritySettings": model.default_security_settings or {},
        "notificationSettings": model.notification_settings or {},
        "updatedAt": _ts(model.updated_at),
    }


def activity_pattern_to_dict(model) -> Dict[str, Any]:
    if model is None:
        return {}
    return {
        "userId": model.user_id,
        "dailyActiveMinutes": model.daily_active_minutes,
        "weeklyActiveDays": model.weekly_active_days,
        "weekendActivity": model.weekend_activity,
        "peakHours": model.peak_hours or [],
        "timeSlots": model.time_slots or {},
        "averageSessionDuration": model.average_session_duration,
        "tasksPerSession": model.tasks_per_session,
        "consistencyScore": model.consistency_score,
        "productivity": model.productivity or {},
        "seasonal": model.seasonal or [],
        "insights": model.insights or [],
        "analyzedAt": _ts(model.analyzed_at),
    }


def behavior_event_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "userId": model.user_id,
        "eventType": model.event_type,
        "eventData": model.event_data or {},
        "duration": model.duration,
        "timestamp": _ts(model.timestamp),
    }


def insight_to_dict(model) -> Dict[str, Any]:
    return {
        "id": model.id,
        "type": model.insight_type,
        "category": model.category,
        "title": model.title,
        "description": model.description,
        "confidence": model.confidence,
        "actionable": model.actionable or [],
        "validUntil": _ts(model.valid_until),
        "isRead": bool(model.is_read),
        "createdAt": _ts(model.created_at),
    }


def risk_profile_to_dict(model) -> Dict[str, Any]:
    return {
        "riskToleranceScore": model.risk_tolerance_score,
        "financialCapacity": model.financial_capacity,
        "lossAcceptance": model.loss_acceptance,
        "timeHorizon": model.time_horizon,
        "experienceLevel": model.experience_level,
        "technicalKnowledge": model.technical_knowledge,
        "securityConsciousness": model.security_consciousness,
        "riskFactors": model.risk_factors or [],
        "confidenceScore": model.confidence_score,
        "lastAssessmentAt": _ts(model.last_assessment_at),
    }


def chain_preference_to_dict(model) -> Dict[str, Any]:
    return {
        "chainId": model.chain_id,
        "chainName": model.chain_name,
        "preferenceScore": model.preference_score,
        "usageFrequency": model.usage_frequency,
        "totalGasSpent": model.total_gas_spent,
        "successRate": model.success_rate,
        "avgGasCost": model.avg_gas_cost,
        "lastUsedAt": _ts(model.last_used_at),
        "preferenceFactors": model.factors or [],
        "trend": model.trend,
        "recommendation": model.recommendation or "",
    }


def achievement_to_dict(model, unlocked_at: Optional[datetime] = None) -> Dict[str, Any]:
    data = {
        "id": model.id,
        "key": model.key,
        "name": model.name,
        "description": model.description,
        "icon": model.icon,
        "points": model.points,
        "category": model.category,
        "rarity": model.rarity,
    }
    if unlocked_at is not None:
        data["unlockedAt"] = _ts(unlocked_at)
    return data
