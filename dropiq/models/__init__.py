from .base import Base
from .user import User, Wallet, ROLE_VALUES
from .airdrop import Airdrop, UserAirdropStatus, AIRDROP_STATUS_VALUES, USER_AIRDROP_STATUS_VALUES
from .campaign import Campaign, TIER_VALUES, CAMPAIGN_STATUS_VALUES, PAYMENT_STATUS_VALUES, ACTIVE_CAMPAIGN_STATUSES
from .blacklist import BlacklistEntry, BLACKLIST_TYPES
from .strategy import (
    Strategy,
    StrategyComment,
    StrategyRating,
    StrategyLike,
    StrategyTip,
    StrategyRequirement,
    StrategyShare,
    RISK_LEVELS,
    DIFFICULTY_LEVELS,
)
from .activity import Activity
from .automation import (
    AutomatedTask,
    TaskExecution,
    TaskApproval,
    TaskBatch,
    AutomationSettings,
    TASK_TYPES,
    TASK_PRIORITIES,
    EXECUTION_MODES,
    TASK_STATUSES,
)
from .preferences import (
    UserBehaviorEvent,
    ActivityPattern,
    PreferenceEvolution,
    PreferenceInsight,
    RiskProfile,
    ChainPreference,
)
from .profile import Achievement, UserAchievement, UserFollow

__all__ = [
    "Base",
    "User",
    "Wallet",
    "ROLE_VALUES",
    "Airdrop",
    "UserAirdropStatus",
    "AIRDROP_STATUS_VALUES",
    "USER_AIRDROP_STATUS_VALUES",
    "Campaign",
    "TIER_VALUES",
    "CAMPAIGN_STATUS_VALUES",
    "PAYMENT_STATUS_VALUES",
    "ACTIVE_CAMPAIGN_STATUSES",
    "BlacklistEntry",
    "BLACKLIST_TYPES",
    "Strategy",
    "StrategyComment",
    "StrategyRating",
    "StrategyLike",
    "StrategyTip",
    "StrategyRequirement",
    "StrategyShare",
    "RISK_LEVELS",
    "DIFFICULTY_LEVELS",
    "Activity",
    "AutomatedTask",
    "TaskExecution",
    "TaskApproval",
    "TaskBatch",
    "AutomationSettings",
    "TASK_TYPES",
    "TASK_PRIORITIES",
    "EXECUTION_MODES",
    "TASK_STATUSES",
    "UserBehaviorEvent",
    "ActivityPattern",
    "PreferenceEvolution",
    "PreferenceInsight",
    "RiskProfile",
    "ChainPreference",
    "Achievement",
    "UserAchievement",
    "UserFollow",
]
