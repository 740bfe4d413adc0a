"""Request bodies accepted by the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from dropiq.models import (
    AIRDROP_STATUS_VALUES,
    BLACKLIST_TYPES,
    DIFFICULTY_LEVELS,
    EXECUTION_MODES,
    RISK_LEVELS,
    TASK_PRIORITIES,
    TASK_TYPES,
    USER_AIRDROP_STATUS_VALUES,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialUpdate(CamelModel):
    """Update body where omitted fields are left alone.

    Fields listed in ``required_columns`` back NOT NULL columns, so an explicit
    null for them is rejected instead of cleared.
    """

    required_columns: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_null_required(self):
        nulled = [f for f in self.required_columns if f in self.model_fields_set and getattr(self, f) is None]
        if nulled:
            raise ValueError(f"{', '.join(to_camel(f) for f in nulled)} cannot be null")
        return self


def checksum_address(value: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValueError("Invalid Ethereum address")
    return to_checksum_address(value)


# Auth


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()


class WalletSignatureRequest(CamelModel):
    address: str
    signature: str = Field(min_length=1)
    message: str = Field(min_length=1)

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value):
        return checksum_address(value)


class TwoFactorCodeRequest(CamelModel):
    code: str = Field(min_length=6, max_length=8)


class TwoFactorVerifyRequest(CamelModel):
    temp_token: str = Field(min_length=1)
    code: Optional[str] = None
    backup_code: Optional[str] = None

    @model_validator(mode="after")
    def code_or_backup(self):
        if not self.code and not self.backup_code:
            raise ValueError("Either code or backupCode is required")
        return self


class PasswordRequest(CamelModel):
    password: str = Field(min_length=1)


class LinkEmailRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class UnlinkWalletRequest(CamelModel):
    address: str

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value):
        return checksum_address(value)


# Airdrops


class AirdropStatusRequest(CamelModel):
    status: Literal[USER_AIRDROP_STATUS_VALUES]
    notes: Optional[str] = None
    wallet_id: Optional[int] = None


class AirdropSubmission(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    twitter_url: Optional[str] = None
    discord_url: Optional[str] = None
    telegram_url: Optional[str] = None
    logo_url: Optional[str] = None
    category: Optional[str] = None
    requirements: Optional[Dict[str, Any]] = None
    submitted_by: Optional[str] = None
    submission_notes: Optional[str] = None


class AirdropModeration(PartialUpdate):
    required_columns = ("status", "risk_score", "hype_score", "category")

    status: Optional[Literal[AIRDROP_STATUS_VALUES]] = None
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    hype_score: Optional[int] = Field(default=None, ge=0, le=100)
    requirements: Optional[Dict[str, Any]] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    end_date: Optional[datetime] = None


# Campaigns


class CheckoutRequest(CamelModel):
    airdrop_id: Optional[int] = None
    tier: Optional[str] = None
    submitted_by: Optional[str] = None


class CampaignDecision(CamelModel):
    approved_by: Optional[str] = None
    rejected_by: Optional[str] = None
    notes: Optional[str] = None
    refund: bool = False


# Security


class SecurityAnalysisRequest(CamelModel):
    contract_address: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="after")
    def contract_or_url(self):
        if not self.contract_address and not self.url:
            raise ValueError("Either contractAddress or url must be provided")
        return self


class CheckLinkRequest(CamelModel):
    url: str = Field(min_length=1)


class BlacklistCreateRequest(CamelModel):
    type: Literal[BLACKLIST_TYPES]
    value: str = Field(min_length=1)
    source: str = Field(default="admin_manual", min_length=1)


class BroadcastAlertRequest(CamelModel):
    type: Literal["critical", "high", "medium", "low"]
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    affected_platforms: List[str] = Field(default_factory=list)
    recommended_actions: List[str] = Field(default_factory=list)


class WalletAnalysisRequest(CamelModel):
    address: str
    chain_ids: List[int] = Field(default_factory=lambda: [1])

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value):
        return checksum_address(value)


# Strategies


class StrategyTipInput(CamelModel):
    title: str
    content: str
    order: int = 0


class StrategyRequirementInput(CamelModel):
    type: str
    description: str
    is_required: bool = True


class StrategyCreateRequest(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: str = Field(min_length=1)
    difficulty: Literal[DIFFICULTY_LEVELS] = "beginner"
    risk_level: Literal[RISK_LEVELS] = "medium"
    estimated_time: Optional[int] = Field(default=None, ge=0)
    required_actions: List[str] = Field(default_factory=list)
    potential_reward: Optional[float] = None
    estimated_profit: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    tips: List[StrategyTipInput] = Field(default_factory=list)
    requirements: List[StrategyRequirementInput] = Field(default_factory=list)


class StrategyUpdateRequest(PartialUpdate):
    required_columns = ("title", "description", "content", "category", "difficulty", "risk_level", "is_public")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[Literal[DIFFICULTY_LEVELS]] = None
    risk_level: Optional[Literal[RISK_LEVELS]] = None
    estimated_time: Optional[int] = Field(default=None, ge=0)
    required_actions: Optional[List[str]] = None
    potential_reward: Optional[float] = None
    estimated_profit: Optional[float] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None


class RatingRequest(CamelModel):
    rating: int = Field(ge=1, le=5)
    review: Optional[str] = None


class CommentRequest(CamelModel):
    content: str = Field(min_length=1, max_length=2000)
    parent_id: Optional[int] = None


class ShareRequest(CamelModel):
    platform: str = "link"


class CopySettings(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    risk_adjustment: Literal["conservative", "moderate", "aggressive"] = "moderate"
    timeline_multiplier: float = Field(default=1.0, ge=0.5, le=2.0)
    budget_multiplier: float = Field(default=1.0, ge=0.5, le=3.0)
    include_tips: bool = True
    include_requirements: bool = True
    adapt_to_user: bool = True
    custom_notes: Optional[str] = None


class CopyStrategyRequest(CamelModel):
    original_strategy_id: int
    settings: CopySettings


# Automation


class GasSettings(CamelModel):
    max_gas_price: str = "50"
    max_gas_limit: int = Field(default=500000, gt=0)
    gas_multiplier: float = Field(default=1.1, gt=0)
    priority_fee: Optional[str] = None


class SecuritySettings(CamelModel):
    require_confirmation: bool = True
    max_amount_per_transaction: Optional[str] = None
    max_transactions_per_hour: int = Field(default=10, ge=1)
    allowed_contracts: List[str] = Field(default_factory=list)
    blocked_contracts: List[str] = Field(default_factory=list)
    require_multi_sig: bool = False
    timelock_minutes: int = Field(default=0, ge=0)


class TaskCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    task_type: Literal[TASK_TYPES]
    priority: Literal[TASK_PRIORITIES] = "medium"
    execution_mode: Literal[EXECUTION_MODES] = "manual"
    contract_address: Optional[str] = None
    abi: Optional[List[Dict[str, Any]]] = None
    function_name: Optional[str] = None
    parameters: List[Any] = Field(default_factory=list)
    value: Optional[str] = None
    gas_settings: GasSettings = Field(default_factory=GasSettings)
    security_settings: SecuritySettings = Field(default_factory=SecuritySettings)
    approval_required: bool = True
    scheduled_at: Optional[datetime] = None
    conditions: Optional[List[Dict[str, Any]]] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("contract_address")
    @classmethod
    def normalize_contract(cls, value):
        return checksum_address(value) if value else value


class TaskUpdateRequest(PartialUpdate):
    required_columns = ("name", "priority", "approval_required")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[Literal[TASK_PRIORITIES]] = None
    parameters: Optional[List[Any]] = None
    value: Optional[str] = None
    gas_settings: Optional[GasSettings] = None
    security_settings: Optional[SecuritySettings] = None
    approval_required: Optional[bool] = None
    scheduled_at: Optional[datetime] = None
    conditions: Optional[List[Dict[str, Any]]] = None
    tags: Optional[List[str]] = None


class ScheduleRequest(CamelModel):
    scheduled_at: datetime


class ApprovalDecisionRequest(CamelModel):
    approval_id: int
    action: Literal["approve", "reject"]
    reason: Optional[str] = None


class BatchCreateRequest(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    task_ids: List[int] = Field(min_length=1)
    execution_order: Literal["sequential", "parallel"] = "sequential"


class AutomationSettingsRequest(PartialUpdate):
    required_columns = ("is_enabled", "max_daily_transactions")

    is_enabled: Optional[bool] = None
    max_daily_transactions: Optional[int] = Field(default=None, ge=0)
    max_daily_spend: Optional[float] = Field(default=None, ge=0)
    default_gas_settings: Optional[GasSettings] = None
    default_security_settings: Optional[SecuritySettings] = None
    notification_settings: Optional[Dict[str, Any]] = None


# Preferences and profiles


class BehaviorEventRequest(CamelModel):
    event_type: str = Field(min_length=1)
    event_data: Dict[str, Any] = Field(default_factory=dict)
    duration: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[datetime] = None


class RiskAnswers(CamelModel):
    investment_experience: int = Field(ge=1, le=5)
    risk_capacity: int = Field(ge=1, le=5)
    time_horizon: int = Field(ge=1, le=5)
    technical_knowledge: int = Field(ge=1, le=5)
    security_priority: int = Field(ge=1, le=5)
    loss_tolerance: int = Field(ge=1, le=5)
    diversification_understanding: int = Field(ge=1, le=5)
    volatility_comfort: int = Field(ge=1, le=5)


class RiskAssessmentRequest(CamelModel):
    answers: RiskAnswers


class ChainInteraction(CamelModel):
    gas_spent: float = Field(default=0, ge=0)
    success: bool = False
    interaction_type: Optional[str] = None
    chain_name: Optional[str] = None


class ChainPreferenceUpdate(CamelModel):
    preference_score: float = Field(ge=0, le=100)
    factors: Optional[Any] = None
    chain_name: Optional[str] = None


class ChainActionRequest(CamelModel):
    action: Literal["manual_interaction", "update_preference", "get_recommendations"]
    chain_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    data: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def chain_needed(self):
        if self.action != "get_recommendations" and not self.chain_id:
            raise ValueError(f"chainId is required for {self.action}")
        return self


class ProfileActionRequest(CamelModel):
    action: Literal["analyze_all", "refresh_insights"]


class InsightActionRequest(CamelModel):
    action: Literal["mark_read", "mark_all_read"]
    insight_id: Optional[int] = None

    @model_validator(mode="after")
    def insight_needed(self):
        if self.action == "mark_read" and self.insight_id is None:
            raise ValueError("insightId is required for mark_read")
        return self


class ProfileUpdateRequest(CamelModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    avatar: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    preferences: Optional[Dict[str, Any]] = None


class FollowRequest(CamelModel):
    user_id: int


class AchievementUnlockRequest(CamelModel):
    achievement_key: str = Field(min_length=1)
