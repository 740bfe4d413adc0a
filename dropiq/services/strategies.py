import logging
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select

from dropiq.errors import Forbidden, NotFound
from dropiq.models import (
    Activity,
    Strategy,
    StrategyComment,
    StrategyLike,
    StrategyRating,
    StrategyRequirement,
    StrategyShare,
    StrategyTip,
    User,
)
from dropiq.models.strategy import RISK_LEVELS
from dropiq.serializers import comment_to_dict, rating_to_dict, strategy_to_dict

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "createdAt": Strategy.created_at,
    "updatedAt": Strategy.updated_at,
    "views": Strategy.views,
    "likes": Strategy.likes,
    "shares": Strategy.shares,
    "title": Strategy.title,
    "successRate": Strategy.success_rate,
    "estimatedProfit": Strategy.estimated_profit,
}

RISK_ADJUSTMENT_NOTES = {
    "conservative": [
        "Reduced exposure to high-risk elements",
        "Added safety checks before each step",
        "Extended timeline for careful execution",
        "Lower budget requirements",
    ],
    "aggressive": [
        "Increased exposure to high-reward opportunities",
        "Streamlined execution for faster results",
        "Higher budget allocation",
        "Closer monitoring required",
    ],
}


def adjust_risk_level(risk_level: str, adjustment: str) -> str:
    """Shift a risk level one step down (conservative) or up (aggressive), clamped to the scale."""
    index = RISK_LEVELS.index(risk_level) if risk_level in RISK_LEVELS else 1
    if adjustment == "conservative":
        return RISK_LEVELS[max(0, index - 1)]
    if adjustment == "aggressive":
        return RISK_LEVELS[min(len(RISK_LEVELS) - 1, index + 1)]
    return risk_level


def personalize_content(content: str, settings, risk_level: str) -> str:
    sections: List[str] = [
        "# Personalized Strategy Copy\n\n"
        f"**Original Risk Level:** {risk_level}\n"
        f"**Adjusted Risk Level:** {adjust_risk_level(risk_level, settings.risk_adjustment)}\n"
        f"**Timeline Multiplier:** {settings.timeline_multiplier}x\n"
        f"**Budget Multiplier:** {settings.budget_multiplier}x\n"
    ]
    if settings.custom_notes:
        sections.append(f"## Custom Notes\n\n{settings.custom_notes}\n")
    if settings.risk_adjustment in RISK_ADJUSTMENT_NOTES:
        bullets = "\n".join(f"- {line}" for line in RISK_ADJUSTMENT_NOTES[settings.risk_adjustment])
        sections.append(
            f"## Risk Adjustment Notes\n\nThis strategy has been modified to be **{settings.risk_adjustment}**:\n{bullets}\n"
        )
    if settings.timeline_multiplier != 1:
        direction = "Extended" if settings.timeline_multiplier > 1 else "Compressed"
        sections.append(
            "## Timeline Adjustment\n\n"
            f"{direction} to **{round(settings.timeline_multiplier * 100)}%** of the original timeline.\n"
        )
    if settings.budget_multiplier != 1:
        direction = "Increased" if settings.budget_multiplier > 1 else "Reduced"
        sections.append(
            "## Budget Adjustment\n\n"
            f"{direction} to **{round(settings.budget_multiplier * 100)}%** of the original budget.\n"
        )
    if settings.adapt_to_user:
        sections.append(
            "## Personalized for Your Profile\n\n"
            "Adapted to your success history, preferred networks, risk tolerance and available time.\n"
        )
    sections.append(f"## Original Strategy Content\n\n{content}")
    return "\n---\n\n".join(sections)


class StrategyService:
    """Community strategies: authoring, engagement and personalized copies."""

    def _get(self, session, strategy_id: int) -> Strategy:
        strategy = session.get(Strategy, strategy_id)
        if strategy is None:
            raise NotFound("Strategy not found")
        return strategy

    def _get_owned(self, session, strategy_id: int, user_id: int) -> Strategy:
        strategy = self._get(session, strategy_id)
        if strategy.author_id != user_id:
            raise Forbidden("Only the author can modify this strategy")
        return strategy

    def _visible(self, session, strategy_id: int, viewer_id: Optional[int]) -> Strategy:
        strategy = self._get(session, strategy_id)
        if not strategy.is_public and strategy.author_id != viewer_id:
            raise NotFound("Strategy not found")
        return strategy

    def create_strategy(self, session, author_id: int, payload) -> Dict:
        data = payload.model_dump(exclude={"tips", "requirements"})
        strategy = Strategy(author_id=author_id, metrics={"copies": 0}, **data)
        for tip in payload.tips:
            strategy.tips.append(StrategyTip(title=tip.title, content=tip.content, order=tip.order))
        for req in payload.requirements:
            strategy.requirements.append(
                StrategyRequirement(type=req.type, description=req.description, is_required=req.is_required)
            )
        session.add(strategy)
        session.flush()
        session.add(Activity(type="strategy_created", user_id=author_id, strategy_id=strategy.id, extra={"title": strategy.title}))
        session.commit()
        logger.info("Strategy %s created by user %s", strategy.id, author_id)
        return strategy_to_dict(strategy, include_details=True)

    def list_strategies(
        self,
        session,
        viewer_id: Optional[int] = None,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        risk_level: Optional[str] = None,
        author_id: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        limit: int = 20,
        offset: int = 0,
    ) -> Dict:
        filters = []
        if category:
            filters.append(Strategy.category == category)
        if difficulty:
            filters.append(Strategy.difficulty == difficulty)
        if risk_level:
            filters.append(Strategy.risk_level == risk_level)
        if author_id is not None:
            filters.append(Strategy.author_id == author_id)
        if author_id is None or author_id != viewer_id:
            filters.append(Strategy.is_public.is_(True))
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(func.lower(Strategy.title).like(pattern), func.lower(Strategy.description).like(pattern)))

        column = SORTABLE_COLUMNS.get(sort_by, Strategy.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        total = session.execute(select(func.count(Strategy.id)).where(*filters)).scalar_one()
        strategies = session.execute(
            select(Strategy).where(*filters).order_by(order, Strategy.id.desc()).offset(offset).limit(limit)
        ).scalars().all()
        return {"strategies": [strategy_to_dict(s) for s in strategies], "total": total, "limit": limit, "offset": offset}

    def get_strategy(self, session, strategy_id: int, viewer_id: Optional[int] = None) -> Dict:
        strategy = self._visible(session, strategy_id, viewer_id)
        strategy.views = (strategy.views or 0) + 1
        session.commit()
        data = strategy_to_dict(strategy, include_details=True)
        data["comments"] = [
            comment_to_dict(c) for c in sorted(strategy.comments, key=lambda c: c.created_at, reverse=True)
        ]
        if viewer_id:
            data["likedByMe"] = any(like.user_id == viewer_id for like in strategy.like_rows)
        return data

    def update_strategy(self, session, strategy_id: int, user_id: int, payload) -> Dict:
        strategy = self._get_owned(session, strategy_id, user_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(strategy, field, value)
        session.commit()
        return strategy_to_dict(strategy, include_details=True)

    def delete_strategy(self, session, strategy_id: int, user_id: int) -> None:
        strategy = self._get_owned(session, strategy_id, user_id)
        session.delete(strategy)
        session.commit()
        logger.info("Strategy %s deleted by user %s", strategy_id, user_id)

    def toggle_like(self, session, strategy_id: int, user_id: int) -> Dict:
        strategy = self._visible(session, strategy_id, user_id)
        existing = session.execute(
            select(StrategyLike).where(StrategyLike.strategy_id == strategy.id, StrategyLike.user_id == user_id)
        ).scalar_one_or_none()
        if existing is not None:
            session.delete(existing)
            strategy.likes = max((strategy.likes or 0) - 1, 0)
            liked = False
        else:
            session.add(StrategyLike(strategy_id=strategy.id, user_id=user_id))
            strategy.likes = (strategy.likes or 0) + 1
            liked = True
        session.commit()
        return {"liked": liked, "likes": strategy.likes}

    def rate_strategy(self, session, strategy_id: int, user_id: int, rating: int, review: Optional[str] = None) -> Dict:
        strategy = self._visible(session, strategy_id, user_id)
        row = session.execute(
            select(StrategyRating).where(StrategyRating.strategy_id == strategy.id, StrategyRating.user_id == user_id)
        ).scalar_one_or_none()
        if row is None:
            row = StrategyRating(strategy_id=strategy.id, user_id=user_id)
            session.add(row)
        row.rating = rating
        row.review = review
        session.commit()
        return rating_to_dict(row)

    def list_comments(self, session, strategy_id: int, viewer_id: Optional[int] = None) -> List[Dict]:
        strategy = self._visible(session, strategy_id, viewer_id)
        comments = session.execute(
            select(StrategyComment)
            .where(StrategyComment.strategy_id == strategy.id)
            .order_by(StrategyComment.created_at.desc(), StrategyComment.id.desc())
        ).scalars().all()
        return [comment_to_dict(c) for c in comments]

    def add_comment(self, session, strategy_id: int, user_id: int, content: str, parent_id: Optional[int] = None) -> Dict:
        strategy = self._visible(session, strategy_id, user_id)
        if parent_id is not None:
            parent = session.get(StrategyComment, parent_id)
            if parent is None or parent.strategy_id != strategy.id:
                raise NotFound("Parent comment not found")
        comment = StrategyComment(strategy_id=strategy.id, user_id=user_id, content=content, parent_id=parent_id)
        session.add(comment)
        session.commit()
        return comment_to_dict(comment)

    def share_strategy(self, session, strategy_id: int, user_id: int, platform: str) -> Dict:
        strategy = self._visible(session, strategy_id, user_id)
        share = StrategyShare(strategy_id=strategy.id, user_id=user_id, platform=platform)
        session.add(share)
        strategy.shares = (strategy.shares or 0) + 1
        session.commit()
        return {"id": share.id, "strategyId": strategy.id, "platform": platform, "shares": strategy.shares}

    def trending(self, session, limit: int = 10) -> List[Dict]:
        strategies = session.execute(
            select(Strategy)
            .where(Strategy.is_public.is_(True))
            .order_by(Strategy.likes.desc(), Strategy.views.desc(), Strategy.shares.desc())
            .limit(limit)
        ).scalars().all()
        return [strategy_to_dict(s) for s in strategies]

    def copied_strategies(self, session, user_id: int) -> List[Dict]:
        strategies = session.execute(
            select(Strategy)
            .where(
                Strategy.author_id == user_id,
                Strategy.is_public.is_(False),
                Strategy.original_strategy_id.is_not(None),
            )
            .order_by(Strategy.created_at.desc())
        ).scalars().all()
        return [strategy_to_dict(s, include_details=True) for s in strategies if "copy" in (s.tags or [])]

    def copy_strategy(self, session, user_id: int, original_strategy_id: int, settings) -> Dict:
        """Create a private, personalized copy of a strategy for ``user_id``.

        The copy keeps lineage through ``original_strategy_id`` and the original's
        ``metrics.copies`` counter is bumped.
        """
        original = self._visible(session, original_strategy_id, user_id)
        copier = session.get(User, user_id)
        if copier is None:
            raise NotFound("User not found")

        estimated_time = (
            round(original.estimated_time * settings.timeline_multiplier) if original.estimated_time is not None else None
        )
        potential_reward = (
            round(original.potential_reward * settings.budget_multiplier) if original.potential_reward is not None else None
        )
        copy = Strategy(
            author_id=user_id,
            title=settings.title,
            description=settings.description,
            content=personalize_content(original.content, settings, original.risk_level),
            category=original.category,
            difficulty=original.difficulty,
            risk_level=adjust_risk_level(original.risk_level, settings.risk_adjustment),
            estimated_time=estimated_time,
            required_actions=list(original.required_actions or []),
            potential_reward=potential_reward,
            tags=list(original.tags or []) + ["personalized", "copy"],
            is_public=False,
            is_verified=False,
            metrics={"copies": 0},
            original_strategy_id=original.id,
            extra={
                "copySettings": settings.model_dump(by_alias=True),
                "originalAuthor": original.author.username if original.author else None,
                "originalTitle": original.title,
            },
        )
        if settings.include_tips:
            for tip in original.tips:
                copy.tips.append(StrategyTip(title=tip.title, content=tip.content, order=tip.order))
        if settings.include_requirements:
            for req in original.requirements:
                copy.requirements.append(
                    StrategyRequirement(type=req.type, description=req.description, is_required=req.is_required)
                )
        session.add(copy)

        metrics = dict(original.metrics or {})
        metrics["copies"] = int(metrics.get("copies") or 0) + 1
        original.metrics = metrics
        session.flush()

        session.add(
            Activity(
                type="strategy_copied",
                user_id=user_id,
                strategy_id=copy.id,
                extra={
                    "originalStrategyId": original.id,
                    "riskAdjustment": settings.risk_adjustment,
                    "timelineMultiplier": settings.timeline_multiplier,
                    "budgetMultiplier": settings.budget_multiplier,
                },
            )
        )
        session.commit()
        logger.info("Strategy %s copied by user %s as %s", original.id, user_id, copy.id)
        return strategy_to_dict(copy, include_details=True)
