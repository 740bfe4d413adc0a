import logging
from typing import Dict, List

from sqlalchemy import func, select

from dropiq.errors import BadRequest, Conflict, NotFound
from dropiq.models import (
    Achievement,
    AutomatedTask,
    Strategy,
    User,
    UserAchievement,
    UserAirdropStatus,
    UserFollow,
)
from dropiq.models.base import utcnow
from dropiq.serializers import achievement_to_dict, strategy_to_dict, user_to_dict

logger = logging.getLogger(__name__)

EXPERIENCE_PER_LEVEL = 100
LEADERBOARD_TYPES = ("reputation", "earnings", "achievements")


def _public_user(user: User) -> Dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "avatar": user.avatar,
        "reputation": user.reputation,
        "level": user.level,
    }


class UserProfileService:
    """Profiles, social graph, achievements and leaderboards."""

    def _get_user(self, session, user_id: int) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def stats(self, session, user_id: int) -> Dict:
        def count(stmt):
            return session.execute(stmt).scalar_one()

        total_tasks = count(select(func.count(AutomatedTask.id)).where(AutomatedTask.user_id == user_id))
        completed_tasks = count(
            select(func.count(AutomatedTask.id)).where(AutomatedTask.user_id == user_id, AutomatedTask.status == "completed")
        )
        total_airdrops = count(select(func.count(UserAirdropStatus.id)).where(UserAirdropStatus.user_id == user_id))
        completed_airdrops = count(
            select(func.count(UserAirdropStatus.id)).where(
                UserAirdropStatus.user_id == user_id,
                UserAirdropStatus.status.in_(("completed", "claimed")),
            )
        )
        total_strategies = count(select(func.count(Strategy.id)).where(Strategy.author_id == user_id))
        return {
            "totalTasks": total_tasks,
            "completedTasks": completed_tasks,
            "totalAirdrops": total_airdrops,
            "completedAirdrops": completed_airdrops,
            "totalStrategies": total_strategies,
            "successRate": round(completed_tasks / total_tasks * 100) if total_tasks else 0,
        }

    def get_profile(self, session, user_id: int, include_private: bool = False) -> Dict:
        user = self._get_user(session, user_id)
        unlocked = session.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at.desc())
        ).scalars().all()
        followers = session.execute(select(UserFollow).where(UserFollow.following_id == user_id)).scalars().all()
        following = session.execute(select(UserFollow).where(UserFollow.follower_id == user_id)).scalars().all()
        strategies = session.execute(
            select(Strategy)
            .where(Strategy.author_id == user_id, Strategy.is_public.is_(True))
            .order_by(Strategy.created_at.desc())
            .limit(3)
        ).scalars().all()

        profile = user_to_dict(user, include_private=include_private)
        profile.update(
            {
                "stats": self.stats(session, user_id),
                "achievements": [achievement_to_dict(ua.achievement, ua.unlocked_at) for ua in unlocked],
                "followersCount": len(followers),
                "followingCount": len(following),
                "followers": [_public_user(f.follower) for f in followers],
                "following": [_public_user(f.following) for f in following],
                "recentStrategies": [strategy_to_dict(s) for s in strategies],
            }
        )
        return profile

    def update_profile(self, session, user_id: int, payload) -> Dict:
        user = self._get_user(session, user_id)
        changes = payload.model_dump(exclude_unset=True)
        username = changes.get("username")
        if username and username != user.username:
            taken = session.execute(select(User.id).where(User.username == username)).first()
            if taken:
                raise Conflict("Username already taken")
        for field, value in changes.items():
            setattr(user, field, value)
        user.last_active = utcnow()
        session.commit()
        return self.get_profile(session, user_id, include_private=True)

    def follow(self, session, follower_id: int, following_id: int) -> Dict:
        if follower_id == following_id:
            raise BadRequest("Cannot follow yourself")
        self._get_user(session, following_id)
        existing = session.execute(
            select(UserFollow).where(UserFollow.follower_id == follower_id, UserFollow.following_id == following_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise Conflict("Already following this user")
        session.add(UserFollow(follower_id=follower_id, following_id=following_id))
        session.commit()
        return {"following": True, "userId": following_id}

    def unfollow(self, session, follower_id: int, following_id: int) -> Dict:
        existing = session.execute(
            select(UserFollow).where(UserFollow.follower_id == follower_id, UserFollow.following_id == following_id)
        ).scalar_one_or_none()
        if existing is None:
            raise NotFound("Not following this user")
        session.delete(existing)
        session.commit()
        return {"following": False, "userId": following_id}

    def list_achievements(self, session, user_id: int) -> List[Dict]:
        unlocked = {
            ua.achievement_id: ua.unlocked_at
            for ua in session.execute(select(UserAchievement).where(UserAchievement.user_id == user_id)).scalars()
        }
        achievements = session.execute(select(Achievement).order_by(Achievement.category, Achievement.points)).scalars().all()
        items = []
        for achievement in achievements:
            data = achievement_to_dict(achievement, unlocked.get(achievement.id))
            data["unlocked"] = achievement.id in unlocked
            items.append(data)
        return items

    def unlock_achievement(self, session, user_id: int, achievement_key: str) -> Dict:
        """Unlock an achievement and credit its points.

        Experience grows by the achievement's points, the level is one per
        hundred experience, and reputation grows by a tenth of the points.
        """
        user = self._get_user(session, user_id)
        achievement = session.execute(select(Achievement).where(Achievement.key == achievement_key)).scalar_one_or_none()
        if achievement is None:
            raise NotFound("Achievement not found")
        existing = session.execute(
            select(UserAchievement).where(
                UserAchievement.user_id == user_id, UserAchievement.achievement_id == achievement.id
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise Conflict("Achievement already unlocked")

        unlocked = UserAchievement(user_id=user_id, achievement_id=achievement.id, unlocked_at=utcnow())
        session.add(unlocked)
        user.experience = (user.experience or 0) + achievement.points
        user.level = user.experience // EXPERIENCE_PER_LEVEL + 1
        user.reputation = (user.reputation or 0) + achievement.points // 10
        session.commit()
        logger.info("User %s unlocked achievement %s", user_id, achievement.key)
        return {
            "achievement": achievement_to_dict(achievement, unlocked.unlocked_at),
            "experience": user.experience,
            "level": user.level,
            "reputation": user.reputation,
        }

    def leaderboard(self, session, board_type: str = "reputation", limit: int = 10) -> List[Dict]:
        if board_type not in LEADERBOARD_TYPES:
            raise BadRequest("Invalid leaderboard type. Must be: reputation, earnings, or achievements")

        if board_type == "achievements":
            value = func.count(UserAchievement.id)
            stmt = select(User, value).outerjoin(UserAchievement, UserAchievement.user_id == User.id)
        elif board_type == "earnings":
            value = func.count(UserAirdropStatus.id)
            stmt = select(User, value).outerjoin(
                UserAirdropStatus,
                (UserAirdropStatus.user_id == User.id) & (UserAirdropStatus.status == "claimed"),
            )
        else:
            value = func.max(User.reputation)
            stmt = select(User, value)

        rows = session.execute(
            stmt.where(User.is_guest.is_(False))
            .group_by(User.id)
            .order_by(value.desc(), User.experience.desc(), User.id.asc())
            .limit(limit)
        ).all()
        return [
            {"rank": index + 1, "user": _public_user(user), "value": int(score or 0)}
            for index, (user, score) in enumerate(rows)
        ]
