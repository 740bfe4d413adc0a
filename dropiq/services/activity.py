import logging
import math
from collections import Counter, defaultdict
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import select

from dropiq.models import ActivityPattern, PreferenceEvolution, PreferenceInsight, UserBehaviorEvent
from dropiq.models.base import as_utc, utcnow
from dropiq.serializers import activity_pattern_to_dict, behavior_event_to_dict, insight_to_dict

logger = logging.getLogger(__name__)

ANALYSIS_WINDOW_DAYS = 90
DEFAULT_EVENT_MINUTES = 5
SESSION_GAP = timedelta(minutes=30)
INSIGHT_TTL = timedelta(days=7)
TIME_SLOTS = {"night": (0, 6), "morning": (6, 12), "afternoon": (12, 18), "evening": (18, 24)}


def _minutes(event) -> float:
    return event.duration if event.duration else DEFAULT_EVENT_MINUTES


def _sessions(events) -> List[list]:
    sessions: List[list] = []
    for event in events:
        if sessions and as_utc(event.timestamp) - as_utc(sessions[-1][-1].timestamp) <= SESSION_GAP:
            sessions[-1].append(event)
        else:
            sessions.append([event])
    return sessions


def _ratio(part: int, whole: int) -> float:
    return round(part / whole * 100) if whole else 0


def compute_pattern(events) -> Dict:
    """Aggregate statistics over behavior events ordered by timestamp.

    Durations are in minutes; an event without one counts as five minutes.
    """
    if not events:
        return empty_pattern()

    daily = defaultdict(float)
    hourly = Counter()
    monthly = Counter()
    weeks = defaultdict(set)
    weekend = weekday = 0
    for event in events:
        ts = as_utc(event.timestamp)
        minutes = _minutes(event)
        daily[ts.date()] += minutes
        hourly[ts.hour] += minutes
        monthly[ts.month] += minutes
        iso = ts.isocalendar()
        weeks[(iso[0], iso[1])].add(ts.date())
        if ts.weekday() >= 5:
            weekend += 1
        else:
            weekday += 1

    day_minutes = list(daily.values())
    mean = sum(day_minutes) / len(day_minutes)
    variance = sum((m - mean) ** 2 for m in day_minutes) / len(day_minutes)
    regularity = max(0.0, 100 - (math.sqrt(variance) / mean) * 100) if mean else 0.0
    consistency = min(100.0, (regularity + len(day_minutes) / ANALYSIS_WINDOW_DAYS * 100) / 2)
    burst = max(day_minutes) > mean * 3 and variance > mean * mean

    sessions = _sessions(events)
    durations = [(as_utc(s[-1].timestamp) - as_utc(s[0].timestamp)).total_seconds() / 60 for s in sessions]
    tasks = [sum(1 for e in s if e.event_type == "task_complete") for s in sessions]

    total_hours = sum(_minutes(e) for e in events) / 60
    completed = sum(tasks)
    started = sum(1 for e in events if e.event_type == "task_start")
    airdrop_statuses = [(e.event_data or {}).get("status") for e in events if e.event_type == "airdrop_interact"]
    airdrops_done = sum(1 for s in airdrop_statuses if s == "completed")
    airdrops_started = sum(1 for s in airdrop_statuses if s in ("started", "in_progress"))
    tasks_per_hour = round(completed / total_hours, 1) if total_hours else 0
    completion_rate = (_ratio(completed, started) + _ratio(airdrops_done, airdrops_started)) / 2
    efficiency = min(100, (completion_rate + min(100, tasks_per_hour * 20)) / 2)

    peak_hours = [hour for hour, minutes in sorted(hourly.items(), key=lambda kv: (-kv[1], kv[0]))[:3] if minutes > 0]

    return {
        "dailyActiveMinutes": round(mean),
        "weeklyActiveDays": round(sum(len(d) for d in weeks.values()) / len(weeks)),
        "weekendActivity": round(weekend / weekday, 2) if weekday else 0,
        "peakHours": peak_hours,
        "timeSlots": {
            slot: sum(hourly[h] for h in range(start, end)) for slot, (start, end) in TIME_SLOTS.items()
        },
        "averageSessionDuration": round(sum(durations) / len(durations)),
        "tasksPerSession": round(sum(tasks) / len(tasks), 1),
        "consistencyScore": round(consistency),
        "productivity": {
            "tasksPerHour": tasks_per_hour,
            "completionRate": round(completion_rate),
            "efficiencyScore": round(efficiency),
            "burstActivity": burst,
        },
        "seasonal": [{"month": month, "activityLevel": monthly.get(month, 0)} for month in range(1, 13)],
        "insights": behavior_insights(round(mean), round(sum(tasks) / len(tasks), 1), round(sum(durations) / len(durations))),
    }


def empty_pattern() -> Dict:
    return {
        "dailyActiveMinutes": 0,
        "weeklyActiveDays": 0,
        "weekendActivity": 0,
        "peakHours": [],
        "timeSlots": {slot: 0 for slot in TIME_SLOTS},
        "averageSessionDuration": 0,
        "tasksPerSession": 0,
        "consistencyScore": 0,
        "productivity": {"tasksPerHour": 0, "completionRate": 0, "efficiencyScore": 0, "burstActivity": False},
        "seasonal": [],
        "insights": [],
    }


def behavior_insights(daily_minutes: float, tasks_per_session: float, session_minutes: float) -> List[Dict]:
    insights = []
    if daily_minutes < 10:
        insights.append({
            "pattern": "low_activity",
            "confidence": 0.9,
            "recommendation": "Try to spend at least 15 minutes daily for better results.",
        })
    if tasks_per_session < 1:
        insights.append({
            "pattern": "low_task_completion",
            "confidence": 0.8,
            "recommendation": "Focus on completing at least one task per session.",
        })
    if session_minutes > 60:
        insights.append({
            "pattern": "long_sessions",
            "confidence": 0.7,
            "recommendation": "Consider breaking long sessions into shorter, focused ones.",
        })
    return insights


def _activity_insights(pattern: Dict) -> List[Dict]:
    insights = []
    if pattern["consistencyScore"] < 30:
        insights.append({
            "title": "Inconsistent Activity Pattern",
            "description": "Your activity varies a lot from day to day. A routine could improve your results.",
            "confidence": 0.8,
            "actionable": ["Keep a consistent daily schedule for airdrop tasks."],
        })
    if pattern["peakHours"]:
        peak = pattern["peakHours"][0]
        insights.append({
            "title": "Peak Activity Time Identified",
            "description": f"You're most active around {peak}:00 UTC. Plan important tasks during this time.",
            "confidence": 0.9,
            "actionable": [f"Schedule airdrop tasks around {peak}:00 UTC."],
        })
    if pattern["averageSessionDuration"] > 45:
        insights.append({
            "title": "Long Session Duration",
            "description": "Your sessions tend to be long. Breaks help maintain focus.",
            "confidence": 0.7,
            "actionable": ["Work in 25 minute blocks with 5 minute breaks."],
        })
    return insights


class ActivityPatternAnalyzer:
    """Turns recorded behavior events into a stored activity profile."""

    def __init__(self, window_days: int = ANALYSIS_WINDOW_DAYS):
        self.window_days = window_days

    def record_event(self, session, user_id: int, payload) -> Dict:
        event = UserBehaviorEvent(
            user_id=user_id,
            event_type=payload.event_type,
            event_data=payload.event_data,
            duration=payload.duration,
            timestamp=payload.timestamp or utcnow(),
        )
        session.add(event)
        session.commit()
        return behavior_event_to_dict(event)

    def analyze(self, session, user_id: int) -> Dict:
        since = utcnow() - timedelta(days=self.window_days)
        events = session.execute(
            select(UserBehaviorEvent)
            .where(UserBehaviorEvent.user_id == user_id, UserBehaviorEvent.timestamp >= since)
            .order_by(UserBehaviorEvent.timestamp.asc(), UserBehaviorEvent.id.asc())
        ).scalars().all()
        if not events:
            return {"pattern": empty_pattern(), "insights": [], "eventsAnalyzed": 0}

        pattern = compute_pattern(events)
        row = session.execute(select(ActivityPattern).where(ActivityPattern.user_id == user_id)).scalar_one_or_none()
        if row is not None:
            session.add(
                PreferenceEvolution(
                    user_id=user_id,
                    category="activity",
                    old_value={
                        "dailyActiveMinutes": row.daily_active_minutes,
                        "weeklyActiveDays": row.weekly_active_days,
                        "averageSessionDuration": row.average_session_duration,
                        "consistencyScore": row.consistency_score,
                    },
                    new_value={
                        "dailyActiveMinutes": pattern["dailyActiveMinutes"],
                        "weeklyActiveDays": pattern["weeklyActiveDays"],
                        "averageSessionDuration": pattern["averageSessionDuration"],
                        "consistencyScore": pattern["consistencyScore"],
                    },
                    change_reason="pattern_update",
                    trigger="activity_analysis",
                )
            )
        else:
            row = ActivityPattern(user_id=user_id)
            session.add(row)

        row.daily_active_minutes = pattern["dailyActiveMinutes"]
        row.weekly_active_days = pattern["weeklyActiveDays"]
        row.weekend_activity = pattern["weekendActivity"]
        row.peak_hours = pattern["peakHours"]
        row.time_slots = pattern["timeSlots"]
        row.average_session_duration = pattern["averageSessionDuration"]
        row.tasks_per_session = pattern["tasksPerSession"]
        row.consistency_score = pattern["consistencyScore"]
        row.productivity = pattern["productivity"]
        row.seasonal = pattern["seasonal"]
        row.insights = pattern["insights"]
        row.analyzed_at = utcnow()

        insight_rows = [
            PreferenceInsight(
                user_id=user_id,
                insight_type="activity_insight",
                category="activity",
                title=item["title"],
                description=item["description"],
                confidence=item["confidence"],
                actionable=item["actionable"],
                valid_until=utcnow() + INSIGHT_TTL,
            )
            for item in _activity_insights(pattern)
        ]
        session.add_all(insight_rows)
        session.commit()
        logger.info("Activity pattern analyzed for user %s over %s events", user_id, len(events))
        return {
            "pattern": activity_pattern_to_dict(row),
            "insights": [insight_to_dict(i) for i in insight_rows],
            "eventsAnalyzed": len(events),
        }

    def get_pattern(self, session, user_id: int) -> Optional[Dict]:
        row = session.execute(select(ActivityPattern).where(ActivityPattern.user_id == user_id)).scalar_one_or_none()
        if row is None:
            return None
        insights = session.execute(
            select(PreferenceInsight)
            .where(PreferenceInsight.user_id == user_id, PreferenceInsight.category == "activity")
            .order_by(PreferenceInsight.created_at.desc())
            .limit(10)
        ).scalars().all()
        now = utcnow()
        return {
            "pattern": activity_pattern_to_dict(row),
            "insights": [insight_to_dict(i) for i in insights if i.valid_until is None or as_utc(i.valid_until) > now],
        }
