import logging
import re
from typing import Dict, Optional
from urllib.parse import urlparse

from sqlalchemy import func, or_, select

from dropiq.errors import BadRequest, Conflict, Forbidden, NotFound
from dropiq.models import Airdrop, UserAirdropStatus, Wallet
from dropiq.models.base import utcnow
from dropiq.serializers import airdrop_to_dict, user_airdrop_status_to_dict

logger = logging.getLogger(__name__)

PROGRESS_STATUSES = ("in_progress", "completed", "claimed")
SEARCH_FIELDS = ("id", "name", "slug", "description", "category", "logoUrl", "websiteUrl", "riskScore", "hypeScore", "status")


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def _get_by_slug(session, slug: str) -> Airdrop:
    airdrop = session.execute(select(Airdrop).where(Airdrop.slug == slug)).scalar_one_or_none()
    if airdrop is None:
        raise NotFound("Airdrop not found")
    return airdrop


def _user_statuses(session, user_id: Optional[int], airdrop_ids) -> Dict[int, UserAirdropStatus]:
    if not user_id or not airdrop_ids:
        return {}
    rows = session.execute(
        select(UserAirdropStatus).where(
            UserAirdropStatus.user_id == user_id,
            UserAirdropStatus.airdrop_id.in_(airdrop_ids),
        )
    ).scalars()
    return {row.airdrop_id: row for row in rows}


def _with_user_status(airdrop: Airdrop, status: Optional[UserAirdropStatus]):
    data = airdrop_to_dict(airdrop)
    data["userStatus"] = status.status if status else None
    data["userNotes"] = status.notes if status else None
    return data


def list_airdrops(session, page: int = 1, limit: int = 10, category: Optional[str] = None, search: Optional[str] = None, user_id: Optional[int] = None):
    page = max(page, 1)
    limit = max(limit, 1)
    filters = [Airdrop.status == "approved"]
    if category and category != "all":
        filters.append(Airdrop.category == category)
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(or_(func.lower(Airdrop.name).like(pattern), func.lower(Airdrop.description).like(pattern)))

    total = session.execute(select(func.count(Airdrop.id)).where(*filters)).scalar_one()
    airdrops = session.execute(
        select(Airdrop)
        .where(*filters)
        .order_by(Airdrop.created_at.desc(), Airdrop.hype_score.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    statuses = _user_statuses(session, user_id, [a.id for a in airdrops])
    return {
        "airdrops": [_with_user_status(a, statuses.get(a.id)) for a in airdrops],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


def search_airdrops(session, query: Optional[str]):
    if not query or len(query.strip()) < 2:
        raise BadRequest("Search query must be at least 2 characters long")
    pattern = f"%{query.strip().lower()}%"
    airdrops = session.execute(
        select(Airdrop)
        .where(
            Airdrop.status == "approved",
            or_(
                func.lower(Airdrop.name).like(pattern),
                func.lower(Airdrop.slug).like(pattern),
                func.lower(Airdrop.description).like(pattern),
                func.lower(Airdrop.category).like(pattern),
            ),
        )
        .order_by(Airdrop.hype_score.desc(), Airdrop.name.asc())
        .limit(10)
    ).scalars().all()
    results = []
    for airdrop in airdrops:
        data = airdrop_to_dict(airdrop)
        results.append({key: data[key] for key in SEARCH_FIELDS})
    return {"airdrops": results, "total": len(results), "query": query}


def get_airdrop(session, slug: str, user_id: Optional[int] = None):
    airdrop = _get_by_slug(session, slug)
    if airdrop.status != "approved":
        raise Forbidden("Airdrop not available")
    statuses = _user_statuses(session, user_id, [airdrop.id])
    return _with_user_status(airdrop, statuses.get(airdrop.id))


def update_user_status(session, user_id: int, slug: str, status: str, notes: Optional[str] = None, wallet_id: Optional[int] = None):
    """Upsert the caller's tracking row for an airdrop, stamping lifecycle times on first entry."""
    airdrop = _get_by_slug(session, slug)
    if wallet_id is not None:
        wallet = session.get(Wallet, wallet_id)
        if wallet is None or wallet.user_id != user_id:
            raise NotFound("Wallet not found")

    row = session.execute(
        select(UserAirdropStatus).where(
            UserAirdropStatus.user_id == user_id,
            UserAirdropStatus.airdrop_id == airdrop.id,
        )
    ).scalar_one_or_none()
    if row is None:
        row = UserAirdropStatus(user_id=user_id, airdrop_id=airdrop.id)
        session.add(row)

    now = utcnow()
    row.status = status
    if notes is not None:
        row.notes = notes
    if wallet_id is not None:
        row.wallet_id = wallet_id
    if status == "in_progress" and row.started_at is None:
        row.started_at = now
    elif status == "completed" and row.completed_at is None:
        row.completed_at = now
    elif status == "claimed" and row.claimed_at is None:
        row.claimed_at = now
    session.commit()
    return _with_user_status(airdrop, row)


def submit_airdrop(session, payload):
    name = (payload.name or "").strip()
    description = (payload.description or "").strip()
    website_url = (payload.website_url or "").strip()
    if not name or not description or not website_url:
        raise BadRequest("Name, description, and website URL are required")
    if not _valid_url(website_url):
        raise BadRequest("Invalid website URL format")

    slug = slugify(name)
    if not slug:
        raise BadRequest("Name must contain letters or numbers")
    existing = session.execute(
        select(Airdrop).where(or_(Airdrop.slug == slug, func.lower(Airdrop.name) == name.lower()))
    ).scalars().first()
    if existing is not None:
        raise Conflict(
            "This airdrop already exists in our database",
            existingAirdrop={"id": existing.id, "name": existing.name, "status": existing.status},
        )

    submitted_by = payload.submitted_by or "anonymous"
    submission_notes = payload.submission_notes or ""
    airdrop = Airdrop(
        name=name,
        slug=slug,
        description=description,
        category=(payload.category or "").strip() or "Other",
        website_url=website_url,
        twitter_url=(payload.twitter_url or "").strip() or None,
        discord_url=(payload.discord_url or "").strip() or None,
        telegram_url=(payload.telegram_url or "").strip() or None,
        logo_url=(payload.logo_url or "").strip() or None,
        requirements=payload.requirements,
        status="pending",
        risk_score=0,
        hype_score=0,
        notes=f"Submitted via promotion form by {submitted_by}. {submission_notes}".strip(),
        extra={
            "submittedVia": "promotion_form",
            "submittedBy": submitted_by,
            "submittedAt": utcnow().isoformat(),
            "submissionNotes": submission_notes,
        },
    )
    session.add(airdrop)
    session.commit()
    logger.info("Airdrop %s submitted by %s", slug, submitted_by)
    return {
        "id": airdrop.id,
        "name": airdrop.name,
        "slug": airdrop.slug,
        "status": airdrop.status,
        "message": "Airdrop submitted successfully! It will be reviewed by our team within 24-48 hours.",
    }


def user_progress(session, user_id: int):
    rows = session.execute(
        select(UserAirdropStatus)
        .where(
            UserAirdropStatus.user_id == user_id,
            UserAirdropStatus.status.in_(PROGRESS_STATUSES),
        )
        .order_by(UserAirdropStatus.updated_at.desc())
    ).scalars().all()
    return [user_airdrop_status_to_dict(row, include_airdrop=True) for row in rows]


def moderate_airdrop(session, airdrop_id: int, payload):
    airdrop = session.get(Airdrop, airdrop_id)
    if airdrop is None:
        raise NotFound("Airdrop not found")
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(airdrop, field, value)
    session.commit()
    logger.info("Airdrop %s moderated: %s", airdrop.slug, sorted(changes))
    return airdrop_to_dict(airdrop)
