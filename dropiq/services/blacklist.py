import logging
import re
from typing import Optional

from sqlalchemy import func, select

from dropiq.errors import BadRequest, Conflict, NotFound
from dropiq.models import BlacklistEntry
from dropiq.serializers import blacklist_entry_to_dict

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]{0,61}[a-z0-9](?:\.[a-z0-9][a-z0-9-]{0,61}[a-z0-9])*$")
CONTRACT_RE = re.compile(r"^0x[a-f0-9]{40}$")


def list_entries(session, page: int = 1, limit: int = 50, entry_type: Optional[str] = None, search: Optional[str] = None, source: Optional[str] = None):
    page = max(page, 1)
    filters = []
    if entry_type:
        filters.append(BlacklistEntry.type == entry_type)
    if source:
        filters.append(BlacklistEntry.source == source)
    if search:
        filters.append(BlacklistEntry.value.like(f"%{search.lower()}%"))

    total = session.execute(select(func.count(BlacklistEntry.id)).where(*filters)).scalar_one()
    entries = session.execute(
        select(BlacklistEntry)
        .where(*filters)
        .order_by(BlacklistEntry.created_at.desc(), BlacklistEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return {
        "entries": [blacklist_entry_to_dict(e) for e in entries],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


def add_entry(session, entry_type: str, value: str, source: str = "admin_manual"):
    value = value.strip().lower()
    if entry_type == "domain" and not DOMAIN_RE.match(value):
        raise BadRequest("Invalid domain format")
    if entry_type == "contract_address" and not CONTRACT_RE.match(value):
        raise BadRequest("Invalid contract address format")

    existing = session.execute(
        select(BlacklistEntry).where(BlacklistEntry.type == entry_type, BlacklistEntry.value == value)
    ).scalar_one_or_none()
    if existing is not None:
        raise Conflict("Entry already exists in blacklist")

    entry = BlacklistEntry(type=entry_type, value=value, source=source)
    session.add(entry)
    session.commit()
    logger.info("Blacklisted %s %s (source=%s)", entry_type, value, source)
    return blacklist_entry_to_dict(entry)


def delete_entry(session, entry_id: int):
    entry = session.get(BlacklistEntry, entry_id)
    if entry is None:
        raise NotFound("Blacklist entry not found")
    data = blacklist_entry_to_dict(entry)
    session.delete(entry)
    session.commit()
    logger.info("Removed blacklist entry %s (%s %s)", entry_id, entry.type, entry.value)
    return data


def blacklist_lookup(session):
    """Return a ``(type, value) -> entry | None`` callable bound to ``session``."""

    def lookup(entry_type: str, value: str):
        if not value:
            return None
        return session.execute(
            select(BlacklistEntry).where(BlacklistEntry.type == entry_type, BlacklistEntry.value == value.lower())
        ).scalar_one_or_none()

    return lookup
