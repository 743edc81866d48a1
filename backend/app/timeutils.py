"""
Horodatage : toutes les dates sont stockées en UTC naïf (colonnes DateTime sans fuseau).
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convertit une date avec fuseau en UTC naïf ; une date naïve est supposée déjà en UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
