"""
Classement des utilisateurs, calculé à la lecture (aucun rang stocké).

Ordre : XP décroissante, puis compte le plus ancien en premier (created_at),
puis id croissant ; l'ordre est stable d'une requête à l'autre à données égales.
Seuls les comptes actifs sont classés.
"""

from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models.progress import ChallengeProgress
from app.models.user import User
from app.schemas.leaderboard import LeaderboardEntry, LeaderboardResponse, LeaderboardStats, UserRankResponse
from app.services.level_resolver import DEFAULT_SPAN, LevelResolver
from app.services.level_service import build_resolver

_RANKING_ORDER = (User.xp.desc(), User.created_at.asc(), User.id.asc())


def get_leaderboard(
    db: Session,
    limit: int = 50,
    offset: int = 0,
    level_span: int = DEFAULT_SPAN,
) -> LeaderboardResponse:
    """Page du classement ; le rang est la position dans l'ordre complet (1-based)."""
    resolver = build_resolver(db, level_span)

    users = db.execute(
        select(User)
        .where(User.is_active.is_(True))
        .order_by(*_RANKING_ORDER)
        .limit(limit)
        .offset(offset)
    ).scalars().all()

    items = [_to_entry(user, offset + position + 1, resolver) for position, user in enumerate(users)]
    return LeaderboardResponse(items=items, total=_count_active_users(db), limit=limit, offset=offset)


def get_user_rank(db: Session, user_id: int, level_span: int = DEFAULT_SPAN) -> UserRankResponse:
    """
    Rang d'un utilisateur : 1 + nombre d'utilisateurs actifs classés devant lui.
    Lève NotFound si l'utilisateur n'existe pas ou est désactivé (absent du classement).
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"Utilisateur {user_id} introuvable.")
    if not user.is_active:
        raise NotFound(f"Utilisateur {user_id} absent du classement (compte désactivé).")

    ahead = db.execute(
        select(func.count())
        .select_from(User)
        .where(
            User.is_active.is_(True),
            User.id != user.id,
            or_(
                User.xp > user.xp,
                and_(User.xp == user.xp, User.created_at < user.created_at),
                and_(User.xp == user.xp, User.created_at == user.created_at, User.id < user.id),
            ),
        )
    ).scalar() or 0

    resolver = build_resolver(db, level_span)
    return UserRankResponse(
        user_id=user.id,
        rank=ahead + 1,
        xp=user.xp,
        level=resolver.resolve_level(user.xp),
        total_users=_count_active_users(db),
    )


def get_stats(db: Session, level_span: int = DEFAULT_SPAN) -> LeaderboardStats:
    """Statistiques globales : nombre de joueurs, premier du classement, challenges terminés."""
    top: Optional[User] = db.execute(
        select(User).where(User.is_active.is_(True)).order_by(*_RANKING_ORDER).limit(1)
    ).scalar()

    completions = db.execute(
        select(func.count())
        .select_from(ChallengeProgress)
        .where(ChallengeProgress.status == "COMPLETED")
    ).scalar() or 0

    return LeaderboardStats(
        total_users=_count_active_users(db),
        top_user=_to_entry(top, 1, build_resolver(db, level_span)) if top is not None else None,
        total_completions=completions,
    )


def _count_active_users(db: Session) -> int:
    return db.execute(
        select(func.count()).select_from(User).where(User.is_active.is_(True))
    ).scalar() or 0


def _to_entry(user: User, rank: int, resolver: LevelResolver) -> LeaderboardEntry:
    level = resolver.resolve_level(user.xp)
    return LeaderboardEntry(
        rank=rank,
        user_id=user.id,
        username=user.username,
        xp=user.xp,
        level=level,
        level_name=resolver.level_name(level),
    )
