"""
Résolution du niveau à partir de l'XP cumulée.

Pur calcul, sans accès base : la table des niveaux est injectée au constructeur
(voir level_service.build_resolver). La table est traitée comme une séquence
éventuellement trouée : le résolveur extrapole au lieu d'échouer.

Règles :
- niveau = plus grand numéro dont min_xp <= xp ; niveau 1 si xp <= 0 ou aucun match
- progression = position entre le min_xp du niveau courant et celui du niveau suivant,
  en % arrondi à l'entier le plus proche et borné à [0, 100]
- au-delà du dernier niveau défini, l'écart suivant est celui des deux derniers
  niveaux, ou default_span s'il y en a moins de deux
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

DEFAULT_SPAN = 1000


@dataclass(frozen=True)
class LevelThreshold:
    number: int
    min_xp: int
    name: Optional[str] = None


@dataclass(frozen=True)
class LevelInfo:
    """Instantané du niveau d'un utilisateur pour une XP donnée."""
    level: int
    name: str
    xp: int
    current_level_min_xp: int
    next_level_min_xp: int
    progress_percent: int
    xp_to_next_level: int


class LevelResolver:
    def __init__(self, levels: Iterable[LevelThreshold], default_span: int = DEFAULT_SPAN):
        self._levels: List[LevelThreshold] = sorted(levels, key=lambda lvl: lvl.number)
        self._default_span = default_span if default_span > 0 else DEFAULT_SPAN

    @property
    def levels(self) -> List[LevelThreshold]:
        return list(self._levels)

    def resolve_level(self, xp: int) -> int:
        """Plus haut niveau atteint pour cette XP. Ne lève jamais : niveau 1 par défaut."""
        if xp <= 0:
            return 1
        for threshold in reversed(self._levels):
            if threshold.min_xp <= xp:
                return threshold.number
        return 1

    def progress_percent(self, xp: int) -> int:
        start, next_start = self._bounds(xp)
        within = max(0, xp - start)
        span = max(1, next_start - start)
        percent = _round_half_up(within / span * 100)
        return max(0, min(100, percent))

    def xp_to_next_level(self, xp: int) -> int:
        _, next_start = self._bounds(xp)
        return max(0, next_start - xp)

    def level_name(self, number: int) -> str:
        for threshold in self._levels:
            if threshold.number == number and threshold.name:
                return threshold.name
        return f"Level {number}"

    def describe(self, xp: int) -> LevelInfo:
        level = self.resolve_level(xp)
        start, next_start = self._bounds(xp)
        return LevelInfo(
            level=level,
            name=self.level_name(level),
            xp=xp,
            current_level_min_xp=start,
            next_level_min_xp=next_start,
            progress_percent=self.progress_percent(xp),
            xp_to_next_level=self.xp_to_next_level(xp),
        )

    def _bounds(self, xp: int) -> Tuple[int, int]:
        """(min_xp du niveau courant, min_xp du niveau suivant ou extrapolé)."""
        level = self.resolve_level(xp)

        index = next(
            (i for i, threshold in enumerate(self._levels) if threshold.number == level),
            None,
        )
        if index is None:
            # Niveau 1 implicite (table vide ou sans palier atteint)
            start = 0
            upcoming = [t for t in self._levels if t.min_xp > 0]
            if upcoming:
                return start, upcoming[0].min_xp
            return start, start + self._extrapolated_span()

        start = self._levels[index].min_xp
        if index + 1 < len(self._levels):
            return start, self._levels[index + 1].min_xp
        return start, start + self._extrapolated_span()

    def _extrapolated_span(self) -> int:
        if len(self._levels) < 2:
            return self._default_span
        span = self._levels[-1].min_xp - self._levels[-2].min_xp
        return span if span > 0 else self._default_span


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
