"""
Schémas Pydantic pour le classement.
"""

from typing import List, Optional

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    xp: int
    level: int
    level_name: str


class LeaderboardResponse(BaseModel):
    items: List[LeaderboardEntry]
    total: int
    limit: int
    offset: int


class UserRankResponse(BaseModel):
    user_id: int
    rank: int
    xp: int
    level: int
    total_users: int


class LeaderboardStats(BaseModel):
    total_users: int
    top_user: Optional[LeaderboardEntry] = None
    total_completions: int
