from pydantic import BaseModel
from typing import List, Dict, Any, Optional


class DistributionSlice(BaseModel):
    name: str
    value: int
    color: str


class TaskStats(BaseModel):
    total: int
    distribution: List[DistributionSlice]


class ProjectStats(BaseModel):
    total: int
    completed: int
    active: int


class HeatmapDay(BaseModel):
    date: str
    count: int


class LeaderboardEntry(BaseModel):
    user: Dict[str, Any]
    count: int


class TokenDay(BaseModel):
    date: str
    tokens: int


class AnalyticsResponse(BaseModel):
    isMock: bool = False
    tasks: TaskStats
    projects: ProjectStats
    heatmap: List[HeatmapDay]
    leaderboard: List[LeaderboardEntry]
    ariaUsage: List[TokenDay]


class AriaUsageResponse(BaseModel):
    daily_tokens: int
    total_tokens: int
    total_input: int
    total_output: int
    cost_usd: float
    interaction_count: int
    team_id: Optional[str] = None
    user_id: Optional[str] = None
    days: int
