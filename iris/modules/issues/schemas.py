from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date


class IssueCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status_id: Optional[str] = None
    priority_id: Optional[str] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    cycle_id: Optional[str] = None
    parent_issue_id: Optional[str] = None
    due_date: Optional[date] = None
    estimate_points: Optional[int] = None
    label_ids: List[str] = []


class IssueUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status_id: Optional[str] = None
    priority_id: Optional[str] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    cycle_id: Optional[str] = None
    due_date: Optional[date] = None
    estimate_points: Optional[int] = None
    parent_issue_id: Optional[str] = None
    label_ids: Optional[List[str]] = None


class IssueFilters(BaseModel):
    status_id: Optional[str] = None
    assignee: Optional[str] = None
    priority: Optional[str] = None
    project_id: Optional[str] = None
    cycle_id: Optional[str] = None
    search: Optional[str] = None
    group_by: Optional[str] = None
    limit: int = 100
    offset: int = 0


class CommentCreate(BaseModel):
    content: str = Field(min_length=1)
    parent_comment_id: Optional[str] = None
