from supabase import Client
from iris.modules.workflow.schemas import (
    LabelCreate, LabelResponse, StatusCreate, StatusResponse,
    CycleCreate, CycleResponse, PriorityResponse, STATUS_TYPES
)
from iris.core.utils import now_iso, pg_error_code, UNIQUE_VIOLATION
from typing import List
from fastapi import HTTPException


class WorkflowService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_labels(self, team_id: str) -> List[LabelResponse]:
        try:
            result = self.supabase.table("task_labels")\
                .select("*")\
                .eq("team_id", team_id)\
                .order("name")\
                .execute()
            return [LabelResponse(**label) for label in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_label(self, team_id: str, label_data: LabelCreate) -> LabelResponse:
        try:
            result = self.supabase.table("task_labels").insert({
                "team_id": team_id,
                "name": label_data.name.strip(),
                "color": label_data.color,
                "description": label_data.description,
                "created_at": now_iso(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create label")
            return LabelResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == UNIQUE_VIOLATION:
                raise HTTPException(status_code=409, detail="Label already exists")
            raise HTTPException(status_code=500, detail=str(e))

    def list_statuses(self, team_id: str) -> List[StatusResponse]:
        try:
            result = self.supabase.table("task_statuses")\
                .select("*")\
                .eq("team_id", team_id)\
                .order("position")\
                .execute()
            return [StatusResponse(**s) for s in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_status(self, team_id: str, status_data: StatusCreate) -> StatusResponse:
        """New statuses go after the last one (position = max + 1)"""
        if status_data.status_type not in STATUS_TYPES:
            raise HTTPException(status_code=400, detail=f"Invalid status_type. Allowed: {', '.join(STATUS_TYPES)}")
        try:
            last = self.supabase.table("task_statuses")\
                .select("position")\
                .eq("team_id", team_id)\
                .order("position", desc=True)\
                .limit(1)\
                .execute()
            position = (last.data[0].get("position") or 0) + 1 if last.data else 0

            result = self.supabase.table("task_statuses").insert({
                "team_id": team_id,
                "name": status_data.name.strip(),
                "status_type": status_data.status_type,
                "color": status_data.color,
                "position": position,
                "is_default": status_data.is_default,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create status")
            return StatusResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == UNIQUE_VIOLATION:
                raise HTTPException(status_code=409, detail="Status already exists")
            raise HTTPException(status_code=500, detail=str(e))

    def list_cycles(self, team_id: str) -> List[CycleResponse]:
        try:
            result = self.supabase.table("task_cycles")\
                .select("*")\
                .eq("team_id", team_id)\
                .order("start_date", desc=True)\
                .execute()
            return [CycleResponse(**c) for c in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_cycle(self, team_id: str, cycle_data: CycleCreate) -> CycleResponse:
        if cycle_data.end_date < cycle_data.start_date:
            raise HTTPException(status_code=400, detail="end_date must not be before start_date")
        try:
            result = self.supabase.table("task_cycles").insert({
                "team_id": team_id,
                "name": cycle_data.name.strip(),
                "description": cycle_data.description,
                "start_date": cycle_data.start_date.isoformat(),
                "end_date": cycle_data.end_date.isoformat(),
                "status": "upcoming",
                "created_at": now_iso(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create cycle")
            return CycleResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_priorities(self) -> List[PriorityResponse]:
        try:
            result = self.supabase.table("task_priorities")\
                .select("*")\
                .order("level")\
                .execute()
            return [PriorityResponse(**p) for p in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
