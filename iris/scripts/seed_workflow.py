"""
Seed Workflow Script
Populates the global task priorities and gives every team without
statuses the default workflow. Safe to run repeatedly.

    python -m iris.scripts.seed_workflow
"""

import sys
import logging
from supabase import Client

from iris.database.supabase_client import get_supabase

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PRIORITIES = [
    {"name": "Urgent", "level": 1, "color": "#EF4444"},
    {"name": "High", "level": 2, "color": "#F97316"},
    {"name": "Medium", "level": 3, "color": "#F59E0B"},
    {"name": "Low", "level": 4, "color": "#3B82F6"},
    {"name": "None", "level": 5, "color": "#6B7280"},
]

DEFAULT_STATUSES = [
    {"name": "Backlog", "status_type": "backlog", "color": "#6B7280", "is_default": False},
    {"name": "Todo", "status_type": "todo", "color": "#F59E0B", "is_default": True},
    {"name": "In Progress", "status_type": "in_progress", "color": "#3B82F6", "is_default": False},
    {"name": "In Review", "status_type": "in_review", "color": "#8B5CF6", "is_default": False},
    {"name": "Done", "status_type": "done", "color": "#10B981", "is_default": False},
    {"name": "Cancelled", "status_type": "cancelled", "color": "#EF4444", "is_default": False},
]


def seed_priorities(supabase: Client) -> int:
    """Create missing priorities and refresh level/colour of existing ones"""
    logger.info("Seeding priorities...")
    created_count = 0
    updated_count = 0

    for priority in DEFAULT_PRIORITIES:
        try:
            existing = supabase.table("task_priorities")\
                .select("priority_id")\
                .ilike("name", priority["name"])\
                .execute()

            if existing.data:
                supabase.table("task_priorities")\
                    .update({"level": priority["level"], "color": priority["color"]})\
                    .eq("priority_id", existing.data[0]["priority_id"])\
                    .execute()
                updated_count += 1
            else:
                supabase.table("task_priorities").insert(priority).execute()
                created_count += 1
        except Exception as e:
            logger.error(f"Error processing priority {priority['name']}: {e}")

    logger.info(f"Priorities seeded: {created_count} created, {updated_count} updated")
    return created_count + updated_count


def seed_team_statuses(supabase: Client) -> int:
    """Give each team that has no statuses the default workflow. Returns how many teams were seeded."""
    logger.info("Seeding team statuses...")
    teams = supabase.table("teams").select("team_id, name").execute()
    seeded = 0

    for team in teams.data or []:
        try:
            existing = supabase.table("task_statuses")\
                .select("status_id")\
                .eq("team_id", team["team_id"])\
                .limit(1)\
                .execute()
            if existing.data:
                continue
            supabase.table("task_statuses").insert([
                {**status, "team_id": team["team_id"], "position": position}
                for position, status in enumerate(DEFAULT_STATUSES)
            ]).execute()
            seeded += 1
            logger.debug(f"Seeded statuses for team {team['name']}")
        except Exception as e:
            logger.error(f"Error seeding statuses for team {team['name']}: {e}")

    logger.info(f"Statuses seeded for {seeded} teams")
    return seeded


def main():
    try:
        supabase = get_supabase()
        logger.info("Starting workflow seeding...")
        priority_count = seed_priorities(supabase)
        team_count = seed_team_statuses(supabase)
        logger.info(f"Total: {priority_count} priorities, {team_count} teams processed")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
