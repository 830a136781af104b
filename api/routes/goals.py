from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from reading_tracker.progress import NewReadingGoal, ProgressRepository
from reading_tracker.progress.serializers import goal_to_dict

from api.dependencies import get_repo
from api.schemas import ReadingGoalCreate, ReadingGoalUpdate

router = APIRouter(tags=["reading-goals"])


@router.post("/api/users/{user_id}/reading-goals", status_code=201)
def create_reading_goal(user_id: int, body: ReadingGoalCreate, repo: ProgressRepository = Depends(get_repo)):
    goal = repo.create_goal(NewReadingGoal(user_id=user_id, **body.model_dump()))
    return goal_to_dict(goal)


@router.get("/api/users/{user_id}/reading-goals/active")
def get_active_reading_goal(user_id: int, repo: ProgressRepository = Depends(get_repo)):
    # No active goal is a valid answer, not a missing resource.
    goal = repo.get_active_goal(user_id)
    return goal_to_dict(goal) if goal else None


@router.get("/api/reading-goals/{goal_id}")
def get_reading_goal(goal_id: int, repo: ProgressRepository = Depends(get_repo)):
    goal = repo.get_goal(goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail=f"Goal not found: {goal_id}")
    return goal_to_dict(goal)


@router.patch("/api/reading-goals/{goal_id}")
def update_reading_goal(goal_id: int, body: ReadingGoalUpdate, repo: ProgressRepository = Depends(get_repo)):
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    goal = repo.update_goal(goal_id, **changes)
    if not goal:
        raise HTTPException(status_code=404, detail=f"Goal not found: {goal_id}")
    return goal_to_dict(goal)
