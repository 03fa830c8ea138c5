# app/api/v1/teams.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth import get_active_user, get_db
from app.crud import team as crud_team
from app.models.user import User
from app.schemas.common import ok
from app.schemas.team import TeamCreate, TeamOut

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    team = crud_team.create_team(db, current_user, payload)
    return ok(TeamOut.model_validate(team).model_dump(mode="json"))


@router.get("/my-teams")
def my_teams(db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    teams = crud_team.list_teams_for_user(db, current_user.uid)
    return ok({"teams": [TeamOut.model_validate(t).model_dump(mode="json") for t in teams]})
