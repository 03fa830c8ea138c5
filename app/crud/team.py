# app/crud/team.py
import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.core.roles import TENANT_ADMIN
from app.models.team import Team, TeamMember
from app.models.user import User
from app.schemas.team import TeamCreate

log = logging.getLogger("app.teams")


def create_team(db: Session, user: User, data: TeamCreate) -> Team:
    """Team plus its creator as admin, in one commit."""
    name = data.name.strip()
    if not name:
        raise ValidationError("Team name is required.", code="MISSING_NAME")

    team = Team(
        name=name,
        description=data.description.strip() if data.description else None,
        created_by=user.uid,
    )
    db.add(team)
    db.flush()
    db.add(
        TeamMember(
            team_id=team.team_id,
            uid=user.uid,
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            role=TENANT_ADMIN,
        )
    )
    db.commit()
    db.refresh(team)
    log.info("Team %s created by uid=%s", team.team_id, user.uid)
    return team


def list_teams_for_user(db: Session, uid: str) -> List[Team]:
    return (
        db.query(Team)
        .join(TeamMember, TeamMember.team_id == Team.team_id)
        .filter(TeamMember.uid == uid, Team.removed.is_(False))
        .order_by(Team.created_at.asc())
        .all()
    )
