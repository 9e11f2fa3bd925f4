from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salescrm.identity.models import Team, User
from salescrm.platform.security.policies import Resource
from salescrm.platform.security.repository import BaseRepository


class UserRepository(BaseRepository):
    resource = Resource.USER
    model = User
    owner_field = "id"
    label = "user"

    def get_by_email(self, session: Session, email: str) -> User | None:
        return session.scalar(select(User).where(func.lower(User.email) == email.lower()))


class TeamRepository(BaseRepository):
    resource = Resource.TEAM
    model = Team
    owner_field = "team_lead_id"
    label = "team"
