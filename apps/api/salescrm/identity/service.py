from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Any, assert_never

from sqlalchemy import select
from sqlalchemy.orm import Session

from salescrm import audit, events
from salescrm.core.auth import create_access_token, hash_password, verify_password
from salescrm.core.config import get_settings
from salescrm.core.database import unit_of_work
from salescrm.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from salescrm.identity import ownership
from salescrm.identity.models import Team, User
from salescrm.identity.repository import TeamRepository, UserRepository
from salescrm.identity.roles import Role
from salescrm.identity.schemas import (
    LoginRequest,
    SignupRequest,
    TeamCreate,
    TeamRead,
    TeamUpdate,
    UserCreate,
    UserSummary,
    UserUpdate,
)
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.fls import sanitize_bank_details, writable_user_fields
from salescrm.platform.security.policies import (
    Resource,
    ResourceAction,
    authorize_user_access,
    authorize_user_creation,
    deny,
    require,
)


logger = logging.getLogger("salescrm.identity")

EMAIL_CONFLICT_MESSAGE = "A user with this email or contact number already exists"
MIN_PASSWORD_LENGTH = 8


def _default_team_name(team_lead: User) -> str:
    return f"{team_lead.name}'s Team"


def _check_password_pair(password: str | None, password_confirm: str | None) -> str:
    if not password or not password_confirm:
        raise ValidationError("Password and password confirmation are required")
    if password != password_confirm:
        raise ValidationError("Password and password confirmation do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return password


def _signup_ref_id(role: Role) -> str | None:
    settings = get_settings()
    if role is Role.MANAGER:
        return settings.manager_signup_ref_id
    elif role is Role.TEAM_LEAD:
        return settings.team_lead_signup_ref_id
    elif role is Role.SALES_EXECUTIVE:
        return settings.executive_signup_ref_id
    else:
        assert_never(role)


@dataclass(slots=True)
class CreatedUser:
    user: User
    temporary_password: str | None = None


class AuthService:
    user_repository = UserRepository()

    def signup(self, session: Session, dto: SignupRequest) -> User:
        _check_password_pair(dto.password, dto.password_confirm)
        expected_ref_id = _signup_ref_id(dto.role)
        if expected_ref_id is None or not secrets.compare_digest(dto.ref_id, expected_ref_id):
            raise ValidationError(f"Invalid reference ID for role '{dto.role.value}'")

        email = dto.email.lower()
        if self.user_repository.get_by_email(session, email) is not None:
            raise ConflictError(EMAIL_CONFLICT_MESSAGE)

        with unit_of_work(session, EMAIL_CONFLICT_MESSAGE):
            user = User(
                name=dto.name,
                email=email,
                password_hash=hash_password(dto.password),
                role=dto.role.value,
                ref_id=dto.ref_id,
            )
            session.add(user)
            session.flush()
            if dto.role is Role.TEAM_LEAD:
                ownership.create_team(session, user, _default_team_name(user))

        logger.info("auth.signup", extra={"user_id": str(user.id), "actor_role": user.role})
        return user

    def login(self, session: Session, dto: LoginRequest) -> tuple[User, str]:
        user = self.user_repository.get_by_email(session, dto.email)
        if user is None or not verify_password(dto.password, user.password_hash):
            raise AuthenticationError("Incorrect email or password")

        logger.info("auth.login", extra={"user_id": str(user.id), "actor_role": user.role})
        return user, create_access_token(user)


class UserService:
    user_repository = UserRepository()

    def get_me(self, session: Session, ctx: AuthContext) -> User:
        return self.user_repository.get_or_404(session, ctx.user_id)

    def create_user(self, session: Session, ctx: AuthContext, dto: UserCreate) -> CreatedUser:
        authorize_user_creation(ctx, dto.role)

        temporary_password: str | None = None
        ref_id = dto.ref_id
        if ctx.role is Role.TEAM_LEAD:
            if not dto.password or not dto.password_confirm:
                temporary_password = secrets.token_urlsafe(12)
                password = temporary_password
            else:
                password = _check_password_pair(dto.password, dto.password_confirm)
            ref_id = ref_id or f"EXEC-{uuid.uuid4().hex[:8].upper()}"
        else:
            password = _check_password_pair(dto.password, dto.password_confirm)
            if not ref_id:
                raise ValidationError("Reference ID is required")

        email = dto.email.lower()
        if self.user_repository.get_by_email(session, email) is not None:
            raise ConflictError(EMAIL_CONFLICT_MESSAGE)

        creator = self.user_repository.get_or_404(session, ctx.user_id)
        with unit_of_work(session, EMAIL_CONFLICT_MESSAGE):
            values: dict[str, Any] = {
                "name": dto.name,
                "email": email,
                "password_hash": hash_password(password),
                "role": dto.role.value,
                "ref_id": ref_id,
                "contact_no": dto.contact_no,
                "location": dto.location,
            }
            if dto.joining_date is not None:
                values["joining_date"] = dto.joining_date
            user = User(**values)
            session.add(user)
            session.flush()

            if ctx.role is Role.TEAM_LEAD:
                ownership.assign_executive(session, user, creator)
            elif dto.role is Role.TEAM_LEAD:
                ownership.set_team_lead_manager(session, user, creator)
                ownership.create_team(session, user, _default_team_name(user))
            elif dto.assigned_team_lead_id is not None:
                lead = session.get(User, dto.assigned_team_lead_id)
                if lead is None:
                    raise ValidationError("Assigned team lead not found")
                ownership.assign_executive(session, user, lead)

        logger.info(
            "user.created",
            extra={"user_id": str(user.id), "actor_id": ctx.actor, "actor_role": ctx.role.value},
        )
        return CreatedUser(user=user, temporary_password=temporary_password)

    def list_users(self, session: Session, ctx: AuthContext) -> list[User]:
        role = ctx.role
        stmt = select(User)
        if role is Role.SALES_EXECUTIVE:
            deny(ctx, Resource.USER, ResourceAction.READ, reason="list")
            raise AuthorizationError("You do not have permission to view all users")
        elif role is Role.TEAM_LEAD:
            stmt = stmt.where(User.manager_id == ctx.user_id, User.role == Role.SALES_EXECUTIVE.value)
        elif role is Role.MANAGER:
            stmt = stmt.where(User.role.in_([Role.SALES_EXECUTIVE.value, Role.TEAM_LEAD.value]))
        else:
            assert_never(role)
        return list(session.scalars(stmt.order_by(User.name.asc())).all())

    def get_user(self, session: Session, ctx: AuthContext, user_id: uuid.UUID) -> User:
        target = self.user_repository.get_or_404(session, user_id)
        authorize_user_access(session, ctx, target, ResourceAction.READ)
        return target

    def update_user(self, session: Session, ctx: AuthContext, user_id: uuid.UUID, dto: UserUpdate) -> User:
        submitted = dto.model_dump(exclude_unset=True)
        if "password" in submitted or "password_confirm" in submitted:
            raise ValidationError("This route is not for password updates")

        target = self.user_repository.get_or_404(session, user_id)
        relationship = authorize_user_access(session, ctx, target, ResourceAction.UPDATE)
        payload = self.user_repository.apply_write_security(
            submitted,
            writable_user_fields(ctx, relationship),
            ctx,
            record=target,
        )

        if "email" in payload and payload["email"] is not None:
            payload["email"] = payload["email"].lower()
            existing = self.user_repository.get_by_email(session, payload["email"])
            if existing is not None and existing.id != target.id:
                raise ConflictError(EMAIL_CONFLICT_MESSAGE)
        if "bank_details" in payload:
            payload["bank_details"] = sanitize_bank_details(payload["bank_details"])

        before = {key: _plain(getattr(target, key, None)) for key in payload if hasattr(target, key)}
        with unit_of_work(session, EMAIL_CONFLICT_MESSAGE):
            for key in ("name", "email", "contact_no", "location", "ref_id", "bank_details", "status"):
                if key in payload and (payload[key] is not None or key in {"contact_no", "location", "bank_details"}):
                    setattr(target, key, payload[key])
            self._apply_structural_changes(session, target, payload)

        audit.record(
            actor_user_id=ctx.actor,
            entity_type="user",
            entity_id=str(target.id),
            action="user.updated",
            before=before,
            after={key: _plain(value) for key, value in payload.items()},
            correlation_id=ctx.correlation_id,
        )
        return target

    def _apply_structural_changes(self, session: Session, target: User, payload: dict[str, Any]) -> None:
        """Route role/manager/team edits through the ownership graph."""

        if payload.get("role") is not None:
            ownership.change_role(session, target, Role(payload["role"]))

        role = target.role_enum
        if role is Role.SALES_EXECUTIVE:
            if "manager" in payload:
                lead_id = payload["manager"]
                if lead_id is None:
                    ownership.unassign_executive(session, target)
                else:
                    lead = session.get(User, lead_id)
                    if lead is None:
                        raise ValidationError("Assigned team lead not found")
                    ownership.assign_executive(session, target, lead)
            elif "team" in payload:
                team_id = payload["team"]
                if team_id is None:
                    ownership.unassign_executive(session, target)
                else:
                    team = session.get(Team, team_id)
                    if team is None:
                        raise ValidationError("Team not found")
                    lead = session.get(User, team.team_lead_id)
                    if lead is None:
                        raise ValidationError("Team has no team lead")
                    ownership.assign_executive(session, target, lead)
        elif role is Role.TEAM_LEAD:
            if "manager" in payload:
                manager_id = payload["manager"]
                manager = session.get(User, manager_id) if manager_id is not None else None
                if manager_id is not None and manager is None:
                    raise ValidationError("Assigned manager not found")
                ownership.set_team_lead_manager(session, target, manager)
            if "team" in payload:
                team_id = payload["team"]
                team = session.get(Team, team_id) if team_id is not None else None
                if team is None:
                    raise ValidationError("A team lead can only be moved onto an existing team")
                ownership.reassign_team_lead(session, team, target)
        elif role is Role.MANAGER:
            if payload.get("manager") is not None or payload.get("team") is not None:
                raise ValidationError("Managers do not report to anyone and do not belong to a team")
        else:
            assert_never(role)

    def delete_user(self, session: Session, ctx: AuthContext, user_id: uuid.UUID) -> None:
        require(ctx, Resource.USER, ResourceAction.DELETE)
        target = self.user_repository.get_or_404(session, user_id)
        authorize_user_access(session, ctx, target, ResourceAction.DELETE)

        snapshot = {"role": target.role, "email": target.email, "manager_id": _plain(target.manager_id)}
        with unit_of_work(session):
            role = target.role_enum
            if role is Role.TEAM_LEAD:
                ownership.release_team_lead(session, target)
            elif role is Role.MANAGER:
                ownership.release_manager(session, target)
            elif role is Role.SALES_EXECUTIVE:
                pass
            else:
                assert_never(role)
            session.delete(target)

        audit.record(
            actor_user_id=ctx.actor,
            entity_type="user",
            entity_id=str(user_id),
            action="user.deleted",
            before=snapshot,
            after=None,
            correlation_id=ctx.correlation_id,
        )
        events.publish(events.USER_DELETED, ctx.actor, {"user_id": str(user_id), "role": snapshot["role"]})
        logger.info("user.deleted", extra={"user_id": str(user_id), "actor_id": ctx.actor})


class TeamService:
    team_repository = TeamRepository()

    def to_read(self, session: Session, team: Team) -> TeamRead:
        lead = session.get(User, team.team_lead_id)
        members = session.scalars(
            select(User)
            .where(User.team_id == team.id, User.role == Role.SALES_EXECUTIVE.value)
            .order_by(User.name.asc())
        ).all()
        return TeamRead(
            id=team.id,
            name=team.name,
            team_lead=UserSummary.model_validate(lead) if lead is not None else None,
            members=[UserSummary.model_validate(member) for member in members],
            created_at=team.created_at,
            updated_at=team.updated_at,
        )

    def create_team(self, session: Session, ctx: AuthContext, dto: TeamCreate) -> Team:
        require(ctx, Resource.TEAM, ResourceAction.CREATE)
        lead = session.get(User, dto.team_lead_id)
        if lead is None or lead.role != Role.TEAM_LEAD.value:
            raise ValidationError("Invalid team lead ID provided or user is not a team lead")

        with unit_of_work(session, "Team name already in use"):
            team = ownership.create_team(session, lead, dto.name)
        return team

    def list_teams(self, session: Session, ctx: AuthContext) -> list[Team]:
        require(ctx, Resource.TEAM, ResourceAction.READ, "You do not have permission to view teams")
        stmt = select(Team)
        if ctx.role is Role.TEAM_LEAD:
            stmt = stmt.where(Team.team_lead_id == ctx.user_id)
        return list(session.scalars(stmt.order_by(Team.name.asc())).all())

    def get_team(self, session: Session, ctx: AuthContext, team_id: uuid.UUID) -> Team:
        require(ctx, Resource.TEAM, ResourceAction.READ, "You do not have permission to view teams")
        team = self.team_repository.get_or_404(session, team_id)
        self.team_repository.validate_record_access(session, ctx, team, ResourceAction.READ)
        return team

    def update_team(self, session: Session, ctx: AuthContext, team_id: uuid.UUID, dto: TeamUpdate) -> Team:
        require(ctx, Resource.TEAM, ResourceAction.UPDATE)
        team = self.team_repository.get_or_404(session, team_id)

        with unit_of_work(session, "Team name already in use"):
            if dto.team_lead_id is not None and dto.team_lead_id != team.team_lead_id:
                new_lead = session.get(User, dto.team_lead_id)
                if new_lead is None:
                    raise ValidationError("Invalid new team lead ID provided")
                ownership.reassign_team_lead(session, team, new_lead)
            if dto.add_members:
                ownership.add_members(session, team, dto.add_members)
            if dto.remove_members:
                ownership.remove_members(session, team, dto.remove_members)
            if dto.name is not None:
                team.name = dto.name

        logger.info("team.updated", extra={"team_id": str(team.id), "actor_id": ctx.actor})
        return team

    def delete_team(self, session: Session, ctx: AuthContext, team_id: uuid.UUID) -> None:
        require(ctx, Resource.TEAM, ResourceAction.DELETE)
        team = self.team_repository.get_or_404(session, team_id)

        with unit_of_work(session):
            ownership.delete_team(session, team)

        events.publish(events.TEAM_DELETED, ctx.actor, {"team_id": str(team_id)})


def _plain(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


auth_service = AuthService()
user_service = UserService()
team_service = TeamService()
