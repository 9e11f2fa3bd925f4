from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from salescrm.api.schemas import DataEnvelope, ListEnvelope, wrap, wrap_list
from salescrm.core.auth import LOGGED_OUT_SENTINEL, get_auth_context
from salescrm.core.config import get_settings
from salescrm.core.database import get_db
from salescrm.identity.schemas import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
    TeamCreate,
    TeamRead,
    TeamUpdate,
    UserCreate,
    UserCreated,
    UserListItem,
    UserRead,
    UserUpdate,
)
from salescrm.identity.service import auth_service, team_service, user_service
from salescrm.platform.security.context import AuthContext

auth_router = APIRouter(prefix="/api/v1/auth", tags=["auth"])
users_router = APIRouter(prefix="/api/v1/users", tags=["users"])
teams_router = APIRouter(prefix="/api/v1/teams", tags=["teams"])


@auth_router.post("/signup", response_model=DataEnvelope[UserRead], status_code=status.HTTP_201_CREATED)
def signup(dto: SignupRequest, db: Session = Depends(get_db)) -> DataEnvelope[UserRead]:
    user = auth_service.signup(db, dto)
    return wrap(UserRead.model_validate(user), "User registered successfully. Please log in.")


@auth_router.post("/login", response_model=DataEnvelope[LoginResponse])
def login(dto: LoginRequest, response: Response, db: Session = Depends(get_db)) -> DataEnvelope[LoginResponse]:
    settings = get_settings()
    user, token = auth_service.login(db, dto)
    response.set_cookie(
        key=settings.jwt_cookie_name,
        value=token,
        max_age=settings.jwt_expires_minutes * 60,
        httponly=True,
        secure=settings.jwt_cookie_secure,
        samesite="lax",
    )
    return wrap(LoginResponse(token=token, user=UserRead.model_validate(user)))


@auth_router.post("/logout", response_model=DataEnvelope[None])
def logout(response: Response) -> DataEnvelope[None]:
    settings = get_settings()
    # the short-lived sentinel replaces the session token in the browser
    response.set_cookie(
        key=settings.jwt_cookie_name,
        value=LOGGED_OUT_SENTINEL,
        max_age=10,
        httponly=True,
        secure=settings.jwt_cookie_secure,
        samesite="lax",
    )
    return wrap(None, "Logged out successfully")


@users_router.get("/me", response_model=DataEnvelope[UserRead])
def get_me(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[UserRead]:
    return wrap(UserRead.model_validate(user_service.get_me(db, ctx)))


@users_router.post("", response_model=DataEnvelope[UserCreated], status_code=status.HTTP_201_CREATED)
def create_user(
    dto: UserCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[UserCreated]:
    created = user_service.create_user(db, ctx, dto)
    payload = UserCreated.model_validate(created.user).model_copy(
        update={"temporary_password": created.temporary_password}
    )
    return wrap(payload)


@users_router.get("", response_model=ListEnvelope[UserListItem])
def list_users(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[UserListItem]:
    users = user_service.list_users(db, ctx)
    return wrap_list([UserListItem.model_validate(user) for user in users])


@users_router.get("/{user_id}", response_model=DataEnvelope[UserRead])
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[UserRead]:
    return wrap(UserRead.model_validate(user_service.get_user(db, ctx, user_id)))


@users_router.patch("/{user_id}", response_model=DataEnvelope[UserRead])
def update_user(
    user_id: uuid.UUID,
    dto: UserUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[UserRead]:
    return wrap(UserRead.model_validate(user_service.update_user(db, ctx, user_id, dto)))


@users_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    user_service.delete_user(db, ctx, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@teams_router.post("", response_model=DataEnvelope[TeamRead], status_code=status.HTTP_201_CREATED)
def create_team(
    dto: TeamCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[TeamRead]:
    team = team_service.create_team(db, ctx, dto)
    return wrap(team_service.to_read(db, team))


@teams_router.get("", response_model=ListEnvelope[TeamRead])
def list_teams(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[TeamRead]:
    teams = team_service.list_teams(db, ctx)
    return wrap_list([team_service.to_read(db, team) for team in teams])


@teams_router.get("/{team_id}", response_model=DataEnvelope[TeamRead])
def get_team(
    team_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[TeamRead]:
    team = team_service.get_team(db, ctx, team_id)
    return wrap(team_service.to_read(db, team))


@teams_router.patch("/{team_id}", response_model=DataEnvelope[TeamRead])
def update_team(
    team_id: uuid.UUID,
    dto: TeamUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[TeamRead]:
    team = team_service.update_team(db, ctx, team_id, dto)
    return wrap(team_service.to_read(db, team))


@teams_router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    team_service.delete_team(db, ctx, team_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
