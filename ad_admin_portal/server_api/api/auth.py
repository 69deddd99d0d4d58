from __future__ import annotations
from typing import Annotated, TypedDict, cast
from datetime import datetime, timedelta, timezone
import logging
import jwt
from jwt.exceptions import InvalidTokenError
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel
from .. import app, get_directory
from ..directory import Directory, account_name
from .exceptions import not_authorized_exception, response_description

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


class Token(BaseModel, strict=True, frozen=True):
    access_token: str
    token_type: str


class TokenData(TypedDict):
    username: str
    exp: datetime


class Operator(BaseModel, strict=True, frozen=True):
    username: str


class AdminPolicy:
    """
    Who may use the portal.

    With no admin groups configured any authenticated directory user is an
    administrator, otherwise the user must be enabled and belong to one of
    the groups (case-insensitive), directly or through nested groups.
    """

    def __init__(self, admin_groups: list[str]) -> None:
        self.admin_groups = {
            group.strip().casefold() for group in admin_groups if group.strip()
        }

    async def allows(self, directory: Directory, username: str) -> bool:
        if not self.admin_groups:
            return True
        sam = account_name(username)
        user = await directory.get_user(sam)
        if user is None or not user.enabled:
            return False
        groups = await directory.get_user_groups_nested(sam)
        return any(group.casefold() in self.admin_groups for group in groups)


def get_policy(request: Request) -> AdminPolicy:
    return request.app.state.policy


def _create_access_token(username: str, expires_delta: timedelta) -> str:
    to_encode: TokenData = {
        "username": username,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    encoded_jwt = jwt.encode(
        to_encode, app.state.secret_key, algorithm=app.state.algorithm
    )
    return encoded_jwt


@app.post(
    "/token",
    response_model=Token,
    tags=["auth"],
    responses={
        status.HTTP_401_UNAUTHORIZED: response_description(
            "Incorrect username or password"
        )
    },
)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    directory: Annotated[Directory, Depends(get_directory)],
    policy: Annotated[AdminPolicy, Depends(get_policy)],
) -> Token:
    if not await directory.authenticate(form_data.username, form_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not await policy.allows(directory, form_data.username):
        logger.warning("%s is not a portal administrator", form_data.username)
        raise not_authorized_exception
    access_token_expires = timedelta(
        minutes=app.state.access_token_expire_minutes
    )
    access_token = _create_access_token(
        username=form_data.username, expires_delta=access_token_expires
    )
    return Token(access_token=access_token, token_type="bearer")


async def get_current_operator(
    token: Annotated[str, Depends(oauth2_scheme)],
    directory: Annotated[Directory, Depends(get_directory)],
    policy: Annotated[AdminPolicy, Depends(get_policy)],
) -> Operator:
    try:
        payload = cast(
            TokenData,
            jwt.decode(
                token, app.state.secret_key, algorithms=[app.state.algorithm]
            ),
        )
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # group membership can change while the token is valid
    if not await policy.allows(directory, payload["username"]):
        raise not_authorized_exception
    return Operator(username=payload["username"])
