from __future__ import annotations
from typing import Literal
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from pydantic import BaseModel
from ad_admin_portal import __version__
from .directory import Directory, LDAPSettings


class AppSettings(BaseModel, strict=True, frozen=True):
    ldap: LDAPSettings
    # members of any of these groups may use the portal,
    # any authenticated user when empty
    admin_groups: list[str] = []
    # to get a string like this run:
    # openssl rand -hex 32
    secret_key: str
    algorithm: Literal["HS256"] = "HS256"
    access_token_expire_minutes: int = 60 * 8  # one working day


def get_settings():
    import os

    settings_path = os.getenv("AD_API_SETTINGS_PATH", "settings_api.json")
    with open(settings_path) as f:
        return AppSettings.model_validate_json(f.read())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: AppSettings = app.dependency_overrides.get(
        get_settings, get_settings
    )()
    from .api.auth import AdminPolicy

    app.state.directory = settings.ldap.create_directory()
    app.state.policy = AdminPolicy(settings.admin_groups)
    app.state.secret_key = settings.secret_key
    app.state.algorithm = settings.algorithm
    app.state.access_token_expire_minutes = (
        settings.access_token_expire_minutes
    )
    yield


def get_directory(request: Request) -> Directory:
    return request.app.state.directory


app = FastAPI(
    version=__version__,
    title="AD Admin Portal API",
    description="Users, groups and organizational units of Active Directory",
    lifespan=lifespan,
)


from . import api as api
