from __future__ import annotations
from typing import NamedTuple
from os import getenv
from urllib.parse import quote
import logging
from quart import (
    Quart,
    render_template,
    redirect,
    url_for,
    request,
    make_response,
)
import httpx

from .. import __version__
from ..dn import friendly_ou_label
from .forms import (
    CreateGroupForm,
    CreateUserFormHTML,
    LoginForm,
    ResetPasswordForm,
    UpdateUserForm,
)
from .helpers import HXTrigger, parse_member_tokens, split_names

logger = logging.getLogger(__name__)


class WebSettings(NamedTuple):
    api_url: str = "http://127.0.0.1:8000"
    secret_key: str | None = None


def _get_settings() -> WebSettings:
    import json

    settings_path = getenv("AD_WEB_SETTINGS_PATH", "settings_web.json")
    try:
        with open(settings_path) as f:
            data = json.load(f)
    except FileNotFoundError:
        data = {}
    return WebSettings(**data)


class App(Quart):
    client: httpx.AsyncClient
    settings: WebSettings


app = App(__name__)
app.settings = _get_settings()
app.secret_key = app.settings.secret_key
app.jinja_env.filters["ou_label"] = friendly_ou_label


@app.before_serving
async def startup():
    logger.info("create httpx client for %s", app.settings.api_url)
    app.client = httpx.AsyncClient(base_url=app.settings.api_url)


@app.after_serving
async def shutdown():
    await app.client.aclose()
    logger.info("closed httpx client")


@app.errorhandler(httpx.NetworkError)
async def handle_connect_error(error: httpx.NetworkError):
    logger.warning("API is unreachable: %s", error)
    return "", 503, HXTrigger.send_error_messages(["API is unreachable"])


@app.context_processor
async def inject_auth():
    return {
        "has_auth": bool(request.cookies.get("Authorization")),
        "version": __version__,
    }


def get_authorization_str(token_type: str, access_token: str):
    return f"{token_type.capitalize()} {access_token}"


def _quote(name: str) -> str:
    # "#", "%" and "?" are valid in account names
    return quote(name, safe="")


def _auth() -> dict[str, str]:
    return {"Authorization": request.cookies.get("Authorization", "")}


def _form_errors(errors: list) -> dict[str, str]:
    return HXTrigger.send_error_messages(
        [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in errors]
    )


async def _login_page():
    resp = await make_response(await render_template("login.html"))
    resp.delete_cookie("Authorization")
    return resp


@app.get("/")
async def index():
    if request.cookies.get("Authorization"):
        resp = await app.client.get("/whoami", headers=_auth())
        if resp.status_code == 200:
            return redirect(url_for("users"))
    return await _login_page()


@app.post("/")
async def login():
    form, errors = LoginForm.parse_form(dict(await request.form))
    if form is None:
        return "", 422, _form_errors(errors)
    api_resp = await app.client.post("/token", data=form.model_dump())
    if api_resp.status_code == 200:
        token = api_resp.json()
        resp = await make_response("", 200)
        resp.set_cookie(
            "Authorization",
            get_authorization_str(token["token_type"], token["access_token"]),
            httponly=True,
            samesite="Strict",
        )
        resp.headers["HX-Redirect"] = url_for("users")
        return resp
    return ("", api_resp.status_code, HXTrigger.send_errors(api_resp))


@app.route("/logout")
async def logout():
    resp = await make_response(redirect(url_for("index")))
    resp.delete_cookie("Authorization")
    return resp


# users


@app.get("/users")
async def users():
    q = request.args.get("q", "").strip()
    resp = await app.client.get("/users", params={"q": q}, headers=_auth())
    if resp.status_code == 401:
        return await _login_page()
    if resp.status_code != 200:
        return "", resp.status_code, HXTrigger.send_errors(resp)
    template = (
        "partials/users_table.html"
        if request.headers.get("HX-Request")
        else "users.html"
    )
    return await render_template(template, users=resp.json(), q=q)


async def _user_page(sam: str, template: str):
    resp = await app.client.get(f"/ui/user/{_quote(sam)}", headers=_auth())
    if resp.status_code == 401:
        return await _login_page()
    if resp.status_code != 200:
        return "", resp.status_code, HXTrigger.send_errors(resp)
    return await render_template(template, **resp.json())


@app.get("/user/<sam>")
async def user(sam: str):
    return await _user_page(sam, "user.html")


@app.get("/user/<sam>/card")
async def user_card(sam: str):
    return await _user_page(sam, "partials/user_card.html")


_USER_ACTIONS = {
    "disable": "User disabled",
    "enable": "User enabled",
    "unlock": "User unlocked",
}


@app.post("/user/<sam>/<action>")
async def user_action(sam: str, action: str):
    if action not in _USER_ACTIONS:
        return "", 404
    resp = await app.client.post(
        f"/user/{_quote(sam)}/{action}", headers=_auth()
    )
    if resp.status_code == 204:
        trigger = HXTrigger()
        trigger.add_success_event(_USER_ACTIONS[action])
        trigger.add_update_user()
        return "", 200, trigger.build()
    return "", resp.status_code, HXTrigger.send_errors(resp)


@app.post("/user/<sam>/password")
async def reset_password(sam: str):
    form, errors = ResetPasswordForm.parse_form(dict(await request.form))
    if form is None:
        return "", 422, _form_errors(errors)
    resp = await app.client.post(
        f"/user/{_quote(sam)}/password", json=form.to_api(), headers=_auth()
    )
    if resp.status_code == 204:
        trigger = HXTrigger()
        trigger.add_success_event("Password changed")
        trigger.add_close_modal_event()
        return "", 200, trigger.build()
    return "", resp.status_code, HXTrigger.send_errors(resp)


@app.patch("/user/<sam>")
async def update_user(sam: str):
    form, errors = UpdateUserForm.parse_form(dict(await request.form))
    if form is None:
        return "", 422, _form_errors(errors)
    resp = await app.client.patch(
        f"/user/{_quote(sam)}", json=form.to_api(), headers=_auth()
    )
    if resp.status_code == 204:
        trigger = HXTrigger()
        trigger.add_success_event("User updated")
        trigger.add_update_user()
        return "", 200, trigger.build()
    return "", resp.status_code, HXTrigger.send_errors(resp)


async def _user_groups(sam: str, add: bool):
    form = await request.form
    groups = form.getlist("groups") or split_names(form.get("group_names"))
    resp = await app.client.request(
        "POST" if add else "DELETE",
        f"/user/{_quote(sam)}/groups",
        json=groups,
        headers=_auth(),
    )
    if resp.status_code in (201, 204):
        trigger = HXTrigger()
        trigger.add_success_event(
            f"{len(groups)} groups {'added' if add else 'removed'}"
        )
        trigger.add_update_user()
        return "", 200, trigger.build()
    return "", resp.status_code, HXTrigger.send_errors(resp)


@app.post("/user/<sam>/groups")
async def add_user_groups(sam: str):
    return await _user_groups(sam, add=True)


@app.post("/user/<sam>/groups/remove")
async def remove_user_groups(sam: str):
    return await _user_groups(sam, add=False)


async def _organizational_units(selected: str | None = None) -> list:
    params = {"selected": selected} if selected else {}
    resp = await app.client.get("/ui/ous", params=params, headers=_auth())
    resp.raise_for_status()
    return resp.json()


@app.get("/users/new")
async def create_user_form():
    like = request.args.get("like", "").strip()
    template = {}
    if like:
        resp = await app.client.get(
            f"/user/{_quote(like)}/template", headers=_auth()
        )
        if resp.status_code != 200:
            return "", resp.status_code, HXTrigger.send_errors(resp)
        template = resp.json()
    try:
        ous = await _organizational_units(template.get("ou_dn"))
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 401:
            return await _login_page()
        return "", e.response.status_code, HXTrigger.send_errors(e.response)
    return await render_template(
        "create_user.html", ous=ous, template=template
    )


@app.post("/users/new")
async def create_user():
    form, errors = CreateUserFormHTML.parse_form(dict(await request.form))
    if form is None:
        return "", 422, _form_errors(errors)
    resp = await app.client.post("/user", json=form.to_api(), headers=_auth())
    if resp.status_code == 201:
        sam = resp.json()["sam"]
        logger.info("created user %s", sam)
        out = await make_response("", 201)
        out.headers["HX-Redirect"] = url_for("user", sam=sam)
        return out
    return "", resp.status_code, HXTrigger.send_errors(resp)


# groups


@app.get("/groups")
async def groups():
    q = request.args.get("q", "").strip()
    resp = await app.client.get(
        "/groups/search", params={"q": q}, headers=_auth()
    )
    if resp.status_code == 401:
        return await _login_page()
    if resp.status_code != 200:
        return "", resp.status_code, HXTrigger.send_errors(resp)
    template = (
        "partials/groups_table.html"
        if request.headers.get("HX-Request")
        else "groups.html"
    )
    return await render_template(template, groups=resp.json(), q=q)


async def _group_page(sam: str, template: str):
    resp = await app.client.get(f"/ui/group/{_quote(sam)}", headers=_auth())
    if resp.status_code == 401:
        return await _login_page()
    if resp.status_code != 200:
        return "", resp.status_code, HXTrigger.send_errors(resp)
    return await render_template(template, **resp.json())


@app.get("/group/<sam>")
async def group(sam: str):
    return await _group_page(sam, "group.html")


@app.get("/group/<sam>/card")
async def group_card(sam: str):
    return await _group_page(sam, "partials/group_card.html")


async def _group_members(sam: str, add: bool):
    form = await request.form
    tokens = form.getlist("members")
    members = parse_member_tokens(",".join(tokens))
    resp = await app.client.request(
        "POST" if add else "DELETE",
        f"/group/{_quote(sam)}/members",
        json=members,
        headers=_auth(),
    )
    if resp.status_code in (201, 204):
        trigger = HXTrigger()
        trigger.add_success_event(
            f"{len(members)} members {'added' if add else 'removed'}"
        )
        trigger.add_update_group()
        return "", 200, trigger.build()
    return "", resp.status_code, HXTrigger.send_errors(resp)


@app.post("/group/<sam>/members")
async def add_group_members(sam: str):
    return await _group_members(sam, add=True)


@app.post("/group/<sam>/members/remove")
async def remove_group_members(sam: str):
    return await _group_members(sam, add=False)


@app.delete("/group/<sam>")
async def delete_group(sam: str):
    resp = await app.client.delete(f"/group/{_quote(sam)}", headers=_auth())
    if resp.status_code == 204:
        out = await make_response("", 200)
        out.headers["HX-Redirect"] = url_for("groups")
        return out
    return "", resp.status_code, HXTrigger.send_errors(resp)


@app.get("/groups/new")
async def create_group_form():
    try:
        ous = await _organizational_units()
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 401:
            return await _login_page()
        return "", e.response.status_code, HXTrigger.send_errors(e.response)
    return await render_template("create_group.html", ous=ous)


@app.post("/groups/new")
async def create_group():
    form, errors = CreateGroupForm.parse_form(dict(await request.form))
    if form is None:
        return "", 422, _form_errors(errors)
    resp = await app.client.post("/group", json=form.to_api(), headers=_auth())
    if resp.status_code == 201:
        out = await make_response("", 201)
        out.headers["HX-Redirect"] = url_for("group", sam=resp.json()["sam"])
        return out
    return "", resp.status_code, HXTrigger.send_errors(resp)
