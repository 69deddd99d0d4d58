from __future__ import annotations
from typing import Any
import json
import httpx


class HXTrigger:
    def __init__(self):
        self.events: dict = {}

    def add_success_event(self, message: str):
        self.events["successEvent"] = {"message": message}

    def add_error_event(self, errors: list):
        self.events.setdefault("errorEvent", {"errors": []})["errors"].extend(
            errors
        )

    def add_update_user(self):
        self.events["updateUser"] = {}

    def add_update_group(self):
        self.events["updateGroup"] = {}

    def add_close_modal_event(self):
        self.events["closeModal"] = {}

    def build(self):
        return self._build(self.events)

    @classmethod
    def _build(cls, events):
        return {"HX-Trigger": json.dumps(events)}

    @classmethod
    def send_error_messages(cls, errors: list[str]):
        return cls._build({"errorEvent": {"errors": errors}})

    @classmethod
    def send_errors(cls, response: httpx.Response):
        return cls.send_error_messages(response_errors(response))


def response_errors(response: httpx.Response) -> list[str]:
    try:
        return parse_errors(response.json())
    except ValueError:
        return [response.text or response.reason_phrase]


def parse_errors(msg: dict[str, Any]) -> list[str]:
    """
    FastAPI error payload to messages

    `detail` is a string for HTTP errors and a list of pydantic errors
    for validation failures
    """
    detail = msg.get("detail")
    result: list[str] = []
    if isinstance(detail, list):
        for d in detail:
            if isinstance(d, dict) and "msg" in d:
                loc = [str(part) for part in d.get("loc", ()) if part != "body"]
                result.append(f"{'.'.join(loc)}: {d['msg']}" if loc else d["msg"])
            else:
                result.append(str(d))
        return result
    return [str(detail)]


def split_names(value: str | None) -> list[str]:
    """
    "Sales, VPN Users,," -> ["Sales", "VPN Users"]
    """
    return [name.strip() for name in (value or "").split(",") if name.strip()]


def parse_member_tokens(value: str | None) -> list[dict[str, str]]:
    """
    "user:jdoe, group:Sales" -> [{"type": "user", "sam": "jdoe"}, ...]

    Tokens without a type and tokens of unknown type are skipped
    """
    members: list[dict[str, str]] = []
    for token in split_names(value):
        kind, sep, sam = token.partition(":")
        kind = kind.strip().lower()
        sam = sam.strip()
        if not sep or not sam or kind not in ("user", "group"):
            continue
        members.append({"type": kind, "sam": sam})
    return members
