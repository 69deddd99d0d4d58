from __future__ import annotations
from typing import Annotated, Any
from pydantic import (
    BaseModel,
    StringConstraints,
    ValidationError,
)

type Trimmed = Annotated[str, StringConstraints(strip_whitespace=True)]


def _non_blank(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value != ""}


class BaseForm(BaseModel):
    @classmethod
    def parse_form(cls, form: dict):
        try:
            return cls(**form), None
        except ValidationError as e:
            return None, e.errors()


class LoginForm(BaseForm):
    username: Annotated[str, StringConstraints(strip_whitespace=True)]
    password: str


class CreateUserFormHTML(BaseForm):
    sam: Annotated[
        str, StringConstraints(min_length=1, max_length=20, strip_whitespace=True)
    ]
    password: str
    confirm_password: str
    first_name: Trimmed = ""
    middle_name: Trimmed = ""
    last_name: Trimmed = ""
    display_name: Trimmed = ""
    email: Trimmed = ""
    job_title: Trimmed = ""
    telephone: Trimmed = ""
    ou_dn: Trimmed = ""
    template_sam: Trimmed = ""
    # unchecked checkboxes are not sent
    clone_groups: bool = False

    def to_api(self) -> dict[str, Any]:
        data = _non_blank(self.model_dump(exclude={"clone_groups"}))
        if self.template_sam:
            data["clone_groups"] = self.clone_groups
        return data


class UpdateUserForm(BaseForm):
    display_name: Trimmed = ""
    email: Trimmed = ""

    def to_api(self) -> dict[str, Any]:
        return _non_blank(self.model_dump())


class ResetPasswordForm(BaseForm):
    new: str
    confirm: str
    must_change: bool = False

    def to_api(self) -> dict[str, Any]:
        return self.model_dump()


class CreateGroupForm(BaseForm):
    sam: Annotated[
        str, StringConstraints(min_length=1, max_length=64, strip_whitespace=True)
    ]
    description: Annotated[
        str, StringConstraints(max_length=1024, strip_whitespace=True)
    ] = ""
    ou_dn: Trimmed = ""

    def to_api(self) -> dict[str, Any]:
        return _non_blank(self.model_dump())
