from __future__ import annotations
from typing import Annotated
from pydantic import (
    AfterValidator,
    BaseModel,
    EmailStr,
    Field,
    SecretStr,
    StringConstraints,
    model_validator,
)
from fastapi import APIRouter, Depends, HTTPException, Response, status

from .. import get_directory
from ..directory import ADUser, Directory, NewUser, compose_display_name
from .auth import Operator, get_current_operator
from .exceptions import (
    response_description,
    response_directory_unavailable,
    response_with_perm_check,
)
from .validators import check_password, valid_sam_account_name

router = APIRouter(tags=["user"])

type SamAccountName = Annotated[
    str,
    StringConstraints(min_length=1, max_length=20, strip_whitespace=True),
    AfterValidator(valid_sam_account_name),
]

type PersonName = Annotated[
    str, StringConstraints(min_length=1, max_length=64, strip_whitespace=True)
]

type Text = Annotated[
    str, StringConstraints(min_length=1, max_length=256, strip_whitespace=True)
]

user_not_found = response_description("User not found")


def _user_not_found(sam: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"User '{sam}' not found",
    )


class CreateUserModel(BaseModel, strict=True, frozen=True):
    sam: SamAccountName
    password: SecretStr = Field(exclude=True, min_length=1, max_length=128)
    confirm_password: SecretStr = Field(exclude=True)
    display_name: Text | None = None
    first_name: PersonName | None = None
    middle_name: PersonName | None = None
    last_name: PersonName | None = None
    email: EmailStr | None = None
    job_title: Text | None = None
    telephone: Annotated[str, StringConstraints(max_length=32)] | None = None
    ou_dn: Annotated[
        str | None,
        Field(description="Organizational unit, default users container"),
    ] = None
    template_sam: Annotated[
        SamAccountName | None,
        Field(description="Create like this user"),
    ] = None
    clone_groups: Annotated[
        bool, Field(description="Copy groups of `template_sam`")
    ] = True

    @model_validator(mode="after")
    def check_passwords(self):
        password = self.password.get_secret_value()
        if password != self.confirm_password.get_secret_value():
            raise ValueError("Passwords do not match")
        check_password(
            password,
            self.sam,
            self.display_name,
            self.first_name,
            self.last_name,
        )
        return self

    def make_user(self) -> NewUser:
        return NewUser(
            sam=self.sam,
            password=self.password.get_secret_value(),
            display_name=self.display_name
            or compose_display_name(
                self.first_name, self.middle_name, self.last_name
            ),
            email=self.email,
            ou_dn=self.ou_dn or None,
            first_name=self.first_name,
            middle_name=self.middle_name,
            last_name=self.last_name,
            job_title=self.job_title,
            telephone=self.telephone or None,
        )


class NewUserResponse(BaseModel, strict=True):
    sam: str


@router.get(
    "/users",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def find_users(
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
    q: str = "",
) -> list[ADUser]:
    """
    ## Search users

    Matches logon name, display name and e-mail. Empty query finds nothing
    """
    if not q.strip():
        return []
    return await directory.find_users(q)


@router.post(
    "/user",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_409_CONFLICT: response_description("User already exists"),
        status.HTTP_502_BAD_GATEWAY: response_directory_unavailable,
    },
)
async def create_user(
    user: CreateUserModel,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> NewUserResponse:
    """
    ## Create a new user.

    The account is enabled and the password must be changed at first logon.
    With `template_sam` and `clone_groups` the new user gets the groups of
    the template user.
    """
    await directory.create_user(user.make_user())
    if user.template_sam and user.clone_groups:
        await directory.copy_groups(user.template_sam, user.sam)
    return NewUserResponse(sam=user.sam)


@router.get(
    "/user/{sam}",
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def get_user(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> ADUser:
    user = await directory.get_user(sam)
    if user is None:
        raise _user_not_found(sam)
    return user


class UpdateUserModel(BaseModel, strict=True, frozen=True):
    display_name: Text | None = None
    email: EmailStr | None = None


@router.patch(
    "/user/{sam}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def update_user(
    sam: str,
    user: UpdateUserModel,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> None:
    """
    ## Update display name and e-mail

    Missing values are left as they are
    """
    await directory.update_user(sam, user.display_name, user.email)


@router.post(
    "/user/{sam}/disable",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def disable_user(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> None:
    await directory.disable_user(sam)


@router.post(
    "/user/{sam}/enable",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def enable_user(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> None:
    await directory.enable_user(sam)


@router.post(
    "/user/{sam}/unlock",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def unlock_user(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> None:
    await directory.unlock_user(sam)


class PasswordResetModel(BaseModel, strict=True, frozen=True):
    new: SecretStr = Field(exclude=True, max_length=128)
    confirm: SecretStr = Field(exclude=True, max_length=128)
    must_change: Annotated[
        bool, Field(description="User must change password at next logon")
    ] = True

    @model_validator(mode="after")
    def check_confirmation(self):
        if not self.new.get_secret_value().strip():
            raise ValueError("Password can't be empty")
        if self.new.get_secret_value() != self.confirm.get_secret_value():
            raise ValueError("Passwords do not match")
        return self


@router.post(
    "/user/{sam}/password",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_400_BAD_REQUEST: response_description(
            "Password does not meet the domain policy"
        ),
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def reset_password(
    sam: str,
    password: PasswordResetModel,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> None:
    await directory.reset_password(
        sam, password.new.get_secret_value(), password.must_change
    )


@router.post(
    "/user/{sam}/groups",
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def add_user_to_groups(
    sam: str,
    groups: list[str],
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> Response:
    """
    ## Add user to groups

    Unknown groups and existing memberships are skipped
    """
    for group in groups:
        if group.strip():
            await directory.add_user_to_group(sam, group.strip())
    return Response(status_code=status.HTTP_201_CREATED)


@router.delete(
    "/user/{sam}/groups",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def remove_user_from_groups(
    sam: str,
    groups: list[str],
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> Response:
    for group in groups:
        if group.strip():
            await directory.remove_user_from_group(sam, group.strip())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


class UserTemplate(BaseModel, strict=True, frozen=True):
    template_sam: str
    ou_dn: str | None
    job_title: str | None


@router.get(
    "/user/{sam}/template",
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: user_not_found,
    },
)
async def user_template(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> UserTemplate:
    """
    ## Defaults for "create like" form

    Organizational unit and job title are copied, e-mail and telephone
    are personal and are not
    """
    if await directory.get_user(sam) is None:
        raise _user_not_found(sam)
    return UserTemplate(
        template_sam=sam,
        ou_dn=await directory.get_user_ou_dn(sam),
        job_title=await directory.get_user_job_title(sam),
    )
