from __future__ import annotations
from typing import Annotated, Literal
from pydantic import AfterValidator, BaseModel, Field, StringConstraints
from fastapi import APIRouter, Depends, Response, status

from .. import get_directory
from ..directory import ADGroup, Directory, GroupMember
from .auth import Operator, get_current_operator
from .exceptions import (
    response_description,
    response_directory_unavailable,
    response_with_perm_check,
)
from .validators import valid_sam_account_name

router = APIRouter(tags=["group"])

type GroupName = Annotated[
    str,
    StringConstraints(min_length=1, max_length=64, strip_whitespace=True),
    AfterValidator(valid_sam_account_name),
]
type Description = Annotated[
    str, StringConstraints(max_length=1024, strip_whitespace=True)
]


class GroupCreate(BaseModel, strict=True, frozen=True):
    sam: GroupName
    description: Description = ""
    ou_dn: Annotated[
        str | None,
        Field(description="Organizational unit, default users container"),
    ] = None


class GroupModel(BaseModel, strict=True):
    sam: str


@router.get(
    "/groups",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def groups(
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
    q: str = "",
) -> list[str]:
    """
    ## Names of all groups

    Optionally filtered by case-insensitive substring `q`
    """
    names = await directory.get_all_groups(q or None)
    return sorted(names, key=str.casefold)


@router.get(
    "/groups/search",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def search_groups(
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
    q: str = "",
) -> list[ADGroup]:
    groups = await directory.find_groups(q or None)
    return sorted(groups, key=lambda group: group.sam.casefold())


@router.post(
    "/group",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_409_CONFLICT: response_description(
            "Object with that name already exists"
        ),
        status.HTTP_502_BAD_GATEWAY: response_directory_unavailable,
    },
)
async def new_group(
    group: GroupCreate,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> GroupModel:
    """
    ## Create global security group
    """
    await directory.create_group(
        group.sam, group.description or None, group.ou_dn or None
    )
    return GroupModel(sam=group.sam)


@router.delete(
    "/group/{sam}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def delete_group(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> Response:
    await directory.delete_group(sam)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/group/{sam}/members",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def group_members(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> list[GroupMember]:
    """
    ## Direct members of a group

    Users and nested groups, sorted by display name. Unknown group has
    no members
    """
    members = await directory.get_group_members(sam)
    return sorted(
        members,
        key=lambda member: (member.display_name.casefold(), member.sam),
    )


class MemberRef(BaseModel, strict=True, frozen=True):
    type: Literal["user", "group"]
    sam: Annotated[str, StringConstraints(min_length=1, strip_whitespace=True)]


async def _change_members(
    directory: Directory, group_sam: str, members: list[MemberRef], add: bool
) -> None:
    for member in members:
        match member.type, add:
            case "user", True:
                await directory.add_user_to_group(member.sam, group_sam)
            case "user", False:
                await directory.remove_user_from_group(member.sam, group_sam)
            case "group", True:
                await directory.add_group_to_group(member.sam, group_sam)
            case "group", False:
                await directory.remove_group_from_group(member.sam, group_sam)


@router.post(
    "/group/{sam}/members",
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def add_members(
    sam: str,
    members: list[MemberRef],
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> Response:
    """
    ## Add users and groups to a group

    Unknown principals and existing memberships are skipped
    """
    await _change_members(directory, sam, members, add=True)
    return Response(status_code=status.HTTP_201_CREATED)


@router.delete(
    "/group/{sam}/members",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def remove_members(
    sam: str,
    members: list[MemberRef],
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> Response:
    await _change_members(directory, sam, members, add=False)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
