from __future__ import annotations

from typing import Annotated
from fastapi import status, Depends, APIRouter, HTTPException, Query
from pydantic import BaseModel
from ...ou_tree import OuNode, build_tree, find_path
from .. import get_directory
from ..directory import ADUser, Directory, GroupMember
from .auth import Operator, get_current_operator
from .exceptions import response_description, response_with_perm_check

router = APIRouter(tags=["ui"], prefix="/ui")


class OuTreeItem(BaseModel, strict=True):
    name: str
    distinguished_name: str
    expanded: bool = False
    children: list[OuTreeItem]

    @classmethod
    def from_node(
        cls, node: OuNode, path: frozenset[str] = frozenset()
    ) -> OuTreeItem:
        return cls(
            name=node.name,
            distinguished_name=node.distinguished_name,
            expanded=node.distinguished_name.casefold() in path,
            children=[cls.from_node(child, path) for child in node.children],
        )


@router.get(
    "/ous",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def organizational_units(
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
    selected: Annotated[
        str | None, Query(description="OU to show expanded")
    ] = None,
) -> list[OuTreeItem]:
    """
    ## Organizational units as a forest

    Siblings are sorted by name, OUs whose parent is not an OU are roots.
    Nodes from a root down to `selected` are marked `expanded`
    """
    forest = build_tree(await directory.get_organizational_units())
    path = frozenset(
        node.distinguished_name.casefold()
        for node in (find_path(forest, selected) if selected else ())
    )
    return [OuTreeItem.from_node(node, path) for node in forest]


class UserPage(BaseModel, strict=True):
    user: ADUser
    groups: list[str]
    available_groups: list[str]


@router.get(
    "/user/{sam}",
    responses={
        status.HTTP_401_UNAUTHORIZED: response_with_perm_check,
        status.HTTP_404_NOT_FOUND: response_description("User not found"),
    },
)
async def user_page(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> UserPage:
    """
    ## User with its groups and the groups it can be added to
    """
    user = await directory.get_user(sam)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{sam}' not found",
        )
    groups = sorted(await directory.get_user_groups(sam), key=str.casefold)
    member_of = {group.casefold() for group in groups}
    available = [
        group
        for group in sorted(await directory.get_all_groups(), key=str.casefold)
        if group.casefold() not in member_of
    ]
    return UserPage(user=user, groups=groups, available_groups=available)


class GroupPage(BaseModel, strict=True):
    sam: str
    members: list[GroupMember]
    available: list[GroupMember]


@router.get(
    "/group/{sam}",
    responses={status.HTTP_401_UNAUTHORIZED: response_with_perm_check},
)
async def group_page(
    sam: str,
    operator: Annotated[Operator, Depends(get_current_operator)],
    directory: Annotated[Directory, Depends(get_directory)],
) -> GroupPage:
    """
    ## Group members and principals that can be added

    Available are all users and all groups, except current members
    and the group itself
    """
    members = sorted(
        await directory.get_group_members(sam),
        key=lambda member: (member.display_name.casefold(), member.sam),
    )
    member_users = {m.sam.casefold() for m in members if m.type == "user"}
    member_groups = {m.sam.casefold() for m in members if m.type == "group"}
    member_groups.add(sam.casefold())

    available: list[GroupMember] = []
    for user in await directory.find_users(""):
        if not user.sam or user.sam.casefold() in member_users:
            continue
        available.append(
            GroupMember(
                sam=user.sam,
                display_name=user.display_name or user.sam,
                type="user",
            )
        )
    for group in await directory.get_all_groups():
        if not group.strip() or group.casefold() in member_groups:
            continue
        available.append(GroupMember(sam=group, display_name=group, type="group"))
    return GroupPage(sam=sam, members=members, available=available)
