"""
Active Directory access.

Everything the portal does to the directory goes through `Directory`.
`LDAPDirectory` implements it with ldap3, one bound connection per call.
ldap3 is blocking, so each public method runs in a worker thread.
"""

from __future__ import annotations
from typing import Any, Callable, Iterator, Literal, Protocol
from contextlib import contextmanager
from functools import partial, wraps
import logging
import ssl

from anyio import to_thread
from ldap3 import (
    BASE,
    MODIFY_REPLACE,
    NONE,
    SUBTREE,
    Connection,
    Server,
    Tls,
)
from ldap3.core.exceptions import (
    LDAPConstraintViolationResult,
    LDAPEntryAlreadyExistsResult,
    LDAPException,
    LDAPInsufficientAccessRightsResult,
    LDAPNoSuchObjectResult,
    LDAPUnwillingToPerformResult,
)
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn
from pydantic import BaseModel

from ..dn import domain_to_base_dn, parse_dn

logger = logging.getLogger(__name__)

# userAccountControl flags
ACCOUNTDISABLE = 0x0002
NORMAL_ACCOUNT = 0x0200
# groupType of a global security group, as the signed 32 bit value AD stores
GLOBAL_SECURITY_GROUP = -2147483646

USER_FILTER = "(&(objectCategory=person)(objectClass=user))"
GROUP_FILTER = "(objectClass=group)"
OU_FILTER = "(objectClass=organizationalUnit)"
USER_ATTRIBUTES = [
    "sAMAccountName",
    "displayName",
    "mail",
    "userAccountControl",
]


class DirectoryError(Exception):
    """
    Directory failure with a message that can be shown to the operator
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DirectoryError):
    pass


class AlreadyExistsError(DirectoryError):
    pass


class AccessDeniedError(DirectoryError):
    pass


class RejectedError(DirectoryError):
    """
    Directory refused the value, usually the domain password policy
    """


class ADUser(BaseModel, strict=True, frozen=True):
    sam: str
    display_name: str = ""
    email: str = ""
    enabled: bool = True
    distinguished_name: str = ""


class ADGroup(BaseModel, strict=True, frozen=True):
    sam: str
    name: str
    description: str | None = None


class GroupMember(BaseModel, strict=True, frozen=True):
    sam: str
    display_name: str
    type: Literal["user", "group"]


class NewUser(BaseModel, strict=True, frozen=True):
    sam: str
    password: str
    display_name: str | None = None
    email: str | None = None
    ou_dn: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    telephone: str | None = None


def compose_display_name(
    first_name: str | None, middle_name: str | None, last_name: str | None
) -> str | None:
    """
    "First M. Last", or "First Last" without a middle name.
    None unless both first and last names are given
    """
    first = (first_name or "").strip()
    last = (last_name or "").strip()
    if not first or not last:
        return None
    middle = (middle_name or "").strip()
    if middle:
        return f"{first} {middle[0]}. {last}"
    return f"{first} {last}"


def initials(middle_name: str | None) -> str | None:
    middle = (middle_name or "").strip()
    return middle[0].upper() if middle else None


def sid_to_str(sid: bytes) -> str:
    """
    Binary objectSid to "S-1-5-21-..." form
    """
    revision = sid[0]
    count = sid[1]
    authority = int.from_bytes(sid[2:8], "big")
    sub_authorities = [
        int.from_bytes(sid[8 + 4 * i : 12 + 4 * i], "little")
        for i in range(count)
    ]
    return "-".join(
        ["S", str(revision), str(authority), *map(str, sub_authorities)]
    )


def primary_group_sid(user_sid: str, primary_group_id: int) -> str:
    """
    Primary group lives in the user's domain: replace the last RID
    """
    domain_sid = user_sid.rpartition("-")[0]
    return f"{domain_sid}-{primary_group_id}"


def is_disabled(user_account_control: int | None) -> bool:
    return bool((user_account_control or 0) & ACCOUNTDISABLE)


def account_name(username: str) -> str:
    """
    sAMAccountName from "jdoe", "jdoe@example.lan" or "EXAMPLE\\jdoe"
    """
    username = username.strip()
    if "\\" in username:
        username = username.rpartition("\\")[2]
    return username.partition("@")[0]


def _first(attributes: dict[str, Any], name: str) -> Any:
    value = attributes.get(name)
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    if value == "":
        return None
    return value


def _all(attributes: dict[str, Any], name: str) -> list[Any]:
    value = attributes.get(name)
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _entries(response: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [e for e in response or () if e.get("type") == "searchResEntry"]


def _user_from_entry(entry: dict[str, Any]) -> ADUser:
    attributes = entry["attributes"]
    uac = _first(attributes, "userAccountControl")
    return ADUser(
        sam=str(_first(attributes, "sAMAccountName") or ""),
        display_name=str(_first(attributes, "displayName") or ""),
        email=str(_first(attributes, "mail") or ""),
        enabled=not is_disabled(None if uac is None else int(uac)),
        distinguished_name=entry["dn"],
    )


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """
    Turn ldap3 exceptions into `DirectoryError`s starting with `action`
    """
    try:
        yield
    except DirectoryError:
        raise
    except LDAPEntryAlreadyExistsResult as e:
        raise AlreadyExistsError(f"{action}: object already exists") from e
    except LDAPNoSuchObjectResult as e:
        raise NotFoundError(f"{action}: object not found") from e
    except LDAPInsufficientAccessRightsResult as e:
        logger.warning("%s: %s", action, e)
        raise AccessDeniedError(f"{action}: insufficient access rights") from e
    except (LDAPConstraintViolationResult, LDAPUnwillingToPerformResult) as e:
        raise RejectedError(f"{action}: {e}") from e
    except LDAPException as e:
        logger.warning("%s: %s", action, e)
        raise DirectoryError(f"{action}: {e}") from e


def _in_thread[**P, R](method: Callable[P, R]) -> Callable[P, Any]:
    @wraps(method)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return await to_thread.run_sync(partial(method, *args, **kwargs))

    return wrapper


class Directory(Protocol):
    async def authenticate(self, username: str, password: str) -> bool: ...
    async def find_users(self, query: str = "") -> list[ADUser]: ...
    async def get_user(self, sam: str) -> ADUser | None: ...
    async def get_user_groups(self, sam: str) -> list[str]: ...
    async def get_user_groups_nested(self, sam: str) -> list[str]: ...
    async def disable_user(self, sam: str) -> None: ...
    async def enable_user(self, sam: str) -> None: ...
    async def unlock_user(self, sam: str) -> None: ...
    async def reset_password(
        self, sam: str, new_password: str, must_change_at_logon: bool
    ) -> None: ...
    async def update_user(
        self, sam: str, display_name: str | None, email: str | None
    ) -> None: ...
    async def create_user(self, user: NewUser) -> None: ...
    async def get_user_ou_dn(self, sam: str) -> str | None: ...
    async def get_user_job_title(self, sam: str) -> str | None: ...
    async def copy_groups(self, from_sam: str, to_sam: str) -> None: ...
    async def get_all_groups(self, query: str | None = None) -> list[str]: ...
    async def find_groups(self, query: str | None = None) -> list[ADGroup]: ...
    async def create_group(
        self, sam: str, description: str | None, ou_dn: str | None
    ) -> None: ...
    async def delete_group(self, sam: str) -> None: ...
    async def get_group_members(self, group_sam: str) -> list[GroupMember]: ...
    async def add_user_to_group(self, sam: str, group_sam: str) -> None: ...
    async def remove_user_from_group(
        self, sam: str, group_sam: str
    ) -> None: ...
    async def add_group_to_group(
        self, child_sam: str, parent_sam: str
    ) -> None: ...
    async def remove_group_from_group(
        self, child_sam: str, parent_sam: str
    ) -> None: ...
    async def get_organizational_units(self) -> list[str]: ...


class LDAPSettings(BaseModel, strict=True, frozen=True):
    host: str
    port: int | None = None  # 636 with ssl, 389 otherwise
    use_ssl: bool = True  # AD only accepts password changes over TLS
    validate_tls: bool = True
    domain: str  # example.lan
    base_dn: str = ""  # derived from `domain` when empty
    users_container: str = ""  # "CN=Users,<base_dn>" when empty
    bind_user: str  # service account, "svc-portal@example.lan"
    bind_password: str
    connect_timeout: int = 10
    page_size: int = 500

    def create_directory(self) -> LDAPDirectory:
        return LDAPDirectory(self)


class LDAPDirectory:
    def __init__(self, settings: LDAPSettings) -> None:
        self.settings = settings
        self.base_dn = settings.base_dn or domain_to_base_dn(settings.domain)
        self.users_container = (
            settings.users_container or f"CN=Users,{self.base_dn}"
        )
        tls = Tls(
            validate=(
                ssl.CERT_REQUIRED if settings.validate_tls else ssl.CERT_NONE
            ),
            version=ssl.PROTOCOL_TLS_CLIENT,
        )
        self.server = Server(
            settings.host,
            port=settings.port or (636 if settings.use_ssl else 389),
            use_ssl=settings.use_ssl,
            tls=tls if settings.use_ssl else None,
            get_info=NONE,
            connect_timeout=settings.connect_timeout,
        )

    def _principal(self, username: str) -> str:
        if "@" in username or "\\" in username or "=" in username:
            return username
        return f"{username}@{self.settings.domain}"

    @contextmanager
    def _session(self, action: str) -> Iterator[Connection]:
        with translate_errors(action):
            conn = Connection(
                self.server,
                user=self._principal(self.settings.bind_user),
                password=self.settings.bind_password,
                raise_exceptions=True,
                receive_timeout=self.settings.connect_timeout,
            )
            # binds on enter, unbinds on exit
            with conn:
                yield conn

    def _search(
        self,
        conn: Connection,
        search_filter: str,
        attributes: list[str],
        base: str | None = None,
    ) -> list[dict[str, Any]]:
        return _entries(
            conn.extend.standard.paged_search(
                search_base=base or self.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=attributes,
                paged_size=self.settings.page_size,
                generator=False,
            )
        )

    def _find_one(
        self,
        conn: Connection,
        object_filter: str,
        sam: str,
        attributes: list[str],
    ) -> dict[str, Any] | None:
        search_filter = (
            f"(&{object_filter}"
            f"(sAMAccountName={escape_filter_chars(sam.strip())}))"
        )
        conn.search(
            self.base_dn,
            search_filter,
            search_scope=SUBTREE,
            attributes=attributes,
        )
        entries = _entries(conn.response)
        return entries[0] if entries else None

    def _require_user(
        self, conn: Connection, sam: str, attributes: list[str] | None = None
    ) -> dict[str, Any]:
        entry = self._find_one(conn, USER_FILTER, sam, attributes or [])
        if entry is None:
            raise NotFoundError(f"User '{sam}' not found")
        return entry

    @staticmethod
    def _rollback_add(conn: Connection, dn: str) -> None:
        # the caller re-raises the error that made the rollback necessary
        try:
            conn.delete(dn)
        except LDAPException:
            logger.exception("failed to remove half-created %s", dn)

    def _group_name(self, conn: Connection, group_dn: str) -> str:
        conn.search(
            group_dn,
            GROUP_FILTER,
            search_scope=BASE,
            attributes=["sAMAccountName"],
        )
        entries = _entries(conn.response)
        if entries:
            sam = _first(entries[0]["attributes"], "sAMAccountName")
            if sam:
                return str(sam)
        return group_dn

    @_in_thread
    def authenticate(self, username: str, password: str) -> bool:
        # empty password is an "unauthenticated bind" and always succeeds
        if not username.strip() or not password:
            return False
        conn = Connection(
            self.server,
            user=self._principal(username.strip()),
            password=password,
            receive_timeout=self.settings.connect_timeout,
        )
        with translate_errors("Failed to authenticate"):
            try:
                return bool(conn.bind())
            finally:
                conn.unbind()

    @_in_thread
    def find_users(self, query: str = "") -> list[ADUser]:
        query = query.strip()
        search_filter = USER_FILTER
        if query:
            q = escape_filter_chars(query)
            search_filter = (
                f"(&{USER_FILTER}(|(sAMAccountName=*{q}*)"
                f"(displayName=*{q}*)(mail=*{q}*)))"
            )
        with self._session("Failed to search users") as conn:
            entries = self._search(conn, search_filter, USER_ATTRIBUTES)
        return [_user_from_entry(entry) for entry in entries]

    @_in_thread
    def get_user(self, sam: str) -> ADUser | None:
        with self._session("Failed to read user") as conn:
            entry = self._find_one(conn, USER_FILTER, sam, USER_ATTRIBUTES)
        return None if entry is None else _user_from_entry(entry)

    def _primary_group(
        self, conn: Connection, entry: dict[str, Any]
    ) -> str | None:
        # primary group ("Domain Users") is not listed in memberOf
        raw_sid = _first(entry.get("raw_attributes", {}), "objectSid")
        group_id = _first(entry["attributes"], "primaryGroupID")
        if not raw_sid or group_id is None:
            return None
        user_sid = (
            raw_sid if isinstance(raw_sid, str) else sid_to_str(raw_sid)
        )
        conn.search(
            self.base_dn,
            f"(objectSid={primary_group_sid(user_sid, int(group_id))})",
            search_scope=SUBTREE,
            attributes=["sAMAccountName"],
        )
        for group in _entries(conn.response):
            name = _first(group["attributes"], "sAMAccountName")
            if name:
                return str(name)
        return None

    @_in_thread
    def get_user_groups(self, sam: str) -> list[str]:
        groups: list[str] = []
        with self._session("Failed to read user groups") as conn:
            entry = self._find_one(
                conn,
                USER_FILTER,
                sam,
                ["memberOf", "objectSid", "primaryGroupID"],
            )
            if entry is None:
                return groups
            for group_dn in _all(entry["attributes"], "memberOf"):
                groups.append(self._group_name(conn, str(group_dn)))
            primary = self._primary_group(conn, entry)
            if primary is not None:
                groups.append(primary)
        return groups

    @_in_thread
    def get_user_groups_nested(self, sam: str) -> list[str]:
        """
        Groups the user belongs to directly or through other groups
        """
        groups: list[str] = []
        with self._session("Failed to read user groups") as conn:
            entry = self._find_one(
                conn, USER_FILTER, sam, ["objectSid", "primaryGroupID"]
            )
            if entry is None:
                return groups
            # LDAP_MATCHING_RULE_IN_CHAIN walks nested membership server side
            search_filter = (
                f"(&{GROUP_FILTER}(member:1.2.840.113556.1.4.1941:="
                f"{escape_filter_chars(entry['dn'])}))"
            )
            entries = self._search(conn, search_filter, ["sAMAccountName"])
            for group in entries:
                name = _first(group["attributes"], "sAMAccountName")
                groups.append(str(name) if name else group["dn"])
            primary = self._primary_group(conn, entry)
            if primary is not None:
                groups.append(primary)
        return groups

    def _set_enabled(self, sam: str, enabled: bool) -> None:
        action = "enable" if enabled else "disable"
        with self._session(f"Failed to {action} user") as conn:
            entry = self._require_user(conn, sam, ["userAccountControl"])
            uac = int(_first(entry["attributes"], "userAccountControl") or 0)
            if enabled:
                uac &= ~ACCOUNTDISABLE
            else:
                uac |= ACCOUNTDISABLE
            conn.modify(
                entry["dn"], {"userAccountControl": [(MODIFY_REPLACE, [uac])]}
            )
        logger.info("%sd user %s", action, sam)

    @_in_thread
    def disable_user(self, sam: str) -> None:
        self._set_enabled(sam, False)

    @_in_thread
    def enable_user(self, sam: str) -> None:
        self._set_enabled(sam, True)

    @_in_thread
    def unlock_user(self, sam: str) -> None:
        with self._session("Failed to unlock user") as conn:
            entry = self._require_user(conn, sam)
            conn.extend.microsoft.unlock_account(entry["dn"])
        logger.info("unlocked user %s", sam)

    @_in_thread
    def reset_password(
        self, sam: str, new_password: str, must_change_at_logon: bool
    ) -> None:
        with self._session("Failed to reset password") as conn:
            entry = self._require_user(conn, sam)
            conn.extend.microsoft.modify_password(entry["dn"], new_password)
            if must_change_at_logon:
                conn.modify(entry["dn"], {"pwdLastSet": [(MODIFY_REPLACE, [0])]})
        logger.info(
            "reset password of %s (must change: %s)", sam, must_change_at_logon
        )

    @_in_thread
    def update_user(
        self, sam: str, display_name: str | None, email: str | None
    ) -> None:
        changes: dict[str, list[tuple[str, list[str]]]] = {}
        if display_name and display_name.strip():
            changes["displayName"] = [(MODIFY_REPLACE, [display_name.strip()])]
        if email and email.strip():
            changes["mail"] = [(MODIFY_REPLACE, [email.strip()])]
        with self._session("Failed to update user") as conn:
            entry = self._require_user(conn, sam)
            if changes:
                conn.modify(entry["dn"], changes)
        logger.info("updated user %s: %s", sam, ", ".join(changes) or "-")

    @_in_thread
    def create_user(self, user: NewUser) -> None:
        display_name = user.display_name or compose_display_name(
            user.first_name, user.middle_name, user.last_name
        )
        container = user.ou_dn or self.users_container
        dn = f"CN={escape_rdn(display_name or user.sam)},{container}"
        attributes = {
            "sAMAccountName": user.sam,
            "userPrincipalName": f"{user.sam}@{self.settings.domain}",
            "displayName": display_name,
            "mail": user.email,
            "givenName": user.first_name,
            "sn": user.last_name,
            "initials": initials(user.middle_name),
            "title": user.job_title,
            "telephoneNumber": user.telephone,
        }
        attributes = {
            key: value.strip()
            for key, value in attributes.items()
            if value and value.strip()
        }
        with self._session("Failed to create user in AD") as conn:
            if self._find_one(conn, "", user.sam, []) is not None:
                raise AlreadyExistsError(f"User '{user.sam}' already exists")
            conn.add(
                dn,
                ["top", "person", "organizationalPerson", "user"],
                {
                    **attributes,
                    "userAccountControl": NORMAL_ACCOUNT | ACCOUNTDISABLE,
                },
            )
            try:
                conn.extend.microsoft.modify_password(dn, user.password)
                conn.modify(
                    dn,
                    {
                        "userAccountControl": [
                            (MODIFY_REPLACE, [NORMAL_ACCOUNT])
                        ],
                        # must change password at next logon
                        "pwdLastSet": [(MODIFY_REPLACE, [0])],
                    },
                )
            except LDAPException:
                # do not leave a disabled account without a password behind
                self._rollback_add(conn, dn)
                raise
        logger.info("created user %s in %s", user.sam, container)

    @_in_thread
    def get_user_ou_dn(self, sam: str) -> str | None:
        with self._session("Failed to read user") as conn:
            entry = self._find_one(conn, USER_FILTER, sam, [])
        if entry is None:
            return None
        parent = parse_dn(entry["dn"]).parent
        return None if parent is None else str(parent)

    @_in_thread
    def get_user_job_title(self, sam: str) -> str | None:
        with self._session("Failed to read user") as conn:
            entry = self._find_one(conn, USER_FILTER, sam, ["title"])
        if entry is None:
            return None
        title = _first(entry["attributes"], "title")
        return None if title is None else str(title)

    @_in_thread
    def copy_groups(self, from_sam: str, to_sam: str) -> None:
        with self._session("Failed to copy groups") as conn:
            source = self._find_one(conn, USER_FILTER, from_sam, ["memberOf"])
            target = self._find_one(conn, USER_FILTER, to_sam, [])
            if source is None or target is None:
                raise NotFoundError(
                    "Source or new user not found while copying groups"
                )
            groups = [str(dn) for dn in _all(source["attributes"], "memberOf")]
            if groups:
                conn.extend.microsoft.add_members_to_groups(
                    [target["dn"]], groups, fix=True
                )
        logger.info(
            "copied %d groups from %s to %s", len(groups), from_sam, to_sam
        )

    def _groups(
        self, conn: Connection, query: str | None
    ) -> list[dict[str, Any]]:
        search_filter = GROUP_FILTER
        if query and query.strip():
            q = escape_filter_chars(query.strip())
            search_filter = (
                f"(&{GROUP_FILTER}(|(sAMAccountName=*{q}*)(name=*{q}*)))"
            )
        return self._search(
            conn, search_filter, ["sAMAccountName", "name", "description"]
        )

    @_in_thread
    def get_all_groups(self, query: str | None = None) -> list[str]:
        with self._session("Failed to list groups") as conn:
            entries = self._groups(conn, None)
        norm = (query or "").strip().casefold()
        names: list[str] = []
        for entry in entries:
            attributes = entry["attributes"]
            sam = _first(attributes, "sAMAccountName") or _first(
                attributes, "name"
            )
            if sam and norm in str(sam).casefold():
                names.append(str(sam))
        return names

    @_in_thread
    def find_groups(self, query: str | None = None) -> list[ADGroup]:
        with self._session("Failed to search groups") as conn:
            entries = self._groups(conn, query)
        groups: list[ADGroup] = []
        for entry in entries:
            attributes = entry["attributes"]
            sam = _first(attributes, "sAMAccountName") or _first(
                attributes, "name"
            )
            if not sam:
                continue
            description = _first(attributes, "description")
            groups.append(
                ADGroup(
                    sam=str(sam),
                    name=str(_first(attributes, "name") or sam),
                    description=None if description is None else str(description),
                )
            )
        return groups

    @_in_thread
    def create_group(
        self, sam: str, description: str | None, ou_dn: str | None
    ) -> None:
        container = ou_dn or self.users_container
        dn = f"CN={escape_rdn(sam)},{container}"
        attributes: dict[str, Any] = {
            "sAMAccountName": sam,
            "groupType": GLOBAL_SECURITY_GROUP,
        }
        if description and description.strip():
            attributes["description"] = description.strip()
        with self._session("Failed to create group in AD") as conn:
            if self._find_one(conn, "", sam, []) is not None:
                raise AlreadyExistsError(f"Group '{sam}' already exists")
            conn.add(dn, ["top", "group"], attributes)
        logger.info("created group %s in %s", sam, container)

    @_in_thread
    def delete_group(self, sam: str) -> None:
        with self._session("Failed to delete group") as conn:
            entry = self._find_one(conn, GROUP_FILTER, sam, [])
            if entry is None:
                return
            conn.delete(entry["dn"])
        logger.info("deleted group %s", sam)

    @_in_thread
    def get_group_members(self, group_sam: str) -> list[GroupMember]:
        members: list[GroupMember] = []
        with self._session("Failed to read group members") as conn:
            group = self._find_one(conn, GROUP_FILTER, group_sam, [])
            if group is None:
                return members
            # memberOf only holds direct memberships
            entries = self._search(
                conn,
                f"(&(memberOf={escape_filter_chars(group['dn'])})"
                f"(|{USER_FILTER}{GROUP_FILTER}))",
                ["objectClass", "sAMAccountName", "displayName", "name"],
            )
        for entry in entries:
            attributes = entry["attributes"]
            classes = {str(c).lower() for c in _all(attributes, "objectClass")}
            if "group" in classes:
                sam = _first(attributes, "sAMAccountName") or _first(
                    attributes, "name"
                )
                if not sam:
                    continue
                display_name = _first(attributes, "name") or sam
                members.append(
                    GroupMember(
                        sam=str(sam),
                        display_name=str(display_name),
                        type="group",
                    )
                )
            else:
                sam = _first(attributes, "sAMAccountName")
                if not sam:
                    continue
                display_name = _first(attributes, "displayName") or sam
                members.append(
                    GroupMember(
                        sam=str(sam), display_name=str(display_name), type="user"
                    )
                )
        return members

    def _change_membership(
        self,
        member_filter: str,
        member_sam: str,
        group_sam: str,
        add: bool,
    ) -> None:
        action = "add" if add else "remove"
        with self._session(f"Failed to {action} group member") as conn:
            member = self._find_one(conn, member_filter, member_sam, [])
            group = self._find_one(conn, GROUP_FILTER, group_sam, [])
            if member is None or group is None:
                return
            if add:
                conn.extend.microsoft.add_members_to_groups(
                    [member["dn"]], [group["dn"]], fix=True
                )
            else:
                conn.extend.microsoft.remove_members_from_groups(
                    [member["dn"]], [group["dn"]], fix=True
                )
        logger.info(
            "%s %s %s group %s",
            "added" if add else "removed",
            member_sam,
            "to" if add else "from",
            group_sam,
        )

    @_in_thread
    def add_user_to_group(self, sam: str, group_sam: str) -> None:
        self._change_membership(USER_FILTER, sam, group_sam, add=True)

    @_in_thread
    def remove_user_from_group(self, sam: str, group_sam: str) -> None:
        self._change_membership(USER_FILTER, sam, group_sam, add=False)

    @_in_thread
    def add_group_to_group(self, child_sam: str, parent_sam: str) -> None:
        self._change_membership(GROUP_FILTER, child_sam, parent_sam, add=True)

    @_in_thread
    def remove_group_from_group(
        self, child_sam: str, parent_sam: str
    ) -> None:
        self._change_membership(GROUP_FILTER, child_sam, parent_sam, add=False)

    @_in_thread
    def get_organizational_units(self) -> list[str]:
        with self._session("Failed to list organizational units") as conn:
            entries = self._search(conn, OU_FILTER, ["distinguishedName"])
        return [
            str(_first(entry["attributes"], "distinguishedName") or entry["dn"])
            for entry in entries
        ]

    @_in_thread
    def check(self) -> str:
        """
        Bind with the service account, returns "who am i" of the bind
        """
        with self._session("Failed to bind to the directory") as conn:
            return str(conn.extend.standard.who_am_i() or conn.user)
