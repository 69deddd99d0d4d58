from __future__ import annotations
from typing import NamedTuple
import re

# a comma escaped with a backslash is part of the value ("CN=Doe\, John")
_SEPARATOR = re.compile(r"(?<!\\),")


class RDN(NamedTuple):
    kind: str  # "OU", "DC", "CN" or "" when there is no "="
    value: str


class DN(NamedTuple):
    """
    Distinguished name, most specific component first.

    Components are kept as written (trimmed), so `str(dn)` of a parsed DN is
    the input without surrounding blanks.
    """

    components: tuple[str, ...]

    def __str__(self) -> str:
        return ",".join(self.components)

    @property
    def rdns(self) -> tuple[RDN, ...]:
        return tuple(parse_rdn(part) for part in self.components)

    @property
    def parent(self) -> DN | None:
        if len(self.components) < 2:
            return None
        return DN(self.components[1:])

    @property
    def organizational_units(self) -> tuple[str, ...]:
        return tuple(rdn.value for rdn in self.rdns if rdn.kind.upper() == "OU")


def parse_rdn(part: str) -> RDN:
    kind, sep, value = part.partition("=")
    if not sep:
        return RDN("", part)
    return RDN(kind.strip(), value.strip())


def parse_dn(dn: str) -> DN:
    parts = (part.strip() for part in _SEPARATOR.split(dn))
    return DN(tuple(part for part in parts if part))


def friendly_ou_label(dn: str) -> str:
    """
    "OU=Dev,OU=SPB,DC=example,DC=lan" -> "SPB / Dev"
    """
    label = " / ".join(reversed(parse_dn(dn).organizational_units))
    return label or dn


def domain_to_base_dn(domain: str) -> str:
    """
    "example.lan" -> "DC=example,DC=lan"
    """
    parts = [part for part in domain.strip().split(".") if part]
    if not parts:
        raise ValueError(f"invalid domain name {domain!r}")
    return ",".join(f"DC={part}" for part in parts)
