"""
Organizational unit forest for the OU picker.

The directory returns OUs as a flat list of distinguished names, this module
restores containment from the names alone:

    >>> forest = build_tree([
    ...     "OU=Dev,OU=SPB,DC=x,DC=lan",
    ...     "OU=SPB,DC=x,DC=lan",
    ...     "OU=QA,OU=SPB,DC=x,DC=lan",
    ... ])
    >>> [(n.name, [c.name for c in n.children]) for n in forest]
    [('SPB', ['Dev', 'QA'])]
"""

from __future__ import annotations
from typing import Iterable, NamedTuple
import logging

logger = logging.getLogger(__name__)


class OuNode(NamedTuple):
    name: str
    distinguished_name: str
    children: tuple[OuNode, ...] = ()


def ou_name(leading: str) -> str:
    """
    Display name of an OU: leading component without "OU=".

    Anything that is not an OU is shown as is, the picker must render
    whatever the directory returned.
    """
    if leading[:3].upper() == "OU=":
        return leading[3:]
    return leading


def build_tree(distinguished_names: Iterable[str]) -> tuple[OuNode, ...]:
    # arena: every distinct dn gets an index, relations are lists of indices
    raw_dns: list[str] = []
    index: dict[str, int] = {}
    for raw in distinguished_names:
        key = raw.casefold()
        if key in index:
            continue
        index[key] = len(raw_dns)
        raw_dns.append(raw)

    children: list[list[int]] = [[] for _ in raw_dns]
    roots: list[int] = []
    names: list[str] = []
    for idx, raw in enumerate(raw_dns):
        leading, sep, parent = raw.partition(",")
        names.append(ou_name(leading))
        parent_idx = index.get(parent.casefold()) if sep else None
        if parent_idx is None:
            roots.append(idx)
        else:
            children[parent_idx].append(idx)

    def order(idx: int) -> tuple[str, str]:
        # dn breaks ties between equally named OUs in different places
        return names[idx].casefold(), raw_dns[idx].casefold()

    def make(idx: int) -> OuNode:
        return OuNode(
            name=names[idx],
            distinguished_name=raw_dns[idx],
            children=tuple(make(c) for c in sorted(children[idx], key=order)),
        )

    forest = tuple(make(idx) for idx in sorted(roots, key=order))
    logger.debug(
        "built OU tree: %d roots, %d nodes", len(forest), len(raw_dns)
    )
    return forest


def find_path(forest: Iterable[OuNode], dn: str) -> tuple[OuNode, ...]:
    """
    Nodes from a root down to the node named `dn`, empty if there is none
    """
    key = dn.casefold()
    for node in forest:
        if node.distinguished_name.casefold() == key:
            return (node,)
        path = find_path(node.children, dn)
        if path:
            return (node, *path)
    return ()
