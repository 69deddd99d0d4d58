from __future__ import annotations
from typing import Iterable, Iterator
from unittest import TestCase
import doctest
import random

from . import ou_tree
from .ou_tree import OuNode, build_tree, find_path


def load_tests(loader, tests, ignore):
    tests.addTests(doctest.DocTestSuite(ou_tree))
    return tests


SAMPLE = [
    "OU=Dev,OU=SPB,DC=x,DC=lan",
    "OU=SPB,DC=x,DC=lan",
    "OU=QA,OU=SPB,DC=x,DC=lan",
    "OU=Backend,OU=Dev,OU=SPB,DC=x,DC=lan",
    "OU=msk,DC=x,DC=lan",
    "OU=Archive,OU=Gone,DC=x,DC=lan",
    "OU=Servers,DC=x,DC=lan",
    "OU=dev,OU=MSK,DC=x,DC=lan",
]


def shape(forest: tuple[OuNode, ...]) -> list:
    return [(node.name, shape(node.children)) for node in forest]


def walk(forest: Iterable[OuNode]) -> Iterator[OuNode]:
    for node in forest:
        yield node
        yield from walk(node.children)


class BuildTreeTest(TestCase):
    def test_nesting(self):
        forest = build_tree(SAMPLE[:3])
        self.assertEqual(len(forest), 1)
        (spb,) = forest
        self.assertEqual(spb.name, "SPB")
        self.assertEqual(spb.distinguished_name, "OU=SPB,DC=x,DC=lan")
        self.assertEqual([child.name for child in spb.children], ["Dev", "QA"])
        self.assertEqual(
            spb.children[0].distinguished_name, "OU=Dev,OU=SPB,DC=x,DC=lan"
        )

    def test_case_variant_duplicates(self):
        forest = build_tree(["OU=Dev,DC=x,DC=lan", "OU=dev,DC=x,DC=lan"])
        self.assertEqual(len(forest), 1)
        # first spelling wins
        self.assertEqual(forest[0].name, "Dev")
        self.assertEqual(forest[0].distinguished_name, "OU=Dev,DC=x,DC=lan")

    def test_whitespace_variants_are_distinct(self):
        forest = build_tree(["OU=A,DC=x,DC=lan", "OU=A, DC=x,DC=lan"])
        self.assertEqual(
            sorted(node.distinguished_name for node in forest),
            ["OU=A, DC=x,DC=lan", "OU=A,DC=x,DC=lan"],
        )

    def test_empty(self):
        self.assertEqual(build_tree([]), ())

    def test_not_an_ou(self):
        forest = build_tree(["CN=Weird,DC=x,DC=lan"])
        self.assertEqual(forest, (OuNode("CN=Weird", "CN=Weird,DC=x,DC=lan"),))

    def test_lowercase_prefix(self):
        (node,) = build_tree(["ou=Lower,DC=x,DC=lan"])
        self.assertEqual(node.name, "Lower")

    def test_single_component_is_root(self):
        forest = build_tree(["OU=Top", "OU=Child,OU=Top"])
        self.assertEqual(shape(forest), [("Top", [("Child", [])])])

    def test_degenerate(self):
        forest = build_tree(["", "OU=A,DC=x"])
        self.assertEqual([node.name for node in forest], ["", "A"])

    def test_degenerate_inputs_are_distinct(self):
        forest = build_tree(["", " ", ",,", ""])
        self.assertEqual(
            [node.distinguished_name for node in forest], ["", ",,", " "]
        )
        self.assertTrue(all(not node.children for node in forest))

    def test_missing_parent_makes_root(self):
        forest = build_tree(SAMPLE)
        self.assertEqual(
            shape(forest),
            [
                ("Archive", []),
                ("msk", [("dev", [])]),
                ("Servers", []),
                ("SPB", [("Dev", [("Backend", [])]), ("QA", [])]),
            ],
        )

    def test_equal_names_sorted_by_dn(self):
        forest = build_tree(
            ["OU=Dev,OU=Zeta,DC=x", "OU=Dev,OU=Alpha,DC=x", "OU=dev,OU=Beta,DC=x"]
        )
        self.assertEqual(
            [node.distinguished_name for node in forest],
            ["OU=Dev,OU=Alpha,DC=x", "OU=dev,OU=Beta,DC=x", "OU=Dev,OU=Zeta,DC=x"],
        )


class PropertiesTest(TestCase):
    def setUp(self):
        rng = random.Random(1337)
        names = ["Dev", "dev", "QA", "Ops", "ops", "Sales", "HR"]
        separators = [",", ",", ",", ", "]
        dns: dict[str, str] = {}
        for _ in range(200):
            depth = rng.randint(1, 4)
            path = [f"OU={rng.choice(names)}" for _ in range(depth)]
            dn = rng.choice(separators).join(path + ["DC=x", "DC=lan"])
            dns.setdefault(dn.casefold(), dn)
        self.dns = sorted(dns.values())
        self.rng = rng

    def test_node_count(self):
        with_duplicates = self.dns + [dn.upper() for dn in self.dns[:20]]
        with_duplicates += ["", " ", ",,"]
        forest = build_tree(with_duplicates)
        distinct = {dn.casefold() for dn in with_duplicates}
        self.assertEqual(len(list(walk(forest))), len(distinct))

    def test_unique_dns(self):
        keys = [
            node.distinguished_name.casefold()
            for node in walk(build_tree(self.dns))
        ]
        self.assertEqual(len(keys), len(set(keys)))

    def test_roots(self):
        keys = {dn.casefold() for dn in self.dns}
        forest = build_tree(self.dns)
        roots = {node.distinguished_name.casefold() for node in forest}
        for dn in self.dns:
            _, sep, parent = dn.partition(",")
            is_root = not sep or parent.casefold() not in keys
            self.assertEqual(dn.casefold() in roots, is_root, msg=dn)

    def test_siblings_sorted(self):
        forest = build_tree(self.dns)
        sibling_lists = [forest] + [node.children for node in walk(forest)]
        for siblings in sibling_lists:
            names = [node.name.casefold() for node in siblings]
            self.assertEqual(names, sorted(names))

    def test_order_independent(self):
        expected = build_tree(self.dns)
        for _ in range(5):
            shuffled = list(self.dns)
            self.rng.shuffle(shuffled)
            self.assertEqual(build_tree(shuffled), expected)


class FindPathTest(TestCase):
    def test_find_path(self):
        forest = build_tree(SAMPLE)
        path = find_path(forest, "ou=backend,ou=dev,ou=spb,dc=x,dc=lan")
        self.assertEqual([node.name for node in path], ["SPB", "Dev", "Backend"])
        self.assertEqual(find_path(forest, "OU=Nowhere,DC=x,DC=lan"), ())
