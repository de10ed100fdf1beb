"""Tests for the union-find used to alias unit codes."""

from src.engine.disjoint_set import DisjointSet


class TestDisjointSet:
    def test_unknown_key_is_own_root(self) -> None:
        ds = DisjointSet()
        assert ds.find("01100") == "01100"
        assert len(ds) == 0

    def test_union_keeps_first_argument_root(self) -> None:
        ds = DisjointSet()
        assert ds.union("A", "B") == "A"
        assert ds.find("B") == "A"

    def test_chain_resolves_to_oldest(self) -> None:
        """A <- B <- C: every member resolves to A."""
        ds = DisjointSet()
        ds.union("A", "B")
        ds.union("B", "C")
        assert ds.find("C") == "A"
        assert ds.connected("A", "C")

    def test_union_of_roots_is_directed(self) -> None:
        ds = DisjointSet()
        ds.union("X", "Y")
        ds.union("P", "Q")
        ds.union("Q", "Y")
        # Y's root X goes under Q's root P
        assert ds.find("X") == "P"
        assert ds.find("Y") == "P"

    def test_repeated_union_is_noop(self) -> None:
        ds = DisjointSet()
        ds.union("A", "B")
        ds.union("A", "B")
        ds.union("B", "A")
        assert ds.find("A") == "A"
        assert ds.find("B") == "A"

    def test_path_compression_flattens(self) -> None:
        ds = DisjointSet()
        for parent, child in [("A", "B"), ("B", "C"), ("C", "D")]:
            ds.union(parent, child)
        ds.find("D")
        assert ds._parent["D"] == "A"
        assert ds._parent["C"] == "A"

    def test_disjoint_sets_stay_apart(self) -> None:
        ds = DisjointSet()
        ds.union("A", "B")
        ds.union("C", "D")
        assert not ds.connected("A", "D")
