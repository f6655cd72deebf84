import pytest

from cellgraph.errors import CycleError
from cellgraph.graph import DependencyGraph


@pytest.fixture
def graph():
    # C1 = A1 + D1, E1 = C1, F1 = C1 + A1
    g = DependencyGraph()
    g.insert("C1", {"A1", "D1"})
    g.insert("E1", {"C1"})
    g.insert("F1", {"C1", "A1"})
    return g


def snapshot(g: DependencyGraph):
    return (
        {k: set(v) for k, v in g.upstream.items()},
        {k: set(v) for k, v in g.downstream.items()},
    )


def assert_inverse(g: DependencyGraph):
    for id, ups in g.upstream.items():
        assert ups, f"empty upstream entry for {id}"
        for up in ups:
            assert id in g.downstream[up]
    for id, downs in g.downstream.items():
        assert downs, f"empty downstream entry for {id}"
        for down in downs:
            assert id in g.upstream[down]


class TestLinks:
    def test_unknown_ids_have_no_links(self):
        g = DependencyGraph()
        assert g.upstream_links("A1") == set()
        assert g.downstream_links("A1") == set()
        # Queries do not create entries
        assert g.upstream == {}
        assert g.downstream == {}
        assert "A1" not in g

    def test_insert_records_both_directions(self, graph):
        assert graph.upstream_links("C1") == {"A1", "D1"}
        assert graph.downstream_links("A1") == {"C1", "F1"}
        assert graph.downstream_links("C1") == {"E1", "F1"}
        assert graph.upstream_links("A1") == set()
        assert "A1" in graph
        assert_inverse(graph)

    def test_insert_is_idempotent(self, graph):
        before = snapshot(graph)
        graph.insert("F1", {"C1", "A1"})
        assert snapshot(graph) == before

    def test_insert_replaces_links(self, graph):
        graph.insert("C1", {"B1"})
        assert graph.upstream_links("C1") == {"B1"}
        assert graph.downstream_links("D1") == set()
        assert graph.downstream_links("A1") == {"F1"}
        assert "D1" not in graph.downstream
        assert_inverse(graph)

    def test_insert_empty_removes(self, graph):
        graph.insert("E1", set())
        assert graph.upstream_links("E1") == set()
        assert graph.downstream_links("C1") == {"F1"}

        graph.insert("F1", None)
        assert "C1" not in graph.downstream
        assert graph.downstream_links("A1") == {"C1"}
        assert_inverse(graph)

    def test_remove(self, graph):
        graph.remove("C1")
        assert graph.upstream_links("C1") == set()
        assert graph.downstream_links("D1") == set()
        assert graph.downstream_links("A1") == {"F1"}
        # C1 is still read by E1 and F1
        assert graph.downstream_links("C1") == {"E1", "F1"}
        assert_inverse(graph)

    def test_remove_without_links_is_noop(self, graph):
        before = snapshot(graph)
        graph.remove("A1")
        graph.remove("ZZ99")
        assert snapshot(graph) == before


class TestCycles:
    def test_two_cell_cycle_rolls_back(self):
        g = DependencyGraph()
        g.insert("A1", {"B1"})
        with pytest.raises(CycleError) as excinfo:
            g.insert("B1", {"A1"})
        assert excinfo.value.path == ("B1", "A1", "B1")
        assert "B1 -> A1 -> B1" in str(excinfo.value)
        assert g.upstream_links("B1") == set()
        assert g.downstream_links("A1") == set()
        assert g.upstream == {"A1": {"B1"}}
        assert g.downstream == {"B1": {"A1"}}

    def test_self_reference(self):
        g = DependencyGraph()
        with pytest.raises(CycleError) as excinfo:
            g.insert("A1", {"A1"})
        assert excinfo.value.path == ("A1", "A1")
        assert g.upstream == {}
        assert g.downstream == {}

    def test_rollback_restores_previous_links(self, graph):
        before = snapshot(graph)
        with pytest.raises(CycleError) as excinfo:
            graph.insert("A1", {"B1", "E1"})
        assert excinfo.value.path == ("A1", "E1", "C1", "A1")
        assert snapshot(graph) == before

        # A replacement that cycles restores the old links, not nothing
        with pytest.raises(CycleError):
            graph.insert("C1", {"F1"})
        assert snapshot(graph) == before
        assert_inverse(graph)

    def test_long_cycle_witness(self):
        g = DependencyGraph()
        for i in range(1, 5):
            g.insert(f"A{i}", {f"A{i + 1}"})
        with pytest.raises(CycleError) as excinfo:
            g.insert("A5", {"A1"})
        assert excinfo.value.path == ("A5", "A1", "A2", "A3", "A4", "A5")

    def test_diamond_is_not_a_cycle(self):
        g = DependencyGraph()
        g.insert("B1", {"A1"})
        g.insert("C1", {"A1"})
        g.insert("D1", {"B1", "C1"})
        g.insert("E1", {"D1", "A1"})
        assert g.upstream_links("E1") == {"D1", "A1"}

    def test_deep_chain_does_not_hit_recursion_limit(self):
        g = DependencyGraph()
        n = 5000
        # A1 reads A2, which reads A3, ...
        for i in range(1, n):
            g.insert(f"A{i}", {f"A{i + 1}"})
        with pytest.raises(CycleError) as excinfo:
            g.insert(f"A{n}", {"A1"})
        assert len(excinfo.value.path) == n + 1
        assert excinfo.value.path[:3] == (f"A{n}", "A1", "A2")
        assert g.upstream_links(f"A{n}") == set()


class TestFindCycle:
    def test_no_cycle(self):
        links = {"A1": {"B1", "C1"}, "B1": {"C1"}}
        assert DependencyGraph.find_cycle(links, "A1") is None

    def test_cycle_through_start(self):
        links = {"A1": {"B1"}, "B1": {"C1"}, "C1": {"A1"}}
        assert DependencyGraph.find_cycle(links, "A1") == ["A1", "B1", "C1", "A1"]

    def test_explores_siblings_after_dead_end(self):
        links = {"A1": {"B1", "C1"}, "B1": {"D1"}, "C1": {"A1"}}
        assert DependencyGraph.find_cycle(links, "A1") == ["A1", "C1", "A1"]

    def test_wide_lattice_is_fast(self):
        # Without skipping explored nodes this would take 2**40 steps
        links = {}
        for level in range(1, 41):
            links[f"A{level}"] = {f"A{level + 1}", f"B{level + 1}"}
            links[f"B{level}"] = {f"A{level + 1}", f"B{level + 1}"}
        assert DependencyGraph.find_cycle(links, "A1") is None


class TestDependentsInOrder:
    def test_order_respects_dependencies(self, graph):
        order = graph.dependents_in_order("A1")
        assert set(order) == {"C1", "E1", "F1"}
        assert order.index("C1") < order.index("E1")
        assert order.index("C1") < order.index("F1")

    def test_diamond_visits_each_cell_once(self):
        g = DependencyGraph()
        g.insert("B1", {"A1"})
        g.insert("C1", {"A1"})
        g.insert("D1", {"B1", "C1"})
        assert g.dependents_in_order("A1") == ["B1", "C1", "D1"]

    def test_no_dependents(self, graph):
        assert graph.dependents_in_order("E1") == []
        assert graph.dependents_in_order("Q7") == []


class TestRendering:
    def test_str(self, graph):
        assert str(graph) == (
            "Upstream Links:\n"
            "  C1 : [A1, D1]\n"
            "  E1 : [C1]\n"
            "  F1 : [A1, C1]\n"
            "Downstream Links:\n"
            "  A1 : [C1, F1]\n"
            "  C1 : [E1, F1]\n"
            "  D1 : [C1]\n"
        )
