import pytest

from sheetcalc.graph import DependencyGraph, direct_references, ranges, references
from sheetcalc.parser import parse_formula
from sheetcalc.sheet import LiteralCell, Sheet, formula_cell
from sheetcalc.types import CellAddress

addr = CellAddress.parse


def assert_inverse(graph: DependencyGraph):
    """Every forward edge has its reverse edge and vice versa."""
    for source, targets in graph.depends_on.items():
        for target in targets:
            assert source in graph.depended_on_by[target]
    for target, sources in graph.depended_on_by.items():
        assert sources, f"empty dependents set left for {target}"
        for source in sources:
            assert target in graph.depends_on[source]


@pytest.fixture
def sheet():
    return Sheet.from_contents(
        "graph",
        "Graph",
        rows=10,
        cols=5,
        contents={
            "A1": 1,
            "B1": "=A1*2",
            "C1": "=A1+B1",
            "D1": "=SUM(A1:B2)",
        },
    )


@pytest.fixture
def graph(sheet):
    return DependencyGraph.from_sheet(sheet)


class TestReferences:
    def test_direct_references_in_source_order(self):
        ast = parse_formula("=B1+IF(A1, -C1, SUM(D1:D3))")
        assert direct_references(ast) == [addr("B1"), addr("A1"), addr("C1")]

    def test_ranges(self):
        ast = parse_formula("=SUM(A1:A2)+MAX(B1:C1, 3)")
        assert [(r.start.address, r.end.address) for r in ranges(ast)] == [
            (addr("A1"), addr("A2")),
            (addr("B1"), addr("C1")),
        ]

    def test_references_expand_and_deduplicate(self):
        ast = parse_formula("=A1+SUM(A1:A2)")
        assert references(ast) == [addr("A1"), addr("A2")]

    def test_constants_have_no_references(self):
        assert references(parse_formula('=1+"A1"')) == []


class TestDependencyGraph:
    def test_dependencies(self, graph):
        assert graph.dependencies(addr("B1")) == {addr("A1")}
        assert graph.dependencies(addr("C1")) == {addr("A1"), addr("B1")}
        assert graph.dependencies(addr("D1")) == {
            addr("A1"),
            addr("B1"),
            addr("A2"),
            addr("B2"),
        }
        assert graph.dependencies(addr("A1")) == frozenset()

    def test_dependents(self, graph):
        assert graph.dependents(addr("A1")) == {addr("B1"), addr("C1"), addr("D1")}
        assert graph.dependents(addr("B2")) == {addr("D1")}
        assert graph.dependents(addr("D1")) == frozenset()

    def test_maps_are_inverse(self, graph):
        assert_inverse(graph)

    def test_register_replaces_edges(self, graph):
        graph.register(addr("D1"), formula_cell("=E5"))
        assert graph.dependencies(addr("D1")) == {addr("E5")}
        assert addr("A2") not in graph.depended_on_by
        assert addr("D1") not in graph.dependents(addr("A1"))
        assert_inverse(graph)

    def test_register_literal_clears_edges(self, graph):
        graph.register(addr("C1"), LiteralCell(5))
        assert graph.dependencies(addr("C1")) == frozenset()
        assert addr("C1") not in graph.dependents(addr("B1"))
        graph.register(addr("B1"), None)
        assert graph.dependents(addr("A1")) == {addr("D1")}
        assert_inverse(graph)

    def test_has_cycle(self):
        graph = DependencyGraph()
        graph.add_dependency(addr("A1"), addr("B1"))
        graph.add_dependency(addr("B1"), addr("C1"))
        assert graph.has_cycle(addr("C1"), addr("A1"))
        assert not graph.has_cycle(addr("A1"), addr("C1"))
        assert not graph.has_cycle(addr("D1"), addr("A1"))
        assert graph.has_cycle(addr("A1"), addr("A1"))

    def test_evaluation_order_respects_dependencies(self, sheet, graph):
        order = graph.evaluation_order(sheet.formula_cells())
        assert order.index(addr("A1")) < order.index(addr("B1"))
        assert order.index(addr("B1")) < order.index(addr("C1"))
        assert order.index(addr("B1")) < order.index(addr("D1"))
        assert len(order) == len(set(order))

    def test_evaluation_order_terminates_on_cycles(self):
        sheet = Sheet.from_contents(
            "cycle", "Cycle", 5, 5, {"A1": "=B1", "B1": "=A1", "C1": "=A1"}
        )
        graph = DependencyGraph.from_sheet(sheet)
        order = graph.evaluation_order(sheet.formula_cells())
        assert set(order) == {addr("A1"), addr("B1"), addr("C1")}
        assert order.index(addr("A1")) < order.index(addr("C1"))

    def test_three_cell_cycle_order(self):
        sheet = Sheet.from_contents(
            "cycle", "Cycle", 5, 5, {"A1": "=B1", "B1": "=C1", "C1": "=A1", "D1": "=C1"}
        )
        graph = DependencyGraph.from_sheet(sheet)
        order = graph.evaluation_order(sheet.formula_cells())
        assert order == [addr("C1"), addr("B1"), addr("A1"), addr("D1")]
        assert graph.has_cycle(addr("A1"), addr("B1"))


class TestLongChains:
    @pytest.fixture
    def chain(self):
        graph = DependencyGraph()
        for row in range(1, 3000):
            graph.add_dependency(CellAddress(0, row), CellAddress(0, row - 1))
        return graph

    def test_evaluation_order(self, chain):
        order = chain.evaluation_order([CellAddress(0, 2999)])
        assert order == [CellAddress(0, row) for row in range(3000)]

    def test_has_cycle(self, chain):
        assert chain.has_cycle(CellAddress(0, 0), CellAddress(0, 2999))
        assert not chain.has_cycle(CellAddress(0, 2999), CellAddress(0, 0))

    def test_long_cycle(self, chain):
        chain.add_dependency(CellAddress(0, 0), CellAddress(0, 2999))
        order = chain.evaluation_order([CellAddress(0, 0)])
        assert len(order) == 3000
        assert order[-1] == CellAddress(0, 0)


class TestRangeClipping:
    def test_references_clipped_to_extent(self):
        ast = parse_formula("=SUM(B1:CV100000)+A1")
        assert references(ast, extent=(3, 2)) == [
            addr("A1"),
            addr("B1"),
            addr("C1"),
            addr("B2"),
            addr("C2"),
        ]

    def test_range_outside_extent(self):
        ast = parse_formula("=SUM(D1:E5)")
        assert references(ast, extent=(3, 2)) == []

    def test_from_sheet_clips_ranges(self):
        sheet = Sheet.from_contents("big", "Big", 20, 10, {"A1": "=SUM(B1:ZZZ999999)"})
        graph = DependencyGraph.from_sheet(sheet)
        assert len(graph.dependencies(addr("A1"))) == 9 * 20
