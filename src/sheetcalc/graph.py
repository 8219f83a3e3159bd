"""Dependency graph over cell addresses, used to order formula evaluation."""

import logging
from typing import Iterable

from typing_extensions import assert_never

from sheetcalc.ast import (
    ASTNode,
    BinaryOperation,
    CellRange,
    CellReference,
    Constant,
    FunctionCall,
    UnaryOperation,
)
from sheetcalc.sheet import Cell, FormulaCell, Sheet
from sheetcalc.types import CellAddress
from sheetcalc.utils import clip_range, iter_range


def ranges(node: ASTNode) -> list[CellRange]:
    """All range nodes of an AST, in source order."""
    match node:
        case CellRange():
            return [node]
        case Constant() | CellReference():
            return []
        case FunctionCall(arguments=arguments):
            return [rng for arg in arguments for rng in ranges(arg)]
        case BinaryOperation(left=left, right=right):
            return ranges(left) + ranges(right)
        case UnaryOperation(operand=operand):
            return ranges(operand)
        case _:
            assert_never(node)


def direct_references(node: ASTNode) -> list[CellAddress]:
    """Addresses of the single-cell references of an AST, in source order."""
    match node:
        case CellReference():
            return [node.address]
        case Constant() | CellRange():
            return []
        case FunctionCall(arguments=arguments):
            return [ref for arg in arguments for ref in direct_references(arg)]
        case BinaryOperation(left=left, right=right):
            return direct_references(left) + direct_references(right)
        case UnaryOperation(operand=operand):
            return direct_references(operand)
        case _:
            assert_never(node)


def references(
    node: ASTNode, extent: tuple[int, int] | None = None
) -> list[CellAddress]:
    """Every address an AST reads, ranges expanded, without duplicates.

    With an `extent` of (cols, rows), ranges are clipped to it so that a huge
    range over a small sheet stays cheap.
    """
    found = direct_references(node)
    for rng in ranges(node):
        start, end = rng.start.address, rng.end.address
        if extent is not None:
            clipped = clip_range(start, end, *extent)
            if clipped is None:
                continue
            start, end = clipped
        found.extend(iter_range(start, end))
    return list(dict.fromkeys(found))


class DependencyGraph:
    """Tracks which cells each formula cell reads.

    `depends_on` and `depended_on_by` are kept as exact inverses.
    """

    __slots__ = ("depends_on", "depended_on_by")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.depends_on: dict[CellAddress, set[CellAddress]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.depended_on_by: dict[CellAddress, set[CellAddress]] = {}

    @classmethod
    def from_sheet(cls, sheet: Sheet) -> "DependencyGraph":
        """Build a dependency graph by scanning the sheet for formula cells."""
        graph = cls()
        # Cells outside the used extent are empty and order nothing
        extent = sheet.used_extent()
        for address, cell in sheet.cells.items():
            graph.register(address, cell, extent)
        return graph

    def add_dependency(self, source: CellAddress, target: CellAddress) -> None:
        """Record that `source` reads `target`."""
        self.depends_on.setdefault(source, set()).add(target)
        self.depended_on_by.setdefault(target, set()).add(source)

    def remove_dependencies(self, cell: CellAddress) -> None:
        """Forget every edge that starts at `cell`."""
        for target in self.depends_on.pop(cell, set()):
            dependents = self.depended_on_by.get(target)
            if dependents is None:
                continue
            dependents.discard(cell)
            if not dependents:
                del self.depended_on_by[target]

    def dependencies(self, cell: CellAddress) -> frozenset[CellAddress]:
        return frozenset(self.depends_on.get(cell, ()))

    def dependents(self, cell: CellAddress) -> frozenset[CellAddress]:
        return frozenset(self.depended_on_by.get(cell, ()))

    def register(
        self,
        address: CellAddress,
        cell: Cell | None,
        extent: tuple[int, int] | None = None,
    ) -> None:
        """Replace the outgoing edges of `address` with those of its new
        content. Non-formula or missing cells read nothing."""
        self.remove_dependencies(address)
        if not isinstance(cell, FormulaCell):
            return
        for target in references(cell.ast, extent):
            self.add_dependency(address, target)

    def has_cycle(self, source: CellAddress, target: CellAddress) -> bool:
        """Whether adding the edge `source -> target` would close a cycle,
        i.e. whether `source` is reachable from `target`."""
        if source == target:
            return True

        seen = {target}
        stack = [target]
        while stack:
            for dep in self.depends_on.get(stack.pop(), ()):
                if dep == source:
                    return True
                if dep not in seen:
                    seen.add(dep)
                    stack.append(dep)
        return False

    def evaluation_order(self, cells: Iterable[CellAddress]) -> list[CellAddress]:
        """Post-order DFS from each cell: dependencies come before the cells
        that read them. Cycles are cut where first revisited.

        Uses an explicit stack, so chain length is not bounded by the
        interpreter's recursion limit.
        """
        order: list[CellAddress] = []
        visited: set[CellAddress] = set()

        for root in cells:
            if root in visited:
                continue
            visited.add(root)
            on_path = {root}
            stack = [(root, iter(self.depends_on.get(root, ())))]
            while stack:
                cell, deps = stack[-1]
                for dep in deps:
                    if dep in on_path:
                        logging.debug(f"Circular reference: {cell} -> {dep}")
                    elif dep not in visited:
                        visited.add(dep)
                        on_path.add(dep)
                        stack.append((dep, iter(self.depends_on.get(dep, ()))))
                        break
                else:
                    stack.pop()
                    on_path.discard(cell)
                    order.append(cell)
        return order
