import logging
from typing import Callable, Iterator, NamedTuple

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
from sheetcalc.errors import (
    CycleError,
    ErrorCode,
    EvaluationError,
    InvalidAddress,
    ParseError,
    SheetError,
)
from sheetcalc.functions import SPECIAL_FORMS, check_arity, get_function
from sheetcalc.graph import DependencyGraph, direct_references, ranges, references
from sheetcalc.operators import apply_binary, negate
from sheetcalc.parser import parse_formula
from sheetcalc.sheet import ErrorCell, FormulaCell, LiteralCell, Sheet
from sheetcalc.types import (
    CellAddress,
    CellError,
    EvalResult,
    EvalValue,
    Scalar,
    is_truthy,
)
from sheetcalc.utils import AddressLike, as_address, clip_range, iter_range


class ExplainTrace(NamedTuple):
    """How one formula cell was computed."""

    cell: CellAddress
    formula: str
    dependencies: tuple[CellAddress, ...]
    ranges: tuple[tuple[CellAddress, CellAddress], ...]
    value: Scalar


class EvaluationContext:
    """The sheet being evaluated and the chain of cells currently being
    resolved. The chain is scoped to one top-level evaluation."""

    def __init__(
        self,
        sheet: Sheet,
        address: CellAddress | None = None,
        trace: list[ExplainTrace] | None = None,
        computed: dict[CellAddress, EvalResult] | None = None,
    ):
        self.sheet = sheet
        self.address = address
        self.trace = trace
        # Results of formula cells already evaluated in this session
        self.computed = computed if computed is not None else {}
        self.stack: list[CellAddress] = []
        self.visited: set[CellAddress] = set()
        if address is not None:
            self.push(address)

    def push(self, address: CellAddress) -> None:
        self.stack.append(address)
        self.visited.add(address)

    def pop(self) -> None:
        self.visited.discard(self.stack.pop())

    def contains(self, address: CellAddress) -> bool:
        return address in self.visited

    def format_cycle_path(self, address: CellAddress) -> str:
        """Format the chain into a readable cycle path."""
        return " -> ".join(str(a) for a in [*self.stack, address])


class SheetInterpreter:
    """Evaluates the formula cells of a sheet.

    One instance per evaluation session: it owns a dependency graph that is
    rebuilt for every sheet it evaluates.
    """

    def __init__(self, check_bounds: bool = True):
        # Whether references outside the sheet extent fail with REF
        self.check_bounds = check_bounds
        self.graph = DependencyGraph()

    def evaluate_sheet(self, sheet: Sheet) -> dict[CellAddress, EvalResult]:
        """Evaluate every formula cell, dependencies first."""
        self.graph = DependencyGraph.from_sheet(sheet)
        return self._evaluate_in_order(
            sheet, self.graph, sheet.formula_cells(), trace=None
        )

    def evaluate_cell(self, sheet: Sheet, address: AddressLike) -> EvalResult:
        """Evaluate a single cell. Failures come back as an error result."""
        return self._evaluate_with_dependencies(sheet, as_address(address), None)

    def explain(
        self, sheet: Sheet, address: AddressLike
    ) -> tuple[EvalResult, list[ExplainTrace]]:
        """Evaluate a cell and report every formula cell computed on the
        way, dependencies first."""
        trace: list[ExplainTrace] = []
        result = self._evaluate_with_dependencies(sheet, as_address(address), trace)
        return result, trace

    def evaluate(self, formula: str, sheet: Sheet) -> EvalResult:
        """Evaluate formula text against a sheet without storing it."""
        try:
            node = parse_formula(formula)
        except ParseError as e:
            return EvalResult(None, CellError(e.code, e.message))
        graph = DependencyGraph.from_sheet(sheet)
        computed = self._evaluate_in_order(
            sheet, graph, references(node, sheet.used_extent()), trace=None
        )
        context = EvaluationContext(sheet, computed=computed)
        return self._guarded(
            context,
            lambda: self._scalar(self._evaluate_node(node, context), formula),
        )

    def _evaluate_with_dependencies(
        self,
        sheet: Sheet,
        address: CellAddress,
        trace: list[ExplainTrace] | None,
    ) -> EvalResult:
        if not isinstance(sheet.cells.get(address), FormulaCell):
            return self._evaluate_top(sheet, address, trace, {})
        graph = DependencyGraph.from_sheet(sheet)
        return self._evaluate_in_order(sheet, graph, [address], trace)[address]

    def _evaluate_in_order(
        self,
        sheet: Sheet,
        graph: DependencyGraph,
        addresses: list[CellAddress],
        trace: list[ExplainTrace] | None,
    ) -> dict[CellAddress, EvalResult]:
        """Evaluate the formula cells reachable from `addresses` in
        dependency order. Each cell reads the stored results of the cells it
        depends on, so reference chains do not nest Python calls."""
        computed: dict[CellAddress, EvalResult] = {}
        for address in graph.evaluation_order(addresses):
            if isinstance(sheet.cells.get(address), FormulaCell):
                computed[address] = self._evaluate_top(
                    sheet, address, trace, computed
                )
        return computed

    def _evaluate_top(
        self,
        sheet: Sheet,
        address: CellAddress,
        trace: list[ExplainTrace] | None,
        computed: dict[CellAddress, EvalResult],
    ) -> EvalResult:
        match cell := sheet.cells.get(address):
            case None:
                return EvalResult(None)
            case LiteralCell(value=value):
                return EvalResult(value)
            case ErrorCell(code=code, message=message):
                return EvalResult(None, CellError(code, message))
            case FormulaCell():
                context = EvaluationContext(sheet, address, trace, computed)
                return self._guarded(
                    context, lambda: self._evaluate_formula(address, cell, context)
                )
            case _:
                assert_never(cell)

    def _guarded(
        self, context: EvaluationContext, evaluate: Callable[[], Scalar]
    ) -> EvalResult:
        """Run an evaluation, turning any failure into an error result."""
        where = context.address or "formula"
        try:
            return EvalResult(evaluate())
        except SheetError as e:
            logging.debug(f"{where}: {e.code.value} {e.message}")
            return EvalResult(None, CellError(e.code, e.message))
        except RecursionError:
            logging.debug(f"{where}: formula chain too deep")
            return EvalResult(
                None, CellError(ErrorCode.EVAL, "Formula chain is too deep")
            )
        except (ArithmeticError, TypeError, ValueError) as e:
            logging.debug(f"{where}: {e}")
            return EvalResult(None, CellError(ErrorCode.EVAL, str(e)))

    def _evaluate_formula(
        self, address: CellAddress, cell: FormulaCell, context: EvaluationContext
    ) -> Scalar:
        value = self._scalar(self._evaluate_node(cell.ast, context), str(address))
        # A cell reached through several references is reported once
        if context.trace is not None and not any(
            step.cell == address for step in context.trace
        ):
            context.trace.append(
                ExplainTrace(
                    cell=address,
                    formula=cell.source,
                    dependencies=tuple(dict.fromkeys(direct_references(cell.ast))),
                    ranges=tuple(
                        (rng.start.address, rng.end.address)
                        for rng in ranges(cell.ast)
                    ),
                    value=value,
                )
            )
        return value

    @staticmethod
    def _scalar(value: EvalValue, where: str) -> Scalar:
        if isinstance(value, list):
            raise EvaluationError(f"{where}: a bare range cannot be a cell value")
        return value

    def _evaluate_node(self, node: ASTNode, context: EvaluationContext) -> EvalValue:
        """Evaluate an AST node in the given context."""
        match node:
            case Constant(value=value):
                return value
            case CellReference():
                return self._evaluate_cell_ref(node.address, context)
            case CellRange(start=start, end=end):
                return [
                    self._evaluate_cell_ref(address, context)
                    for address in self._range_addresses(
                        start.address, end.address, context.sheet
                    )
                ]
            case FunctionCall():
                return self._evaluate_function(node, context)
            case BinaryOperation(left=left, operator=op, right=right):
                return apply_binary(
                    op,
                    self._evaluate_node(left, context),
                    self._evaluate_node(right, context),
                )
            case UnaryOperation(operand=operand):
                return negate(self._evaluate_node(operand, context))
            case _:
                assert_never(node)

    def _evaluate_cell_ref(
        self, address: CellAddress, context: EvaluationContext
    ) -> Scalar:
        """Resolve a referenced cell, recursing into formulas."""
        if self.check_bounds and not context.sheet.in_bounds(address):
            raise InvalidAddress(f"Reference outside the sheet: {address}")

        if context.contains(address):
            cycle_path = context.format_cycle_path(address)
            logging.debug(f"Detected cycle: {cycle_path}")
            raise CycleError(f"Circular reference detected: {cycle_path}")

        context.push(address)
        try:
            match cell := context.sheet.cells.get(address):
                case None:
                    return None
                case LiteralCell(value=value):
                    return value
                case ErrorCell(message=message):
                    # The stored code belongs to that cell only
                    raise EvaluationError(f"{address}: {message}")
                case FormulaCell() if address in context.computed:
                    value, error = context.computed[address]
                    if error is not None:
                        raise SheetError(error.message, code=error.code)
                    return value
                case FormulaCell():
                    return self._evaluate_formula(address, cell, context)
                case _:
                    assert_never(cell)
        finally:
            # Leaving the cell lets another path reach it again (diamonds)
            context.pop()

    def _range_addresses(
        self, start: CellAddress, end: CellAddress, sheet: Sheet
    ) -> Iterator[CellAddress]:
        """Addresses of a range, checked against the sheet before expanding."""
        if self.check_bounds:
            # A rectangle is inside the sheet iff both corners are
            if not (sheet.in_bounds(start) and sheet.in_bounds(end)):
                raise InvalidAddress(f"Range outside the sheet: {start}:{end}")
            return iter_range(start, end)

        # Unchecked: cells beyond the used extent are empty, skip them
        clipped = clip_range(start, end, *sheet.used_extent())
        return iter_range(*clipped) if clipped is not None else iter(())

    def _evaluate_function(
        self, node: FunctionCall, context: EvaluationContext
    ) -> Scalar:
        """Evaluate a function call."""
        if node.name in SPECIAL_FORMS:
            return self._evaluate_if(node, context)

        fn = get_function(node.name)
        return fn(*(self._evaluate_node(arg, context) for arg in node.arguments))

    def _evaluate_if(self, node: FunctionCall, context: EvaluationContext) -> Scalar:
        """IF(condition, then, else): only the selected branch is evaluated."""
        check_arity(node.name, node.arguments, 3)
        condition, when_true, when_false = node.arguments
        test = self._scalar(self._evaluate_node(condition, context), "IF condition")
        branch = when_true if is_truthy(test) else when_false
        return self._scalar(self._evaluate_node(branch, context), "IF branch result")
