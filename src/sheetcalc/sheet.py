"""On-demand memoized recalculation of a single sheet of raw cell inputs.

Evaluates cell formulas lazily: a cell is computed only when referenced,
and the result is cached for the duration of one evaluation pass.
Circular references are detected and reported, never iterated; every
cell on a cycle evaluates to ``"#ERROR!"``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Mapping
from typing import Any

from sheetcalc.addressing import decode_address
from sheetcalc.dependencies import extract_dependencies, extract_ranges
from sheetcalc.engine import FormulaResult, evaluate_detailed, is_formula
from sheetcalc.formulas.errors import ErrorKind, FormulaError, FormulaRefError
from sheetcalc.values import ERROR_SENTINEL


class CellCycleError(FormulaError):
    """Raised when a cycle is detected during cell evaluation.

    Attributes:
        cycle_path: Addresses along the cycle, first address repeated at the end.
    """

    kind = ErrorKind.circular

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")


def _row_major(addr: str) -> tuple[int, int]:
    pos = decode_address(addr)
    return (pos.row, pos.col) if pos is not None else (-1, -1)


class _SheetContext(Mapping):
    """Read-only context view: formula cells evaluate on access."""

    def __init__(self, sheet: Sheet) -> None:
        self._sheet = sheet

    def __getitem__(self, addr: str) -> Any:
        if addr not in self._sheet._cells:
            raise KeyError(addr)
        return self._sheet._resolve(addr)

    def __iter__(self) -> Iterator[str]:
        return iter(self._sheet._cells)

    def __len__(self) -> int:
        return len(self._sheet._cells)


class Sheet:
    """On-demand memoized evaluator for one sheet of cells.

    Usage::

        sheet = Sheet({"A1": 10, "A2": 20, "A3": "=SUM(A1:A2)"})
        sheet.evaluate_cell("A3")    # 30
        sheet.evaluate_all()         # {"A1": 10, "A2": 20, "A3": 30}

    Parameters
    ----------
    cells : Mapping[str, Any]
        Raw cell inputs by address.  Strings starting with ``=`` are
        formulas; everything else is a literal value.
    strict : bool
        Treat non-numeric cell text in arithmetic as an error.
    rng : Any
        Optional random source for RANDOM/RANDBETWEEN.
    clock : Any
        Optional callable returning the current datetime for TODAY/NOW.
    """

    def __init__(
        self,
        cells: Mapping[str, Any] | None = None,
        *,
        strict: bool = False,
        rng: Any = None,
        clock: Any = None,
    ) -> None:
        self._cells: dict[str, Any] = {addr.upper(): raw for addr, raw in (cells or {}).items()}
        self._strict = strict
        self._rng = rng
        self._clock = clock
        self._context = _SheetContext(self)
        self._cache: dict[str, FormulaResult] = {}
        self._in_progress: set[str] = set()
        self._eval_stack: list[str] = []
        self._cycle_members: set[str] = set()
        self._cycles: list[list[str]] = []

    # ------------------------------------------------------------------
    # Cell inputs
    # ------------------------------------------------------------------

    @property
    def cells(self) -> dict[str, Any]:
        """Copy of the raw cell inputs."""
        return dict(self._cells)

    def set_cell(self, addr: str, raw: Any) -> None:
        """Set (or clear, with ``None``) a raw cell input and invalidate the pass."""
        addr = addr.upper()
        if raw is None:
            self._cells.pop(addr, None)
        else:
            self._cells[addr] = raw
        self.invalidate()

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    def _resolve(self, addr: str) -> Any:
        """Context lookup: the cell's value, or an error if the cell failed."""
        result = self._result(addr)
        if result.error is not None:
            raise FormulaRefError(addr, f"Referenced cell {addr} has an error: {result.message}")
        return result.value

    def result(self, addr: str) -> FormulaResult:
        """Evaluate a single cell, with memoization and cycle detection."""
        addr = addr.upper()
        if addr not in self._cache and not self._in_progress:
            self._evaluate_dependencies_first(addr)
        return self._result(addr)

    def _result(self, addr: str) -> FormulaResult:
        # Already computed?
        if addr in self._cache:
            return self._cache[addr]

        # Cycle detection
        if addr in self._in_progress:
            cycle_start = self._eval_stack.index(addr)
            cycle_path = self._eval_stack[cycle_start:] + [addr]
            self._cycles.append(cycle_path)
            self._cycle_members.update(cycle_path)
            raise CellCycleError(cycle_path)

        raw = self._cells.get(addr)
        if not is_formula(raw):
            result = FormulaResult(raw)
            self._cache[addr] = result
            return result

        self._in_progress.add(addr)
        self._eval_stack.append(addr)
        try:
            result = evaluate_detailed(
                raw, self._context, strict=self._strict, rng=self._rng, clock=self._clock
            )
        finally:
            self._in_progress.discard(addr)
            if self._eval_stack and self._eval_stack[-1] == addr:
                self._eval_stack.pop()

        if addr in self._cycle_members:
            cycle = next(path for path in self._cycles if addr in path)
            result = FormulaResult(
                ERROR_SENTINEL,
                ErrorKind.circular,
                f"Circular cell reference: {' -> '.join(cycle)}",
            )
        self._cache[addr] = result
        return result

    def _formula_dependencies(self, addr: str) -> list[str]:
        """Formula cells that *addr* names directly or through a range."""
        raw = self._cells[addr]
        deps = [d for d in extract_dependencies(raw) if is_formula(self._cells.get(d))]
        for pair in extract_ranges(raw):
            for cell, raw_dep in self._cells.items():
                if cell in deps or not is_formula(raw_dep):
                    continue
                pos = decode_address(cell)
                if pos is not None and _covers(pair, pos):
                    deps.append(cell)
        return deps

    def _evaluate_dependencies_first(self, addr: str) -> None:
        """Evaluate the uncached formula cells under *addr*, deepest first.

        Walks the lexical dependencies with an explicit stack so a long
        reference chain is computed bottom-up instead of through one
        nested context lookup per link.  Cells found on a cycle are
        skipped here, so ``_result`` detects the cycle from *addr* and
        records it in that order.
        """
        if not is_formula(self._cells.get(addr)):
            return
        visited = {addr}
        on_cycle: set[str] = set()
        path = [addr]
        on_path = {addr}
        stack = [iter(self._formula_dependencies(addr))]
        while stack:
            for dep in stack[-1]:
                if dep in self._cache:
                    continue
                if dep in on_path:
                    on_cycle.update(path[path.index(dep):])
                elif dep not in visited:
                    visited.add(dep)
                    path.append(dep)
                    on_path.add(dep)
                    stack.append(iter(self._formula_dependencies(dep)))
                    break
            else:
                stack.pop()
                cell = path.pop()
                on_path.discard(cell)
                if cell != addr and cell not in on_cycle:
                    self._result(cell)

    def evaluate_cell(self, addr: str) -> Any:
        """Display value of a cell: the computed value or ``"#ERROR!"``.

        Empty cells evaluate to ``None``.
        """
        return self.result(addr).display

    def evaluate_all(self) -> dict[str, Any]:
        """Evaluate every non-empty cell, in row-major order."""
        return {addr: self.evaluate_cell(addr) for addr in sorted(self._cells, key=_row_major)}

    def get_errors(self) -> dict[str, str]:
        """Return all evaluation errors collected during this pass.

        Returns:
            Dict of addr -> error message.
        """
        return {addr: r.message for addr, r in self._cache.items() if r.error is not None}

    def get_cycles(self) -> list[list[str]]:
        """Cycle paths detected during this pass."""
        return [list(path) for path in self._cycles]

    def invalidate(self) -> None:
        """Clear all cached values and errors.

        Call this when cells have been edited and need re-evaluation.
        """
        self._cache.clear()
        self._in_progress.clear()
        self._eval_stack.clear()
        self._cycle_members.clear()
        self._cycles.clear()

    # ------------------------------------------------------------------
    # Dependency graph
    # ------------------------------------------------------------------

    def dependents(self, addr: str) -> list[str]:
        """Formula cells that read *addr* directly (single refs or covering ranges)."""
        addr = addr.upper()
        target = decode_address(addr)
        found: list[str] = []
        for cell, raw in self._cells.items():
            if not is_formula(raw):
                continue
            if addr in extract_dependencies(raw) or (
                target is not None and any(_covers(pair, target) for pair in extract_ranges(raw))
            ):
                found.append(cell)
        return sorted(found, key=_row_major)

    def recalc_order(self, addr: str) -> list[str]:
        """All formula cells affected by a change to *addr*, in evaluation order.

        Cells on a cycle have no valid order and are appended last, row-major.
        """
        affected: set[str] = set()
        queue: deque[str] = deque([addr.upper()])
        while queue:
            cell = queue.popleft()
            for dep in self.dependents(cell):
                if dep not in affected:
                    affected.add(dep)
                    queue.append(dep)

        edges = {cell: [d for d in self.dependents(cell) if d in affected] for cell in affected}
        in_degree = dict.fromkeys(affected, 0)
        for targets in edges.values():
            for dep in targets:
                in_degree[dep] += 1

        ready = sorted((c for c in affected if in_degree[c] == 0), key=_row_major)
        order: list[str] = []
        while ready:
            cell = ready.pop(0)
            order.append(cell)
            for dep in edges[cell]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    ready.append(dep)
                    ready.sort(key=_row_major)

        order.extend(sorted(affected - set(order), key=_row_major))
        return order


def _covers(pair: tuple[str, str], target: Any) -> bool:
    first, last = decode_address(pair[0]), decode_address(pair[1])
    if first is None or last is None:
        return False
    r0, r1 = sorted((first.row, last.row))
    c0, c1 = sorted((first.col, last.col))
    return r0 <= target.row <= r1 and c0 <= target.col <= c1


def recalc_sheet(
    cells: Mapping[str, Any],
    *,
    strict: bool = False,
    rng: Any = None,
    clock: Any = None,
    sink: Any = None,
) -> Sheet:
    """Evaluate every cell of *cells* and emit recalculation events.

    Returns the evaluated ``Sheet`` so callers can read values and errors.
    """
    from sheetcalc.logging.events import (
        EventLevel,
        EventType,
        emit,
        emit_info,
        make_cell_event,
    )

    sheet = Sheet(cells, strict=strict, rng=rng, clock=clock)
    emit_info(EventType.recalc_started, f"recalculating {len(sheet.cells)} cells", sink=sink)
    values = sheet.evaluate_all()

    for path in sheet.get_cycles():
        emit(
            make_cell_event(
                EventType.cycle_detected,
                EventLevel.warning,
                f"Circular cell reference: {' -> '.join(path)}",
                addr=path[0],
                error_code=ErrorKind.circular.value,
                extra={"cycle_path": path},
            ),
            sink,
        )
    for addr in sorted(sheet.get_errors(), key=_row_major):
        result = sheet.result(addr)
        emit(
            make_cell_event(
                EventType.cell_error,
                EventLevel.warning,
                result.message,
                addr=addr,
                formula=sheet.cells.get(addr),
                error_code=result.error.value if result.error else None,
            ),
            sink,
        )

    emit_info(
        EventType.recalc_completed,
        f"recalculated {len(values)} cells, {len(sheet.get_errors())} errors",
        {"cells": len(values), "errors": len(sheet.get_errors())},
        sink=sink,
    )
    return sheet
