"""
Sparse matrix with row and column access.

Propagation walks the coefficient matrix in both directions: from a
constraint to the variables it contains when strengthening bounds, and from
a variable to the constraints containing it when a bound moves. The same
structure also stores the subproblem solution of every generated column
(row = subproblem variable, column = master column).

Both directions are kept as dict-of-dicts so that entries can be added while
the search runs.
"""

from typing import Dict, Hashable, Iterator, Tuple


class DynamicSparseMatrix:
    """
    Sparse matrix indexed by arbitrary hashable keys.

    Example:
        >>> m = DynamicSparseMatrix()
        >>> m[1, 10] = 2.0
        >>> m[1, 11] = -1.0
        >>> dict(m.row(1))
        {10: 2.0, 11: -1.0}
        >>> dict(m.column(10))
        {1: 2.0}
    """

    def __init__(self):
        self._rows: Dict[Hashable, Dict[Hashable, float]] = {}
        self._cols: Dict[Hashable, Dict[Hashable, float]] = {}

    def __setitem__(self, key: Tuple[Hashable, Hashable], value: float) -> None:
        row, col = key
        if value == 0.0:
            self._delete(row, col)
            return
        self._rows.setdefault(row, {})[col] = value
        self._cols.setdefault(col, {})[row] = value

    def __getitem__(self, key: Tuple[Hashable, Hashable]) -> float:
        row, col = key
        return self._rows.get(row, {}).get(col, 0.0)

    def get(self, row: Hashable, col: Hashable, default: float = 0.0) -> float:
        return self._rows.get(row, {}).get(col, default)

    def row(self, row: Hashable) -> Iterator[Tuple[Hashable, float]]:
        """Iterate over (column key, value) pairs of a row."""
        return iter(list(self._rows.get(row, {}).items()))

    def column(self, col: Hashable) -> Iterator[Tuple[Hashable, float]]:
        """Iterate over (row key, value) pairs of a column."""
        return iter(list(self._cols.get(col, {}).items()))

    def _delete(self, row: Hashable, col: Hashable) -> None:
        self._rows.get(row, {}).pop(col, None)
        self._cols.get(col, {}).pop(row, None)

    @property
    def nnz(self) -> int:
        """Number of stored nonzero entries."""
        return sum(len(r) for r in self._rows.values())

    def __repr__(self) -> str:
        return f"DynamicSparseMatrix(nnz={self.nnz})"
