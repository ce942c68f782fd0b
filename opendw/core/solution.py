"""
Primal solution of a formulation.

A PrimalSolution is a sparse assignment of values to variables of one
formulation together with its cost. Values are kept in a numpy vector
aligned with the variable ids.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Tuple

import numpy as np

from opendw.core.formulation import Formulation


class SolutionFeasibility(Enum):
    """What is known about the feasibility of a solution."""
    FEASIBLE = auto()
    INFEASIBLE = auto()
    UNKNOWN = auto()


@dataclass
class PrimalSolution:
    """
    Sparse primal solution.

    Attributes:
        form: Formulation the variables belong to
        var_ids: Ids of the variables with a nonzero value
        values: Values, aligned with var_ids
        cost: Cost of the solution
        feasibility: Feasibility status
    """
    form: Formulation
    var_ids: List[int] = field(default_factory=list)
    values: np.ndarray = field(default_factory=lambda: np.zeros(0))
    cost: float = 0.0
    feasibility: SolutionFeasibility = SolutionFeasibility.UNKNOWN

    @classmethod
    def from_dict(
        cls,
        form: Formulation,
        assignment: Dict[int, float],
        feasibility: SolutionFeasibility = SolutionFeasibility.UNKNOWN,
    ) -> 'PrimalSolution':
        """
        Build a solution from a var_id -> value mapping, costed with the
        current costs of `form`.
        """
        var_ids = list(assignment.keys())
        values = np.fromiter(
            (assignment[v] for v in var_ids), dtype=float, count=len(var_ids)
        )
        costs = np.fromiter(
            (form.get_cur_cost(v) for v in var_ids), dtype=float, count=len(var_ids)
        )
        return cls(
            form=form,
            var_ids=var_ids,
            values=values,
            cost=float(np.dot(costs, values)),
            feasibility=feasibility,
        )

    def get(self, var_id: int, default: float = 0.0) -> float:
        for i, vid in enumerate(self.var_ids):
            if vid == var_id:
                return float(self.values[i])
        return default

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        return zip(self.var_ids, (float(v) for v in self.values))

    def __len__(self) -> int:
        return len(self.var_ids)

    def __repr__(self) -> str:
        return f"PrimalSolution(nnz={len(self.var_ids)}, cost={self.cost:.4f})"
