"""
Result of a preprocessing call.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List


class PreprocessStatus(Enum):
    """Outcome of a preprocessing call."""
    FEASIBLE = auto()     # Fixpoint reached, no contradiction found
    INFEASIBLE = auto()   # Current bounds/rhs admit no solution
    INCOMPLETE = auto()   # Budget exhausted before the fixpoint


@dataclass
class PreprocessingOutput:
    """
    Output of PreprocessAlgorithm.run.

    Bounds tightened before the call stopped stay tightened whatever the
    status; an INCOMPLETE call only missed further tightening.

    Attributes:
        status: FEASIBLE, INFEASIBLE or INCOMPLETE
        num_pops: Worklist pops done by this call
        num_bound_changes: Bound writes done by propagation
        forbidden_columns: Ids of the columns whose upper bound was set to 0
    """
    status: PreprocessStatus = PreprocessStatus.FEASIBLE
    num_pops: int = 0
    num_bound_changes: int = 0
    forbidden_columns: List[int] = field(default_factory=list)

    @property
    def infeasible(self) -> bool:
        return self.status is PreprocessStatus.INFEASIBLE

    @property
    def incomplete(self) -> bool:
        return self.status is PreprocessStatus.INCOMPLETE

    def summary(self) -> str:
        """Return a human-readable summary."""
        lines = [
            "PreprocessingOutput:",
            f"  Status: {self.status.name}",
            f"  Worklist pops: {self.num_pops}",
            f"  Bound changes: {self.num_bound_changes}",
            f"  Forbidden columns: {len(self.forbidden_columns)}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"PreprocessingOutput({self.status.name}, pops={self.num_pops}, "
            f"bound_changes={self.num_bound_changes})"
        )
