"""
Change buffer of a formulation.

Every write done through the Formulation accessors is recorded here. An
external solver interface would flush the buffer to update its model; the
storage framework relies on it to prove that restoring a record does not
issue redundant writes.
"""

from dataclasses import dataclass, field
from typing import Set


@dataclass
class FormulationBuffer:
    """
    Ids of entities changed since the last reset.

    Attributes:
        changed_bounds: Variables whose lb or ub was written
        changed_costs: Variables whose cost was written
        changed_rhs: Constraints whose rhs was written
        activated: Entities (re)activated, as (kind, id) with kind 'var' or 'constr'
        deactivated: Entities deactivated, as (kind, id)
        num_writes: Total number of writes recorded
    """
    changed_bounds: Set[int] = field(default_factory=set)
    changed_costs: Set[int] = field(default_factory=set)
    changed_rhs: Set[int] = field(default_factory=set)
    activated: Set[tuple] = field(default_factory=set)
    deactivated: Set[tuple] = field(default_factory=set)
    num_writes: int = 0

    @property
    def is_empty(self) -> bool:
        return self.num_writes == 0

    def reset(self) -> None:
        """Forget all recorded changes."""
        self.changed_bounds.clear()
        self.changed_costs.clear()
        self.changed_rhs.clear()
        self.activated.clear()
        self.deactivated.clear()
        self.num_writes = 0
