"""
Variables and constraints of a formulation.

A Variable or Constraint is a plain record owned by a Formulation. It keeps
two copies of its data:

- perennial data: the values it was created with
- current data: the values the search works with (bounds after branching
  and preprocessing, rhs after fixing a partial solution, ...)

Design Notes:
------------
- Entities are identified by an integer id that is unique inside the
  id space shared by a master and its subproblems. The master clone of a
  subproblem variable reuses the subproblem variable's id.
- Entities compare by identity. Two formulations can hold different
  Variable objects with the same id (a clone and its original).
- Do not mutate `cur` directly; go through the Formulation accessors so
  that the change buffer sees the write.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional

from opendw.core.duty import ConstrDuty, VarDuty


class VarKind(Enum):
    """Domain of a variable."""
    CONTINUOUS = auto()
    BINARY = auto()
    INTEGER = auto()


class ConstrSense(Enum):
    """Sense of a constraint: lhs <= rhs, lhs >= rhs or lhs == rhs."""
    LESS = auto()
    GREATER = auto()
    EQUAL = auto()

    @property
    def symbol(self) -> str:
        return {"LESS": "<=", "GREATER": ">=", "EQUAL": "=="}[self.name]


@dataclass
class VarData:
    """
    Mutable data of a variable.

    Attributes:
        cost: Objective coefficient
        lb: Lower bound (may be -inf)
        ub: Upper bound (may be +inf)
        kind: Continuous, binary or integer
        is_active: Whether the variable currently belongs to the formulation
        is_explicit: Whether the variable is explicitly part of the solver model
    """
    cost: float = 0.0
    lb: float = 0.0
    ub: float = float('inf')
    kind: VarKind = VarKind.CONTINUOUS
    is_active: bool = True
    is_explicit: bool = True

    def copy(self) -> 'VarData':
        return replace(self)


@dataclass
class ConstrData:
    """
    Mutable data of a constraint.

    Attributes:
        rhs: Right-hand side
        sense: LESS, GREATER or EQUAL
        is_active: Whether the constraint currently belongs to the formulation
        is_explicit: Whether the constraint is explicitly part of the solver model
    """
    rhs: float = 0.0
    sense: ConstrSense = ConstrSense.LESS
    is_active: bool = True
    is_explicit: bool = True

    def copy(self) -> 'ConstrData':
        return replace(self)


@dataclass(eq=False)
class Variable:
    """
    A variable of a formulation.

    Attributes:
        id: Identifier, shared by a subproblem variable and its master clone
        name: Human-readable name
        duty: Role of the variable (see VarDuty)
        perene: Data the variable was created with
        cur: Current data
        origin_form_uid: Uid of the subproblem a representative or a
            column comes from (None otherwise)
    """
    id: int
    name: str
    duty: VarDuty
    perene: VarData = field(default_factory=VarData)
    cur: Optional[VarData] = None
    origin_form_uid: Optional[int] = None

    def __post_init__(self):
        if self.cur is None:
            self.cur = self.perene.copy()

    def __repr__(self) -> str:
        return (
            f"Variable({self.id}, '{self.name}', {self.duty.name}, "
            f"[{self.cur.lb}, {self.cur.ub}])"
        )


@dataclass(eq=False)
class Constraint:
    """
    A constraint of a formulation.

    Attributes:
        id: Identifier, unique within the id space of a reformulation
        name: Human-readable name
        duty: Role of the constraint (see ConstrDuty)
        perene: Data the constraint was created with
        cur: Current data
    """
    id: int
    name: str
    duty: ConstrDuty
    perene: ConstrData = field(default_factory=ConstrData)
    cur: Optional[ConstrData] = None

    def __post_init__(self):
        if self.cur is None:
            self.cur = self.perene.copy()

    def __repr__(self) -> str:
        return (
            f"Constraint({self.id}, '{self.name}', {self.duty.name}, "
            f"{self.cur.sense.symbol} {self.cur.rhs})"
        )
