"""
Formulation module - a mathematical model of (part of) a problem.

A Formulation owns variables, constraints and the sparse coefficient matrix
linking them. It is the accessor contract used by every algorithm in the
package: algorithms never touch Variable.cur or Constraint.cur directly, they
call the get_cur_* / set_cur_* methods below.

Formulations come in three flavours (see FormulationDuty):
- ORIGINAL: a plain, non-decomposed model
- DW_MASTER: the master of a Dantzig-Wolfe reformulation
- DW_SP: a pricing subproblem of a Dantzig-Wolfe reformulation

Design Notes:
------------
- Ids are drawn from an IdGenerator that a master shares with its
  subproblems, so constraint ids are unique across the whole
  reformulation and a master clone can reuse its subproblem variable's id.
- Accessors accept either the entity or its id.
- Every write lands in the formulation's FormulationBuffer.
- A master also stores the subproblem solution of every generated column in
  `primal_sp_sols` (row = subproblem variable id, column = column id).

Example:
    >>> form = Formulation(uid=0)
    >>> x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=4.0)
    >>> y = form.add_var("y", VarDuty.ORIGINAL_VAR)
    >>> c = form.add_constr(
    ...     "c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 10.0,
    ...     members={x: 1.0, y: 1.0},
    ... )
    >>> form.get_cur_ub(y)
    inf
"""

from enum import Enum, auto
from typing import Dict, Iterator, Optional, Union

from opendw.core.buffer import FormulationBuffer
from opendw.core.duty import ConstrDuty, VarDuty
from opendw.core.matrix import DynamicSparseMatrix
from opendw.core.varconstr import (
    ConstrData,
    Constraint,
    ConstrSense,
    VarData,
    Variable,
    VarKind,
)

VarRef = Union[Variable, int]
ConstrRef = Union[Constraint, int]


class FormulationDuty(Enum):
    """Role of a formulation."""
    ORIGINAL = auto()
    DW_MASTER = auto()
    DW_SP = auto()


class IdGenerator:
    """Hands out increasing integer ids; explicit ids can be reserved."""

    def __init__(self, start: int = 0):
        self._next = start

    def new_id(self) -> int:
        value = self._next
        self._next += 1
        return value

    def reserve(self, value: int) -> None:
        self._next = max(self._next, value + 1)


class Formulation:
    """
    Variables, constraints and coefficients of one model.

    Attributes:
        uid: Unique identifier of the formulation
        duty: ORIGINAL, DW_MASTER or DW_SP
        name: Human-readable name
        parent_formulation: The master, for a subproblem; None otherwise
        coef_matrix: Constraint x variable coefficients
        primal_sp_sols: Subproblem variable x column values (master only)
        buffer: Writes done since the last buffer reset
    """

    def __init__(
        self,
        uid: int,
        duty: FormulationDuty = FormulationDuty.ORIGINAL,
        name: str = "",
        parent_formulation: Optional['Formulation'] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self.uid = uid
        self.duty = duty
        self.name = name or f"{duty.name.lower()}_{uid}"
        self.parent_formulation = parent_formulation

        self._ids = id_generator or IdGenerator()
        self._vars: Dict[int, Variable] = {}
        self._constrs: Dict[int, Constraint] = {}

        self.coef_matrix = DynamicSparseMatrix()
        self.primal_sp_sols = DynamicSparseMatrix()
        self.buffer = FormulationBuffer()

    # =========================================================================
    # Building
    # =========================================================================

    def add_var(
        self,
        name: str,
        duty: VarDuty,
        lb: float = 0.0,
        ub: float = float('inf'),
        cost: float = 0.0,
        kind: VarKind = VarKind.CONTINUOUS,
        is_explicit: bool = True,
        id: Optional[int] = None,
        origin_form_uid: Optional[int] = None,
    ) -> Variable:
        """
        Create a variable and add it to the formulation.

        Binary variables get their bounds clipped to [0, 1].

        Args:
            name: Human-readable name
            duty: Role of the variable
            lb: Lower bound
            ub: Upper bound
            cost: Objective coefficient
            kind: Continuous, binary or integer
            is_explicit: Whether the variable belongs to the solver model
            id: Explicit id (used for master clones); drawn from the
                generator when omitted
            origin_form_uid: Subproblem the variable comes from

        Returns:
            The new Variable

        Raises:
            ValueError: If a variable with this id already exists
        """
        if id is None:
            id = self._ids.new_id()
        elif id in self._vars:
            raise ValueError(f"Variable id {id} already used in {self.name}")
        else:
            self._ids.reserve(id)

        if kind == VarKind.BINARY:
            lb, ub = max(lb, 0.0), min(ub, 1.0)

        var = Variable(
            id=id,
            name=name,
            duty=duty,
            perene=VarData(cost=cost, lb=lb, ub=ub, kind=kind, is_explicit=is_explicit),
            origin_form_uid=origin_form_uid,
        )
        self._vars[id] = var
        return var

    def add_constr(
        self,
        name: str,
        duty: ConstrDuty,
        sense: ConstrSense,
        rhs: float,
        members: Optional[Dict[VarRef, float]] = None,
        is_explicit: bool = True,
        id: Optional[int] = None,
    ) -> Constraint:
        """
        Create a constraint and add it to the formulation.

        Args:
            name: Human-readable name
            duty: Role of the constraint
            sense: LESS, GREATER or EQUAL
            rhs: Right-hand side
            members: Coefficients of the variables in the constraint
            is_explicit: Whether the constraint belongs to the solver model
            id: Explicit id; drawn from the generator when omitted

        Returns:
            The new Constraint
        """
        if id is None:
            id = self._ids.new_id()
        elif id in self._constrs:
            raise ValueError(f"Constraint id {id} already used in {self.name}")
        else:
            self._ids.reserve(id)

        constr = Constraint(
            id=id,
            name=name,
            duty=duty,
            perene=ConstrData(rhs=rhs, sense=sense, is_explicit=is_explicit),
        )
        self._constrs[id] = constr
        for var, coef in (members or {}).items():
            self.set_coef(constr, var, coef)
        return constr

    def set_coef(self, constr: ConstrRef, var: VarRef, coef: float) -> None:
        """Set the coefficient of a variable in a constraint."""
        constr_id = self._constr_id(constr)
        var_id = self._var_id(var)
        if constr_id not in self._constrs:
            raise KeyError(f"Unknown constraint {constr_id} in {self.name}")
        if var_id not in self._vars:
            raise KeyError(f"Unknown variable {var_id} in {self.name}")
        self.coef_matrix[constr_id, var_id] = coef

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_var(self, var: VarRef) -> Variable:
        return self._vars[self._var_id(var)]

    def get_constr(self, constr: ConstrRef) -> Constraint:
        return self._constrs[self._constr_id(constr)]

    def has_var(self, var: VarRef) -> bool:
        return self._var_id(var) in self._vars

    def has_constr(self, constr: ConstrRef) -> bool:
        return self._constr_id(constr) in self._constrs

    @property
    def vars(self) -> Dict[int, Variable]:
        """All variables, active or not, keyed by id."""
        return self._vars

    @property
    def constrs(self) -> Dict[int, Constraint]:
        """All constraints, active or not, keyed by id."""
        return self._constrs

    def active_vars(self) -> Iterator[Variable]:
        return (v for v in list(self._vars.values()) if v.cur.is_active)

    def active_constrs(self) -> Iterator[Constraint]:
        return (c for c in list(self._constrs.values()) if c.cur.is_active)

    # =========================================================================
    # Variable accessors
    # =========================================================================

    def get_cur_lb(self, var: VarRef) -> float:
        return self.get_var(var).cur.lb

    def get_cur_ub(self, var: VarRef) -> float:
        return self.get_var(var).cur.ub

    def get_cur_cost(self, var: VarRef) -> float:
        return self.get_var(var).cur.cost

    def get_cur_kind(self, var: VarRef) -> VarKind:
        return self.get_var(var).cur.kind

    def set_cur_lb(self, var: VarRef, value: float) -> None:
        v = self.get_var(var)
        v.cur.lb = value
        self._record_write(self.buffer.changed_bounds, v.id)

    def set_cur_ub(self, var: VarRef, value: float) -> None:
        v = self.get_var(var)
        v.cur.ub = value
        self._record_write(self.buffer.changed_bounds, v.id)

    def set_cur_cost(self, var: VarRef, value: float) -> None:
        v = self.get_var(var)
        v.cur.cost = value
        self._record_write(self.buffer.changed_costs, v.id)

    # =========================================================================
    # Constraint accessors
    # =========================================================================

    def get_cur_rhs(self, constr: ConstrRef) -> float:
        return self.get_constr(constr).cur.rhs

    def get_cur_sense(self, constr: ConstrRef) -> ConstrSense:
        return self.get_constr(constr).cur.sense

    def set_cur_rhs(self, constr: ConstrRef, value: float) -> None:
        c = self.get_constr(constr)
        c.cur.rhs = value
        self._record_write(self.buffer.changed_rhs, c.id)

    # =========================================================================
    # Activity
    # =========================================================================

    def is_cur_active(self, entity: Union[Variable, Constraint]) -> bool:
        return entity.cur.is_active

    def is_explicit(self, entity: Union[Variable, Constraint]) -> bool:
        return entity.cur.is_explicit

    def activate(self, entity: Union[Variable, Constraint]) -> None:
        entity.cur.is_active = True
        self._record_write(self.buffer.activated, (self._kind(entity), entity.id))

    def deactivate(self, entity: Union[Variable, Constraint]) -> None:
        entity.cur.is_active = False
        self._record_write(self.buffer.deactivated, (self._kind(entity), entity.id))

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _record_write(self, bucket: set, key) -> None:
        bucket.add(key)
        self.buffer.num_writes += 1

    @staticmethod
    def _kind(entity: Union[Variable, Constraint]) -> str:
        return "var" if isinstance(entity, Variable) else "constr"

    @staticmethod
    def _var_id(var: VarRef) -> int:
        return var.id if isinstance(var, Variable) else var

    @staticmethod
    def _constr_id(constr: ConstrRef) -> int:
        return constr.id if isinstance(constr, Constraint) else constr

    def summary(self) -> str:
        """
        Return a human-readable summary.

        Returns:
            Summary string
        """
        num_active_vars = sum(1 for _ in self.active_vars())
        num_active_constrs = sum(1 for _ in self.active_constrs())
        lines = [
            f"Formulation: {self.name} ({self.duty.name})",
            f"  Variables: {num_active_vars} active / {len(self._vars)}",
            f"  Constraints: {num_active_constrs} active / {len(self._constrs)}",
            f"  Nonzeros: {self.coef_matrix.nnz}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"Formulation(uid={self.uid}, duty={self.duty.name}, "
            f"vars={len(self._vars)}, constrs={len(self._constrs)})"
        )
