"""
Storage units attached to formulations.

Formulation records do not need any state of their own: the state they
snapshot is the formulation's current data. They all share the empty
FormulationUnit and differ in which entities they keep:

    Record                      Entities                         Data kept
    --------------------------  -------------------------------  --------------
    StaticVarConstrRecord       static-duty variables/constrs    cost, lb, ub / rhs
    MasterColumnsRecord         generated columns                cost, lb, ub
    MasterBranchConstrsRecord   branching constraints            rhs
    MasterCutsRecord            cuts                             rhs

Restoring one of these records makes the family it covers look exactly as
it did at snapshot time: recorded entities are reactivated if needed and
get their data back, entities of the family that were not recorded but are
active now get deactivated. Writes are only issued for values that differ.

PartialSolutionUnit is a real unit: it accumulates a partial assignment of
master variables (columns fixed by a diving heuristic, for instance).
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Union

from opendw.core.duty import ConstrDuty, VarDuty, is_static_duty
from opendw.core.formulation import Formulation
from opendw.core.solution import PrimalSolution
from opendw.core.varconstr import Constraint, Variable
from opendw.storage.base import AbstractRecord, AbstractStorageUnit, UnitPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VarState:
    """Recorded data of a variable."""
    cost: float
    lb: float
    ub: float

    @classmethod
    def of(cls, form: Formulation, var: Variable) -> 'VarState':
        return cls(
            cost=form.get_cur_cost(var),
            lb=form.get_cur_lb(var),
            ub=form.get_cur_ub(var),
        )

    def apply(self, form: Formulation, var: Variable) -> None:
        if form.get_cur_cost(var) != self.cost:
            form.set_cur_cost(var, self.cost)
        if form.get_cur_lb(var) != self.lb:
            form.set_cur_lb(var, self.lb)
        if form.get_cur_ub(var) != self.ub:
            form.set_cur_ub(var, self.ub)


@dataclass(frozen=True)
class ConstrState:
    """Recorded data of a constraint."""
    rhs: float

    @classmethod
    def of(cls, form: Formulation, constr: Constraint) -> 'ConstrState':
        return cls(rhs=form.get_cur_rhs(constr))

    def apply(self, form: Formulation, constr: Constraint) -> None:
        if form.get_cur_rhs(constr) != self.rhs:
            form.set_cur_rhs(constr, self.rhs)


class FormulationUnit(AbstractStorageUnit):
    """Empty unit shared by all records of formulation data."""


def _snapshot(form: Formulation, entities: Iterable, keep: Callable, state_type) -> Mapping:
    return MappingProxyType({
        entity.id: state_type.of(form, entity)
        for entity in entities
        if form.is_cur_active(entity) and keep(entity)
    })


def _restore_entities(
    form: Formulation,
    entities: Iterable[Union[Variable, Constraint]],
    states: Mapping,
    keep: Callable,
) -> None:
    for entity in list(entities):
        if not keep(entity):
            continue
        state = states.get(entity.id)
        if state is not None:
            if not form.is_cur_active(entity):
                logger.debug("Activating %s in %s", entity.name, form.name)
                form.activate(entity)
            state.apply(form, entity)
        elif form.is_cur_active(entity):
            logger.debug("Deactivating %s in %s", entity.name, form.name)
            form.deactivate(entity)


def _is_column(var: Variable) -> bool:
    return var.duty is VarDuty.MASTER_COL and var.cur.is_explicit


def _is_branch_constr(constr: Constraint) -> bool:
    return (
        constr.duty.is_a(ConstrDuty.ABSTRACT_MASTER_BRANCHING_CONSTR)
        and constr.cur.is_explicit
    )


def _is_cut(constr: Constraint) -> bool:
    return (
        constr.duty.is_a(ConstrDuty.ABSTRACT_MASTER_CUT_CONSTR)
        and constr.cur.is_explicit
    )


def _is_static(entity: Union[Variable, Constraint]) -> bool:
    return is_static_duty(entity.duty)


# =============================================================================
# Formulation records
# =============================================================================


@dataclass(frozen=True)
class StaticVarConstrRecord(AbstractRecord):
    """
    Current data of the static variables and constraints of a formulation.

    Implicit entities (master representatives of pricing variables) are
    kept as well: their bounds are what propagation tightens in the master.

    Attributes:
        vars: Variable id -> VarState
        constrs: Constraint id -> ConstrState
    """
    vars: Mapping[int, VarState] = field(default_factory=dict)
    constrs: Mapping[int, ConstrState] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: FormulationUnit) -> 'StaticVarConstrRecord':
        return cls(
            vars=_snapshot(form, form.vars.values(), _is_static, VarState),
            constrs=_snapshot(form, form.constrs.values(), _is_static, ConstrState),
        )

    def restore(self, form: Formulation, unit: FormulationUnit) -> None:
        _restore_entities(form, form.vars.values(), self.vars, _is_static)
        _restore_entities(form, form.constrs.values(), self.constrs, _is_static)

    def __repr__(self) -> str:
        return f"StaticVarConstrRecord(vars={len(self.vars)}, constrs={len(self.constrs)})"


@dataclass(frozen=True)
class MasterColumnsRecord(AbstractRecord):
    """Active generated columns of a master and their data."""
    cols: Mapping[int, VarState] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: FormulationUnit) -> 'MasterColumnsRecord':
        return cls(cols=_snapshot(form, form.vars.values(), _is_column, VarState))

    def restore(self, form: Formulation, unit: FormulationUnit) -> None:
        _restore_entities(form, form.vars.values(), self.cols, _is_column)

    def __repr__(self) -> str:
        return f"MasterColumnsRecord(cols={sorted(self.cols)})"


@dataclass(frozen=True)
class MasterBranchConstrsRecord(AbstractRecord):
    """Active branching constraints of a master and their rhs."""
    constrs: Mapping[int, ConstrState] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: FormulationUnit) -> 'MasterBranchConstrsRecord':
        return cls(
            constrs=_snapshot(form, form.constrs.values(), _is_branch_constr, ConstrState)
        )

    def restore(self, form: Formulation, unit: FormulationUnit) -> None:
        _restore_entities(form, form.constrs.values(), self.constrs, _is_branch_constr)

    def __repr__(self) -> str:
        return f"MasterBranchConstrsRecord(constrs={sorted(self.constrs)})"


@dataclass(frozen=True)
class MasterCutsRecord(AbstractRecord):
    """Active cuts of a master and their rhs."""
    cuts: Mapping[int, ConstrState] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: FormulationUnit) -> 'MasterCutsRecord':
        return cls(cuts=_snapshot(form, form.constrs.values(), _is_cut, ConstrState))

    def restore(self, form: Formulation, unit: FormulationUnit) -> None:
        _restore_entities(form, form.constrs.values(), self.cuts, _is_cut)

    def __repr__(self) -> str:
        return f"MasterCutsRecord(cuts={sorted(self.cuts)})"


# =============================================================================
# Partial solution
# =============================================================================


class PartialSolutionUnit(AbstractStorageUnit):
    """
    Partial assignment of master variables, accumulated along a branch.

    Attributes:
        solution: Variable id -> value
    """

    def __init__(self, form: Formulation):
        self.form = form
        self.solution: Dict[int, float] = {}

    def add_to_solution(self, var: Union[Variable, int], value: float) -> None:
        var_id = var.id if isinstance(var, Variable) else var
        self.solution[var_id] = self.solution.get(var_id, 0.0) + value

    def get_primal_solution(self) -> PrimalSolution:
        """The partial solution, costed with the formulation's current costs."""
        return PrimalSolution.from_dict(self.form, self.solution)

    def __repr__(self) -> str:
        return f"PartialSolutionUnit({self.solution})"


@dataclass(frozen=True)
class PartialSolutionRecord(AbstractRecord):
    """Copy of a PartialSolutionUnit."""
    solution: Mapping[int, float] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: PartialSolutionUnit) -> 'PartialSolutionRecord':
        return cls(solution=MappingProxyType(dict(unit.solution)))

    def restore(self, form: Formulation, unit: PartialSolutionUnit) -> None:
        unit.solution = dict(self.solution)


StaticVarConstrUnitPair = UnitPair(FormulationUnit, StaticVarConstrRecord)
MasterColumnsUnitPair = UnitPair(FormulationUnit, MasterColumnsRecord)
MasterBranchConstrsUnitPair = UnitPair(FormulationUnit, MasterBranchConstrsRecord)
MasterCutsUnitPair = UnitPair(FormulationUnit, MasterCutsRecord)
PartialSolutionUnitPair = UnitPair(PartialSolutionUnit, PartialSolutionRecord)
