"""
Data of the preprocessing engine.

- PreprocessingUnit: state that survives between preprocessing calls (the
  local partial solution: columns fixed since the last call, by a diving
  heuristic for instance). Stored on the master and recorded like any other
  unit.
- PreprocessData: working data of one call, thrown away afterwards.

Slack vocabulary used by the engine, for a constraint a.x (sense) rhs:

    max_slack = rhs - min(a.x) = rhs - sum_{a>0} a*lb - sum_{a<0} a*ub
    min_slack = rhs - max(a.x) = rhs - sum_{a>0} a*ub - sum_{a<0} a*lb

An infinite bound is not added; it increments the constraint's infinite
source counter for that slack instead. A LESS constraint is violated when
max_slack < 0, a GREATER one when min_slack > 0.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from opendw.core.formulation import Formulation
from opendw.core.reformulation import Reformulation
from opendw.core.solution import PrimalSolution
from opendw.core.varconstr import Constraint, Variable
from opendw.storage.base import AbstractRecord, AbstractStorageUnit, UnitPair

ConstrKey = Tuple[int, int]   # (formulation uid, constraint id)
VarKey = Tuple[int, int]      # (formulation uid, variable id)


class PreprocessingUnit(AbstractStorageUnit):
    """
    Local partial solution waiting to be fixed by the next preprocessing call.

    Attributes:
        local_partial_sol: Master variable id -> value
    """

    def __init__(self, form: Formulation):
        self.form = form
        self.local_partial_sol: Dict[int, float] = {}

    def add_to_local_partial_sol(self, var: Union[Variable, int], value: float) -> None:
        """Add `value` to the value of `var` in the local partial solution."""
        var_id = var.id if isinstance(var, Variable) else var
        self.local_partial_sol[var_id] = self.local_partial_sol.get(var_id, 0.0) + value

    def empty_local_solution(self) -> None:
        self.local_partial_sol.clear()

    def get_local_primal_solution(self) -> PrimalSolution:
        """The local partial solution, costed with the master's current costs."""
        return PrimalSolution.from_dict(self.form, self.local_partial_sol)

    def __repr__(self) -> str:
        return f"PreprocessingUnit({self.local_partial_sol})"


@dataclass(frozen=True)
class PreprocessingRecord(AbstractRecord):
    """Copy of the local partial solution."""
    local_partial_sol: Mapping[int, float] = field(default_factory=dict)

    @classmethod
    def produce(cls, form: Formulation, unit: PreprocessingUnit) -> 'PreprocessingRecord':
        return cls(local_partial_sol=MappingProxyType(dict(unit.local_partial_sol)))

    def restore(self, form: Formulation, unit: PreprocessingUnit) -> None:
        unit.local_partial_sol = dict(self.local_partial_sol)


PreprocessingUnitPair = UnitPair(PreprocessingUnit, PreprocessingRecord)


@dataclass
class PreprocessData:
    """
    Working data of one preprocessing call.

    Attributes:
        master: The master (or the plain formulation)
        reform: The reformulation, None for a plain formulation
        cur_min_slack: Min slack per tracked constraint
        cur_max_slack: Max slack per tracked constraint
        nb_inf_sources_for_min_slack: Infinite sources of each min slack
        nb_inf_sources_for_max_slack: Infinite sources of each max slack
        stack: LIFO worklist of (constraint, formulation)
        constr_in_stack: Whether a tracked constraint is in the worklist
        preprocessed_constrs: Constraints whose rhs was changed by the call
        preprocessed_vars: Variables whose bounds were changed by the call
        cur_sp_bounds: Multiplicity interval of each subproblem
        local_partial_sol: Partial solution taken from the PreprocessingUnit
    """
    master: Formulation
    reform: Optional[Reformulation] = None
    cur_min_slack: Dict[ConstrKey, float] = field(default_factory=dict)
    cur_max_slack: Dict[ConstrKey, float] = field(default_factory=dict)
    nb_inf_sources_for_min_slack: Dict[ConstrKey, int] = field(default_factory=dict)
    nb_inf_sources_for_max_slack: Dict[ConstrKey, int] = field(default_factory=dict)
    stack: List[Tuple[Constraint, Formulation]] = field(default_factory=list)
    constr_in_stack: Dict[ConstrKey, bool] = field(default_factory=dict)
    preprocessed_constrs: Dict[ConstrKey, Tuple[Constraint, Formulation]] = field(
        default_factory=dict
    )
    preprocessed_vars: Dict[VarKey, Tuple[Variable, Formulation]] = field(
        default_factory=dict
    )
    cur_sp_bounds: Dict[int, Tuple[float, float]] = field(default_factory=dict)
    local_partial_sol: Optional[PrimalSolution] = None

    @classmethod
    def from_model_data(cls, data) -> 'PreprocessData':
        """
        Build the working data of a call and consume the local partial solution.

        Args:
            data: ReformData or ModelData (plain formulation)

        Raises:
            ContractViolation: If the PreprocessingUnit was not created
        """
        model = data.model
        if isinstance(model, Reformulation):
            reform, master = model, model.master
        else:
            reform, master = None, model

        unit = data.get_model_data(master).get_unit(PreprocessingUnitPair)
        local_partial_sol = unit.get_local_primal_solution()
        unit.empty_local_solution()

        cur_sp_bounds = {}
        if reform is not None:
            for uid in reform.get_dw_pricing_sps():
                cur_sp_bounds[uid] = reform.get_sp_multiplicity(uid)

        return cls(
            master=master,
            reform=reform,
            cur_sp_bounds=cur_sp_bounds,
            local_partial_sol=local_partial_sol,
        )

    @staticmethod
    def key(entity: Union[Variable, Constraint], form: Formulation) -> Tuple[int, int]:
        return (form.uid, entity.id)

    def is_tracked(self, constr: Constraint, form: Formulation) -> bool:
        """Whether the slacks of the constraint were initialized by this call."""
        return (form.uid, constr.id) in self.cur_max_slack

    def add_to_stack(self, constr: Constraint, form: Formulation) -> None:
        key = (form.uid, constr.id)
        if not self.constr_in_stack.get(key, False):
            self.stack.append((constr, form))
            self.constr_in_stack[key] = True

    def pop(self) -> Tuple[Constraint, Formulation]:
        constr, form = self.stack.pop()
        self.constr_in_stack[(form.uid, constr.id)] = False
        return constr, form

    def add_preprocessed_var(self, var: Variable, form: Formulation) -> None:
        self.preprocessed_vars.setdefault((form.uid, var.id), (var, form))

    def add_preprocessed_constr(self, constr: Constraint, form: Formulation) -> None:
        self.preprocessed_constrs.setdefault((form.uid, constr.id), (constr, form))
