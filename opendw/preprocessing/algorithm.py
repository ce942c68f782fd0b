"""
Preprocessing - bound-tightening constraint propagation.

Preprocessing strengthens variable bounds of a master and its pricing
subproblems until no constraint can tighten any bound any more (or until
it proves that the current node is infeasible).

For each tracked constraint the engine keeps the min and max slack (see
opendw.preprocessing.data) together with the number of infinite bounds
that were left out of each. With at most one infinite source, a slack gives
every variable of the constraint a candidate bound; the candidate is
applied when it tightens the current one, and the slacks of every other
constraint containing the variable are updated by coef * delta.

A call goes through five phases:

1. Fix the local partial solution: columns fixed since the last call are
   projected on the representatives; their contribution is taken out of
   the master rhs, the multiplicity interval of their subproblem shrinks
   and, when subproblems are propagated, the master bounds of the pricing
   variables are rebased.
2. Initialize the slacks of the active explicit master constraints
   (convexity constraints excluded) and of the subproblem constraints.
3. Seed the worklist.
4. Propagate until the worklist is empty. Bounds of a master
   representative and of its pricing variable are kept consistent with
   the multiplicity interval [L, U] of the subproblem:

       L * sp.lb <= clone.lb        clone.ub <= U * sp.ub
       sp.lb >= clone.lb - (max(U, 1) - 1) * sp.ub
       sp.ub <= clone.ub - (max(L, 1) - 1) * sp.lb

5. Forbid the columns whose value for a tightened pricing variable lies
   outside the variable's new bounds.

Design Notes:
------------
- Bounds only move inward within a call (lb up, ub down), except for the
  forced updates of Phase 1 which only republish rebased bounds.
- Slacks are computed from scratch once, at initialization; afterwards
  they only move by incremental deltas.
- A constraint is at most once in the worklist (LIFO).
- A tightening is applied only if it moves the bound by a minimum step
  (continuous variables) and the bound has not been tightened
  MAX_BOUND_CHANGES times yet. Every push follows a bound change, so a
  call pops at most C + 2 * MAX_BOUND_CHANGES * V * C constraints
  (plus the pushes of the Phase 1 updates).
- Bounds written before a contradiction is found are not rolled back; the
  caller restores its records.

Example:
    >>> output = preprocess(reform)
    >>> output.infeasible
    False
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from opendw.algorithm.base import AbstractAlgorithm
from opendw.algorithm.tree import initialize_storage_units
from opendw.config import config
from opendw.core.duty import ConstrDuty, VarDuty, participates_in
from opendw.core.formulation import Formulation
from opendw.core.reformulation import Reformulation, scaled_bound
from opendw.core.varconstr import Constraint, ConstrSense, Variable, VarKind
from opendw.preprocessing.budget import PropagationBudget
from opendw.preprocessing.data import PreprocessData, PreprocessingUnitPair
from opendw.preprocessing.output import PreprocessingOutput, PreprocessStatus
from opendw.storage.base import ModelData, ReformData, UnitAccessMode
from opendw.storage.units import (
    MasterBranchConstrsUnitPair,
    MasterColumnsUnitPair,
    MasterCutsUnitPair,
    StaticVarConstrUnitPair,
)

logger = logging.getLogger(__name__)

SLACK_TOLERANCE = 1e-4

# Tightenings of one bound allowed per call
MAX_BOUND_CHANGES = 20

INF = float('inf')


class _Infeasible(Exception):
    """A contradiction was proven; unwinds the engine to Propagator.run."""


def compute_slacks(form: Formulation, constr: Constraint) -> Tuple[float, int, float, int]:
    """
    Compute the slacks of a constraint from the current bounds.

    Args:
        form: Formulation owning the constraint
        constr: The constraint

    Returns:
        (min_slack, nb_inf_sources_for_min_slack,
         max_slack, nb_inf_sources_for_max_slack)
    """
    rhs = form.get_cur_rhs(constr)
    min_slack, max_slack = rhs, rhs
    nb_min, nb_max = 0, 0
    for var_id, coef in form.coef_matrix.row(constr.id):
        var = form.get_var(var_id)
        if not participates_in(var.duty, constr.duty):
            continue
        lb, ub = form.get_cur_lb(var), form.get_cur_ub(var)
        if coef > 0:
            if ub == INF:
                nb_min += 1
            else:
                min_slack -= coef * ub
            if lb == -INF:
                nb_max += 1
            else:
                max_slack -= coef * lb
        else:
            if lb == -INF:
                nb_min += 1
            else:
                min_slack -= coef * lb
            if ub == INF:
                nb_max += 1
            else:
                max_slack -= coef * ub
    return min_slack, nb_min, max_slack, nb_max


def compute_new_bound(
    nb_inf_sources: int, slack: float, var_contrib_to_slack: float, coef: float
) -> float:
    """
    Candidate bound of a variable derived from one slack.

    Args:
        nb_inf_sources: Infinite sources of the slack
        slack: Current slack
        var_contrib_to_slack: What the variable's own bound contributes to
            the slack (infinite if it is one of the infinite sources)
        coef: Coefficient of the variable

    Returns:
        The candidate, or inf if the slack implies nothing for the variable
    """
    if nb_inf_sources == 0:
        return (slack - var_contrib_to_slack) / coef
    if nb_inf_sources == 1 and math.isinf(var_contrib_to_slack):
        return slack / coef
    return INF


class Propagator:
    """
    Propagation engine of one preprocessing call.

    Attributes:
        data: Working data of the call
        preprocess_subproblems: Whether subproblem constraints and pricing
            variables take part in propagation
        verbose: Print popped constraints and bound changes
        budget: Work allowed to the call
        integrality_tolerance: Tolerance of the rounding of integer bounds
        max_bound_changes: Tightenings allowed per bound of a variable
        num_pops: Worklist pops done so far
        num_bound_changes: Bound writes done so far
        forbidden_columns: Columns whose upper bound was set to 0 in Phase 5
    """

    def __init__(
        self,
        data: PreprocessData,
        preprocess_subproblems: bool = True,
        verbose: bool = False,
        budget: Optional[PropagationBudget] = None,
        integrality_tolerance: float = 1e-6,
        max_bound_changes: int = MAX_BOUND_CHANGES,
    ):
        self.data = data
        self.preprocess_subproblems = preprocess_subproblems
        self.verbose = verbose
        self.budget = budget or PropagationBudget()
        self.integrality_tolerance = integrality_tolerance
        self.max_bound_changes = max_bound_changes

        self.num_pops = 0
        self.num_bound_changes = 0
        self.forbidden_columns: List[int] = []
        self._changes_per_bound: Dict[Tuple[int, int, bool], int] = {}

    def run(self) -> PreprocessingOutput:
        """
        Run the five phases.

        Returns:
            PreprocessingOutput with status FEASIBLE, INFEASIBLE or INCOMPLETE
        """
        master = self.data.master
        status = PreprocessStatus.FEASIBLE
        try:
            modified_vars, modified_constrs = self.fix_local_partial_solution()
            self.init_constraints(modified_constrs)
            for var in modified_vars:
                self.update_lower_bound(
                    var, master, master.get_cur_lb(var), check_monotonicity=False
                )
                self.update_upper_bound(
                    var, master, master.get_cur_ub(var), check_monotonicity=False
                )
            if not self.propagate():
                status = PreprocessStatus.INCOMPLETE
        except _Infeasible as e:
            self._log(f"infeasible: {e}")
            status = PreprocessStatus.INFEASIBLE

        if (
            status is not PreprocessStatus.INFEASIBLE
            and self.preprocess_subproblems
            and self.data.reform is not None
        ):
            self.forbid_infeasible_columns()

        return PreprocessingOutput(
            status=status,
            num_pops=self.num_pops,
            num_bound_changes=self.num_bound_changes,
            forbidden_columns=list(self.forbidden_columns),
        )

    # =========================================================================
    # Phase 1: local partial solution
    # =========================================================================

    def project_local_partial_solution(self) -> Dict[int, float]:
        """Value of each representative implied by the fixed columns."""
        primal_sp_sols = self.data.master.primal_sp_sols
        sp_vars_vals: Dict[int, float] = {}
        for col_id, col_val in self.data.local_partial_sol:
            for sp_var_id, sp_var_val in primal_sp_sols.column(col_id):
                sp_vars_vals[sp_var_id] = (
                    sp_vars_vals.get(sp_var_id, 0.0) + col_val * sp_var_val
                )
        return sp_vars_vals

    def fix_local_partial_solution(self) -> Tuple[List[Variable], List[Constraint]]:
        """
        Take the fixed columns out of the problem.

        Returns:
            (master clones whose bounds were rebased,
             master constraints whose rhs changed)
        """
        data = self.data
        master = data.master
        if data.reform is None or not len(data.local_partial_sol):
            return [], []

        rep_values = self.project_local_partial_solution()
        modified_constrs: Dict[int, Constraint] = {}
        for var_id, val in rep_values.items():
            if not master.has_var(var_id):
                continue
            for constr_id, coef in master.coef_matrix.column(var_id):
                constr = master.get_constr(constr_id)
                if not self._is_propagated(constr, master):
                    continue
                master.set_cur_rhs(constr, master.get_cur_rhs(constr) - val * coef)
                data.add_preprocessed_constr(constr, master)
                modified_constrs[constr.id] = constr

        sps = self.change_sp_bounds()
        if not self.preprocess_subproblems:
            return [], list(modified_constrs.values())

        modified_vars = []
        for sp in sps:
            cur_sp_lb, cur_sp_ub = data.cur_sp_bounds[sp.uid]
            for var in list(sp.active_vars()):
                if not var.duty.is_a(VarDuty.ABSTRACT_DW_SP_VAR) or not master.has_var(var.id):
                    continue
                val = rep_values.get(var.id, 0.0)
                clone = master.get_var(var.id)
                new_lb = max(
                    master.get_cur_lb(clone) - val,
                    scaled_bound(sp.get_cur_lb(var), cur_sp_lb),
                )
                new_ub = min(
                    master.get_cur_ub(clone) - val,
                    scaled_bound(sp.get_cur_ub(var), cur_sp_ub),
                )
                changed = False
                if new_lb != master.get_cur_lb(clone):
                    master.set_cur_lb(clone, new_lb)
                    changed = True
                if new_ub != master.get_cur_ub(clone):
                    master.set_cur_ub(clone, new_ub)
                    changed = True
                if changed:
                    modified_vars.append(clone)
                    data.add_preprocessed_var(clone, master)
        return modified_vars, list(modified_constrs.values())

    def change_sp_bounds(self) -> List[Formulation]:
        """
        Shrink the multiplicity interval of the subproblems of the fixed columns.

        Returns:
            The subproblems whose interval changed

        Raises:
            _Infeasible: If more copies of a subproblem are fixed than allowed
        """
        data = self.data
        reform = data.reform
        master = data.master
        sps: Dict[int, Formulation] = {}
        for col_id, col_val in data.local_partial_sol:
            col = master.get_var(col_id)
            if col.duty is not VarDuty.MASTER_COL:
                continue
            sp = reform.find_owner_formulation(col)
            sp_lb, sp_ub = data.cur_sp_bounds[sp.uid]
            if sp_lb > 0:
                sp_lb = max(sp_lb - col_val, 0.0)
                master.set_cur_rhs(reform.dw_pricing_sp_lb[sp.uid], sp_lb)
            sp_ub -= col_val
            if sp_ub < -SLACK_TOLERANCE:
                raise _Infeasible(f"multiplicity of {sp.name} dropped to {sp_ub}")
            # noise within the tolerance
            sp_ub = max(sp_ub, 0.0)
            master.set_cur_rhs(reform.dw_pricing_sp_ub[sp.uid], sp_ub)
            data.cur_sp_bounds[sp.uid] = (sp_lb, sp_ub)
            sps[sp.uid] = sp
        return list(sps.values())

    # =========================================================================
    # Phases 2-3: slacks and worklist
    # =========================================================================

    def init_constraints(self, modified_constrs: List[Constraint]) -> None:
        """Initialize slacks and seed the worklist."""
        data = self.data
        master = data.master
        to_stack: Dict[Tuple[int, int], Tuple[Constraint, Formulation]] = {}

        for constr in list(master.constrs.values()):
            if self._is_propagated(constr, master):
                self.init_constraint(constr, master)
                to_stack[data.key(constr, master)] = (constr, master)

        if self.preprocess_subproblems and data.reform is not None:
            for sp in data.reform.get_dw_pricing_sps().values():
                for constr in list(sp.constrs.values()):
                    if sp.is_cur_active(constr) and sp.is_explicit(constr):
                        self.init_constraint(constr, sp)
                        to_stack[data.key(constr, sp)] = (constr, sp)

        for constr in modified_constrs:
            to_stack.setdefault(data.key(constr, master), (constr, master))

        for constr, form in to_stack.values():
            self.update_min_slack(constr, form, False, 0.0)
            self.update_max_slack(constr, form, False, 0.0)

    def init_constraint(self, constr: Constraint, form: Formulation) -> None:
        data = self.data
        key = data.key(constr, form)
        min_slack, nb_min, max_slack, nb_max = compute_slacks(form, constr)
        data.constr_in_stack[key] = False
        data.cur_min_slack[key] = min_slack
        data.cur_max_slack[key] = max_slack
        data.nb_inf_sources_for_min_slack[key] = nb_min
        data.nb_inf_sources_for_max_slack[key] = nb_max

    def update_max_slack(
        self, constr: Constraint, form: Formulation, var_was_inf_source: bool, delta: float
    ) -> None:
        data = self.data
        key = data.key(constr, form)
        data.cur_max_slack[key] += delta
        if var_was_inf_source:
            data.nb_inf_sources_for_max_slack[key] -= 1

        nb_inf_sources = data.nb_inf_sources_for_max_slack[key]
        if form.get_cur_sense(constr) is ConstrSense.GREATER:
            return
        if nb_inf_sources == 0 and data.cur_max_slack[key] < -SLACK_TOLERANCE:
            raise _Infeasible(
                f"max slack of {constr.name} is {data.cur_max_slack[key]}"
            )
        if nb_inf_sources <= 1:
            data.add_to_stack(constr, form)

    def update_min_slack(
        self, constr: Constraint, form: Formulation, var_was_inf_source: bool, delta: float
    ) -> None:
        data = self.data
        key = data.key(constr, form)
        data.cur_min_slack[key] += delta
        if var_was_inf_source:
            data.nb_inf_sources_for_min_slack[key] -= 1

        nb_inf_sources = data.nb_inf_sources_for_min_slack[key]
        if form.get_cur_sense(constr) is ConstrSense.LESS:
            return
        if nb_inf_sources == 0 and data.cur_min_slack[key] > SLACK_TOLERANCE:
            raise _Infeasible(
                f"min slack of {constr.name} is {data.cur_min_slack[key]}"
            )
        if nb_inf_sources <= 1:
            data.add_to_stack(constr, form)

    # =========================================================================
    # Phase 4: bound updates
    # =========================================================================

    def update_lower_bound(
        self,
        var: Variable,
        form: Formulation,
        new_lb: float,
        check_monotonicity: bool = True,
    ) -> None:
        """
        Raise the lower bound of a variable and propagate the change.

        Args:
            var: The variable
            form: Formulation owning the variable
            new_lb: Candidate lower bound
            check_monotonicity: Skip candidates that do not tighten the bound

        Raises:
            _Infeasible: If the new bound crosses the upper bound, or if a
                slack proves a constraint violated
        """
        if var.duty is VarDuty.DW_SP_PRICING_VAR and not self.preprocess_subproblems:
            return
        cur_lb, cur_ub = form.get_cur_lb(var), form.get_cur_ub(var)
        if check_monotonicity and not new_lb > cur_lb:
            return
        if math.isinf(new_lb) and new_lb != cur_lb:
            return
        if new_lb > cur_ub + SLACK_TOLERANCE:
            raise _Infeasible(f"lb {new_lb} of {var.name} exceeds ub {cur_ub}")
        new_lb = min(new_lb, cur_ub)
        if check_monotonicity and not self._accepts(var, form, cur_lb, new_lb, False):
            return

        if new_lb == cur_lb:
            was_inf_source, diff = False, 0.0
        elif cur_lb == -INF:
            was_inf_source, diff = True, -new_lb
        else:
            was_inf_source, diff = False, cur_lb - new_lb

        for constr_id, coef in form.coef_matrix.column(var.id):
            constr = form.get_constr(constr_id)
            if not self._tracks(constr, form, var):
                continue
            if coef < 0:
                self.update_min_slack(constr, form, was_inf_source, diff * coef)
            else:
                self.update_max_slack(constr, form, was_inf_source, diff * coef)

        if new_lb != cur_lb:
            self._log(
                f"updating lb of var {var.name} from {cur_lb} to {new_lb} "
                f"duty {var.duty.name}"
            )
            form.set_cur_lb(var, new_lb)
            self.num_bound_changes += 1
            self._count_change(var, form, False)
        self.data.add_preprocessed_var(var, form)

        if self.data.reform is None:
            return
        if var.duty is VarDuty.MASTER_REP_PRICING_VAR:
            sp = self.data.reform.find_owner_formulation(var)
            sp_lb, sp_ub = self.data.cur_sp_bounds[sp.uid]
            sp_var = sp.get_var(var.id)
            self.update_lower_bound(
                sp_var, sp,
                form.get_cur_lb(var) - scaled_bound(sp.get_cur_ub(sp_var), max(sp_ub, 1) - 1),
            )
        elif var.duty is VarDuty.DW_SP_PRICING_VAR:
            master = self.data.master
            sp_lb, sp_ub = self.data.cur_sp_bounds[form.uid]
            clone = master.get_var(var.id)
            self.update_lower_bound(
                clone, master, scaled_bound(form.get_cur_lb(var), sp_lb)
            )
            self.update_upper_bound(
                var, form,
                master.get_cur_ub(clone) - scaled_bound(form.get_cur_lb(var), max(sp_lb, 1) - 1),
            )

    def update_upper_bound(
        self,
        var: Variable,
        form: Formulation,
        new_ub: float,
        check_monotonicity: bool = True,
    ) -> None:
        """Lower the upper bound of a variable; mirror of update_lower_bound."""
        if var.duty is VarDuty.DW_SP_PRICING_VAR and not self.preprocess_subproblems:
            return
        cur_lb, cur_ub = form.get_cur_lb(var), form.get_cur_ub(var)
        if check_monotonicity and not new_ub < cur_ub:
            return
        if math.isinf(new_ub) and new_ub != cur_ub:
            return
        if new_ub < cur_lb - SLACK_TOLERANCE:
            raise _Infeasible(f"ub {new_ub} of {var.name} is below lb {cur_lb}")
        new_ub = max(new_ub, cur_lb)
        if check_monotonicity and not self._accepts(var, form, cur_ub, new_ub, True):
            return

        if new_ub == cur_ub:
            was_inf_source, diff = False, 0.0
        elif cur_ub == INF:
            was_inf_source, diff = True, -new_ub
        else:
            was_inf_source, diff = False, cur_ub - new_ub

        for constr_id, coef in form.coef_matrix.column(var.id):
            constr = form.get_constr(constr_id)
            if not self._tracks(constr, form, var):
                continue
            if coef > 0:
                self.update_min_slack(constr, form, was_inf_source, diff * coef)
            else:
                self.update_max_slack(constr, form, was_inf_source, diff * coef)

        if new_ub != cur_ub:
            self._log(
                f"updating ub of var {var.name} from {cur_ub} to {new_ub} "
                f"duty {var.duty.name}"
            )
            form.set_cur_ub(var, new_ub)
            self.num_bound_changes += 1
            self._count_change(var, form, True)
        self.data.add_preprocessed_var(var, form)

        if self.data.reform is None:
            return
        if var.duty is VarDuty.MASTER_REP_PRICING_VAR:
            sp = self.data.reform.find_owner_formulation(var)
            sp_lb, sp_ub = self.data.cur_sp_bounds[sp.uid]
            sp_var = sp.get_var(var.id)
            self.update_upper_bound(
                sp_var, sp,
                form.get_cur_ub(var) - scaled_bound(sp.get_cur_lb(sp_var), max(sp_lb, 1) - 1),
            )
        elif var.duty is VarDuty.DW_SP_PRICING_VAR:
            master = self.data.master
            sp_lb, sp_ub = self.data.cur_sp_bounds[form.uid]
            clone = master.get_var(var.id)
            self.update_upper_bound(
                clone, master, scaled_bound(form.get_cur_ub(var), sp_ub)
            )
            self.update_lower_bound(
                var, form,
                master.get_cur_lb(clone) - scaled_bound(form.get_cur_ub(var), max(sp_ub, 1) - 1),
            )

    def compute_new_var_bounds(
        self, var: Variable, form: Formulation, coef: float, constr: Constraint
    ) -> Iterator[Tuple[bool, float]]:
        """
        Candidate bounds of a variable implied by one constraint.

        LESS constraints give a candidate through the max slack, GREATER
        ones through the min slack, EQUAL ones through both.

        Yields:
            (is_upper_bound, candidate); the candidate is inf when the slack
            implies nothing
        """
        data = self.data
        key = data.key(constr, form)
        sense = form.get_cur_sense(constr)
        if sense is not ConstrSense.GREATER:
            nb, slack = data.nb_inf_sources_for_max_slack[key], data.cur_max_slack[key]
            if coef > 0:
                yield True, compute_new_bound(nb, slack, -coef * form.get_cur_lb(var), coef)
            else:
                yield False, compute_new_bound(nb, slack, -coef * form.get_cur_ub(var), coef)
        if sense is not ConstrSense.LESS:
            nb, slack = data.nb_inf_sources_for_min_slack[key], data.cur_min_slack[key]
            if coef > 0:
                yield False, compute_new_bound(nb, slack, -coef * form.get_cur_ub(var), coef)
            else:
                yield True, compute_new_bound(nb, slack, -coef * form.get_cur_lb(var), coef)

    def adjust_bound(self, form: Formulation, var: Variable, bound: float, is_upper: bool) -> float:
        """Round a candidate bound of an integer or binary variable."""
        if form.get_cur_kind(var) is VarKind.CONTINUOUS:
            return bound
        if is_upper:
            return float(math.floor(bound + self.integrality_tolerance))
        return float(math.ceil(bound - self.integrality_tolerance))

    def strengthen_var_bounds_in_constr(self, constr: Constraint, form: Formulation) -> None:
        for var_id, coef in form.coef_matrix.row(constr.id):
            var = form.get_var(var_id)
            if not participates_in(var.duty, constr.duty):
                continue
            for is_upper, bound in self.compute_new_var_bounds(var, form, coef, constr):
                if math.isinf(bound):
                    continue
                bound = self.adjust_bound(form, var, bound, is_upper)
                if is_upper:
                    self.update_upper_bound(var, form, bound)
                else:
                    self.update_lower_bound(var, form, bound)

    def propagate(self) -> bool:
        """
        Pop constraints until the worklist is empty.

        Returns:
            False if the budget ran out first
        """
        data = self.data
        while data.stack:
            if self.budget.exhausted:
                self._log(f"budget exhausted with {len(data.stack)} constraints left")
                return False
            constr, form = data.pop()
            self.budget.consume_pop()
            self.num_pops += 1

            if self.verbose:
                key = data.key(constr, form)
                self._log(f"constr {constr.name} {constr.duty.name} popped")
                self._log(
                    f"rhs {form.get_cur_rhs(constr)} max: {data.cur_max_slack[key]} "
                    f"min: {data.cur_min_slack[key]}"
                )
            self.strengthen_var_bounds_in_constr(constr, form)
        return True

    # =========================================================================
    # Phase 5: columns
    # =========================================================================

    def forbid_infeasible_columns(self) -> None:
        """Set ub 0 on columns that violate the new bounds of a pricing variable."""
        data = self.data
        master = data.master
        for var, sp in list(data.preprocessed_vars.values()):
            if var.duty is not VarDuty.DW_SP_PRICING_VAR:
                continue
            lb, ub = sp.get_cur_lb(var), sp.get_cur_ub(var)
            for col in data.reform.columns(sp.uid):
                if not master.is_cur_active(col) or master.get_cur_ub(col) == 0.0:
                    continue
                value = master.primal_sp_sols.get(var.id, col.id)
                if lb - SLACK_TOLERANCE <= value <= ub + SLACK_TOLERANCE:
                    continue
                self._log(
                    f"forbidding column {col.name}: {var.name} = {value} "
                    f"outside [{lb}, {ub}]"
                )
                master.set_cur_ub(col, 0.0)
                self.forbidden_columns.append(col.id)

    # =========================================================================
    # Internal Methods
    # =========================================================================

    @staticmethod
    def _is_propagated(constr: Constraint, master: Formulation) -> bool:
        return (
            master.is_cur_active(constr)
            and master.is_explicit(constr)
            and constr.duty is not ConstrDuty.MASTER_CONVEXITY_CONSTR
        )

    def _accepts(
        self, var: Variable, form: Formulation, cur: float, new: float, is_upper: bool
    ) -> bool:
        """
        Whether a tightening from `cur` to `new` is worth applying.

        Each bound may be tightened at most max_bound_changes times per call,
        and a finite bound of a continuous variable must move by more than
        SLACK_TOLERANCE times the magnitude of the variable's bounds (at
        least 1). Rounded bounds of integer variables move by whole units.
        """
        improvement = cur - new if is_upper else new - cur
        if not improvement > 0:
            return False
        key = (form.uid, var.id, is_upper)
        if self._changes_per_bound.get(key, 0) >= self.max_bound_changes:
            return False
        if math.isinf(cur) or form.get_cur_kind(var) is not VarKind.CONTINUOUS:
            return True
        scale = max(
            [1.0] + [abs(b) for b in (form.get_cur_lb(var), form.get_cur_ub(var))
                     if not math.isinf(b)]
        )
        return improvement > SLACK_TOLERANCE * scale

    def _count_change(self, var: Variable, form: Formulation, is_upper: bool) -> None:
        key = (form.uid, var.id, is_upper)
        self._changes_per_bound[key] = self._changes_per_bound.get(key, 0) + 1

    def _tracks(self, constr: Constraint, form: Formulation, var: Variable) -> bool:
        return (
            self.data.is_tracked(constr, form)
            and form.is_cur_active(constr)
            and participates_in(var.duty, constr.duty)
        )

    def _log(self, message: str) -> None:
        """
        Print a log message if verbose mode is enabled.

        Args:
            message: Message to print
        """
        logger.debug(message)
        if self.verbose:
            print(f"[preprocessing] {message}")


@dataclass
class PreprocessAlgorithm(AbstractAlgorithm):
    """
    Preprocessing as an algorithm of the search tree.

    Attributes:
        preprocess_subproblems: Whether subproblem constraints and pricing
            variables take part in propagation
        verbose: Print popped constraints and bound changes
        budget: Work allowed to a call; may be shared between calls
            (default: unlimited unless the configuration sets limits)
        integrality_tolerance: Tolerance of the rounding of integer bounds
        max_bound_changes: Tightenings allowed per bound of a variable and call
    """
    preprocess_subproblems: bool = field(
        default_factory=lambda: config.preprocess_subproblems
    )
    verbose: bool = False
    budget: Optional[PropagationBudget] = None
    integrality_tolerance: float = field(
        default_factory=lambda: config.get_tolerance("integrality")
    )
    max_bound_changes: int = field(
        default_factory=lambda: config.max_bound_changes
    )

    def get_units_usage(self, model):
        if isinstance(model, Reformulation):
            master = model.master
            usage = [
                (master, StaticVarConstrUnitPair, UnitAccessMode.READ_AND_WRITE),
                (master, PreprocessingUnitPair, UnitAccessMode.READ_AND_WRITE),
                (master, MasterBranchConstrsUnitPair, UnitAccessMode.READ_AND_WRITE),
                (master, MasterCutsUnitPair, UnitAccessMode.READ_AND_WRITE),
            ]
            if self.preprocess_subproblems:
                usage.append(
                    (master, MasterColumnsUnitPair, UnitAccessMode.READ_AND_WRITE)
                )
                for sp in model.get_dw_pricing_sps().values():
                    usage.append(
                        (sp, StaticVarConstrUnitPair, UnitAccessMode.READ_AND_WRITE)
                    )
            return usage
        return [
            (model, StaticVarConstrUnitPair, UnitAccessMode.READ_AND_WRITE),
            (model, PreprocessingUnitPair, UnitAccessMode.READ_AND_WRITE),
        ]

    def run(self, data, input=None) -> PreprocessingOutput:
        """
        Run preprocessing on the model of `data`.

        Args:
            data: ReformData, or ModelData of a plain formulation, with the
                units of get_units_usage created
            input: Unused

        Returns:
            PreprocessingOutput

        Raises:
            ContractViolation: If the storage units were not initialized
        """
        logger.debug("Run preprocessing on %s", getattr(data.model, "name", data.model))
        budget = self.budget
        if budget is None and (
            config.max_propagation_pops is not None
            or config.max_propagation_time is not None
        ):
            budget = PropagationBudget.from_config()

        propagator = Propagator(
            PreprocessData.from_model_data(data),
            preprocess_subproblems=self.preprocess_subproblems,
            verbose=self.verbose,
            budget=budget,
            integrality_tolerance=self.integrality_tolerance,
            max_bound_changes=self.max_bound_changes,
        )
        output = propagator.run()
        logger.info("Preprocessing done: %r", output)
        return output


def preprocess(
    model,
    preprocess_subproblems: bool = True,
    verbose: bool = False,
    budget: Optional[PropagationBudget] = None,
) -> PreprocessingOutput:
    """
    Preprocess a formulation or a reformulation in one call.

    Storage units are created on the fly, so the model's local partial
    solution starts empty. Searches that fix columns between calls keep
    their own ReformData and call PreprocessAlgorithm.run.

    Args:
        model: Formulation or Reformulation
        preprocess_subproblems: Whether subproblems take part in propagation
        verbose: Print popped constraints and bound changes
        budget: Work allowed to the call

    Returns:
        PreprocessingOutput

    Example:
        >>> form = Formulation(uid=0)
        >>> x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=4.0)
        >>> y = form.add_var("y", VarDuty.ORIGINAL_VAR)
        >>> c = form.add_constr("c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 10.0,
        ...                 members={x: 1.0, y: 1.0})
        >>> preprocess(form).status
        <PreprocessStatus.FEASIBLE: 1>
        >>> form.get_cur_ub(y)
        10.0
    """
    data = ReformData(model) if isinstance(model, Reformulation) else ModelData(model)
    algo = PreprocessAlgorithm(
        preprocess_subproblems=preprocess_subproblems,
        verbose=verbose,
        budget=budget,
    )
    initialize_storage_units(data, algo)
    return algo.run(data)
