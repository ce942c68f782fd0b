"""
Tests for the preprocessing engine.

This module tests:
- Slack computation and candidate bounds
- Bound derivation and infeasibility on plain formulations
- Integrality rounding
- Monotone bound updates
- Incremental slacks against recomputed ones
- Termination on endless small tightenings
- Propagation budget
- Fixing the local partial solution
"""

import math

import pytest

from opendw.core import ConstrDuty, ConstrSense, Formulation, VarDuty, VarKind
from opendw.preprocessing import (
    MAX_BOUND_CHANGES,
    PreprocessAlgorithm,
    PreprocessData,
    PreprocessingUnitPair,
    PreprocessStatus,
    PropagationBudget,
    Propagator,
    compute_new_bound,
    compute_slacks,
    preprocess,
)
from opendw.storage import (
    ContractViolation,
    MasterColumnsUnitPair,
    ModelData,
    ReformData,
    StaticVarConstrUnitPair,
)
from opendw.algorithm import initialize_storage_units


def _var(form, name):
    return next(v for v in form.vars.values() if v.name == name)


def _constr(form, name):
    return next(c for c in form.constrs.values() if c.name == name)


class RecordingFormulation(Formulation):
    """Formulation that keeps the history of every bound write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.lb_history = []
        self.ub_history = []

    def set_cur_lb(self, var, value):
        self.lb_history.append((self.get_var(var).id, self.get_cur_lb(var), value))
        super().set_cur_lb(var, value)

    def set_cur_ub(self, var, value):
        self.ub_history.append((self.get_var(var).id, self.get_cur_ub(var), value))
        super().set_cur_ub(var, value)


def _chain(form_type=Formulation):
    """x1 + x2 <= 10, x2 - x3 >= 4, x3 + x4 == 8 with integer x1 in [3, 5]."""
    form = form_type(uid=0, name="chain")
    x1 = form.add_var("x1", VarDuty.ORIGINAL_VAR, lb=3.0, ub=5.0, kind=VarKind.INTEGER)
    x2 = form.add_var("x2", VarDuty.ORIGINAL_VAR, lb=0.0, ub=20.0)
    x3 = form.add_var("x3", VarDuty.ORIGINAL_VAR, lb=-math.inf, ub=math.inf)
    x4 = form.add_var("x4", VarDuty.ORIGINAL_VAR, lb=1.0, ub=6.0)
    form.add_constr("c1", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 10.0,
                    members={x1: 1.0, x2: 1.0})
    form.add_constr("c2", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.GREATER, 4.0,
                    members={x2: 1.0, x3: -1.0})
    form.add_constr("c3", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.EQUAL, 8.0,
                    members={x3: 1.0, x4: 1.0})
    return form


class TestSlacks:
    """Tests for compute_slacks and compute_new_bound."""

    def test_slacks_of_bounded_constraint(self, bound_form):
        c = _constr(bound_form, "c")
        min_slack, nb_min, max_slack, nb_max = compute_slacks(bound_form, c)
        assert max_slack == 10.0 and nb_max == 0
        assert min_slack == 6.0 and nb_min == 1

    def test_new_bound_without_infinite_source(self):
        assert compute_new_bound(0, 10.0, 0.0, 1.0) == 10.0

    def test_new_bound_with_own_infinite_source(self):
        assert compute_new_bound(1, 6.0, math.inf, 2.0) == 3.0

    def test_new_bound_with_other_infinite_source(self):
        assert math.isinf(compute_new_bound(1, 6.0, -4.0, 2.0))
        assert math.isinf(compute_new_bound(2, 6.0, math.inf, 2.0))


class TestPlainFormulation:
    """Tests on formulations without decomposition."""

    def test_bound_derivation(self, bound_form):
        output = preprocess(bound_form)
        assert output.status is PreprocessStatus.FEASIBLE
        assert not output.infeasible
        assert bound_form.get_cur_ub(_var(bound_form, "y")) == 10.0
        assert bound_form.get_cur_lb(_var(bound_form, "x")) == 0.0
        assert bound_form.get_cur_ub(_var(bound_form, "x")) == 4.0

    def test_infeasibility(self):
        form = Formulation(uid=0)
        x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=12.0, ub=20.0)
        y = form.add_var("y", VarDuty.ORIGINAL_VAR, lb=0.0, ub=5.0)
        form.add_constr("c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 10.0,
                        members={x: 1.0, y: 1.0})
        output = preprocess(form)
        assert output.infeasible
        assert output.status is PreprocessStatus.INFEASIBLE

    def test_greater_constraint_infeasibility(self):
        form = Formulation(uid=0)
        x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=2.0)
        form.add_constr("c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.GREATER, 3.0,
                        members={x: 1.0})
        assert preprocess(form).infeasible

    def test_chain_of_constraints(self):
        form = _chain()
        assert not preprocess(form).infeasible
        # c1: x2 <= 10 - 3 = 7
        assert form.get_cur_ub(_var(form, "x2")) == 7.0
        # c3: x3 = 8 - x4 in [2, 7]; c2: x3 <= x2 - 4 <= 3
        assert form.get_cur_lb(_var(form, "x3")) == 2.0
        assert form.get_cur_ub(_var(form, "x3")) == 3.0
        # c2: x2 >= 4 + x3 >= 6
        assert form.get_cur_lb(_var(form, "x2")) == 6.0
        # c1: x1 <= 10 - 6 = 4
        assert form.get_cur_ub(_var(form, "x1")) == 4.0
        # c3: x4 = 8 - x3 in [5, 6]
        assert form.get_cur_lb(_var(form, "x4")) == 5.0

    def test_integer_bounds_are_rounded(self):
        form = Formulation(uid=0)
        x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=10.0, kind=VarKind.INTEGER)
        y = form.add_var("y", VarDuty.ORIGINAL_VAR, lb=0.0, ub=10.0, kind=VarKind.INTEGER)
        form.add_constr("up", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 7.0,
                        members={x: 2.0})
        form.add_constr("down", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.GREATER, 5.0,
                        members={y: 2.0})
        preprocess(form)
        assert form.get_cur_ub(x) == 3.0
        assert form.get_cur_lb(y) == 3.0

    def test_rounding_tolerates_float_noise(self):
        form = Formulation(uid=0)
        x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=10.0, kind=VarKind.INTEGER)
        form.add_constr("c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 0.3,
                        members={x: 0.1})
        preprocess(form)
        assert form.get_cur_ub(x) == 3.0

    def test_bounds_are_monotone(self):
        form = _chain(RecordingFormulation)
        preprocess(form)
        assert form.lb_history
        assert all(new > old for _, old, new in form.lb_history)
        assert all(new < old for _, old, new in form.ub_history)

    def test_inactive_constraints_are_ignored(self, bound_form):
        bound_form.deactivate(_constr(bound_form, "c"))
        preprocess(bound_form)
        assert math.isinf(bound_form.get_cur_ub(_var(bound_form, "y")))

    def test_verbose_prints(self, bound_form, capsys):
        preprocess(bound_form, verbose=True)
        assert "updating ub of var y" in capsys.readouterr().out


class TestSlackConservation:
    """Incremental slacks stay equal to slacks recomputed from the bounds."""

    def test_slacks_match_recomputation(self):
        form = _chain()
        data = ModelData(form)
        initialize_storage_units(data, PreprocessAlgorithm())
        pdata = PreprocessData.from_model_data(data)
        output = Propagator(pdata).run()
        assert output.status is PreprocessStatus.FEASIBLE

        for constr in form.constrs.values():
            key = pdata.key(constr, form)
            min_slack, nb_min, max_slack, nb_max = compute_slacks(form, constr)
            assert pdata.cur_min_slack[key] == pytest.approx(min_slack)
            assert pdata.cur_max_slack[key] == pytest.approx(max_slack)
            assert pdata.nb_inf_sources_for_min_slack[key] == nb_min
            assert pdata.nb_inf_sources_for_max_slack[key] == nb_max
        assert not pdata.stack
        assert not any(pdata.constr_in_stack.values())


def _pair(lb, ub, kind, a, b, rhs_b):
    """x + a * y <= 0 and y + b * x <= rhs_b over two variables in [lb, ub]."""
    form = Formulation(uid=0, name="pair")
    x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=lb, ub=ub, kind=kind)
    y = form.add_var("y", VarDuty.ORIGINAL_VAR, lb=lb, ub=ub, kind=kind)
    form.add_constr("c1", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 0.0,
                    members={x: 1.0, y: a})
    form.add_constr("c2", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, rhs_b,
                    members={y: 1.0, x: b})
    return form, x, y


class TestTermination:
    """Propagation stops within a number of pops linear in V * C."""

    NUM_VARS, NUM_CONSTRS = 2, 2

    def _pop_bound(self):
        return self.NUM_CONSTRS + 2 * MAX_BOUND_CHANGES * self.NUM_VARS * self.NUM_CONSTRS

    def test_geometric_tightening_stops(self):
        # x <= y / 2 and y <= x / 2 halve the upper bounds forever
        form, x, y = _pair(0.0, 10.0, VarKind.CONTINUOUS, -0.5, -0.5, 0.0)
        output = preprocess(form)
        assert output.status is PreprocessStatus.FEASIBLE
        assert output.num_pops <= 10 * self.NUM_VARS * self.NUM_CONSTRS
        assert 0.0 <= form.get_cur_ub(x) < 1e-3
        assert 0.0 <= form.get_cur_ub(y) < 1e-3

    def test_continuous_creep_stops(self):
        # x <= y and y <= x - 1: each pop moves a bound by 1 out of 1e5
        form, x, y = _pair(0.0, 1e5, VarKind.CONTINUOUS, -1.0, -1.0, -1.0)
        output = preprocess(form)
        assert output.status is PreprocessStatus.FEASIBLE
        assert output.num_pops <= 10 * self.NUM_VARS * self.NUM_CONSTRS

    def test_integer_creep_stops(self):
        form, x, y = _pair(0.0, 1e5, VarKind.INTEGER, -1.0, -1.0, -1.0)
        output = preprocess(form)
        assert output.status is PreprocessStatus.FEASIBLE
        assert output.num_pops <= self._pop_bound()
        assert output.num_bound_changes <= 2 * MAX_BOUND_CHANGES * self.NUM_VARS
        assert form.get_cur_lb(x) <= MAX_BOUND_CHANGES
        assert form.get_cur_ub(y) >= 1e5 - MAX_BOUND_CHANGES

    def test_no_tightening_allowed(self, bound_form):
        data = ModelData(bound_form)
        initialize_storage_units(data, PreprocessAlgorithm())
        output = Propagator(PreprocessData.from_model_data(data), max_bound_changes=0).run()
        assert output.num_bound_changes == 0
        assert math.isinf(bound_form.get_cur_ub(_var(bound_form, "y")))

    def test_small_steps_keep_slacks_consistent(self):
        form, _, _ = _pair(0.0, 10.0, VarKind.CONTINUOUS, -0.5, -0.5, 0.0)
        data = ModelData(form)
        initialize_storage_units(data, PreprocessAlgorithm())
        pdata = PreprocessData.from_model_data(data)
        Propagator(pdata).run()
        for constr in form.constrs.values():
            min_slack, _, max_slack, _ = compute_slacks(form, constr)
            assert pdata.cur_min_slack[pdata.key(constr, form)] == pytest.approx(min_slack)
            assert pdata.cur_max_slack[pdata.key(constr, form)] == pytest.approx(max_slack)


class TestBudget:
    """Tests for PropagationBudget."""

    def test_exhausted_budget_gives_incomplete(self):
        form = _chain()
        output = preprocess(form, budget=PropagationBudget(max_pops=1))
        assert output.status is PreprocessStatus.INCOMPLETE
        assert output.incomplete
        assert not output.infeasible
        assert output.num_pops == 1

    def test_budget_is_shared_between_calls(self, bound_form):
        budget = PropagationBudget(max_pops=100)
        preprocess(bound_form, budget=budget)
        used = budget.num_pops
        assert used > 0
        preprocess(_chain(), budget=budget)
        assert budget.num_pops > used

    def test_time_budget(self):
        budget = PropagationBudget(max_time=0.0)
        budget.start()
        assert budget.exhausted
        assert preprocess(_chain(), budget=budget).incomplete

    def test_unlimited_budget(self):
        assert not PropagationBudget().exhausted


class TestPreprocessAlgorithm:
    """Tests for unit usage and the storage contract."""

    def test_usage_of_plain_formulation(self, bound_form):
        usage = PreprocessAlgorithm().get_units_usage(bound_form)
        assert {pair for _, pair, _ in usage} == {StaticVarConstrUnitPair, PreprocessingUnitPair}

    def test_usage_of_reformulation(self, two_level_reform):
        algo = PreprocessAlgorithm(preprocess_subproblems=True)
        usage = algo.get_units_usage(two_level_reform)
        sp = two_level_reform.dw_pricing_sps[1]
        assert (two_level_reform.master, MasterColumnsUnitPair) in [(m, p) for m, p, _ in usage]
        assert (sp, StaticVarConstrUnitPair) in [(m, p) for m, p, _ in usage]

        algo = PreprocessAlgorithm(preprocess_subproblems=False)
        models = {id(m) for m, _, _ in algo.get_units_usage(two_level_reform)}
        assert models == {id(two_level_reform.master)}

    def test_run_without_units_is_contract_violation(self, bound_form):
        with pytest.raises(ContractViolation):
            PreprocessAlgorithm().run(ModelData(bound_form))


class TestLocalPartialSolution:
    """Tests for fixing the local partial solution."""

    def _setup(self, reform, preprocess_subproblems=True):
        algo = PreprocessAlgorithm(preprocess_subproblems=preprocess_subproblems)
        data = ReformData(reform)
        initialize_storage_units(data, algo)
        unit = data.master_data.get_unit(PreprocessingUnitPair)
        return algo, data, unit

    def test_fixed_column_moves_rhs_and_multiplicity(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        algo, data, unit = self._setup(reform)
        col = _var(master, "col_x1")
        unit.add_to_local_partial_sol(col, 1.0)

        output = algo.run(data)
        assert not output.infeasible
        # link: x + z <= 100 loses 1 * x = 1
        assert master.get_cur_rhs(_constr(master, "link")) == 99.0
        assert reform.get_sp_multiplicity(1) == (0.0, 1.0)
        # clone of x: ub = min(6 - 1, 3 * 1) tightened by sp_cap to 2 * 1
        assert master.get_cur_ub(_var(master, "x")) == 2.0
        assert unit.local_partial_sol == {}

    def test_too_many_fixed_copies_is_infeasible(self, two_level_reform):
        algo, data, unit = self._setup(two_level_reform)
        unit.add_to_local_partial_sol(_var(two_level_reform.master, "col_x1"), 3.0)
        assert algo.run(data).infeasible

    def test_without_subproblem_propagation(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        sp = reform.dw_pricing_sps[1]
        algo, data, unit = self._setup(reform, preprocess_subproblems=False)
        unit.add_to_local_partial_sol(_var(master, "col_x1"), 1.0)

        output = algo.run(data)
        assert not output.infeasible
        assert master.get_cur_rhs(_constr(master, "link")) == 99.0
        assert sp.get_cur_ub(_var(sp, "x")) == 3.0
        assert output.forbidden_columns == []

    def test_local_solution_is_recorded(self, two_level_reform):
        algo, data, unit = self._setup(two_level_reform)
        col = _var(two_level_reform.master, "col_x3")
        unit.add_to_local_partial_sol(col, 0.5)
        storage = data.master_data.get_storage(PreprocessingUnitPair)
        record = storage.produce_record()
        unit.empty_local_solution()
        storage.restore(record)
        assert unit.local_partial_sol == {col.id: 0.5}
        assert unit.get_local_primal_solution().cost == pytest.approx(1.5)

    def test_multiplicity_within_tolerance_of_zero(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        algo, data, unit = self._setup(reform)
        unit.add_to_local_partial_sol(_var(master, "col_x1"), 2.00005)

        output = algo.run(data)
        assert not output.infeasible
        assert reform.get_sp_multiplicity(1) == (0.0, 0.0)
        assert master.get_cur_ub(_var(master, "x")) == 0.0
