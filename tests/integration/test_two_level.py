"""
Integration tests for propagation across a master and its subproblems.

These tests run the whole preprocessing pipeline on a reformulation and
check the two-level linkage, column forbidding and the restoration of
everything preprocessing changed.
"""

import math

import pytest

from opendw.algorithm import AbstractManagerAlgorithm, initialize_storage_units
from opendw.core import ConstrDuty, ConstrSense, Reformulation, VarKind
from opendw.preprocessing import (
    PreprocessAlgorithm,
    PreprocessData,
    PreprocessingUnitPair,
    Propagator,
    compute_slacks,
    preprocess,
)
from opendw.storage import ReformData


def _var(form, name):
    return next(v for v in form.vars.values() if v.name == name)


def _constr(form, name):
    return next(c for c in form.constrs.values() if c.name == name)


class Dive(AbstractManagerAlgorithm):
    """Fixes columns and preprocesses, undoing everything afterwards."""

    def __init__(self, preprocess_algo):
        self.preprocess_algo = preprocess_algo

    def get_child_algorithms(self, model):
        return [(self.preprocess_algo, model)]

    def run(self, data, input=None):
        return self.run_child(self.preprocess_algo, data, data.model)


class TestTwoLevelLinkage:
    """Tightening in a subproblem reaches the master and back."""

    def test_subproblem_tightening_reaches_clone(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        sp = reform.dw_pricing_sps[1]

        output = preprocess(reform)
        assert not output.infeasible
        assert sp.get_cur_ub(_var(sp, "x")) == 2.0
        assert master.get_cur_ub(_var(master, "x")) == 4.0

    def test_clone_change_updates_master_slacks(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        algo = PreprocessAlgorithm()
        data = ReformData(reform)
        initialize_storage_units(data, algo)
        pdata = PreprocessData.from_model_data(data)

        link = _constr(master, "link")
        Propagator(pdata).run()
        key = pdata.key(link, master)
        # 100 - 6 - 10 before, 100 - 4 - 10 after
        assert pdata.cur_min_slack[key] == pytest.approx(86.0)
        assert compute_slacks(master, link)[0] == pytest.approx(86.0)

    def test_linkage_invariant_holds(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        preprocess(reform)
        sp = reform.dw_pricing_sps[1]
        sp_lb, sp_ub = reform.get_sp_multiplicity(1)
        for sp_var in sp.vars.values():
            clone = master.get_var(sp_var.id)
            assert master.get_cur_ub(clone) <= sp.get_cur_ub(sp_var) * sp_ub
            assert master.get_cur_lb(clone) >= sp.get_cur_lb(sp_var) * sp_lb

    def test_master_tightening_reaches_subproblem(self):
        reform = Reformulation()
        sp = reform.add_dw_pricing_sp(lb_mult=1, ub_mult=1)
        x, x_clone = reform.add_pricing_var(sp, "x", lb=0.0, ub=10.0, kind=VarKind.INTEGER)
        reform.master.add_constr(
            "cap", ConstrDuty.MASTER_MIXED_CONSTR, ConstrSense.LESS, 4.5,
            members={x_clone: 1.0},
        )
        assert not preprocess(reform).infeasible
        assert reform.master.get_cur_ub(x_clone) == 4.0
        assert sp.get_cur_ub(x) == 4.0

    def test_master_lower_bound_reaches_subproblem(self):
        reform = Reformulation()
        sp = reform.add_dw_pricing_sp(lb_mult=0, ub_mult=2)
        x, x_clone = reform.add_pricing_var(sp, "x", lb=0.0, ub=3.0)
        reform.master.add_constr(
            "demand", ConstrDuty.MASTER_MIXED_CONSTR, ConstrSense.GREATER, 5.0,
            members={x_clone: 1.0},
        )
        assert not preprocess(reform).infeasible
        assert reform.master.get_cur_lb(x_clone) == 5.0
        # two copies at most: one copy carries at least 5 - 3
        assert sp.get_cur_lb(x) == 2.0

    def test_subproblems_left_alone_when_disabled(self, two_level_reform):
        reform = two_level_reform
        sp = reform.dw_pricing_sps[1]
        output = preprocess(reform, preprocess_subproblems=False)
        assert not output.infeasible
        assert sp.get_cur_ub(_var(sp, "x")) == 3.0
        assert reform.master.get_cur_ub(_var(reform.master, "x")) == 6.0

    def test_infeasible_master(self):
        reform = Reformulation()
        sp = reform.add_dw_pricing_sp(lb_mult=0, ub_mult=1)
        _, x_clone = reform.add_pricing_var(sp, "x", lb=0.0, ub=3.0)
        reform.master.add_constr(
            "demand", ConstrDuty.MASTER_MIXED_CONSTR, ConstrSense.GREATER, 5.0,
            members={x_clone: 1.0},
        )
        assert preprocess(reform).infeasible


class TestColumnForbidding:
    """Columns incompatible with the new bounds are forbidden."""

    def test_column_outside_new_bounds(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        output = preprocess(reform)

        col_x3, col_x1 = _var(master, "col_x3"), _var(master, "col_x1")
        assert master.get_cur_ub(col_x3) == 0.0
        assert math.isinf(master.get_cur_ub(col_x1))
        assert output.forbidden_columns == [col_x3.id]

    def test_missing_value_counts_as_zero(self):
        reform = Reformulation()
        sp = reform.add_dw_pricing_sp(lb_mult=0, ub_mult=1)
        x, _ = reform.add_pricing_var(sp, "x", lb=0.0, ub=5.0)
        y, _ = reform.add_pricing_var(sp, "y", lb=0.0, ub=5.0)
        sp.add_constr("need_x", ConstrDuty.DW_SP_PURE_CONSTR, ConstrSense.GREATER, 1.0,
                      members={x: 1.0})
        col = reform.add_column(sp, {y: 2.0})

        preprocess(reform)
        assert sp.get_cur_lb(x) == 1.0
        assert reform.master.get_cur_ub(col) == 0.0


class TestRestoreAfterPreprocessing:
    """A manager undoes every change preprocessing made."""

    def test_dive_restores_reformulation(self, two_level_reform):
        reform = two_level_reform
        master = reform.master
        sp = reform.dw_pricing_sps[1]
        algo = PreprocessAlgorithm()
        dive = Dive(algo)
        data = ReformData(reform)
        initialize_storage_units(data, dive)

        unit = data.master_data.get_unit(PreprocessingUnitPair)
        unit.add_to_local_partial_sol(_var(master, "col_x1"), 1.0)

        output = dive.run(data)
        assert not output.infeasible

        assert reform.get_sp_multiplicity(1) == (1.0, 2.0)
        assert master.get_cur_rhs(_constr(master, "link")) == 100.0
        assert master.get_cur_ub(_var(master, "x")) == 6.0
        assert sp.get_cur_ub(_var(sp, "x")) == 3.0
        assert math.isinf(master.get_cur_ub(_var(master, "col_x3")))
        assert unit.local_partial_sol == {_var(master, "col_x1").id: 1.0}

    def test_dive_can_be_repeated(self, two_level_reform):
        reform = two_level_reform
        dive = Dive(PreprocessAlgorithm())
        data = ReformData(reform)
        initialize_storage_units(data, dive)

        dive.run(data)
        for form in reform.formulations():
            form.buffer.reset()
        dive.run(data)
        assert sum(f.buffer.num_writes for f in reform.formulations()) > 0
        assert reform.dw_pricing_sps[1].get_cur_ub(_var(reform.dw_pricing_sps[1], "x")) == 3.0
        assert reform.master.get_cur_ub(_var(reform.master, "x")) == 6.0
