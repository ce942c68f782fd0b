"""
Tests for the duty hierarchy and its filtering predicates.
"""

from opendw.core.duty import (
    ConstrDuty,
    VarDuty,
    is_original_representative,
    is_static_duty,
    participates_in,
)


class TestIsA:
    """Tests for the is-a tables."""

    def test_concrete_duty_is_its_own_family(self):
        assert VarDuty.MASTER_COL.is_a(VarDuty.MASTER_COL)

    def test_walks_up_to_abstract_families(self):
        assert VarDuty.MASTER_REP_PRICING_VAR.is_a(VarDuty.ABSTRACT_MASTER_REP_DW_SP_VAR)
        assert VarDuty.MASTER_REP_PRICING_VAR.is_a(VarDuty.ABSTRACT_MASTER_VAR)
        assert VarDuty.MASTER_REP_PRICING_VAR.is_a(VarDuty.ANY)
        assert ConstrDuty.MASTER_USER_CUT_CONSTR.is_a(ConstrDuty.ABSTRACT_MASTER_CUT_CONSTR)

    def test_siblings_are_unrelated(self):
        assert not VarDuty.MASTER_COL.is_a(VarDuty.ABSTRACT_IMPLICIT_MASTER_VAR)
        assert not VarDuty.DW_SP_PRICING_VAR.is_a(VarDuty.ABSTRACT_MASTER_VAR)
        assert not ConstrDuty.DW_SP_PURE_CONSTR.is_a(ConstrDuty.ABSTRACT_MASTER_CONSTR)

    def test_family_is_not_a_member(self):
        assert not VarDuty.ABSTRACT_MASTER_VAR.is_a(VarDuty.MASTER_PURE_VAR)


class TestPredicates:
    """Tests for is_static_duty, is_original_representative, participates_in."""

    def test_static_duties(self):
        assert is_static_duty(VarDuty.MASTER_REP_PRICING_VAR)
        assert is_static_duty(ConstrDuty.MASTER_CONVEXITY_CONSTR)
        assert not is_static_duty(VarDuty.MASTER_COL)
        assert not is_static_duty(VarDuty.MASTER_ART_VAR)
        assert not is_static_duty(ConstrDuty.MASTER_BRANCH_ON_ORIG_VAR_CONSTR)
        assert not is_static_duty(ConstrDuty.MASTER_USER_CUT_CONSTR)

    def test_original_representatives(self):
        assert is_original_representative(VarDuty.MASTER_PURE_VAR)
        assert is_original_representative(VarDuty.MASTER_REP_PRICING_VAR)
        assert is_original_representative(VarDuty.MASTER_REP_PRICING_SETUP_VAR)
        assert not is_original_representative(VarDuty.MASTER_COL)
        assert not is_original_representative(VarDuty.DW_SP_PRICING_VAR)

    def test_master_constraints_ignore_columns(self):
        assert participates_in(VarDuty.MASTER_REP_PRICING_VAR, ConstrDuty.MASTER_MIXED_CONSTR)
        assert not participates_in(VarDuty.MASTER_COL, ConstrDuty.MASTER_MIXED_CONSTR)

    def test_subproblem_constraints_see_pricing_vars_only(self):
        assert participates_in(VarDuty.DW_SP_PRICING_VAR, ConstrDuty.DW_SP_PURE_CONSTR)
        assert not participates_in(VarDuty.DW_SP_SETUP_VAR, ConstrDuty.DW_SP_PURE_CONSTR)

    def test_original_constraints_see_original_vars(self):
        assert participates_in(VarDuty.ORIGINAL_VAR, ConstrDuty.ORIGINAL_CONSTR)
        assert not participates_in(VarDuty.MASTER_PURE_VAR, ConstrDuty.ORIGINAL_CONSTR)
