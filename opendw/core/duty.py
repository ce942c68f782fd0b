"""
Duty module - role tags for variables and constraints.

In a Dantzig-Wolfe decomposition the same modelling object can play several
roles: a variable of the original model is represented in the master by an
implicit "representative" and lives in a pricing subproblem as a pricing
variable. Generated columns, artificial variables, cuts and branching
constraints are added on top.

A duty tells algorithms which role an entity plays so that they can filter
what participates in a computation.

Design Notes:
------------
- Duties form a tree. Leaves are concrete duties, inner nodes are abstract
  families (prefixed ABSTRACT_), the root is ANY.
- The tree is a closed enum plus an explicit parent table. Asking
  "is this duty a kind of that family?" walks the table upwards.
- Filtering predicates (is_static_duty, is_original_representative, ...)
  are plain functions over the tag.
"""

from enum import Enum, auto
from typing import Dict, Optional, Union


class VarDuty(Enum):
    """
    Duties of a variable.

    Concrete duties:
        ORIGINAL_VAR: Variable of a non-decomposed (original) formulation
        MASTER_PURE_VAR: Original variable kept only in the master
        MASTER_REP_PRICING_VAR: Master representative of a pricing variable
        MASTER_REP_PRICING_SETUP_VAR: Master representative of a setup variable
        MASTER_COL: Column generated by a pricing subproblem
        MASTER_ART_VAR: Artificial variable of the master
        DW_SP_PRICING_VAR: Pricing variable in a subproblem
        DW_SP_SETUP_VAR: Setup variable in a subproblem
    """
    ANY = auto()
    ORIGINAL_VAR = auto()
    ABSTRACT_MASTER_VAR = auto()
    ABSTRACT_ORIGIN_MASTER_VAR = auto()
    MASTER_PURE_VAR = auto()
    ABSTRACT_ADDED_MASTER_VAR = auto()
    MASTER_COL = auto()
    MASTER_ART_VAR = auto()
    ABSTRACT_IMPLICIT_MASTER_VAR = auto()
    ABSTRACT_MASTER_REP_DW_SP_VAR = auto()
    MASTER_REP_PRICING_VAR = auto()
    MASTER_REP_PRICING_SETUP_VAR = auto()
    ABSTRACT_DW_SP_VAR = auto()
    DW_SP_PRICING_VAR = auto()
    DW_SP_SETUP_VAR = auto()

    def is_a(self, family: 'VarDuty') -> bool:
        """Check whether this duty is `family` or descends from it."""
        return _descends_from(self, family, _VAR_DUTY_PARENT)


class ConstrDuty(Enum):
    """
    Duties of a constraint.

    Concrete duties:
        ORIGINAL_CONSTR: Constraint of a non-decomposed formulation
        MASTER_PURE_CONSTR: Master constraint over pure master variables only
        MASTER_MIXED_CONSTR: Master constraint linking subproblem variables
        MASTER_CONVEXITY_CONSTR: Lower/upper multiplicity of a subproblem
        MASTER_BRANCH_ON_ORIG_VAR_CONSTR: Branching constraint on an original variable
        MASTER_USER_CUT_CONSTR: Cutting plane added to the master
        DW_SP_PURE_CONSTR: Constraint of a pricing subproblem
    """
    ANY = auto()
    ORIGINAL_CONSTR = auto()
    ABSTRACT_MASTER_CONSTR = auto()
    ABSTRACT_ORIGIN_MASTER_CONSTR = auto()
    MASTER_PURE_CONSTR = auto()
    MASTER_MIXED_CONSTR = auto()
    MASTER_CONVEXITY_CONSTR = auto()
    ABSTRACT_MASTER_BRANCHING_CONSTR = auto()
    MASTER_BRANCH_ON_ORIG_VAR_CONSTR = auto()
    ABSTRACT_MASTER_CUT_CONSTR = auto()
    MASTER_USER_CUT_CONSTR = auto()
    ABSTRACT_DW_SP_CONSTR = auto()
    DW_SP_PURE_CONSTR = auto()

    def is_a(self, family: 'ConstrDuty') -> bool:
        """Check whether this duty is `family` or descends from it."""
        return _descends_from(self, family, _CONSTR_DUTY_PARENT)


Duty = Union[VarDuty, ConstrDuty]


# =============================================================================
# Is-a tables
# =============================================================================

_VAR_DUTY_PARENT: Dict[VarDuty, Optional[VarDuty]] = {
    VarDuty.ANY: None,
    VarDuty.ORIGINAL_VAR: VarDuty.ANY,
    VarDuty.ABSTRACT_MASTER_VAR: VarDuty.ANY,
    VarDuty.ABSTRACT_ORIGIN_MASTER_VAR: VarDuty.ABSTRACT_MASTER_VAR,
    VarDuty.MASTER_PURE_VAR: VarDuty.ABSTRACT_ORIGIN_MASTER_VAR,
    VarDuty.ABSTRACT_ADDED_MASTER_VAR: VarDuty.ABSTRACT_MASTER_VAR,
    VarDuty.MASTER_COL: VarDuty.ABSTRACT_ADDED_MASTER_VAR,
    VarDuty.MASTER_ART_VAR: VarDuty.ABSTRACT_ADDED_MASTER_VAR,
    VarDuty.ABSTRACT_IMPLICIT_MASTER_VAR: VarDuty.ABSTRACT_MASTER_VAR,
    VarDuty.ABSTRACT_MASTER_REP_DW_SP_VAR: VarDuty.ABSTRACT_IMPLICIT_MASTER_VAR,
    VarDuty.MASTER_REP_PRICING_VAR: VarDuty.ABSTRACT_MASTER_REP_DW_SP_VAR,
    VarDuty.MASTER_REP_PRICING_SETUP_VAR: VarDuty.ABSTRACT_MASTER_REP_DW_SP_VAR,
    VarDuty.ABSTRACT_DW_SP_VAR: VarDuty.ANY,
    VarDuty.DW_SP_PRICING_VAR: VarDuty.ABSTRACT_DW_SP_VAR,
    VarDuty.DW_SP_SETUP_VAR: VarDuty.ABSTRACT_DW_SP_VAR,
}

_CONSTR_DUTY_PARENT: Dict[ConstrDuty, Optional[ConstrDuty]] = {
    ConstrDuty.ANY: None,
    ConstrDuty.ORIGINAL_CONSTR: ConstrDuty.ANY,
    ConstrDuty.ABSTRACT_MASTER_CONSTR: ConstrDuty.ANY,
    ConstrDuty.ABSTRACT_ORIGIN_MASTER_CONSTR: ConstrDuty.ABSTRACT_MASTER_CONSTR,
    ConstrDuty.MASTER_PURE_CONSTR: ConstrDuty.ABSTRACT_ORIGIN_MASTER_CONSTR,
    ConstrDuty.MASTER_MIXED_CONSTR: ConstrDuty.ABSTRACT_ORIGIN_MASTER_CONSTR,
    ConstrDuty.MASTER_CONVEXITY_CONSTR: ConstrDuty.ABSTRACT_MASTER_CONSTR,
    ConstrDuty.ABSTRACT_MASTER_BRANCHING_CONSTR: ConstrDuty.ABSTRACT_MASTER_CONSTR,
    ConstrDuty.MASTER_BRANCH_ON_ORIG_VAR_CONSTR: ConstrDuty.ABSTRACT_MASTER_BRANCHING_CONSTR,
    ConstrDuty.ABSTRACT_MASTER_CUT_CONSTR: ConstrDuty.ABSTRACT_MASTER_CONSTR,
    ConstrDuty.MASTER_USER_CUT_CONSTR: ConstrDuty.ABSTRACT_MASTER_CUT_CONSTR,
    ConstrDuty.ABSTRACT_DW_SP_CONSTR: ConstrDuty.ANY,
    ConstrDuty.DW_SP_PURE_CONSTR: ConstrDuty.ABSTRACT_DW_SP_CONSTR,
}


def _descends_from(duty, family, parents) -> bool:
    current = duty
    while current is not None:
        if current is family:
            return True
        current = parents[current]
    return False


# =============================================================================
# Predicates
# =============================================================================

_STATIC_VAR_DUTIES = frozenset({
    VarDuty.ORIGINAL_VAR,
    VarDuty.MASTER_PURE_VAR,
    VarDuty.MASTER_REP_PRICING_VAR,
    VarDuty.MASTER_REP_PRICING_SETUP_VAR,
    VarDuty.DW_SP_PRICING_VAR,
    VarDuty.DW_SP_SETUP_VAR,
})

_STATIC_CONSTR_DUTIES = frozenset({
    ConstrDuty.ORIGINAL_CONSTR,
    ConstrDuty.MASTER_PURE_CONSTR,
    ConstrDuty.MASTER_MIXED_CONSTR,
    ConstrDuty.MASTER_CONVEXITY_CONSTR,
    ConstrDuty.DW_SP_PURE_CONSTR,
})


def is_static_duty(duty: Duty) -> bool:
    """
    Check if entities with this duty exist for the whole search.

    Static entities are created with the model. Dynamic ones (columns,
    artificial variables, cuts, branching constraints) come and go while
    the search runs.
    """
    if isinstance(duty, VarDuty):
        return duty in _STATIC_VAR_DUTIES
    return duty in _STATIC_CONSTR_DUTIES


def is_original_representative(duty: VarDuty) -> bool:
    """Check if a master variable stands for a variable of the original model."""
    return (
        duty is VarDuty.MASTER_PURE_VAR
        or duty.is_a(VarDuty.ABSTRACT_MASTER_REP_DW_SP_VAR)
    )


def participates_in(var_duty: VarDuty, constr_duty: ConstrDuty) -> bool:
    """
    Check if a variable takes part in the slack computation of a constraint.

    Master constraints see original representatives only (columns are left
    out), subproblem constraints see pricing variables only, and constraints
    of an original formulation see original variables.

    Args:
        var_duty: Duty of the variable
        constr_duty: Duty of the constraint

    Returns:
        True if the variable's bounds contribute to the constraint's slacks
    """
    if constr_duty.is_a(ConstrDuty.ABSTRACT_MASTER_CONSTR):
        return is_original_representative(var_duty)
    if constr_duty.is_a(ConstrDuty.ABSTRACT_DW_SP_CONSTR):
        return var_duty is VarDuty.DW_SP_PRICING_VAR
    return var_duty is VarDuty.ORIGINAL_VAR
