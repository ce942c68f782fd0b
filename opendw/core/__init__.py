"""
Core module - formulations and the entities they own.

This module is the accessor contract every algorithm in OpenDW relies on:
bounds, costs, right-hand sides, activity flags, duties and sparse
coefficient access.

Components:
----------
- VarDuty / ConstrDuty: Role tags with an is-a hierarchy
- Variable / Constraint: Entities with perennial and current data
- DynamicSparseMatrix: Coefficients with row and column access
- Formulation: Variables, constraints and coefficients of one model
- Reformulation: Master + Dantzig-Wolfe pricing subproblems
- PrimalSolution: Costed sparse assignment of values to variables
"""

from opendw.core.buffer import FormulationBuffer
from opendw.core.duty import (
    ConstrDuty,
    VarDuty,
    is_original_representative,
    is_static_duty,
    participates_in,
)
from opendw.core.formulation import Formulation, FormulationDuty, IdGenerator
from opendw.core.matrix import DynamicSparseMatrix
from opendw.core.reformulation import Reformulation, scaled_bound
from opendw.core.solution import PrimalSolution, SolutionFeasibility
from opendw.core.varconstr import (
    ConstrData,
    Constraint,
    ConstrSense,
    VarData,
    Variable,
    VarKind,
)

__all__ = [
    # Duties
    "VarDuty",
    "ConstrDuty",
    "is_original_representative",
    "is_static_duty",
    "participates_in",
    # Entities
    "Variable",
    "VarData",
    "VarKind",
    "Constraint",
    "ConstrData",
    "ConstrSense",
    # Models
    "DynamicSparseMatrix",
    "Formulation",
    "FormulationBuffer",
    "FormulationDuty",
    "IdGenerator",
    "Reformulation",
    "scaled_bound",
    # Solutions
    "PrimalSolution",
    "SolutionFeasibility",
]
