"""
OpenDW: bound propagation and checkpoint/restore for Dantzig-Wolfe
decompositions.

OpenDW provides the state-management core of a branch-and-price search:
a preprocessing engine that tightens bounds across a master problem and
its pricing subproblems, and a storage framework that lets the search
snapshot and restore formulation state around each branch.
"""

__version__ = "0.1.0"

from opendw.algorithm import (
    AbstractAlgorithm,
    AbstractManagerAlgorithm,
    collect_units_to_create,
    collect_units_to_restore,
    initialize_storage_units,
)
from opendw.config import config, configure_logging

# Core classes - these are the main user-facing API
from opendw.core import (
    ConstrDuty,
    ConstrSense,
    Constraint,
    Formulation,
    PrimalSolution,
    Reformulation,
    VarDuty,
    Variable,
    VarKind,
)

# Preprocessing
from opendw.preprocessing import (
    PreprocessAlgorithm,
    PreprocessingOutput,
    PreprocessingUnitPair,
    PreprocessStatus,
    PropagationBudget,
    preprocess,
)

# Storage
from opendw.storage import (
    ContractViolation,
    MasterBranchConstrsUnitPair,
    MasterColumnsUnitPair,
    MasterCutsUnitPair,
    ModelData,
    PartialSolutionUnitPair,
    ReformData,
    StaticVarConstrUnitPair,
    UnitAccessMode,
    UnitPair,
    restore_from_records,
    store_records,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "config",
    "configure_logging",
    # Core classes
    "VarDuty",
    "ConstrDuty",
    "VarKind",
    "ConstrSense",
    "Variable",
    "Constraint",
    "Formulation",
    "Reformulation",
    "PrimalSolution",
    # Storage
    "ContractViolation",
    "UnitAccessMode",
    "UnitPair",
    "ModelData",
    "ReformData",
    "StaticVarConstrUnitPair",
    "MasterColumnsUnitPair",
    "MasterBranchConstrsUnitPair",
    "MasterCutsUnitPair",
    "PartialSolutionUnitPair",
    "store_records",
    "restore_from_records",
    # Algorithms
    "AbstractAlgorithm",
    "AbstractManagerAlgorithm",
    "collect_units_to_create",
    "collect_units_to_restore",
    "initialize_storage_units",
    # Preprocessing
    "PreprocessAlgorithm",
    "PreprocessingOutput",
    "PreprocessingUnitPair",
    "PreprocessStatus",
    "PropagationBudget",
    "preprocess",
]
