"""
Storage module - checkpoint/restore of model-attached state.

Components:
----------
- AbstractStorageUnit / AbstractRecord / UnitPair: the extension points
- Storage, ModelData, ReformData: live units of a search, per model
- Formulation records: static entities, columns, branching constraints, cuts
- PartialSolutionUnit: partial assignment accumulated along a branch
- UnitsUsage / Records: what a manager snapshots around its children
"""

from opendw.storage.base import (
    AbstractRecord,
    AbstractStorageUnit,
    ContractViolation,
    ModelData,
    ReformData,
    Storage,
    UnitAccessMode,
    UnitPair,
)
from opendw.storage.records import (
    Records,
    UnitsUsage,
    restore_from_records,
    store_records,
)
from opendw.storage.units import (
    ConstrState,
    FormulationUnit,
    MasterBranchConstrsRecord,
    MasterBranchConstrsUnitPair,
    MasterColumnsRecord,
    MasterColumnsUnitPair,
    MasterCutsRecord,
    MasterCutsUnitPair,
    PartialSolutionRecord,
    PartialSolutionUnit,
    PartialSolutionUnitPair,
    StaticVarConstrRecord,
    StaticVarConstrUnitPair,
    VarState,
)

__all__ = [
    # Framework
    "AbstractRecord",
    "AbstractStorageUnit",
    "ContractViolation",
    "ModelData",
    "ReformData",
    "Storage",
    "UnitAccessMode",
    "UnitPair",
    # Records
    "Records",
    "UnitsUsage",
    "store_records",
    "restore_from_records",
    # Units
    "VarState",
    "ConstrState",
    "FormulationUnit",
    "StaticVarConstrRecord",
    "StaticVarConstrUnitPair",
    "MasterColumnsRecord",
    "MasterColumnsUnitPair",
    "MasterBranchConstrsRecord",
    "MasterBranchConstrsUnitPair",
    "MasterCutsRecord",
    "MasterCutsUnitPair",
    "PartialSolutionUnit",
    "PartialSolutionRecord",
    "PartialSolutionUnitPair",
]
