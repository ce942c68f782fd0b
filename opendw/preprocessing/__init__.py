"""
Preprocessing module - bound tightening by constraint propagation.

Components:
----------
- PreprocessAlgorithm: the algorithm as seen by the search tree
- preprocess: one-call entry point for a Formulation or a Reformulation
- Propagator: the propagation engine of one call
- PreprocessingUnit: local partial solution kept between calls
- PropagationBudget: limits on propagation work
- PreprocessingOutput / PreprocessStatus: result of a call
"""

from opendw.preprocessing.algorithm import (
    MAX_BOUND_CHANGES,
    SLACK_TOLERANCE,
    PreprocessAlgorithm,
    Propagator,
    compute_new_bound,
    compute_slacks,
    preprocess,
)
from opendw.preprocessing.budget import PropagationBudget
from opendw.preprocessing.data import (
    PreprocessData,
    PreprocessingRecord,
    PreprocessingUnit,
    PreprocessingUnitPair,
)
from opendw.preprocessing.output import PreprocessingOutput, PreprocessStatus

__all__ = [
    "PreprocessAlgorithm",
    "preprocess",
    "Propagator",
    "compute_slacks",
    "compute_new_bound",
    "SLACK_TOLERANCE",
    "MAX_BOUND_CHANGES",
    "PreprocessData",
    "PreprocessingUnit",
    "PreprocessingRecord",
    "PreprocessingUnitPair",
    "PropagationBudget",
    "PreprocessingOutput",
    "PreprocessStatus",
]
