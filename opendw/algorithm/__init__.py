"""
Algorithm module - algorithm interface and storage-unit orchestration.
"""

from opendw.algorithm.base import AbstractAlgorithm, AbstractManagerAlgorithm
from opendw.algorithm.tree import (
    build_algorithm_tree,
    collect_units_to_create,
    collect_units_to_restore,
    initialize_storage_units,
)

__all__ = [
    "AbstractAlgorithm",
    "AbstractManagerAlgorithm",
    "build_algorithm_tree",
    "collect_units_to_create",
    "collect_units_to_restore",
    "initialize_storage_units",
]
