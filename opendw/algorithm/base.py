"""
Algorithm interface used by the orchestration layer.

An algorithm is anything that runs on a model (a Formulation or a
Reformulation) and reads or writes storage units while doing so. The
orchestration layer never runs algorithms on its own: it only asks them two
questions,

- which child algorithms they may call, on which sub-models
  (get_child_algorithms), and
- which storage units they use, on which models, and how
  (get_units_usage),

and derives from the answers which units to create at setup and which
records a manager must take around its children.

Customization Guide:
-------------------
To create a worker algorithm:

1. Subclass AbstractAlgorithm
2. Implement run(data, input)
3. Declare the units it touches in get_units_usage

A manager algorithm (one that explores alternatives, such as a tree search
node or a diving heuristic) subclasses AbstractManagerAlgorithm and calls
its children through run_child, which restores their side effects.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from opendw.algorithm.tree import collect_units_to_restore
from opendw.storage.base import UnitAccessMode, UnitPair
from opendw.storage.records import restore_from_records, store_records

ChildAlgorithms = List[Tuple['AbstractAlgorithm', Any]]
UsageList = List[Tuple[Any, UnitPair, UnitAccessMode]]


class AbstractAlgorithm(ABC):
    """
    Base class of every algorithm.

    Attributes:
        is_manager: Whether the algorithm snapshots and restores the units
            of its children
    """

    is_manager: bool = False

    def get_child_algorithms(self, model: Any) -> ChildAlgorithms:
        """Algorithms this one may call, each with the model it runs on."""
        return []

    def get_units_usage(self, model: Any) -> UsageList:
        """Storage units used when running on `model`, with access modes."""
        return []

    @abstractmethod
    def run(self, data, input: Optional[Any] = None) -> Any:
        """
        Run the algorithm.

        Args:
            data: ModelData or ReformData of the model the algorithm runs on
            input: Algorithm-specific input

        Returns:
            Algorithm-specific output
        """


class AbstractManagerAlgorithm(AbstractAlgorithm):
    """Algorithm that runs children in isolation from each other."""

    is_manager: bool = True

    def run_child(
        self,
        child: AbstractAlgorithm,
        data,
        model: Any,
        input: Optional[Any] = None,
    ) -> Any:
        """
        Run a child and undo its side effects on the storage units.

        Records are taken for every unit the child's subtree writes (its
        own manager descendants excluded), the child runs, and the records
        are restored.

        Args:
            child: The child algorithm
            data: Data of the whole search (ModelData or ReformData)
            model: Model the child runs on
            input: Child input

        Returns:
            The child's output

        Raises:
            Whatever the child raises, after its records are restored
        """
        records = store_records(data, collect_units_to_restore(child, model))
        child_data = data if model is data.model else data.get_model_data(model)
        try:
            return child.run(child_data, input)
        finally:
            restore_from_records(records)
