"""
Storage framework - generic checkpoint/restore of model-attached state.

A tree search explores branches that must not see each other's changes.
Algorithms keep the state they change in *storage units*; before a manager
algorithm lets its children run it takes a *record* of every unit they may
write, and restores those records afterwards.

Vocabulary:
----------
- StorageUnit: mutable state attached to a model (one instance per
  (model, unit pair), created once at search setup)
- Record: immutable snapshot of a unit (or of the model data the unit
  stands for) at one instant
- UnitPair: binds a unit type to its record type and knows how to produce
  and restore records
- Storage: the live unit of one model for one pair
- ModelData / ReformData: the storages of every model of a search

Design Notes:
------------
- Records never share containers with a live unit; producing a record
  copies everything it keeps.
- Producing a record is pure. Restoring is the only side-effecting step
  and applying the same record twice gives the same state as applying it
  once.
- Referencing a model or a unit that setup did not create is a programming
  error. It raises ContractViolation and is never recovered from.

Example:
    >>> data = ModelData(form)
    >>> storage = data.get_or_create_storage(PartialSolutionUnitPair)
    >>> record = storage.produce_record()
    >>> storage.unit.add_to_solution(col.id, 1.0)
    >>> storage.restore(record)   # unit is back to its recorded state
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, Optional, Type

from opendw.core.formulation import Formulation
from opendw.core.reformulation import Reformulation

logger = logging.getLogger(__name__)


class ContractViolation(RuntimeError):
    """A caller broke the storage or orchestration contract."""


class UnitAccessMode(Enum):
    """How an algorithm uses a storage unit."""
    READ_ONLY = auto()
    READ_AND_WRITE = auto()


# =============================================================================
# Units, records, pairs
# =============================================================================


class AbstractStorageUnit(ABC):
    """
    Mutable state attached to a model.

    Subclasses must be constructible from the model alone; the framework
    builds each unit exactly once with `UnitType(model)`.
    """

    def __init__(self, model: Any):
        pass


class AbstractRecord(ABC):
    """Immutable snapshot of a storage unit."""

    @classmethod
    @abstractmethod
    def produce(cls, model: Any, unit: AbstractStorageUnit) -> 'AbstractRecord':
        """
        Take a snapshot.

        Must not modify `model` nor `unit`.
        """

    @abstractmethod
    def restore(self, model: Any, unit: AbstractStorageUnit) -> None:
        """Bring `model` and `unit` back to the recorded state."""


@dataclass(frozen=True)
class UnitPair:
    """
    A storage unit type and the record type that snapshots it.

    Attributes:
        unit_type: Class of the storage unit
        record_type: Class of its records
    """
    unit_type: Type[AbstractStorageUnit]
    record_type: Type[AbstractRecord]

    @property
    def name(self) -> str:
        return f"{self.unit_type.__name__}=>{self.record_type.__name__}"

    def produce(self, model: Any, unit: AbstractStorageUnit) -> AbstractRecord:
        return self.record_type.produce(model, unit)

    def restore(self, model: Any, unit: AbstractStorageUnit, record: AbstractRecord) -> None:
        if not isinstance(record, self.record_type):
            raise ContractViolation(
                f"Cannot restore {self.name} from a {type(record).__name__}"
            )
        record.restore(model, unit)

    def __repr__(self) -> str:
        return f"UnitPair({self.name})"


class Storage:
    """
    The live unit of one model for one unit pair.

    Attributes:
        model: Model the unit is attached to
        pair: Unit pair
        unit: The live storage unit
    """

    def __init__(self, model: Any, pair: UnitPair):
        self.model = model
        self.pair = pair
        self.unit = pair.unit_type(model)

    def produce_record(self) -> AbstractRecord:
        record = self.pair.produce(self.model, self.unit)
        logger.debug("Produced record %s for %s", self.pair.name, _model_name(self.model))
        return record

    def restore(self, record: AbstractRecord) -> None:
        logger.debug("Restoring %s for %s", self.pair.name, _model_name(self.model))
        self.pair.restore(self.model, self.unit, record)

    def __repr__(self) -> str:
        return f"Storage({self.pair.name}, model={_model_name(self.model)})"


# =============================================================================
# Data
# =============================================================================


class ModelData:
    """
    Storages of a single model.

    Attributes:
        model: The model (usually a Formulation)
        storages: Storage per unit pair
    """

    def __init__(self, model: Any):
        self.model = model
        self.storages: Dict[UnitPair, Storage] = {}

    def get_or_create_storage(self, pair: UnitPair) -> Storage:
        """Return the storage of `pair`, creating the unit on first use."""
        storage = self.storages.get(pair)
        if storage is None:
            storage = Storage(self.model, pair)
            self.storages[pair] = storage
            logger.debug("Created unit %s for %s", pair.name, _model_name(self.model))
        return storage

    def get_storage(self, pair: UnitPair) -> Storage:
        """
        Return the storage of `pair`.

        Raises:
            ContractViolation: If the unit was not created at setup
        """
        storage = self.storages.get(pair)
        if storage is None:
            raise ContractViolation(
                f"No storage {pair.name} for {_model_name(self.model)}; "
                f"was initialize_storage_units called?"
            )
        return storage

    def get_unit(self, pair: UnitPair) -> AbstractStorageUnit:
        return self.get_storage(pair).unit

    # Shared with ReformData so that algorithms accept either.

    def get_model_storage_dict(self, model: Any) -> Optional[Dict[UnitPair, Storage]]:
        return self.storages if model is self.model else None

    def get_model_data(self, model: Any) -> 'ModelData':
        if model is not self.model:
            raise ContractViolation(
                f"Model {_model_name(model)} is not contained in {self!r}"
            )
        return self

    def __repr__(self) -> str:
        return f"ModelData({_model_name(self.model)}, units={len(self.storages)})"


class ReformData:
    """
    Storages of a reformulation: one ModelData per formulation.

    Attributes:
        reform: The reformulation
        master_data: Storages of the master
        sp_data: Storages of each subproblem, keyed by formulation uid
    """

    def __init__(self, reform: Reformulation):
        self.reform = reform
        self.master_data = ModelData(reform.master)
        self.sp_data: Dict[int, ModelData] = {
            uid: ModelData(sp) for uid, sp in reform.dw_pricing_sps.items()
        }

    @property
    def model(self) -> Reformulation:
        return self.reform

    def get_model_storage_dict(self, model: Any) -> Optional[Dict[UnitPair, Storage]]:
        """Storages of `model`, or None if the model is not part of the reformulation."""
        if model is self.reform.master:
            return self.master_data.storages
        if isinstance(model, Formulation):
            sp_data = self.sp_data.get(model.uid)
            if sp_data is not None and sp_data.model is model:
                return sp_data.storages
        return None

    def get_model_data(self, model: Any) -> ModelData:
        """
        ModelData of a formulation of the reformulation.

        Raises:
            ContractViolation: If the model is not part of the reformulation
        """
        if model is self.reform.master:
            return self.master_data
        if isinstance(model, Formulation):
            sp_data = self.sp_data.get(model.uid)
            if sp_data is not None and sp_data.model is model:
                return sp_data
        raise ContractViolation(
            f"Model {_model_name(model)} is not contained in {self!r}"
        )

    def __repr__(self) -> str:
        return f"ReformData({self.reform.name!r}, subproblems={len(self.sp_data)})"


def _model_name(model: Any) -> str:
    return getattr(model, "name", type(model).__name__)
