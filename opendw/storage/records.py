"""
Grouping of records taken around one child invocation.

A manager algorithm asks the orchestration layer which units its children
may touch (a UnitsUsage), stores a record of each of them (store_records),
runs the children, then puts everything back (restore_from_records).
Units that the children only read need no record.
"""

import logging
from typing import Any, Dict, Iterator, List, Tuple

from opendw.storage.base import (
    AbstractRecord,
    ContractViolation,
    Storage,
    UnitAccessMode,
    UnitPair,
)

logger = logging.getLogger(__name__)

UsageKey = Tuple[int, UnitPair]


class UnitsUsage:
    """
    Set of (model, unit pair, access mode) declarations.

    Declaring the same (model, pair) twice keeps the strongest access
    mode: READ_AND_WRITE wins over READ_ONLY.

    Example:
        >>> usage = UnitsUsage()
        >>> usage.add(master, StaticVarConstrUnitPair, UnitAccessMode.READ_ONLY)
        >>> usage.add(master, StaticVarConstrUnitPair, UnitAccessMode.READ_AND_WRITE)
        >>> usage.mode(master, StaticVarConstrUnitPair)
        <UnitAccessMode.READ_AND_WRITE: 2>
    """

    def __init__(self):
        self._entries: Dict[UsageKey, Tuple[Any, UnitPair, UnitAccessMode]] = {}

    def add(self, model: Any, pair: UnitPair, mode: UnitAccessMode) -> None:
        key = (id(model), pair)
        current = self._entries.get(key)
        if current is not None and current[2] is UnitAccessMode.READ_AND_WRITE:
            return
        self._entries[key] = (model, pair, mode)

    def update(self, usages) -> None:
        """Merge an iterable of (model, pair, mode) triples."""
        for model, pair, mode in usages:
            self.add(model, pair, mode)

    def mode(self, model: Any, pair: UnitPair) -> UnitAccessMode:
        return self._entries[id(model), pair][2]

    def written(self) -> Iterator[Tuple[Any, UnitPair]]:
        """(model, pair) of every unit declared READ_AND_WRITE."""
        for model, pair, mode in self._entries.values():
            if mode is UnitAccessMode.READ_AND_WRITE:
                yield model, pair

    def __contains__(self, key) -> bool:
        model, pair = key
        return (id(model), pair) in self._entries

    def __iter__(self) -> Iterator[Tuple[Any, UnitPair, UnitAccessMode]]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"UnitsUsage({len(self._entries)} units)"


class Records:
    """Records of the units written by a subtree, with their storages."""

    def __init__(self):
        self._records: List[Tuple[Storage, AbstractRecord]] = []

    def add(self, storage: Storage, record: AbstractRecord) -> None:
        self._records.append((storage, record))

    def __iter__(self) -> Iterator[Tuple[Storage, AbstractRecord]]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Records({[s.pair.name for s, _ in self._records]})"


def store_records(data, units_usage: UnitsUsage) -> Records:
    """
    Take a record of every unit `units_usage` declares READ_AND_WRITE.

    Args:
        data: ModelData or ReformData holding the storages
        units_usage: Units the subtree about to run may use

    Returns:
        The records, ready for restore_from_records

    Raises:
        ContractViolation: If a model has no storages in `data` or a unit
            was not created at setup
    """
    records = Records()
    for model, pair in units_usage.written():
        storages = data.get_model_storage_dict(model)
        if storages is None:
            raise ContractViolation(
                f"No storage dictionary for model {getattr(model, 'name', model)!r}"
            )
        storage = storages.get(pair)
        if storage is None:
            raise ContractViolation(
                f"Unit {pair.name} of {getattr(model, 'name', model)!r} "
                f"was not created at setup"
            )
        records.add(storage, storage.produce_record())
    logger.debug("Stored %d records", len(records))
    return records


def restore_from_records(records: Records) -> None:
    """Restore every storage of `records` to its recorded state."""
    for storage, record in records:
        storage.restore(record)
    logger.debug("Restored %d records", len(records))
