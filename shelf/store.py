"""Id-keyed record storage shared by the enrichment phases."""

from __future__ import annotations

from typing import Any, Iterator

from .models import Record

APPEND_FIELDS = frozenset({"genres", "sub_genres"})


class RecordStore:
    """Owns every record of a run; records are never removed."""

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records.values())

    def get(self, record_id: str) -> Record | None:
        return self._records.get(record_id)

    def ids(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[Record]:
        return list(self._records.values())

    def get_or_create(self, record_id: str) -> Record:
        """Return the record for ``record_id``, creating a default one if needed."""

        record = self._records.get(record_id)
        if record is None:
            record = Record(id=record_id)
            self._records[record_id] = record
        return record

    def merge_if_present(self, record_id: str, **fields: Any) -> bool:
        """Merge ``fields`` into an existing record; unknown ids are ignored."""

        record = self._records.get(record_id)
        if record is None:
            return False
        self._merge(record, fields)
        return True

    def create_or_merge(self, record_id: str, **fields: Any) -> Record:
        """Create the record from ``fields`` or merge them into the existing one."""

        record = self._records.get(record_id)
        if record is None:
            record = Record(id=record_id, **fields)
            self._records[record_id] = record
            return record
        self._merge(record, fields)
        return record

    def add(self, record: Record) -> bool:
        """Insert a fully built record unless its id is already known."""

        if record.id in self._records:
            return False
        self._records[record.id] = record
        return True

    @staticmethod
    def _merge(record: Record, fields: dict[str, Any]) -> None:
        for name, value in fields.items():
            if name == "id":
                continue
            if name in APPEND_FIELDS:
                additions = [value] if isinstance(value, str) else list(value)
                setattr(record, name, [*getattr(record, name), *additions])
            elif not record.has(name):
                setattr(record, name, value)
