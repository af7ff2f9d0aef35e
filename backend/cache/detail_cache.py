from __future__ import annotations

from typing import Iterable

from layers.types import LocationRecord


class DetailCache:
    """
    Id-indexed read-through index of recently ranked records.

    Never a source of truth: a lookup miss falls back to the record already in hand.
    Last write wins; entries live as long as the owning session.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, LocationRecord] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, record_id: object) -> bool:
        return str(record_id) in self._by_id

    def get(self, record_id: str | int) -> LocationRecord | None:
        return self._by_id.get(str(record_id))

    def put(self, record: LocationRecord) -> None:
        if record.id:
            self._by_id[str(record.id)] = record

    def put_many(self, records: Iterable[LocationRecord]) -> None:
        for r in records:
            self.put(r)

    def resolve(self, record: LocationRecord) -> LocationRecord:
        return self._by_id.get(str(record.id)) or record

    def ids(self) -> list[str]:
        return list(self._by_id.keys())
