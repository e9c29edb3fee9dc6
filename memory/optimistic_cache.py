"""Newest-first list of ratings that is updated before the server confirms."""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from models.rating_record import RatingRecord


class OptimisticCache:
    """Ordered, id-unique rating list.

    ``insert`` prepends immediately; ``reconcile`` later swaps the placeholder
    id, image reference and timestamp for server values without moving the
    record.
    """

    def __init__(self, records: Iterable[RatingRecord] | None = None) -> None:
        self._records: List[RatingRecord] = []
        self._index: Dict[int, RatingRecord] = {}
        if records:
            self.replace_all(records)

    def insert(self, record: RatingRecord) -> None:
        if record.id in self._index:
            raise ValueError(f"duplicate rating id {record.id}")
        self._records.insert(0, record)
        self._index[record.id] = record

    def reconcile(
        self,
        placeholder_id: int,
        durable_id: int,
        durable_image_url: str,
        durable_created_at: str,
    ) -> bool:
        """Apply server values to the placeholder record; ``False`` if it is gone."""

        record = self._index.get(placeholder_id)
        if record is None:
            return False
        if durable_id != placeholder_id and durable_id in self._index:
            raise ValueError(f"durable id {durable_id} already present")
        del self._index[placeholder_id]
        record.id = durable_id
        record.image_url = durable_image_url
        record.created_at = durable_created_at
        self._index[durable_id] = record
        return True

    def replace_all(self, records: Iterable[RatingRecord]) -> None:
        fresh = list(records)
        index = {record.id: record for record in fresh}
        if len(index) != len(fresh):
            raise ValueError("rating ids must be unique")
        self._records = fresh
        self._index = index

    def clear(self) -> None:
        self._records = []
        self._index = {}

    def get(self, record_id: int) -> Optional[RatingRecord]:
        return self._index.get(record_id)

    @property
    def records(self) -> List[RatingRecord]:
        return list(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._index

    def __iter__(self) -> Iterator[RatingRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["OptimisticCache"]
