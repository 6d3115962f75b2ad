from __future__ import annotations

from typing import Any, Iterable

from moveit.exceptions import ValidationError
from moveit.utils.clock import new_id, utcnow_iso

TYPE_ASSIGNMENT = "assignment"
TYPE_RETURN = "return"
TYPE_COLLECTION = "collection"
TRANSACTION_TYPES = (TYPE_ASSIGNMENT, TYPE_RETURN, TYPE_COLLECTION)


class TransactionLog:
    """Append-only audit trail of stock mutations.

    Wraps the ``transactions`` list of a loaded store state; entries are never
    edited once appended.
    """

    REQUIRED_FIELDS = ("materialId", "quantity", "type")

    def __init__(self, entries: list[dict[str, Any]]) -> None:
        self.entries = entries

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, entry: dict[str, Any]) -> dict[str, Any]:
        missing = [field for field in self.REQUIRED_FIELDS if entry.get(field) is None]
        if missing:
            raise ValidationError(
                "Transaction is missing " + ", ".join(missing), field=missing[0]
            )
        if entry["type"] not in TRANSACTION_TYPES:
            raise ValidationError(f"Unknown transaction type {entry['type']!r}", field="type")

        record = {"id": new_id(), "timestamp": utcnow_iso()}
        record.update(entry)
        self.entries.append(record)
        return record

    def list(
        self,
        *,
        material_id: Any = None,
        project_id: Any = None,
        types: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        wanted_types = set(types) if types else None
        results = []
        for entry in self.entries:
            if material_id is not None and str(entry.get("materialId")) != str(material_id):
                continue
            if project_id is not None and str(entry.get("projectId")) != str(project_id):
                continue
            if wanted_types is not None and entry.get("type") not in wanted_types:
                continue
            results.append(entry)
        return results

    def truncate(self, length: int) -> None:
        """Drop entries appended after ``length``; used only to undo a failed batch."""

        del self.entries[length:]
