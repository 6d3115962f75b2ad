"""Batch stock operations built on the ledger.

Each function works on a loaded store state and is expected to run inside
``store.transaction()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from moveit.exceptions import MaterialNotFound, ValidationError
from moveit.schemas import MaterialLine, MaterialRecord
from moveit.services.ledger import (
    POOL_NEW,
    POOL_OLD,
    Actor,
    StockLedger,
    parse_pool,
    parse_quantity,
)
from moveit.services.transaction_log import TRANSACTION_TYPES, TYPE_RETURN
from moveit.services.users import ensure_allowed

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    materials: list[dict[str, Any]]
    updates: list[dict[str, Any]] = field(default_factory=list)
    missing: list[Any] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    # What each deducted line actually took, per pool; stored on the job.
    allocations: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "materials": self.materials,
            "updates": self.updates,
            "missing": self.missing,
            "transactions": self.transactions,
            "allocations": self.allocations,
        }


def inventory_document(state: dict[str, Any]) -> dict[str, Any]:
    ledger = StockLedger.from_state(state)
    return {
        "materials": ledger.materials,
        "transactions": ledger.log.entries,
        "pendingCollections": state.setdefault("pendingCollections", []),
    }


def _update_row(material: dict[str, Any], before: int, line: MaterialLine) -> dict[str, Any]:
    return {
        "materialId": material.get("id"),
        "materialName": material.get("name"),
        "requested": line.quantity,
        "materialType": line.pool,
        "oldQuantity": before,
        "newQuantity": material["quantity"],
    }


def _allocation(
    material: dict[str, Any], line: MaterialLine, taken_new: int, taken_old: int
) -> dict[str, Any]:
    allocation = {
        "id": material.get("id"),
        "name": line.name or material.get("name") or "Unknown Material",
        "quantity": taken_new + taken_old,
        "materialType": line.pool,
        "deducted": {POOL_NEW: taken_new, POOL_OLD: taken_old},
    }
    if allocation["quantity"] != line.quantity:
        allocation["requestedQuantity"] = line.quantity
    return allocation


def allocation_breakdown(entry: dict[str, Any]) -> dict[str, int]:
    """Units a stored job line took from each pool.

    Lines stored before the per-pool breakdown existed fall back to their
    quantity in their requested pool.
    """

    deducted = entry.get("deducted")
    if isinstance(deducted, dict):
        return {
            POOL_NEW: parse_quantity(deducted.get(POOL_NEW)),
            POOL_OLD: parse_quantity(deducted.get(POOL_OLD)),
        }
    breakdown = {POOL_NEW: 0, POOL_OLD: 0}
    breakdown[parse_pool(entry.get("materialType"))] = parse_quantity(entry.get("quantity"))
    return breakdown


def _deduct_lines(
    ledger: StockLedger,
    project_id: Any,
    lines: Sequence[MaterialLine],
    actor: Actor,
    result: BatchResult,
    *,
    notes_suffix: str = "",
) -> None:
    for line in lines:
        material = ledger.find(line.material_id)
        if material is None:
            logger.warning("Material with id %s not found in inventory", line.material_id)
            result.missing.append(line.material_id)
            continue
        if line.quantity == 0:
            continue

        before = material["quantity"]
        before_new = material["quantityNew"]
        before_old = material["quantityOld"]
        log_length = len(ledger.log)
        material = ledger.deduct(
            line.material_id,
            line.quantity,
            line.pool,
            actor,
            project_id=project_id,
            notes=f"Assigned to project #{project_id} ({line.pool}){notes_suffix}",
        )
        result.transactions.extend(ledger.log.entries[log_length:])
        result.updates.append(_update_row(material, before, line))
        result.allocations.append(
            _allocation(
                material,
                line,
                before_new - material["quantityNew"],
                before_old - material["quantityOld"],
            )
        )


def assign_to_job(
    state: dict[str, Any],
    project_id: Any,
    lines: Sequence[MaterialLine],
    actor: Actor,
) -> BatchResult:
    """Deduct every line for ``project_id`` or nothing at all.

    Lines naming unknown materials are skipped and reported in
    ``result.missing``; if every line is unknown the call fails.
    """

    ledger = StockLedger.from_state(state)
    result = BatchResult(materials=ledger.materials)
    with ledger.savepoint():
        _deduct_lines(ledger, project_id, lines, actor, result)
        if lines and len(result.missing) == len(lines):
            raise MaterialNotFound(result.missing)
    return result


def reassign_job_materials(
    state: dict[str, Any],
    project_id: Any,
    previous_allocations: Sequence[dict[str, Any]],
    new_lines: Sequence[MaterialLine],
    actor: Actor,
) -> BatchResult:
    """Swap a job's assignment: put the old allocations back, then take the new lines.

    Each previous allocation is credited with exactly what it took, into the
    pool it came from. If taking the new lines fails, the credits are undone
    too, so the ledger and the log end up exactly as they were.
    """

    ledger = StockLedger.from_state(state)
    result = BatchResult(materials=ledger.materials)
    with ledger.savepoint():
        for entry in previous_allocations:
            material_id = entry.get("id")
            if ledger.find(material_id) is None:
                continue
            for pool, quantity in allocation_breakdown(entry).items():
                if quantity == 0:
                    continue
                log_length = len(ledger.log)
                ledger.credit(
                    material_id,
                    quantity,
                    actor,
                    reason=TYPE_RETURN,
                    pool=pool,
                    project_id=project_id,
                    notes=f"Returned from project #{project_id} (update)",
                )
                result.transactions.extend(ledger.log.entries[log_length:])

        _deduct_lines(
            ledger, project_id, new_lines, actor, result, notes_suffix=" (update)"
        )
        if new_lines and len(result.missing) == len(new_lines):
            raise MaterialNotFound(result.missing)
    return result


def return_materials(
    state: dict[str, Any],
    project_id: Any,
    lines: Sequence[MaterialLine],
    actor: Actor,
    notes: str | None = None,
) -> BatchResult:
    ensure_allowed("inventory.return", actor)

    ledger = StockLedger.from_state(state)
    result = BatchResult(materials=ledger.materials)
    with ledger.savepoint():
        for line in lines:
            material = ledger.find(line.material_id)
            if material is None:
                result.missing.append(line.material_id)
                continue
            if line.quantity == 0:
                continue
            before = material["quantity"]
            log_length = len(ledger.log)
            ledger.credit(
                line.material_id,
                line.quantity,
                actor,
                reason=TYPE_RETURN,
                project_id=project_id,
                notes=notes,
            )
            result.transactions.extend(ledger.log.entries[log_length:])
            result.updates.append(
                {
                    "materialId": material.get("id"),
                    "materialName": material.get("name"),
                    "returned": line.quantity,
                    "oldQuantity": before,
                    "newQuantity": material["quantity"],
                }
            )
        if lines and len(result.missing) == len(lines):
            raise MaterialNotFound(result.missing)
    return result


def replace_materials(
    state: dict[str, Any],
    records: Sequence[MaterialRecord],
    actor: Actor,
) -> list[dict[str, Any]]:
    """Overwrite the materials catalog wholesale (stock editors only)."""

    ensure_allowed("inventory.materials.replace", actor)

    seen: set[str] = set()
    for record in records:
        key = str(record.material_id)
        if key in seen:
            raise ValidationError(f"Duplicate material id {record.material_id}", field="id")
        seen.add(key)

    materials = [record.to_dict() for record in records]
    state["materials"] = materials
    logger.info("%s replaced the materials list (%s materials)", actor.username, len(materials))
    return materials


def list_transactions(
    state: dict[str, Any],
    actor: Actor,
    *,
    material_id: Any = None,
    project_id: Any = None,
    type: str | None = None,
) -> list[dict[str, Any]]:
    ensure_allowed("inventory.transactions", actor)
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationError(
            "type must be one of " + ", ".join(TRANSACTION_TYPES), field="type"
        )
    ledger = StockLedger.from_state(state)
    return ledger.log.list(
        material_id=material_id,
        project_id=project_id,
        types=[type] if type else None,
    )

