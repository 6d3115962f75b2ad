"""Packing-material stock split into ``new`` and ``old`` pools."""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from moveit.exceptions import (
    InsufficientStock,
    InvalidQuantity,
    MaterialNotFound,
    ValidationError,
)
from moveit.permissions import Role, can_assign_without_stock_check
from moveit.services.transaction_log import (
    TYPE_ASSIGNMENT,
    TYPE_COLLECTION,
    TYPE_RETURN,
    TransactionLog,
)

logger = logging.getLogger(__name__)

POOL_NEW = "new"
POOL_OLD = "old"

_POOL_FIELDS = {POOL_NEW: "quantityNew", POOL_OLD: "quantityOld"}


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation, as recorded on transactions."""

    username: str | None
    name: str
    role: Role | None = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(username="system", name="System", role=None)


def parse_quantity(value: Any, *, field: str = "quantity") -> int:
    """Coerce a payload quantity to a non-negative int.

    Missing and blank values count as zero. Whole-number floats and numeric
    strings are accepted; anything else raises :class:`InvalidQuantity`.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        raise InvalidQuantity(value, field=field)
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidQuantity(value, field=field)
        quantity = int(value)
    elif isinstance(value, str):
        try:
            quantity = int(value.strip())
        except ValueError:
            raise InvalidQuantity(value, field=field) from None
    else:
        raise InvalidQuantity(value, field=field)

    if quantity < 0:
        raise InvalidQuantity(value, field=field)
    return quantity


def parse_pool(value: Any) -> str:
    """Missing or blank means ``new``; anything but ``new``/``old`` is rejected."""

    if value is None:
        return POOL_NEW
    pool = str(value).strip().lower()
    if not pool:
        return POOL_NEW
    if pool not in _POOL_FIELDS:
        raise ValidationError(
            f"materialType must be new or old (got {value!r})", field="materialType"
        )
    return pool


def other_pool(pool: str) -> str:
    return POOL_OLD if pool == POOL_NEW else POOL_NEW


def _as_count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def normalize_material(material: dict[str, Any]) -> dict[str, Any]:
    """Make sure both pool fields exist and ``quantity`` equals their sum.

    Materials written before the pool split only carry ``quantity``; that
    stock is treated as new.
    """

    has_pools = "quantityNew" in material or "quantityOld" in material
    if has_pools:
        material["quantityNew"] = _as_count(material.get("quantityNew"))
        material["quantityOld"] = _as_count(material.get("quantityOld"))
    else:
        material["quantityNew"] = _as_count(material.get("quantity"))
        material["quantityOld"] = 0
    material["quantity"] = material["quantityNew"] + material["quantityOld"]
    material.setdefault("minThreshold", 0)
    return material


class StockLedger:
    """Deduct and credit operations over the ``materials`` list of a store state.

    Every successful mutation appends exactly one entry to the transaction log
    and leaves ``quantity == quantityNew + quantityOld`` on the material.
    """

    def __init__(self, materials: list[dict[str, Any]], log: TransactionLog) -> None:
        self.materials = materials
        self.log = log

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> "StockLedger":
        materials = state.setdefault("materials", [])
        transactions = state.setdefault("transactions", [])
        for material in materials:
            normalize_material(material)
        return cls(materials, TransactionLog(transactions))

    def find(self, material_id: Any) -> dict[str, Any] | None:
        wanted = str(material_id)
        for material in self.materials:
            if str(material.get("id")) == wanted:
                return material
        return None

    def get(self, material_id: Any) -> dict[str, Any]:
        material = self.find(material_id)
        if material is None:
            raise MaterialNotFound([material_id])
        return material

    def deduct(
        self,
        material_id: Any,
        quantity: Any,
        pool: str,
        actor: Actor,
        *,
        project_id: Any = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Take ``quantity`` units, preferring ``pool`` and falling back to the other.

        Unprivileged actors are refused when the material does not hold enough
        stock in total. Privileged actors may ask for more than is on hand; the
        pools are emptied (never driven negative) and the transaction is
        flagged with ``negativeStockOverride``.
        """

        quantity = parse_quantity(quantity)
        pool = parse_pool(pool)
        material = self.get(material_id)
        if quantity == 0:
            return material

        pool_field = _POOL_FIELDS[pool]
        fallback_field = _POOL_FIELDS[other_pool(pool)]
        available_in_pool = material[pool_field]
        total_available = material["quantityNew"] + material["quantityOld"]

        if not can_assign_without_stock_check(actor.role):
            if available_in_pool < quantity and total_available < quantity:
                raise InsufficientStock(
                    material_id=material.get("id"),
                    material_name=material.get("name", str(material_id)),
                    pool=pool,
                    available_in_pool=available_in_pool,
                    total_available=total_available,
                    required=quantity,
                )

        if available_in_pool >= quantity:
            material[pool_field] = available_in_pool - quantity
        else:
            remaining = quantity - available_in_pool
            material[pool_field] = 0
            material[fallback_field] = max(0, material[fallback_field] - remaining)
        material["quantity"] = material["quantityNew"] + material["quantityOld"]

        deducted = total_available - material["quantity"]
        entry = {
            "type": TYPE_ASSIGNMENT,
            "materialId": material.get("id"),
            "materialName": material.get("name"),
            "quantity": -deducted,
            "materialType": pool,
            "projectId": project_id,
            "performedBy": actor.username,
            "performedByName": actor.name,
            "notes": notes or f"Assigned to project #{project_id} ({pool})",
        }
        if deducted < quantity:
            entry["negativeStockOverride"] = True
            entry["requestedQuantity"] = quantity
            entry["shortfall"] = quantity - deducted
            logger.warning(
                "Stock override on %s: %s requested %s with %s on hand",
                material.get("name"),
                actor.username,
                quantity,
                total_available,
            )
        self.log.append(entry)

        logger.info(
            "Material %s: %s -> %s (assigned %s from %s to project #%s)",
            material.get("name"),
            total_available,
            material["quantity"],
            deducted,
            pool,
            project_id,
        )
        return material

    def credit(
        self,
        material_id: Any,
        quantity: Any,
        actor: Actor,
        *,
        reason: str = TYPE_RETURN,
        pool: str = POOL_OLD,
        project_id: Any = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Add ``quantity`` units back to stock.

        Returned and collected materials are used stock and land in the old
        pool; only the undo of a job assignment puts units back where they
        were taken from.
        """

        if reason not in (TYPE_RETURN, TYPE_COLLECTION):
            raise ValueError(f"Credits are returns or collections, not {reason!r}")

        quantity = parse_quantity(quantity)
        pool = parse_pool(pool)
        material = self.get(material_id)
        if quantity == 0:
            return material

        before = material["quantity"]
        pool_field = _POOL_FIELDS[pool]
        material[pool_field] = material[pool_field] + quantity
        material["quantity"] = material["quantityNew"] + material["quantityOld"]

        if notes is None:
            if reason == TYPE_COLLECTION:
                notes = f"Collected from completed project #{project_id} (added to {pool} inventory)"
            else:
                notes = f"Returned from project #{project_id or 'N/A'} (added to {pool} inventory)"

        self.log.append(
            {
                "type": reason,
                "materialId": material.get("id"),
                "materialName": material.get("name"),
                "quantity": quantity,
                "materialType": pool,
                "projectId": project_id,
                "performedBy": actor.username,
                "performedByName": actor.name,
                "notes": notes,
            }
        )
        logger.info(
            "Material %s: %s -> %s (%s of %s into %s)",
            material.get("name"),
            before,
            material["quantity"],
            reason,
            quantity,
            pool,
        )
        return material

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Undo every ledger and log change made inside the block if it raises."""

        snapshot = copy.deepcopy(self.materials)
        log_length = len(self.log)
        try:
            yield
        except Exception:
            self.materials[:] = snapshot
            self.log.truncate(log_length)
            raise
