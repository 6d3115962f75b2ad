"""First-run contents of the operations store."""

from __future__ import annotations

import copy
import logging
from typing import Any

from moveit.services.ledger import normalize_material
from moveit.services.users import ensure_admin_account
from moveit.store import COLLECTION_KEYS, DocumentStore

logger = logging.getLogger(__name__)

MATERIAL_CATALOG: tuple[dict[str, Any], ...] = (
    {"id": 1, "name": "Medium Box", "minThreshold": 10},
    {"id": 2, "name": "Large Box", "minThreshold": 10},
    {"id": 3, "name": "Tapes", "minThreshold": 20},
    {"id": 4, "name": "Cling wrap", "minThreshold": 15},
    {"id": 5, "name": "Blanket", "minThreshold": 5},
    {"id": 6, "name": "Hanger Box", "minThreshold": 10},
    {"id": 7, "name": "Packing paper", "minThreshold": 10},
    {"id": 8, "name": "Bubble wrap", "minThreshold": 10},
)


def catalog_materials() -> list[dict[str, Any]]:
    materials = []
    for entry in MATERIAL_CATALOG:
        material = copy.deepcopy(entry)
        material.update({"quantityNew": 0, "quantityOld": 0, "quantity": 0})
        materials.append(material)
    return materials


def _empty_collection(key: str) -> Any:
    if key in ("users", "tracking"):
        return {}
    if key == "materials":
        return catalog_materials()
    return []


def apply_seed(
    state: dict[str, Any],
    admin_username: str,
    admin_password: str,
    admin_name: str = "Admin User",
) -> dict[str, Any]:
    """Fill in missing collections and bring legacy records up to date."""

    # Older files nested the stock collections under "inventory".
    legacy_inventory = state.pop("inventory", None)
    if isinstance(legacy_inventory, dict):
        for key in ("materials", "transactions", "pendingCollections"):
            if key in legacy_inventory and key not in state:
                state[key] = legacy_inventory[key]

    for key in COLLECTION_KEYS:
        if key not in state or state[key] is None:
            state[key] = _empty_collection(key)

    for material in state["materials"]:
        normalize_material(material)

    ensure_admin_account(state, admin_username, admin_password, admin_name)
    return state


def ensure_seed_data(store: DocumentStore, config: dict[str, Any]) -> None:
    with store.transaction() as state:
        first_run = not state
        apply_seed(
            state,
            config.get("ADMIN_USER", "admin"),
            config.get("ADMIN_PASSWORD", "admin123"),
            config.get("ADMIN_NAME", "Admin User"),
        )
    if first_run:
        logger.info("Seeded new %s store", store.backend)
