"""
Typed exceptions for the MoveIt247 backend.

Every error carries a machine-readable ``code``, the HTTP status the API
surfaces it with, and structured details so callers never have to parse the
message text::

    MoveItError
    |
    +-- ValidationError         400  VALIDATION_ERROR
    |   +-- InvalidQuantity     400  INVALID_QUANTITY
    +-- InsufficientStock       400  INSUFFICIENT_STOCK
    +-- InvalidCredentials      401  INVALID_CREDENTIALS
    +-- AccessDenied            403  ACCESS_DENIED
    +-- NotFound                404  NOT_FOUND
    |   +-- MaterialNotFound    404  MATERIAL_NOT_FOUND
    +-- Conflict                409  CONFLICT
        +-- AlreadyReceived     409  ALREADY_RECEIVED

The ``errors`` blueprint turns any of these into a JSON response of the form
``{"error": <message>, "code": <code>, **details}``.
"""

from __future__ import annotations

from typing import Any, Iterable


class MoveItError(Exception):
    """Base class for every domain error raised by the backend."""

    code = "MOVEIT_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(MoveItError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, **details)
        self.field = field


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"

    def __init__(self, value: Any, *, field: str = "quantity") -> None:
        super().__init__(
            f"Quantity must be a non-negative whole number (got {value!r})",
            field=field,
        )
        self.value = value


class InsufficientStock(MoveItError):
    code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(
        self,
        *,
        material_id: Any,
        material_name: str,
        pool: str,
        available_in_pool: int,
        total_available: int,
        required: int,
    ) -> None:
        super().__init__(
            f"Insufficient stock for {material_name}. "
            f"Available {pool}: {available_in_pool}, "
            f"Total: {total_available}, Required: {required}",
            materialId=material_id,
            materialName=material_name,
            materialType=pool,
            availableInPool=available_in_pool,
            totalAvailable=total_available,
            required=required,
        )
        self.material_id = material_id
        self.material_name = material_name
        self.pool = pool
        self.available_in_pool = available_in_pool
        self.total_available = total_available
        self.required = required


class InvalidCredentials(MoveItError):
    code = "INVALID_CREDENTIALS"
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class AccessDenied(MoveItError):
    code = "ACCESS_DENIED"
    status_code = 403

    def __init__(self, username: str | None, allowed_roles: Iterable[str] = ()) -> None:
        super().__init__(
            "Access denied",
            username=username,
            allowedRoles=sorted(allowed_roles),
        )
        self.username = username


class NotFound(MoveItError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, kind: str, identifier: Any) -> None:
        super().__init__(f"{kind} not found", resource=kind, id=identifier)
        self.kind = kind
        self.identifier = identifier


class MaterialNotFound(NotFound):
    code = "MATERIAL_NOT_FOUND"

    def __init__(self, material_ids: Iterable[Any]) -> None:
        ids = list(material_ids)
        MoveItError.__init__(
            self,
            "Material with id "
            + ", ".join(str(material_id) for material_id in ids)
            + " not found",
            materialIds=ids,
        )
        self.kind = "Material"
        self.identifier = ids[0] if len(ids) == 1 else ids
        self.material_ids = ids


class Conflict(MoveItError):
    code = "CONFLICT"
    status_code = 409


class AlreadyReceived(Conflict):
    code = "ALREADY_RECEIVED"

    def __init__(self, collection_id: Any) -> None:
        super().__init__("Collection already received", collectionId=collection_id)
        self.collection_id = collection_id
