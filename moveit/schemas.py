"""Request payloads parsed once at the HTTP boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from moveit.exceptions import ValidationError
from moveit.services.ledger import parse_pool, parse_quantity


def _require_mapping(payload: Any) -> Mapping[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"{field_name} is required", field=field_name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number", field=field_name) from None


def parse_flag(value: Any) -> bool:
    """Truthiness as the field apps send it: ``true``, ``"yes"`` or ``"true"``."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"yes", "true", "1", "y"}
    if isinstance(value, (int, float)):
        return value != 0
    return False


@dataclass(frozen=True)
class MaterialLine:
    material_id: Any
    quantity: int
    pool: str = "new"
    name: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "MaterialLine":
        data = _require_mapping(payload)
        material_id = data.get("id", data.get("materialId"))
        if material_id is None or material_id == "":
            raise ValidationError("Each material line needs an id", field="id")
        return cls(
            material_id=material_id,
            quantity=parse_quantity(data.get("quantity")),
            pool=parse_pool(data.get("materialType")),
            name=_clean_str(data.get("name")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.material_id,
            "quantity": self.quantity,
            "materialType": self.pool,
        }
        if self.name:
            payload["name"] = self.name
        return payload


def parse_material_lines(value: Any, *, field_name: str = "materials") -> list[MaterialLine]:
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be a list", field=field_name)
    return [MaterialLine.from_payload(item) for item in value]


@dataclass(frozen=True)
class AssignRequest:
    username: str | None
    project_id: Any
    lines: list[MaterialLine]

    @classmethod
    def from_payload(cls, payload: Any) -> "AssignRequest":
        data = _require_mapping(payload)
        project_id = data.get("projectId")
        if project_id is None or project_id == "":
            raise ValidationError("projectId is required", field="projectId")
        return cls(
            username=_clean_str(data.get("username")),
            project_id=project_id,
            lines=parse_material_lines(data.get("materials")),
        )


@dataclass(frozen=True)
class ReturnRequest:
    username: str | None
    project_id: Any
    lines: list[MaterialLine]
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ReturnRequest":
        data = _require_mapping(payload)
        return cls(
            username=_clean_str(data.get("username")),
            project_id=data.get("projectId") or None,
            lines=parse_material_lines(data.get("materials")),
            notes=_clean_str(data.get("notes")),
        )


@dataclass(frozen=True)
class MaterialRecord:
    material_id: Any
    name: str
    quantity_new: int
    quantity_old: int
    min_threshold: int

    @classmethod
    def from_payload(cls, payload: Any) -> "MaterialRecord":
        data = _require_mapping(payload)
        material_id = data.get("id")
        if material_id is None or material_id == "":
            raise ValidationError("Each material needs an id", field="id")
        name = _clean_str(data.get("name"))
        if not name:
            raise ValidationError("Each material needs a name", field="name")

        if "quantityNew" in data or "quantityOld" in data:
            quantity_new = parse_quantity(data.get("quantityNew"), field="quantityNew")
            quantity_old = parse_quantity(data.get("quantityOld"), field="quantityOld")
        else:
            quantity_new = parse_quantity(data.get("quantity"))
            quantity_old = 0

        return cls(
            material_id=material_id,
            name=name,
            quantity_new=quantity_new,
            quantity_old=quantity_old,
            min_threshold=parse_quantity(data.get("minThreshold"), field="minThreshold"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.material_id,
            "name": self.name,
            "quantityNew": self.quantity_new,
            "quantityOld": self.quantity_old,
            "quantity": self.quantity_new + self.quantity_old,
            "minThreshold": self.min_threshold,
        }


@dataclass(frozen=True)
class JobCompletion:
    rating: float = 0
    signature: str | None = None
    notes: str = ""
    tip_amount: float = 0
    materials_collected: bool = False
    materials_collected_list: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "JobCompletion":
        data = _require_mapping(payload)
        collected_list = data.get("materialsCollectedList") or []
        if not isinstance(collected_list, list):
            raise ValidationError(
                "materialsCollectedList must be a list", field="materialsCollectedList"
            )
        lines = []
        for item in collected_list:
            line = MaterialLine.from_payload(item)
            lines.append({"id": line.material_id, "name": line.name, "quantity": line.quantity})

        try:
            rating = float(data.get("rating") or 0)
            tip_amount = float(data.get("tipAmount") or 0)
        except (TypeError, ValueError):
            raise ValidationError("rating and tipAmount must be numbers") from None

        return cls(
            rating=rating,
            signature=data.get("signature") or None,
            notes=str(data.get("notes") or ""),
            tip_amount=tip_amount,
            materials_collected=parse_flag(data.get("materialsCollected")),
            materials_collected_list=lines,
        )


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    @classmethod
    def from_payload(cls, payload: Any) -> "Credentials":
        data = _require_mapping(payload)
        username = data.get("username")
        password = data.get("password")
        username = username.strip() if isinstance(username, str) else ""
        password = password if isinstance(password, str) else ""
        if not username or not password:
            raise ValidationError("Username and password are required")
        return cls(username=username, password=password)


@dataclass(frozen=True)
class NewUser:
    username: str
    password: str
    role: str
    name: str
    email: str = ""
    phone: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "NewUser":
        data = _require_mapping(payload)
        credentials = Credentials.from_payload(data)
        role = _clean_str(data.get("role"))
        if not role:
            raise ValidationError("role is required", field="role")
        return cls(
            username=credentials.username,
            password=credentials.password,
            role=role,
            name=_clean_str(data.get("name")) or credentials.username,
            email=_clean_str(data.get("email")) or "",
            phone=_clean_str(data.get("phone")) or "",
        )


@dataclass(frozen=True)
class NotificationRequest:
    recipient: str
    title: str
    message: str
    type: str = "system"
    created_by: str = "system"

    @classmethod
    def from_payload(cls, payload: Any) -> "NotificationRequest":
        data = _require_mapping(payload)
        recipient = _clean_str(data.get("recipient"))
        title = _clean_str(data.get("title"))
        message = _clean_str(data.get("message"))
        if not recipient or not title or not message:
            raise ValidationError("recipient, title and message are required")
        return cls(
            recipient=recipient,
            title=title,
            message=message,
            type=_clean_str(data.get("type")) or "system",
            created_by=_clean_str(data.get("createdBy")) or "system",
        )


@dataclass(frozen=True)
class LocationPing:
    username: str
    latitude: float
    longitude: float
    timestamp: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "LocationPing":
        data = _require_mapping(payload)
        username = _clean_str(data.get("username"))
        if not username:
            raise ValidationError("username is required", field="username")
        latitude = _parse_float(data.get("latitude"), "latitude")
        longitude = _parse_float(data.get("longitude"), "longitude")
        if not -90 <= latitude <= 90:
            raise ValidationError("latitude must be between -90 and 90", field="latitude")
        if not -180 <= longitude <= 180:
            raise ValidationError("longitude must be between -180 and 180", field="longitude")
        return cls(
            username=username,
            latitude=latitude,
            longitude=longitude,
            timestamp=_clean_str(data.get("timestamp")),
        )


@dataclass(frozen=True)
class BillRequest:
    description: str
    amount: float
    file_url: str
    notes: str = ""
    attached_by: str | None = None
    attached_at: str | None = None
    date: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "BillRequest":
        data = _require_mapping(payload)
        description = _clean_str(data.get("description"))
        file_url = _clean_str(data.get("fileUrl"))
        if not description or not file_url or data.get("amount") in (None, ""):
            raise ValidationError("description, amount and fileUrl are required")
        amount = _parse_float(data.get("amount"), "amount")
        if amount <= 0:
            raise ValidationError("amount must be greater than zero", field="amount")
        return cls(
            description=description,
            amount=amount,
            file_url=file_url,
            notes=_clean_str(data.get("notes")) or "",
            attached_by=_clean_str(data.get("attachedBy")),
            attached_at=_clean_str(data.get("attachedAt")),
            date=_clean_str(data.get("date")),
        )


@dataclass(frozen=True)
class ProfileUpdate:
    """Editable user fields; only the keys present in the payload are applied."""

    EDITABLE_FIELDS = ("name", "email", "phone", "profileImage")

    changes: dict[str, str] = field(default_factory=dict)
    password: str | None = None
    role: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ProfileUpdate":
        data = _require_mapping(payload)
        changes = {}
        for key in cls.EDITABLE_FIELDS:
            if key in data:
                value = data.get(key)
                changes[key] = "" if value is None else str(value).strip()
        if "name" in changes and not changes["name"]:
            raise ValidationError("name cannot be blank", field="name")

        password = data.get("password")
        if password is not None and (not isinstance(password, str) or not password):
            raise ValidationError("password cannot be blank", field="password")
        return cls(changes=changes, password=password, role=_clean_str(data.get("role")))
