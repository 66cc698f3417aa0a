"""Customer and Company records with validation and lifecycle transitions.

Lifecycle:
    created (pending) ──update──> ... ──soft_delete──> inactive + deletedAt
                                   <──restore──────── (active, deletedAt cleared)

Records are never hard-deleted. Wire names (JSON, storage documents) are
camelCase; attribute names are snake_case. Payload parsing accepts both.
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Optional

from partner_bff.core.exceptions import ValidationError

IDENTIFICATION_MAX_LENGTH = 25
NAME_MAX_LENGTH = 50
LASTNAME_MAX_LENGTH = 50
ALIAS_MAX_LENGTH = 100
ADDRESS_MAX_LENGTH = 250

_WIRE_NAMES = {
    "create_date": "createDate",
    "update_date": "updateDate",
    "deleted_at": "deletedAt",
    "date_born": "dateBorn",
}
_ATTRIBUTE_NAMES = {wire: attr for attr, wire in _WIRE_NAMES.items()}


class EntityStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class _Unset:
    """Marker for fields absent from an update payload."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


# ─────────────────────────────────────────────────────────────────────────────
# Field helpers
# ─────────────────────────────────────────────────────────────────────────────

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def wire_name(attribute: str) -> str:
    return _WIRE_NAMES.get(attribute, attribute)


def attribute_name(key: str) -> str:
    return _ATTRIBUTE_NAMES.get(key, key)


def check_bounded_string(value: Any, field_name: str, max_length: int) -> None:
    """Require a non-blank string no longer than ``max_length``.

    Raises:
        ValidationError: If value is missing, blank, not a string or too long
    """
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must not exceed {max_length} characters")


def parse_status(value: Any) -> EntityStatus:
    if isinstance(value, EntityStatus):
        return value
    try:
        return EntityStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in EntityStatus)
        raise ValidationError(f"status must be one of: {allowed}")


def parse_gender(value: Any) -> Gender:
    if isinstance(value, Gender):
        return value
    if value is None:
        raise ValidationError("gender is required")
    try:
        return Gender(value)
    except ValueError:
        allowed = ", ".join(g.value for g in Gender)
        raise ValidationError(f"gender must be one of: {allowed}")


def parse_date(value: Any, field_name: str) -> date:
    """Parse an ISO date (``YYYY-MM-DD``); a full ISO timestamp is truncated to its date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def serialize_value(value: Any) -> Any:
    """Convert an attribute value to its JSON form."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Update payloads
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class EntityChanges:
    """Partial update: every field defaults to UNSET (not supplied)."""

    identification: Any = UNSET
    status: Any = UNSET

    def supplied(self) -> dict[str, Any]:
        """Return the supplied fields keyed by attribute name."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def to_wire(self) -> dict[str, Any]:
        """Supplied fields keyed by wire name, JSON-ready."""
        return {wire_name(attr): serialize_value(value) for attr, value in self.supplied().items()}

    @classmethod
    def from_payload(cls, payload: Any) -> "EntityChanges":
        """Build changes from a JSON payload keyed by wire or attribute names.

        Raises:
            ValidationError: If payload is not an object or names an unknown/immutable field
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        allowed = {f.name for f in fields(cls)}
        values = {}
        for key, value in payload.items():
            attr = attribute_name(key)
            if attr not in allowed:
                raise ValidationError(f"Unknown or read-only field: {key}")
            values[attr] = value
        return cls(**values)


@dataclass
class CustomerChanges(EntityChanges):
    name: Any = UNSET
    lastname: Any = UNSET
    date_born: Any = UNSET
    gender: Any = UNSET


@dataclass
class CompanyChanges(EntityChanges):
    name: Any = UNSET
    alias: Any = UNSET
    address: Any = UNSET


# ─────────────────────────────────────────────────────────────────────────────
# Entities
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class LifecycleEntity:
    """Fields and transitions shared by every soft-deletable record."""

    kind: ClassVar[str] = "entity"
    label: ClassVar[str] = "Entity"
    changes_type: ClassVar[type] = EntityChanges

    identification: str = ""
    status: EntityStatus = EntityStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    create_date: datetime = field(default_factory=utcnow)
    update_date: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.update_date is None:
            self.update_date = self.create_date

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    # -- validation -----------------------------------------------------------

    def validate_identification(self) -> None:
        check_bounded_string(self.identification, "identification", IDENTIFICATION_MAX_LENGTH)

    def validate_status(self) -> None:
        if not isinstance(self.status, EntityStatus):
            parse_status(self.status)

    def validate(self) -> None:
        """Run every field validator (used on create)."""
        for f in fields(self):
            validator = getattr(self, f"validate_{f.name}", None)
            if validator is not None:
                validator()

    @classmethod
    def _coerce(cls, attribute: str, value: Any) -> Any:
        """Convert a payload value to its attribute type; strings pass through to validate_*."""
        if attribute == "status":
            return parse_status(value)
        return value

    # -- transitions ----------------------------------------------------------

    def touch(self) -> None:
        """Refresh update_date, keeping it strictly increasing."""
        now = utcnow()
        if self.update_date is not None and now <= self.update_date:
            now = self.update_date + timedelta(microseconds=1)
        self.update_date = now

    def soft_delete(self) -> None:
        self.touch()
        self.deleted_at = self.update_date
        self.status = EntityStatus.INACTIVE

    def restore(self) -> None:
        self.deleted_at = None
        self.status = EntityStatus.ACTIVE
        self.touch()

    @classmethod
    def check_changes(cls, changes: EntityChanges, base: Optional["LifecycleEntity"] = None) -> dict[str, Any]:
        """Coerce and validate the supplied fields on a scratch copy of base.

        Without a base a blank instance is used, so no stored record is needed.

        Raises:
            ValidationError: If any supplied field is invalid
        """
        coerced = {attr: cls._coerce(attr, value) for attr, value in changes.supplied().items()}
        candidate = replace(base if base is not None else cls(), **coerced)
        for attr in coerced:
            getattr(candidate, f"validate_{attr}")()
        return {attr: getattr(candidate, attr) for attr in coerced}

    def update(self, changes: EntityChanges) -> None:
        """Apply supplied fields after validating all of them.

        A failing field leaves this entity untouched.

        Raises:
            ValidationError: If any supplied field is invalid
        """
        coerced = self.check_changes(changes, self)
        for attr, value in coerced.items():
            setattr(self, attr, value)
        self.touch()

    # -- serialization --------------------------------------------------------

    @classmethod
    def from_payload(cls, payload: Any) -> "LifecycleEntity":
        """Build and validate a new entity from a create payload.

        Raises:
            ValidationError: On unknown fields or any invalid value
        """
        changes = cls.changes_type.from_payload(payload)
        values = {attr: cls._coerce(attr, value) for attr, value in changes.supplied().items()}
        entity = cls(**values)
        entity.validate()
        return entity

    def to_dict(self) -> dict[str, Any]:
        return {wire_name(f.name): serialize_value(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LifecycleEntity":
        """Rebuild an entity from its stored wire form (no field validation)."""
        values = {}
        for f in fields(cls):
            key = wire_name(f.name)
            if key in data:
                raw = data[key]
            elif f.name in data:
                raw = data[f.name]
            else:
                continue
            values[f.name] = cls._load(f.name, raw)
        return cls(**values)

    @classmethod
    def _load(cls, attribute: str, raw: Any) -> Any:
        if attribute in ("create_date", "update_date", "deleted_at"):
            return parse_timestamp(raw)
        if attribute == "status":
            return EntityStatus(raw)
        return raw


@dataclass
class Customer(LifecycleEntity):
    kind: ClassVar[str] = "customer"
    label: ClassVar[str] = "Customer"
    changes_type: ClassVar[type] = CustomerChanges

    name: str = ""
    lastname: str = ""
    date_born: Optional[date] = None
    gender: Optional[Gender] = None

    def validate_name(self) -> None:
        check_bounded_string(self.name, "name", NAME_MAX_LENGTH)

    def validate_lastname(self) -> None:
        check_bounded_string(self.lastname, "lastname", LASTNAME_MAX_LENGTH)

    def validate_date_born(self) -> None:
        if not isinstance(self.date_born, date) or isinstance(self.date_born, datetime):
            raise ValidationError("dateBorn is required")

    def validate_gender(self) -> None:
        if not isinstance(self.gender, Gender):
            parse_gender(self.gender)

    @classmethod
    def _coerce(cls, attribute: str, value: Any) -> Any:
        if attribute == "date_born":
            return parse_date(value, "dateBorn")
        if attribute == "gender":
            return parse_gender(value)
        return super()._coerce(attribute, value)

    @classmethod
    def _load(cls, attribute: str, raw: Any) -> Any:
        if attribute == "date_born":
            return parse_date(raw, "dateBorn") if raw else None
        if attribute == "gender":
            return Gender(raw) if raw else None
        return super()._load(attribute, raw)


@dataclass
class Company(LifecycleEntity):
    kind: ClassVar[str] = "company"
    label: ClassVar[str] = "Company"
    changes_type: ClassVar[type] = CompanyChanges

    name: str = ""
    alias: str = ""
    address: str = ""

    def validate_name(self) -> None:
        check_bounded_string(self.name, "name", NAME_MAX_LENGTH)

    def validate_alias(self) -> None:
        check_bounded_string(self.alias, "alias", ALIAS_MAX_LENGTH)

    def validate_address(self) -> None:
        check_bounded_string(self.address, "address", ADDRESS_MAX_LENGTH)
