"""Pharmacy and doctor records and their positional worksheet layout.

Each worksheet row stores one record.  The column order below is part of the
on-sheet contract: rows are read and written by position, so a column may
only ever be appended at the end of a layout, never reordered.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

ID_RANDOM_LENGTH = 7
_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class ColumnType(Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"


@dataclass(frozen=True)
class SheetColumn:
    field: str
    header: str
    type: ColumnType = ColumnType.TEXT


@dataclass
class Pharmacy:
    id: str
    created_at: str
    email: Optional[str] = None
    phone: Optional[str] = None
    territorio: Optional[str] = None
    pais: Optional[str] = None
    estado: Optional[str] = None
    municipio: Optional[str] = None
    colonia: Optional[str] = None
    calle: Optional[str] = None
    estatus: Optional[str] = None
    codigo_postal: Optional[str] = None
    ruta: Optional[str] = None
    nombre_cuenta: Optional[str] = None
    plantilla_clientes: Optional[str] = None
    folio_tienda: Optional[str] = None
    cedula_profesional: Optional[str] = None
    grupo_cadena: Optional[str] = None
    especialidad: Optional[str] = None
    categoria_medico: Optional[str] = None
    propietario_cuenta: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    google_maps_url: Optional[str] = None
    nombre_brick: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Doctor:
    id: str
    created_at: str
    email: Optional[str] = None
    phone: Optional[str] = None
    estado: Optional[str] = None
    ciudad: Optional[str] = None
    colonia: Optional[str] = None
    calle: Optional[str] = None
    estatus: Optional[str] = None
    codigo_postal: Optional[str] = None
    nombre_cuenta: Optional[str] = None
    especialidad: Optional[str] = None
    nombre_brick: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    google_maps_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _text(field: str, header: str) -> SheetColumn:
    return SheetColumn(field=field, header=header)


def _number(field: str, header: str) -> SheetColumn:
    return SheetColumn(field=field, header=header, type=ColumnType.NUMBER)


_ID = _text("id", "id")
_CREATED_AT = _text("created_at", "createdAt")

PHARMACY_COLUMNS: Tuple[SheetColumn, ...] = (
    _ID,
    _CREATED_AT,
    _text("email", "email"),
    _text("phone", "phone"),
    _text("territorio", "territorio"),
    _text("pais", "pais"),
    _text("estado", "estado"),
    _text("municipio", "municipio"),
    _text("colonia", "colonia"),
    _text("calle", "calle"),
    _text("estatus", "estatus"),
    _text("codigo_postal", "codigoPostal"),
    _text("ruta", "ruta"),
    _text("nombre_cuenta", "nombreCuenta"),
    _text("plantilla_clientes", "plantillaClientes"),
    _text("folio_tienda", "folioTienda"),
    _text("cedula_profesional", "cedulaProfesional"),
    _text("grupo_cadena", "grupoCadena"),
    _text("especialidad", "especialidad"),
    _text("categoria_medico", "categoriaMedico"),
    _text("propietario_cuenta", "propietarioCuenta"),
    _number("lat", "lat"),
    _number("lng", "lng"),
    _text("google_maps_url", "googleMapsUrl"),
    _text("nombre_brick", "nombreBrick"),
)

DOCTOR_COLUMNS: Tuple[SheetColumn, ...] = (
    _ID,
    _CREATED_AT,
    _text("email", "email"),
    _text("phone", "phone"),
    _text("estado", "estado"),
    _text("ciudad", "ciudad"),
    _text("colonia", "colonia"),
    _text("calle", "calle"),
    _text("estatus", "estatus"),
    _text("codigo_postal", "codigoPostal"),
    _text("nombre_cuenta", "nombreCuenta"),
    _text("especialidad", "especialidad"),
    _text("nombre_brick", "nombreBrick"),
    _number("lat", "lat"),
    _number("lng", "lng"),
    _text("google_maps_url", "googleMapsUrl"),
)

MANDATORY_FIELDS = (_ID.field, _CREATED_AT.field)


def _parse_number(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _coerce_from_sheet(column: SheetColumn, value: str) -> Any:
    if column.field in MANDATORY_FIELDS:
        return value or ""
    if column.type is ColumnType.NUMBER:
        return _parse_number(value)
    return value or None


def _coerce_for_sheet(column: SheetColumn, value: Any) -> Any:
    if value is None:
        return ""
    if column.type is ColumnType.NUMBER:
        return value
    return str(value)


def _coerce_input(column: SheetColumn, value: Any) -> Any:
    if value is None or value == "":
        return None
    if column.type is ColumnType.NUMBER:
        if isinstance(value, bool):
            raise ValueError(f"{column.field} must be a number, got {value!r}")
        number = _parse_number(value)
        if number is None:
            raise ValueError(f"{column.field} must be a number, got {value!r}")
        return number
    return str(value)


@dataclass(frozen=True)
class EntityVariant:
    """Describes one record type and the worksheet that stores it."""

    key: str
    singular: str
    plural: str
    entity_type: Type[Any]
    columns: Tuple[SheetColumn, ...]
    tab_setting: str
    aliases: Tuple[str, ...] = ()

    def headers(self) -> List[str]:
        return [column.header for column in self.columns]

    def field_names(self) -> List[str]:
        return [column.field for column in self.columns]

    def column_for(self, name: str) -> Optional[SheetColumn]:
        for column in self.columns:
            if name in (column.field, column.header):
                return column
        return None

    def tab_title(self, settings: Any) -> str:
        return str(getattr(settings, self.tab_setting))

    def row_to_entity(self, row: Sequence[Any]) -> Any:
        """Map a worksheet row to an entity; short rows leave fields empty."""

        values: Dict[str, Any] = {}
        for index, column in enumerate(self.columns):
            cell = row[index] if index < len(row) else ""
            cell = "" if cell is None else str(cell)
            values[column.field] = _coerce_from_sheet(column, cell)
        return self.entity_type(**values)

    def entity_to_row(self, entity: Any) -> List[Any]:
        """Return the positional row for ``entity``; empty values become ``""``."""

        return [_coerce_for_sheet(column, getattr(entity, column.field)) for column in self.columns]

    def build(self, partial: Mapping[str, Any], *, record_id: str, created_at: str) -> Any:
        """Complete ``partial`` with the synthesized ``id`` and ``created_at``."""

        values: Dict[str, Any] = {}
        for name, value in partial.items():
            column = self.column_for(name)
            if column is None:
                raise ValueError(f"Unknown {self.singular} field: {name}")
            if column.field in MANDATORY_FIELDS:
                raise ValueError(f"{column.field} is assigned automatically and cannot be set")
            values[column.field] = _coerce_input(column, value)
        values["id"] = record_id
        values["created_at"] = created_at
        return self.entity_type(**values)


PHARMACY = EntityVariant(
    key="pharmacy",
    singular="pharmacy",
    plural="pharmacies",
    entity_type=Pharmacy,
    columns=PHARMACY_COLUMNS,
    tab_setting="pharmacies_tab",
    aliases=("pharmacies", "farmacia", "farmacias"),
)

DOCTOR = EntityVariant(
    key="doctor",
    singular="doctor",
    plural="doctors",
    entity_type=Doctor,
    columns=DOCTOR_COLUMNS,
    tab_setting="doctors_tab",
    aliases=("doctors", "medico", "medicos"),
)

VARIANTS: Tuple[EntityVariant, ...] = (PHARMACY, DOCTOR)


def variant_for(name: str) -> EntityVariant:
    """Return the variant registered under ``name`` or one of its aliases."""

    candidate = (name or "").strip().lower()
    for variant in VARIANTS:
        if candidate == variant.key or candidate in variant.aliases:
            return variant
    raise ValueError(f"Unknown record type: {name!r}")


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    if value == 0:
        return "0"
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_id(
    now_ms: Optional[int] = None, rng: Optional[Callable[[], float]] = None
) -> str:
    """Return ``<base36 timestamp>-<base36 random>``; unique with high probability."""

    timestamp = int(time.time() * 1000) if now_ms is None else now_ms
    draw = rng or random.random
    suffix = "".join(_BASE36_ALPHABET[int(draw() * 36) % 36] for _ in range(ID_RANDOM_LENGTH))
    return f"{to_base36(timestamp)}-{suffix}"


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """Return ``moment`` as a UTC ISO-8601 string with millisecond precision."""

    value = moment or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "ColumnType",
    "DOCTOR",
    "DOCTOR_COLUMNS",
    "Doctor",
    "EntityVariant",
    "PHARMACY",
    "PHARMACY_COLUMNS",
    "Pharmacy",
    "SheetColumn",
    "VARIANTS",
    "generate_id",
    "iso_timestamp",
    "to_base36",
    "variant_for",
]
