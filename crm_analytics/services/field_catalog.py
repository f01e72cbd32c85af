"""
Field Catalog and field accessor table.

The catalog enumerates every queryable field: a fixed set of native client
attributes followed by the currently active custom fields, each tagged with a
semantic FieldType.

The accessor table maps a field name to a typed extraction function. It is
built once per query from the native schema and the active custom-field
definitions, so resolving a field on a record is a dictionary lookup:

    - Native names resolve to the record attribute.
    - Custom field names resolve to `extraData[name]`, converted according to
      the declared type (numbers parsed from numeric strings, checkboxes to
      bool, dates to datetime). A value that cannot be converted is None.
    - Any other name falls back to the raw `extraData` value, or None.

Unknown names and type mismatches therefore resolve to None and never raise.
"""

import logging
import math
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from crm_analytics.core.repositories import CustomFieldSource
from crm_analytics.models.enums import CustomFieldType, FieldType
from crm_analytics.models.schemas import (
    ClientRecord,
    CustomFieldDefinition,
    FieldDescriptor,
)

logger = logging.getLogger(__name__)

Accessor = Callable[[ClientRecord], Any]


# =============================================================================
# Native Schema
# =============================================================================

# (field name, display name, type, record attribute)
NATIVE_FIELDS = [
    ("Id", "Client ID", FieldType.NUMBER, "id"),
    ("SSN", "SSN", FieldType.TEXT, "ssn"),
    ("Name", "Name", FieldType.TEXT, "name"),
    ("DOB", "Date of Birth", FieldType.DATE, "dob"),
    ("Phone", "Phone", FieldType.TEXT, "phone"),
    ("Email", "Email", FieldType.TEXT, "email"),
    ("CreatedAt", "Created At", FieldType.DATE, "createdAt"),
    ("LastUpdated", "Last Updated", FieldType.DATE, "lastUpdated"),
]

CUSTOM_FIELD_TYPE_MAP: Dict[str, FieldType] = {
    CustomFieldType.TEXT.value: FieldType.TEXT,
    CustomFieldType.NUMBER.value: FieldType.NUMBER,
    CustomFieldType.DATE.value: FieldType.DATE,
    CustomFieldType.CHECKBOX.value: FieldType.BOOLEAN,
    CustomFieldType.DROPDOWN.value: FieldType.ENUMERATED,
}

_TRUE_STRINGS = {"true", "yes", "1", "on", "checked"}
_FALSE_STRINGS = {"false", "no", "0", "off", ""}


def map_custom_field_type(declared: Optional[str]) -> FieldType:
    """Map a stored custom field type to a FieldType; unknown types are Text."""
    return CUSTOM_FIELD_TYPE_MAP.get((declared or "").strip().lower(), FieldType.TEXT)


# =============================================================================
# Value Helpers
# =============================================================================


def is_numeric(value: Any) -> bool:
    """
    True for real numbers usable in arithmetic.

    Booleans are not numbers here, and NaN/inf are rejected so a single bad
    value cannot poison a series.
    """
    if isinstance(value, (bool, np.bool_)):
        return False
    if isinstance(value, (int, float, np.integer, np.floating)):
        return math.isfinite(float(value))
    return False


def _to_number(value: Any) -> Optional[float]:
    if is_numeric(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if is_numeric(value):
        return float(value) != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        parsed = pd.to_datetime(value.strip(), errors="coerce")
        if pd.isna(parsed):
            return None
        return parsed.to_pydatetime()
    return None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


_CONVERTERS: Dict[FieldType, Callable[[Any], Any]] = {
    FieldType.NUMBER: _to_number,
    FieldType.BOOLEAN: _to_bool,
    FieldType.DATE: _to_datetime,
    FieldType.TEXT: _to_text,
    FieldType.ENUMERATED: _to_text,
}


# =============================================================================
# Accessor Table
# =============================================================================


def _native_accessor(attribute: str) -> Accessor:
    return lambda record: getattr(record, attribute)


def _custom_accessor(field_name: str, field_type: FieldType) -> Accessor:
    convert = _CONVERTERS[field_type]

    def accessor(record: ClientRecord) -> Any:
        return convert(record.extraData.get(field_name))

    return accessor


def build_accessor_table(
    custom_fields: Optional[Sequence[CustomFieldDefinition]] = None
) -> Dict[str, Accessor]:
    """
    Build the field name → extraction function table.

    Native attributes are registered first and win over a custom field with the
    same name. Inactive custom fields are skipped.

    Args:
        custom_fields: Custom field definitions from the field collaborator

    Returns:
        Mapping of field name to a function extracting that field from a record
    """
    table: Dict[str, Accessor] = {
        name: _native_accessor(attribute)
        for name, _display, _type, attribute in NATIVE_FIELDS
    }

    for definition in custom_fields or []:
        if not definition.isActive or definition.fieldName in table:
            continue
        table[definition.fieldName] = _custom_accessor(
            definition.fieldName,
            map_custom_field_type(definition.fieldType)
        )

    return table


def resolve_field(
    record: ClientRecord,
    field_name: Optional[str],
    accessors: Dict[str, Accessor]
) -> Any:
    """
    Resolve a field value on a record.

    Native attributes first, then typed custom fields, then the raw
    `extraData` value. Unknown fields resolve to None.
    """
    if not field_name:
        return None
    accessor = accessors.get(field_name)
    if accessor is not None:
        return accessor(record)
    return record.extraData.get(field_name)


# =============================================================================
# Field Catalog
# =============================================================================


class FieldCatalog:
    """Lists queryable fields from the native schema and a custom-field source."""

    def __init__(self, custom_field_source: Optional[CustomFieldSource] = None):
        self.custom_field_source = custom_field_source

    def load_custom_fields(self) -> List[CustomFieldDefinition]:
        """
        Active custom field definitions, or an empty list if loading fails.

        A failing collaborator is logged and otherwise ignored so the catalog
        still offers the native fields.
        """
        if self.custom_field_source is None:
            return []
        try:
            definitions = self.custom_field_source.get_all()
        except Exception as e:
            logger.warning(f"Error loading custom fields, using native fields only: {e}")
            return []
        return [d for d in definitions if d.isActive]

    def list_fields(self) -> List[FieldDescriptor]:
        """
        Native descriptors in fixed order followed by active custom fields.

        Returns:
            Ordered list of field descriptors
        """
        fields = [
            FieldDescriptor(
                fieldName=name,
                displayName=display,
                type=field_type,
                isCustomField=False,
            )
            for name, display, field_type, _attribute in NATIVE_FIELDS
        ]

        for definition in self.load_custom_fields():
            fields.append(
                FieldDescriptor(
                    fieldName=definition.fieldName,
                    displayName=definition.label or definition.fieldName,
                    type=map_custom_field_type(definition.fieldType),
                    isCustomField=True,
                )
            )

        return fields

    def build_accessors(self) -> Dict[str, Accessor]:
        """Accessor table for the currently active custom fields."""
        return build_accessor_table(self.load_custom_fields())


def list_fields(custom_field_source: Optional[CustomFieldSource] = None) -> List[FieldDescriptor]:
    """Convenience wrapper around FieldCatalog.list_fields()."""
    return FieldCatalog(custom_field_source).list_fields()
