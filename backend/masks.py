"""
Startup Dashboard - Mask Engine

Pure functions over a section schema and a stored row:
- project_visible: reader-facing projection honouring is_visible
- check_editable: rejects writes that change fields whose is_editable bit is off

Neither function touches the database.
"""
from typing import Any, Dict, List, Optional

from errors import EditNotPermitted, InvalidInput
from sections import SectionSchema


def project_visible(schema: SectionSchema, row, full_access: bool) -> Dict[str, Any]:
    """Map of wire name -> value for the fields the reader may see.

    `version` is always emitted. Child collections follow their own bit and
    are not filtered further.
    """
    projection = {"version": row.version}
    mask = row.is_visible or 0
    for spec in schema.fields:
        if full_access or schema.is_set(mask, spec.name):
            projection[spec.name] = schema.read_value(row, spec)
    return projection


def denied_fields(schema: SectionSchema, previous: Dict[str, Any],
                  payload: Dict[str, Any], editable_mask: int) -> List[str]:
    """Fields in the payload that change a value whose editable bit is 0."""
    denied = []
    for spec in schema.fields:
        if spec.name not in payload:
            continue
        if schema.is_set(editable_mask, spec.name):
            continue
        if payload[spec.name] != previous.get(spec.name, schema.empty_value(spec)):
            denied.append(spec.name)
    return denied


def check_editable(schema: SectionSchema, previous_row, payload: Dict[str, Any]) -> None:
    """Raise EditNotPermitted listing locked fields the payload would change.

    With no previous row the default mask applies and everything is editable.
    """
    if previous_row is None:
        return
    denied = denied_fields(
        schema, schema.row_values(previous_row), payload, previous_row.is_editable or 0
    )
    if denied:
        raise EditNotPermitted(denied)


def merge_values(schema: SectionSchema, previous_row, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Values of the next version: payload fields over the previous version's."""
    values = schema.row_values(previous_row)
    values.update(payload)
    return values


def carried_masks(schema: SectionSchema, previous_row) -> Dict[str, int]:
    """Masks for the next version: the previous row's, else the section default."""
    if previous_row is None:
        return {"is_visible": schema.default_mask, "is_editable": schema.default_mask}
    return {"is_visible": previous_row.is_visible, "is_editable": previous_row.is_editable}


def validate_mask(schema: SectionSchema, name: str, value: Optional[Any]) -> Optional[int]:
    """Admin-supplied override; must be an integer within the section's mask width."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer")
    if value < 0 or value > schema.max_mask:
        raise InvalidInput(f"{name} must be between 0 and {schema.max_mask} for {schema.id}")
    return value


def mask_table(schema: SectionSchema, is_visible: int, is_editable: int) -> List[Dict[str, Any]]:
    """Per-field view of a pair of masks, in bit order."""
    return [
        {
            "field": spec.name,
            "bit": i,
            "visible": schema.is_set(is_visible, spec.name),
            "editable": schema.is_set(is_editable, spec.name),
        }
        for i, spec in enumerate(schema.fields)
    ]
