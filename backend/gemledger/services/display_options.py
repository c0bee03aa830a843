# Overview: Structured invoice display options, encoded as JSON only at the storage boundary.

"""
Each toggle controls one field of the customer-facing invoice render:

- show_weight:        stone weight in carats
- show_ratti:         weight converted to ratti
- show_dimensions:    length x width x depth
- show_gem_type:      gem type (e.g. Ruby)
- show_category:      inventory category
- show_color:         color grade
- show_shape:         cut / shape
- show_rashi:         associated rashi (astrological sign)
- show_certificates:  lab certificate numbers
- show_sku:           internal SKU
- show_price:         per-line price breakdown (total is always shown)
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace

from ..errors import ValidationError


@dataclass(frozen=True)
class InvoiceDisplayOptions:
    show_weight: bool = True
    show_ratti: bool = True
    show_dimensions: bool = True
    show_gem_type: bool = True
    show_category: bool = True
    show_color: bool = True
    show_shape: bool = True
    show_rashi: bool = True
    show_certificates: bool = True
    show_sku: bool = True
    show_price: bool = True


def _to_external(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# External (stored / API) key -> dataclass field name, e.g. "showGemType" -> "show_gem_type"
TOGGLE_KEYS = {_to_external(f.name): f.name for f in fields(InvoiceDisplayOptions)}


def from_mapping(data: dict | None, base: InvoiceDisplayOptions | None = None) -> InvoiceDisplayOptions:
    """
    Build options from an external mapping such as {"showWeight": false}.

    Missing toggles keep the value from base (defaults when base is None).
    Unknown keys and non-boolean values are rejected.
    """
    base = base or InvoiceDisplayOptions()
    if data is None:
        return base
    if not isinstance(data, dict):
        raise ValidationError("displayOptions must be an object of booleans")

    changes = {}
    for key, value in data.items():
        attr = TOGGLE_KEYS.get(key)
        if attr is None:
            raise ValidationError(f"Unknown display option: {key}")
        if not isinstance(value, bool):
            raise ValidationError(f"Display option {key} must be true or false")
        changes[attr] = value
    return replace(base, **changes)


def to_mapping(options: InvoiceDisplayOptions) -> dict:
    return {_to_external(name): value for name, value in asdict(options).items()}


def decode(raw: str | None) -> InvoiceDisplayOptions:
    """Decode the stored blob. Blank or unparsable blobs fall back to defaults."""
    if not raw:
        return InvoiceDisplayOptions()
    try:
        data = json.loads(raw)
    except ValueError:
        return InvoiceDisplayOptions()
    if not isinstance(data, dict):
        return InvoiceDisplayOptions()
    # Ignore toggles this version no longer knows about
    known = {k: v for k, v in data.items() if k in TOGGLE_KEYS and isinstance(v, bool)}
    return from_mapping(known)


def encode(options: InvoiceDisplayOptions) -> str:
    return json.dumps(to_mapping(options), sort_keys=True)
