"""Package reference normalization.

Accepts ``"name"``, ``"name==version"``, a mapping with ``name``/``version``
keys, or any object exposing ``name`` (and optionally ``version``)
attributes, such as a ``PackageSpec`` or ``PackageRecord``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pipmanager.models.package import PackageSpec

SpecInput = str | Mapping[str, Any] | PackageSpec


def normalize_spec(value: SpecInput | Any) -> PackageSpec | None:
    """Return a ``PackageSpec``, or ``None`` when no name can be resolved."""
    if isinstance(value, str):
        name, _, version = value.strip().partition("==")
    elif isinstance(value, Mapping):
        name = value.get("name") or ""
        version = value.get("version") or ""
    else:
        name = getattr(value, "name", None) or ""
        version = getattr(value, "version", None) or ""

    name = str(name).strip()
    version = str(version).strip()
    if not name:
        return None
    return PackageSpec(name=name, version=version or None)
