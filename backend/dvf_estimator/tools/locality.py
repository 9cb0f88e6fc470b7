"""Postal code → locality (departement) resolution"""

from __future__ import annotations

import re
from dataclasses import dataclass

_POSTAL_CODE_RE = re.compile(r"^\d{5}$")

# Corsica: 200xx-201xx → Corse-du-Sud, 202xx-206xx → Haute-Corse
_CORSICA_SOUTH_MAX = 201


@dataclass(frozen=True)
class Locality:
    postal_code: str
    departement: str


def departement_from_postal_code(postal_code: str) -> str | None:
    """Derive the DVF ``code_departement`` of a postal code.

    Examples:
        >>> departement_from_postal_code("76000")
        '76'
        >>> departement_from_postal_code("20090")
        '2A'
        >>> departement_from_postal_code("97200")
        '972'
    """
    code = (postal_code or "").strip()
    if not _POSTAL_CODE_RE.match(code):
        return None
    if code.startswith("00"):
        return None
    if code.startswith("20"):
        return "2A" if int(code[:3]) <= _CORSICA_SOUTH_MAX else "2B"
    if code.startswith("97") or code.startswith("98"):
        return code[:3]
    return code[:2]


def resolve_locality(postal_code: str) -> Locality | None:
    departement = departement_from_postal_code(postal_code)
    if departement is None:
        return None
    return Locality(postal_code=postal_code.strip(), departement=departement)
