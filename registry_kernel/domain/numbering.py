"""
Application and certificate number formatting.

The allocator owns uniqueness and monotonicity of the serial; the exact
token set around it belongs to a ``NumberFormatter``.  The default
formatter produces ``{KIND-CODE}-{YEAR}-{DISTRICT-CODE}-{SERIAL:06d}``
for applications (``HP-HS-2025-SML-000005``) and
``{PREFIX}-{YEAR}-{SERIAL:06d}`` for certificates.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Protocol, runtime_checkable

from registry_kernel.domain.statuses import ApplicationKind

_TRAILING_DIGITS = re.compile(r"([0-9]+)$")

DEFAULT_KIND_CODES: Mapping[ApplicationKind, str] = MappingProxyType({
    ApplicationKind.NEW_REGISTRATION: "HP-HS",
    ApplicationKind.ADD_ROOMS: "HP-AR",
    ApplicationKind.DELETE_ROOMS: "HP-DR",
    ApplicationKind.RENEWAL: "HP-RN",
    ApplicationKind.CANCELLATION: "HP-CN",
    ApplicationKind.LEGACY_RC: "HP-LR",
})

DEFAULT_DISTRICT_CODES: Mapping[str, str] = MappingProxyType({
    "bilaspur": "BLP",
    "chamba": "CHM",
    "hamirpur": "HMR",
    "kangra": "KGR",
    "kinnaur": "KNR",
    "kullu": "KLU",
    "lahaul and spiti": "LHS",
    "mandi": "MND",
    "shimla": "SML",
    "sirmaur": "SMR",
    "solan": "SLN",
    "una": "UNA",
})


def parse_serial(number: str | None) -> int | None:
    """Trailing digit run of a formatted number, or None."""
    if not number:
        return None
    match = _TRAILING_DIGITS.search(number.strip())
    if match is None:
        return None
    return int(match.group(1))


@runtime_checkable
class NumberFormatter(Protocol):
    def application_number(
        self, serial: int, kind: ApplicationKind, district: str, year: int
    ) -> str: ...

    def certificate_number(self, serial: int, year: int) -> str: ...


class DefaultNumberFormatter:
    """Formatter driven by kind and district code tables."""

    def __init__(
        self,
        kind_codes: Mapping[ApplicationKind, str] | None = None,
        district_codes: Mapping[str, str] | None = None,
        certificate_prefix: str = "HP-HST",
    ) -> None:
        self._kind_codes = dict(kind_codes or DEFAULT_KIND_CODES)
        self._district_codes = {
            k.strip().lower(): v for k, v in (district_codes or DEFAULT_DISTRICT_CODES).items()
        }
        self._certificate_prefix = certificate_prefix

    def district_code(self, district: str) -> str:
        key = district.strip().lower()
        if key in self._district_codes:
            return self._district_codes[key]
        letters = re.sub(r"[^A-Za-z0-9]", "", district).upper()
        return (letters[:3] or "GEN").ljust(3, "X")

    def application_number(
        self, serial: int, kind: ApplicationKind, district: str, year: int
    ) -> str:
        kind_code = self._kind_codes[ApplicationKind(kind)]
        return f"{kind_code}-{year}-{self.district_code(district)}-{serial:06d}"

    def certificate_number(self, serial: int, year: int) -> str:
        return f"{self._certificate_prefix}-{year}-{serial:06d}"
