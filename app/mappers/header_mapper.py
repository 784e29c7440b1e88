"""
app/mappers/header_mapper.py

Resolves game-plan CSV headers onto the fixed logical field registry and
builds typed import records from raw rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from app.domain.import_records import ImportRecord

EXTRA_CELL_PREFIX = "__extra_"


class FieldKind:
    TEXT = "text"
    DATE = "date"
    NUMBER = "number"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class FieldSpec:
    """
    One logical import field.
    """

    canonical: str
    attribute: str
    kind: str = FieldKind.TEXT
    aliases: tuple[str, ...] = ()


FIELD_REGISTRY: tuple[FieldSpec, ...] = (
    FieldSpec("Year", "year", FieldKind.TEXT, ("ABP Year", "Plan Year")),
    FieldSpec("Sub Region", "sub_region", FieldKind.TEXT, ("SubRegion", "Sub-Region")),
    FieldSpec("Country", "country", FieldKind.TEXT, ("Market",)),
    FieldSpec("Category", "category", FieldKind.TEXT, ("Product Category",)),
    FieldSpec("Range", "range", FieldKind.TEXT, ("Product Range", "Brand Range")),
    FieldSpec("Campaign", "campaign", FieldKind.TEXT, ("Campaign Name",)),
    FieldSpec("Campaign Archetype", "campaign_archetype", FieldKind.TEXT, ("Archetype",)),
    FieldSpec("Media", "media", FieldKind.TEXT, ("Media Type",)),
    FieldSpec("Media Subtype", "media_subtype", FieldKind.TEXT, ("Media Sub-Type", "Sub Type", "Subtype")),
    FieldSpec("Start Date", "start_date", FieldKind.DATE, ("Initial Date", "Start", "From Date")),
    FieldSpec("End Date", "end_date", FieldKind.DATE, ("Finish Date", "End", "To Date")),
    FieldSpec("Budget", "budget", FieldKind.NUMBER, ("Total Budget",)),
    FieldSpec("Jan", "jan", FieldKind.NUMBER, ("January",)),
    FieldSpec("Feb", "feb", FieldKind.NUMBER, ("February",)),
    FieldSpec("Mar", "mar", FieldKind.NUMBER, ("March",)),
    FieldSpec("Apr", "apr", FieldKind.NUMBER, ("April",)),
    FieldSpec("May", "may", FieldKind.NUMBER, ()),
    FieldSpec("Jun", "jun", FieldKind.NUMBER, ("June",)),
    FieldSpec("Jul", "jul", FieldKind.NUMBER, ("July",)),
    FieldSpec("Aug", "aug", FieldKind.NUMBER, ("August",)),
    FieldSpec("Sep", "sep", FieldKind.NUMBER, ("Sept", "September")),
    FieldSpec("Oct", "oct", FieldKind.NUMBER, ("October",)),
    FieldSpec("Nov", "nov", FieldKind.NUMBER, ("November",)),
    FieldSpec("Dec", "dec", FieldKind.NUMBER, ("December",)),
    FieldSpec("Burst", "burst", FieldKind.NUMBER, ("Bursts",)),
    FieldSpec("PM Type", "pm_type", FieldKind.TEXT, ("PMType", "PM")),
    FieldSpec("Business Unit", "business_unit", FieldKind.TEXT, ("BU",)),
    FieldSpec("Total TRPs", "total_trps", FieldKind.NUMBER, ("TRPs", "TRP", "Total TRP")),
    FieldSpec("Total R1+ (%)", "total_r1_plus", FieldKind.PERCENTAGE, ("R1+", "Reach 1+", "R1+ (%)", "Total R1+")),
    FieldSpec("Total R3+ (%)", "total_r3_plus", FieldKind.PERCENTAGE, ("R3+", "Reach 3+", "R3+ (%)", "Total R3+")),
    FieldSpec("Total Weeks", "total_weeks", FieldKind.NUMBER, ("Weeks",)),
    FieldSpec("Total WOA", "total_woa", FieldKind.NUMBER, ("WOA", "Weeks On Air")),
    FieldSpec("Total WOFF", "total_woff", FieldKind.NUMBER, ("WOFF", "Weeks Off Air")),
    FieldSpec("Playbook ID", "playbook_id", FieldKind.TEXT, ("Playbook", "PlaybookId")),
)

FIELDS_BY_CANONICAL: dict[str, FieldSpec] = {spec.canonical: spec for spec in FIELD_REGISTRY}

MONTH_FIELDS: tuple[FieldSpec, ...] = FIELD_REGISTRY[12:24]


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.
    """

    return "".join(ch for ch in header.strip().lower() if ch.isalnum())


def field_for_name(name: str) -> FieldSpec | None:
    """
    Return the registry entry whose canonical name matches `name` loosely.
    """

    key = normalize_header(name)
    for spec in FIELD_REGISTRY:
        if normalize_header(spec.canonical) == key:
            return spec
    return None


@dataclass(frozen=True)
class HeaderResolution:
    """
    Final header-to-field mapping for one upload.
    """

    field_to_header: dict[str, str]
    aliased_fields: dict[str, str]
    unmapped_columns: tuple[str, ...]


_ALIAS_KEYS: dict[str, frozenset[str]] = {
    spec.canonical: frozenset(
        {normalize_header(spec.canonical), *(normalize_header(alias) for alias in spec.aliases)}
    )
    for spec in FIELD_REGISTRY
}


def resolve_headers(headers: Sequence[str]) -> HeaderResolution:
    """
    Map CSV headers onto logical fields.

    Exact matches (case-insensitive, trimmed canonical name) are resolved
    first and always win; remaining fields take the first header whose
    normalized form equals the canonical name or one of its aliases.
    """

    field_to_header: dict[str, str] = {}
    aliased_fields: dict[str, str] = {}
    used: set[str] = set()

    for spec in FIELD_REGISTRY:
        target = spec.canonical.casefold()
        for header in headers:
            if header in used or header.startswith(EXTRA_CELL_PREFIX):
                continue
            if header.strip().casefold() == target:
                field_to_header[spec.canonical] = header
                used.add(header)
                break

    for spec in FIELD_REGISTRY:
        if spec.canonical in field_to_header:
            continue
        keys = _ALIAS_KEYS[spec.canonical]
        for header in headers:
            if header in used or header.startswith(EXTRA_CELL_PREFIX):
                continue
            if normalize_header(header) in keys:
                field_to_header[spec.canonical] = header
                aliased_fields[spec.canonical] = header
                used.add(header)
                break

    unmapped = tuple(header for header in headers if header not in used)
    return HeaderResolution(
        field_to_header=field_to_header,
        aliased_fields=aliased_fields,
        unmapped_columns=unmapped,
    )


def normalize_record(
    raw: Mapping[str, str | None],
    resolution: HeaderResolution | None = None,
) -> ImportRecord:
    """
    Build an ImportRecord from one raw CSV row.
    """

    if resolution is None:
        resolution = resolve_headers(list(raw.keys()))

    values: dict[str, str | None] = {}
    for spec in FIELD_REGISTRY:
        header = resolution.field_to_header.get(spec.canonical)
        values[spec.attribute] = _clean(raw.get(header)) if header is not None else None

    extra_values = {
        key: cleaned
        for key, value in raw.items()
        if key.startswith(EXTRA_CELL_PREFIX) and (cleaned := _clean(value)) is not None
    }

    return ImportRecord(
        **values,
        aliased_fields=dict(resolution.aliased_fields),
        unmapped_columns=resolution.unmapped_columns,
        extra_values=extra_values,
    )


def normalize_records(records: Sequence[Mapping[str, str | None]]) -> list[ImportRecord]:
    """
    Normalize every row of an upload, resolving headers once per distinct key set.
    """

    resolutions: dict[tuple[str, ...], HeaderResolution] = {}
    normalized: list[ImportRecord] = []
    for raw in records:
        keys = tuple(raw.keys())
        resolution = resolutions.get(keys)
        if resolution is None:
            resolution = resolve_headers(list(keys))
            resolutions[keys] = resolution
        normalized.append(normalize_record(raw, resolution))
    return normalized


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None
