"""
app/validators/record_validator.py

Row-level validation of game-plan import records against a master-data
snapshot.

Every row runs the same ordered checks and nothing short-circuits:

    1. header alias notices, then required-field presence
    2. referential integrity (unknown Campaign/Range go to the auto-create policy)
    3. cross-field relationships, including bindings made by earlier rows
    4. duplicate rows
    5. dates
    6. numeric fields and media metric rules

Rows are validated in file order; checks that compare a row with earlier
rows only ever cite the first occurrence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Sequence

from app.config import ImportValidationSettings, get_auto_create_settings, get_import_validation_settings
from app.domain.import_records import ImportRecord, Severity, ValidationContext, ValidationIssue
from app.domain.master_data import MasterDataSnapshot, lookup_key
from app.mappers.header_mapper import FIELD_REGISTRY, MONTH_FIELDS, FieldKind, field_for_name
from app.validators.auto_create_policy import AutoCreatePolicy, PolicyDecision
from app.validators.value_parsers import parse_date, parse_number, parse_percentage

logger = logging.getLogger(__name__)

BASE_REQUIRED_FIELDS: tuple[str, ...] = (
    "Campaign",
    "Range",
    "Media Subtype",
    "Start Date",
    "End Date",
)

_WARNING_REFERENCES: tuple[tuple[str, str, str], ...] = (
    ("PM Type", "pm_type", "PM type"),
    ("Business Unit", "business_unit", "business unit"),
)

# Substring markers on lower-cased Media / Media Subtype values.
_TV_MARKERS = ("tv", "television")
_REACH_3_MARKERS = ("open tv", "paid tv")
_DIGITAL_SUBTYPE_MARKERS = ("display", "digital", "video", "social")
_OOH_MARKERS = ("ooh", "out of home", "outdoor")

WOFF_TOLERANCE = 0.01


@dataclass
class _RowState:
    """
    Per-row facts shared between check phases.
    """

    country: str | None = None
    sub_region: str | None = None
    category: str | None = None
    range_name: str | None = None
    range_usable: bool = False
    campaign: str | None = None
    media: str | None = None
    media_subtype: str | None = None


@dataclass
class _FileState:
    """
    What earlier rows of the same file established.

    `first_rows` maps a duplicate key to the first row carrying it;
    `new_campaign_ranges` maps a campaign missing from master data to the
    range (and row) that will own it once imported.
    """

    first_rows: dict[tuple[str, ...], int] = field(default_factory=dict)
    new_campaign_ranges: dict[str, tuple[str, int]] = field(default_factory=dict)


def _duplicate_key(record: ImportRecord) -> tuple[str, ...]:
    parts = [
        lookup_key(value or "")
        for value in (
            record.campaign,
            record.country,
            record.category,
            record.range,
            record.media,
            record.media_subtype,
        )
    ]
    for value in (record.start_date, record.end_date):
        parsed = parse_date(value)
        parts.append(parsed.isoformat() if parsed is not None else lookup_key(value or ""))
    return tuple(parts)


def _contains_any(value: str | None, markers: Sequence[str]) -> bool:
    text = lookup_key(value or "")
    return any(marker in text for marker in markers)


def is_tv_subtype(media_subtype: str | None) -> bool:
    return _contains_any(media_subtype, _TV_MARKERS)


def requires_reach_3(media_subtype: str | None) -> bool:
    return _contains_any(media_subtype, _REACH_3_MARKERS)


def requires_reach_1(media: str | None, media_subtype: str | None) -> bool:
    """
    Digital, Open TV and out-of-home plans must report Total R1+.
    """

    if _contains_any(media, ("digital",)) or _contains_any(media_subtype, _DIGITAL_SUBTYPE_MARKERS):
        return True
    if _contains_any(media_subtype, ("open",)):
        return True
    return _contains_any(media_subtype, _OOH_MARKERS) or _contains_any(media, ("ooh",))


class RecordValidator:
    """
    Validates normalized import records and reports issues by severity.
    """

    def __init__(
        self,
        *,
        settings: ImportValidationSettings,
        policy: AutoCreatePolicy,
    ) -> None:
        self._settings = settings
        self._policy = policy

    def validate_records(
        self,
        records: Sequence[ImportRecord],
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
    ) -> list[ValidationIssue]:
        """
        Validate every record; issues are ordered by row, then by check phase.
        """

        issues: list[ValidationIssue] = []
        file_state = _FileState()
        for row_index, record in enumerate(records):
            issues.extend(self.validate_record(record, row_index, snapshot, context, file_state=file_state))
        logger.info(
            "Validated %d import rows: %d issues (country=%s cycle=%s)",
            len(records),
            len(issues),
            context.country,
            context.financial_cycle,
        )
        return issues

    def validate_record(
        self,
        record: ImportRecord,
        row_index: int,
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
        *,
        file_state: _FileState | None = None,
    ) -> list[ValidationIssue]:
        """
        Validate one record. Without `file_state` the row is checked as if it
        were the only row of its file.
        """

        issues: list[ValidationIssue] = []
        state = _RowState()
        file_state = file_state if file_state is not None else _FileState()

        self._check_aliases(record, row_index, issues)
        self._check_required(record, row_index, context, issues)
        self._check_references(record, row_index, snapshot, context, state, issues)
        self._check_relationships(record, row_index, snapshot, context, state, file_state, issues)
        self._check_duplicate(record, row_index, file_state, issues)
        self._check_dates(record, row_index, context, issues)
        self._check_numbers(record, row_index, issues)
        self._check_extra_cells(record, row_index, issues)
        return issues

    # ------------------------------------------------------------------
    # 1. Headers and required fields
    # ------------------------------------------------------------------

    def _check_aliases(self, record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        for spec in FIELD_REGISTRY:
            header = record.aliased_fields.get(spec.canonical)
            if header is None:
                continue
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name=spec.canonical,
                    severity=Severity.SUGGESTION,
                    message=f"Column '{header}' was read as '{spec.canonical}'. "
                    f"Rename the header to '{spec.canonical}'.",
                    current_value=header,
                )
            )

    def required_fields(self, context: ValidationContext) -> tuple[str, ...]:
        fields: list[str] = list(BASE_REQUIRED_FIELDS)
        if not context.country:
            fields.append("Country")
        for name in self._settings.extra_required_fields:
            spec = field_for_name(name)
            if spec is None:
                logger.warning("Ignoring unknown required field in configuration: %s", name)
                continue
            fields.append(spec.canonical)
        return tuple(dict.fromkeys(fields))

    def _check_required(
        self,
        record: ImportRecord,
        row_index: int,
        context: ValidationContext,
        issues: list[ValidationIssue],
    ) -> None:
        by_canonical = {spec.canonical: spec for spec in FIELD_REGISTRY}
        for canonical in self.required_fields(context):
            if getattr(record, by_canonical[canonical].attribute) is None:
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name=canonical,
                        severity=Severity.CRITICAL,
                        message=f"{canonical} is required.",
                        current_value=None,
                    )
                )

    # ------------------------------------------------------------------
    # 2. Referential integrity
    # ------------------------------------------------------------------

    def _check_references(
        self,
        record: ImportRecord,
        row_index: int,
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
        state: _RowState,
        issues: list[ValidationIssue],
    ) -> None:
        state.country = self._require_known(
            snapshot, "country_or_sub_region", "Country", "country or sub-region",
            record.country, row_index, issues,
        )
        state.sub_region = self._require_known(
            snapshot, "sub_region", "Sub Region", "sub-region", record.sub_region, row_index, issues,
        )
        state.category = self._require_known(
            snapshot, "category", "Category", "category", record.category, row_index, issues,
        )

        self._check_range_reference(record, row_index, snapshot, context, state, issues)
        self._check_campaign_reference(record, row_index, snapshot, context, state, issues)

        state.media = self._require_known(
            snapshot, "media", "Media", "media", record.media, row_index, issues,
        )
        state.media_subtype = self._require_known(
            snapshot, "media_subtype", "Media Subtype", "media subtype", record.media_subtype, row_index, issues,
        )

        for column, attribute, label in _WARNING_REFERENCES:
            value = getattr(record, attribute)
            if value is not None and snapshot.lookup(attribute, value) is None:
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name=column,
                        severity=Severity.WARNING,
                        message=f"Unknown {label} '{value}'.",
                        current_value=value,
                    )
                )

        self._check_archetype(record, row_index, issues)

    def _check_archetype(self, record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        value = record.campaign_archetype
        if value is None:
            return
        allowed = self._settings.campaign_archetypes
        if any(lookup_key(value) == lookup_key(archetype) for archetype in allowed):
            return
        issues.append(
            ValidationIssue(
                row_index=row_index,
                column_name="Campaign Archetype",
                severity=Severity.CRITICAL,
                message=f"Unknown campaign archetype '{value}'. Expected one of: {', '.join(allowed)}.",
                current_value=value,
            )
        )

    def _require_known(
        self,
        snapshot: MasterDataSnapshot,
        kind: str,
        column: str,
        label: str,
        value: str | None,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> str | None:
        if value is None:
            return None
        canonical = snapshot.lookup(kind, value)
        if canonical is None:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name=column,
                    severity=Severity.CRITICAL,
                    message=f"Unknown {label} '{value}'.",
                    current_value=value,
                )
            )
        return canonical

    def _check_range_reference(
        self,
        record: ImportRecord,
        row_index: int,
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
        state: _RowState,
        issues: list[ValidationIssue],
    ) -> None:
        if record.range is None:
            return
        known = snapshot.lookup("range", record.range)
        if known is not None:
            state.range_name = known
            state.range_usable = not (
                state.category is not None and not snapshot.range_in_category(state.category, known)
            )
            return

        decision = self._policy.evaluate(
            entity_type="Range",
            name=record.range,
            context=context,
            snapshot=snapshot,
        )
        state.range_usable = decision.accepted
        self._append_decision(decision, "Range", record.range, row_index, issues)

    def _check_campaign_reference(
        self,
        record: ImportRecord,
        row_index: int,
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
        state: _RowState,
        issues: list[ValidationIssue],
    ) -> None:
        if record.campaign is None:
            return
        known = snapshot.lookup("campaign", record.campaign)
        if known is not None:
            state.campaign = known
            return

        decision = self._policy.evaluate(
            entity_type="Campaign",
            name=record.campaign,
            context=context,
            snapshot=snapshot,
            parent_valid=record.range is not None and state.range_usable,
        )
        self._append_decision(decision, "Campaign", record.campaign, row_index, issues)

    @staticmethod
    def _append_decision(
        decision: PolicyDecision,
        column: str,
        value: str,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        severity = decision.severity
        if severity is None or decision.message is None:
            return
        issues.append(
            ValidationIssue(
                row_index=row_index,
                column_name=column,
                severity=severity,
                message=decision.message,
                current_value=value,
            )
        )

    # ------------------------------------------------------------------
    # 3. Relationships
    # ------------------------------------------------------------------

    def _check_relationships(
        self,
        record: ImportRecord,
        row_index: int,
        snapshot: MasterDataSnapshot,
        context: ValidationContext,
        state: _RowState,
        file_state: _FileState,
        issues: list[ValidationIssue],
    ) -> None:
        if state.category is not None and state.range_name is not None:
            if not snapshot.range_in_category(state.category, state.range_name):
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Range",
                        severity=Severity.CRITICAL,
                        message=f"Range '{state.range_name}' does not belong to category '{state.category}'.",
                        current_value=record.range,
                    )
                )

        if state.campaign is not None and record.range is not None:
            bound_range = snapshot.range_of_campaign(state.campaign)
            if bound_range is not None and lookup_key(bound_range) != lookup_key(record.range):
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Campaign",
                        severity=Severity.CRITICAL,
                        message=f"Campaign '{state.campaign}' is linked to range '{bound_range}', "
                        f"not '{record.range}'.",
                        current_value=record.campaign,
                    )
                )

        if state.media is not None and state.media_subtype is not None:
            if not snapshot.subtype_in_media(state.media, state.media_subtype):
                owners = snapshot.media_of_subtype(state.media_subtype)
                owner_text = f" It belongs to '{owners[0]}'." if owners else ""
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Media Subtype",
                        severity=Severity.CRITICAL,
                        message=f"Media subtype '{state.media_subtype}' is not valid for media "
                        f"'{state.media}'.{owner_text}",
                        current_value=record.media_subtype,
                    )
                )

        country_info = snapshot.country(state.country)
        if state.sub_region is not None and country_info is not None and country_info.sub_region is not None:
            if lookup_key(country_info.sub_region) != lookup_key(state.sub_region):
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Sub Region",
                        severity=Severity.CRITICAL,
                        message=f"Sub-region '{state.sub_region}' does not match country "
                        f"'{country_info.name}' (expected '{country_info.sub_region}').",
                        current_value=record.sub_region,
                    )
                )

        if context.country and state.country is not None:
            if not self._country_matches_upload(state.country, context.country, snapshot):
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Country",
                        severity=Severity.CRITICAL,
                        message=f"Country '{state.country}' does not match the selected country "
                        f"'{context.country}'.",
                        current_value=record.country,
                    )
                )

        if context.business_unit and record.business_unit is not None:
            row_unit = snapshot.lookup("business_unit", record.business_unit)
            if row_unit is not None and lookup_key(row_unit) != lookup_key(context.business_unit):
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name="Business Unit",
                        severity=Severity.CRITICAL,
                        message=f"Business unit '{row_unit}' does not match the selected business unit "
                        f"'{context.business_unit}'.",
                        current_value=record.business_unit,
                    )
                )

        self._check_new_campaign_range(record, row_index, state, file_state, issues)

    @staticmethod
    def _country_matches_upload(row_country: str, upload_country: str, snapshot: MasterDataSnapshot) -> bool:
        if lookup_key(row_country) == lookup_key(upload_country):
            return True
        members = snapshot.countries_in(row_country)
        return any(lookup_key(member) == lookup_key(upload_country) for member in members)

    @staticmethod
    def _check_new_campaign_range(
        record: ImportRecord,
        row_index: int,
        state: _RowState,
        file_state: _FileState,
        issues: list[ValidationIssue],
    ) -> None:
        # Only campaigns absent from master data; known ones are bound by the snapshot.
        if state.campaign is not None or record.campaign is None or record.range is None:
            return
        key = lookup_key(record.campaign)
        bound = file_state.new_campaign_ranges.get(key)
        if bound is None:
            file_state.new_campaign_ranges[key] = (record.range, row_index)
            return
        bound_range, bound_row = bound
        if lookup_key(bound_range) != lookup_key(record.range):
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="Range",
                    severity=Severity.CRITICAL,
                    message=f"New campaign '{record.campaign}' is assigned to range '{bound_range}' "
                    f"on row {bound_row + 1} and cannot also belong to '{record.range}'.",
                    current_value=record.range,
                )
            )

    # ------------------------------------------------------------------
    # 4. Duplicates
    # ------------------------------------------------------------------

    @staticmethod
    def _check_duplicate(
        record: ImportRecord,
        row_index: int,
        file_state: _FileState,
        issues: list[ValidationIssue],
    ) -> None:
        if record.campaign is None:
            return
        first_row = file_state.first_rows.setdefault(_duplicate_key(record), row_index)
        if first_row == row_index:
            return
        issues.append(
            ValidationIssue(
                row_index=row_index,
                column_name="Campaign",
                severity=Severity.CRITICAL,
                message=f"Duplicate of row {first_row + 1}: same campaign, country, category, range, "
                "media, media subtype and dates.",
                current_value=record.campaign,
            )
        )

    # ------------------------------------------------------------------
    # 5. Dates
    # ------------------------------------------------------------------

    def _check_dates(
        self,
        record: ImportRecord,
        row_index: int,
        context: ValidationContext,
        issues: list[ValidationIssue],
    ) -> None:
        start = self._parse_date_field("Start Date", record.start_date, row_index, issues)
        end = self._parse_date_field("End Date", record.end_date, row_index, issues)

        if start is not None and end is not None and start >= end:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="End Date",
                    severity=Severity.CRITICAL,
                    message=f"End date ({end.isoformat()}) must be after start date ({start.isoformat()}).",
                    current_value=record.end_date,
                )
            )

        if start is not None and end is not None and start.year != end.year:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="End Date",
                    severity=Severity.CRITICAL,
                    message=f"Start and end dates must fall in the same year ({start.year} vs {end.year}).",
                    current_value=record.end_date,
                )
            )

        cycle_year = context.cycle_year
        if not self._settings.enforce_cycle_year or cycle_year is None:
            return
        for column, parsed, raw_value in (
            ("Start Date", start, record.start_date),
            ("End Date", end, record.end_date),
        ):
            if parsed is not None and parsed.year != cycle_year:
                issues.append(
                    ValidationIssue(
                        row_index=row_index,
                        column_name=column,
                        severity=Severity.CRITICAL,
                        message=f"{column} {parsed.isoformat()} is outside financial cycle year {cycle_year}.",
                        current_value=raw_value,
                    )
                )

    @staticmethod
    def _parse_date_field(
        column: str,
        value: str | None,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> date | None:
        if value is None:
            return None
        parsed = parse_date(value)
        if parsed is None:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name=column,
                    severity=Severity.CRITICAL,
                    message=f"Unrecognized date format for {column}: '{value}'.",
                    current_value=value,
                )
            )
        return parsed

    # ------------------------------------------------------------------
    # 6. Numbers
    # ------------------------------------------------------------------

    def _check_numbers(self, record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        for spec in FIELD_REGISTRY:
            value = getattr(record, spec.attribute)
            if value is None:
                continue
            if spec.kind == FieldKind.NUMBER:
                number = parse_number(value)
                if number is None:
                    issues.append(self._number_warning(spec.canonical, value, row_index, "must be a number"))
                elif number < 0:
                    issues.append(self._number_warning(spec.canonical, value, row_index, "must not be negative"))
            elif spec.kind == FieldKind.PERCENTAGE:
                percentage = parse_percentage(value)
                if percentage is None:
                    issues.append(
                        self._number_warning(spec.canonical, value, row_index, "must be a percentage")
                    )
                elif not 0 <= percentage <= 100:
                    issues.append(
                        self._number_warning(spec.canonical, value, row_index, "must be between 0 and 100")
                    )

        self._check_budget_total(record, row_index, issues)
        self._check_burst(record, row_index, issues)
        self._check_weeks(record, row_index, issues)
        self._check_media_metrics(record, row_index, issues)

    @staticmethod
    def _check_burst(record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        burst = parse_number(record.burst)
        # Negative values already carry the generic warning.
        if burst is None or burst < 0:
            return
        if burst < 1 or not burst.is_integer():
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="Burst",
                    severity=Severity.WARNING,
                    message="Burst must be a whole number of 1 or more.",
                    current_value=record.burst,
                )
            )

    @staticmethod
    def _check_weeks(record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        woff = parse_number(record.total_woff)
        weeks = parse_number(record.total_weeks)
        woa = parse_number(record.total_woa)
        if woff is None or weeks is None or woa is None:
            return
        expected = weeks - woa
        if abs(woff - expected) >= WOFF_TOLERANCE:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="Total WOFF",
                    severity=Severity.WARNING,
                    message=f"Total WOFF should equal Total Weeks minus Total WOA ({expected:g}).",
                    current_value=record.total_woff,
                )
            )

    @staticmethod
    def _check_media_metrics(record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        media_label = record.media_subtype or record.media
        if media_label is None:
            return

        def missing(column: str, value: str | None, reason: str) -> None:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name=column,
                    severity=Severity.WARNING,
                    message=f"{column} is required for {reason} '{media_label}'.",
                    current_value=value,
                )
            )

        if is_tv_subtype(record.media_subtype):
            if record.total_trps is None:
                missing("Total TRPs", None, "TV media subtype")
        elif record.total_trps is not None and parse_number(record.total_trps) != 0:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="Total TRPs",
                    severity=Severity.WARNING,
                    message=f"Total TRPs only applies to TV media subtypes, not '{media_label}'.",
                    current_value=record.total_trps,
                )
            )

        if record.total_r3_plus is None and requires_reach_3(record.media_subtype):
            missing("Total R3+ (%)", None, "media subtype")
        if record.total_r1_plus is None and requires_reach_1(record.media, record.media_subtype):
            missing("Total R1+ (%)", None, "media")

    def _check_budget_total(self, record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        budget = parse_number(record.budget)
        if budget is None:
            return
        monthly = [parse_number(getattr(record, spec.attribute)) for spec in MONTH_FIELDS]
        present = [value for value in monthly if value is not None]
        if not present:
            return
        monthly_total = sum(present)
        if abs(monthly_total - budget) > self._settings.budget_sum_tolerance:
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name="Budget",
                    severity=Severity.WARNING,
                    message=f"Monthly budgets sum to {monthly_total:,.2f} but Budget is {budget:,.2f}.",
                    current_value=record.budget,
                )
            )

    @staticmethod
    def _number_warning(column: str, value: str, row_index: int, problem: str) -> ValidationIssue:
        return ValidationIssue(
            row_index=row_index,
            column_name=column,
            severity=Severity.WARNING,
            message=f"{column} {problem}.",
            current_value=value,
        )

    def _check_extra_cells(self, record: ImportRecord, row_index: int, issues: list[ValidationIssue]) -> None:
        for column, value in record.extra_values.items():
            issues.append(
                ValidationIssue(
                    row_index=row_index,
                    column_name=column,
                    severity=Severity.WARNING,
                    message="Row has more cells than the header row; this value will be ignored.",
                    current_value=value,
                )
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_record_validator() -> RecordValidator:
    """
    Build and cache the record validator with env-driven settings.
    """

    return RecordValidator(
        settings=get_import_validation_settings(),
        policy=AutoCreatePolicy(settings=get_auto_create_settings()),
    )


def validate_records(
    records: Sequence[ImportRecord],
    snapshot: MasterDataSnapshot,
    context: ValidationContext,
) -> list[ValidationIssue]:
    return get_record_validator().validate_records(records, snapshot, context)
