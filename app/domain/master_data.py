"""
app/domain/master_data.py

Immutable in-memory view of the reference graph used to validate imports.

Every lookup is case-insensitive and whitespace-tolerant and returns the
canonical spelling stored in the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Mapping


class MasterDataIntegrityError(ValueError):
    """
    Raised when snapshot inputs violate the reference-graph invariants.
    """


def lookup_key(value: str) -> str:
    """
    Case- and whitespace-insensitive comparison key for reference names.
    """

    return " ".join(value.split()).casefold()


@dataclass(frozen=True)
class CountryInfo:
    name: str
    sub_region: str | None = None
    cluster: str | None = None


@dataclass(frozen=True)
class FinancialCycleInfo:
    name: str
    year: int | None = None
    is_closed: bool = False


@dataclass(frozen=True)
class GovernanceEntry:
    """
    A Campaign or Range name that can no longer be used or recreated.
    """

    entity_type: str
    name: str
    status: str
    merged_into: str | None = None


@dataclass(frozen=True)
class MasterDataSnapshot:
    countries: tuple[CountryInfo, ...] = ()
    categories: tuple[str, ...] = ()
    ranges: tuple[str, ...] = ()
    category_to_ranges: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    campaigns: tuple[str, ...] = ()
    campaign_to_range: Mapping[str, str | None] = field(default_factory=dict)
    media_types: tuple[str, ...] = ()
    media_to_subtypes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    business_units: tuple[str, ...] = ()
    pm_types: tuple[str, ...] = ()
    financial_cycles: tuple[FinancialCycleInfo, ...] = ()
    sub_regions: tuple[str, ...] = ()
    governance: tuple[GovernanceEntry, ...] = ()

    def __post_init__(self) -> None:
        range_keys = {lookup_key(name) for name in self.ranges}
        for campaign, range_name in self.campaign_to_range.items():
            if range_name is not None and lookup_key(range_name) not in range_keys:
                raise MasterDataIntegrityError(
                    f"Campaign '{campaign}' is bound to unknown range '{range_name}'."
                )

        category_keys = {lookup_key(name) for name in self.categories}
        for category, range_names in self.category_to_ranges.items():
            if lookup_key(category) not in category_keys:
                raise MasterDataIntegrityError(f"Category mapping references unknown category '{category}'.")
            for range_name in range_names:
                if lookup_key(range_name) not in range_keys:
                    raise MasterDataIntegrityError(
                        f"Category '{category}' references unknown range '{range_name}'."
                    )

        media_keys = {lookup_key(name) for name in self.media_types}
        for media, _subtypes in self.media_to_subtypes.items():
            if lookup_key(media) not in media_keys:
                raise MasterDataIntegrityError(f"Media subtypes reference unknown media type '{media}'.")

        sub_region_keys = {lookup_key(name) for name in self.sub_regions}
        for country in self.countries:
            if country.sub_region is not None and lookup_key(country.sub_region) not in sub_region_keys:
                raise MasterDataIntegrityError(
                    f"Country '{country.name}' references unknown sub-region '{country.sub_region}'."
                )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    @cached_property
    def _indexes(self) -> dict[str, dict[str, str]]:
        subtypes = [name for names in self.media_to_subtypes.values() for name in names]
        indexes = {
            "country": _index(country.name for country in self.countries),
            "sub_region": _index(self.sub_regions),
            "category": _index(self.categories),
            "range": _index(self.ranges),
            "campaign": _index(self.campaigns),
            "media": _index(self.media_types),
            "media_subtype": _index(subtypes),
            "business_unit": _index(self.business_units),
            "pm_type": _index(self.pm_types),
            "financial_cycle": _index(cycle.name for cycle in self.financial_cycles),
        }
        indexes["country_or_sub_region"] = {**indexes["sub_region"], **indexes["country"]}
        return indexes

    @cached_property
    def _countries_by_key(self) -> dict[str, CountryInfo]:
        return {lookup_key(country.name): country for country in self.countries}

    @cached_property
    def _members_by_sub_region(self) -> dict[str, tuple[str, ...]]:
        members: dict[str, list[str]] = {}
        for country in self.countries:
            if country.sub_region is not None:
                members.setdefault(lookup_key(country.sub_region), []).append(country.name)
        return {key: tuple(names) for key, names in members.items()}

    @cached_property
    def _category_ranges_by_key(self) -> dict[str, frozenset[str]]:
        return {
            lookup_key(category): frozenset(lookup_key(name) for name in names)
            for category, names in self.category_to_ranges.items()
        }

    @cached_property
    def _campaign_range_by_key(self) -> dict[str, str | None]:
        return {lookup_key(campaign): range_name for campaign, range_name in self.campaign_to_range.items()}

    @cached_property
    def _media_subtypes_by_key(self) -> dict[str, frozenset[str]]:
        return {
            lookup_key(media): frozenset(lookup_key(name) for name in names)
            for media, names in self.media_to_subtypes.items()
        }

    @cached_property
    def _owners_by_subtype(self) -> dict[str, tuple[str, ...]]:
        owners: dict[str, list[str]] = {}
        for media, names in self.media_to_subtypes.items():
            for name in names:
                owners.setdefault(lookup_key(name), []).append(media)
        return {key: tuple(media) for key, media in owners.items()}

    @cached_property
    def _governance_by_key(self) -> dict[tuple[str, str], GovernanceEntry]:
        return {(entry.entity_type, lookup_key(entry.name)): entry for entry in self.governance}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup(self, kind: str, value: str | None) -> str | None:
        """
        Return the canonical spelling of `value` within `kind`, or None.

        `kind` is one of: country, sub_region, country_or_sub_region,
        category, range, campaign, media, media_subtype, business_unit,
        pm_type, financial_cycle.
        """

        if value is None:
            return None
        try:
            index = self._indexes[kind]
        except KeyError as exc:
            raise ValueError(f"Unknown master data kind: {kind}") from exc
        return index.get(lookup_key(value))

    def country(self, name: str | None) -> CountryInfo | None:
        if name is None:
            return None
        return self._countries_by_key.get(lookup_key(name))

    def countries_in(self, sub_region: str) -> tuple[str, ...]:
        return self._members_by_sub_region.get(lookup_key(sub_region), ())

    def range_in_category(self, category: str, range_name: str) -> bool:
        return lookup_key(range_name) in self._category_ranges_by_key.get(lookup_key(category), frozenset())

    def ranges_for_category(self, category: str) -> tuple[str, ...]:
        for name, ranges in self.category_to_ranges.items():
            if lookup_key(name) == lookup_key(category):
                return ranges
        return ()

    def range_of_campaign(self, campaign: str) -> str | None:
        return self._campaign_range_by_key.get(lookup_key(campaign))

    def subtype_in_media(self, media: str, subtype: str) -> bool:
        return lookup_key(subtype) in self._media_subtypes_by_key.get(lookup_key(media), frozenset())

    def media_of_subtype(self, subtype: str) -> tuple[str, ...]:
        return self._owners_by_subtype.get(lookup_key(subtype), ())

    def financial_cycle(self, name: str | None) -> FinancialCycleInfo | None:
        if name is None:
            return None
        key = lookup_key(name)
        for cycle in self.financial_cycles:
            if lookup_key(cycle.name) == key:
                return cycle
        return None

    def governance_entry(self, entity_type: str, name: str) -> GovernanceEntry | None:
        return self._governance_by_key.get((entity_type, lookup_key(name)))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def counts(self) -> dict[str, int]:
        return {
            "countries": len(self.countries),
            "sub_regions": len(self.sub_regions),
            "categories": len(self.categories),
            "ranges": len(self.ranges),
            "campaigns": len(self.campaigns),
            "media_types": len(self.media_types),
            "media_subtypes": sum(len(names) for names in self.media_to_subtypes.values()),
            "business_units": len(self.business_units),
            "pm_types": len(self.pm_types),
            "financial_cycles": len(self.financial_cycles),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "countries": [
                {"name": c.name, "sub_region": c.sub_region, "cluster": c.cluster} for c in self.countries
            ],
            "sub_regions": list(self.sub_regions),
            "categories": list(self.categories),
            "ranges": list(self.ranges),
            "category_to_ranges": {key: list(value) for key, value in self.category_to_ranges.items()},
            "campaigns": list(self.campaigns),
            "campaign_to_range": dict(self.campaign_to_range),
            "media_types": list(self.media_types),
            "media_to_subtypes": {key: list(value) for key, value in self.media_to_subtypes.items()},
            "business_units": list(self.business_units),
            "pm_types": list(self.pm_types),
            "financial_cycles": [
                {"name": c.name, "year": c.year, "is_closed": c.is_closed} for c in self.financial_cycles
            ],
            "governance": [
                {
                    "entity_type": g.entity_type,
                    "name": g.name,
                    "status": g.status,
                    "merged_into": g.merged_into,
                }
                for g in self.governance
            ],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> MasterDataSnapshot:
        return cls(
            countries=tuple(
                CountryInfo(name=item["name"], sub_region=item.get("sub_region"), cluster=item.get("cluster"))
                for item in payload.get("countries", [])
            ),
            sub_regions=tuple(payload.get("sub_regions", [])),
            categories=tuple(payload.get("categories", [])),
            ranges=tuple(payload.get("ranges", [])),
            category_to_ranges={
                key: tuple(value) for key, value in payload.get("category_to_ranges", {}).items()
            },
            campaigns=tuple(payload.get("campaigns", [])),
            campaign_to_range=dict(payload.get("campaign_to_range", {})),
            media_types=tuple(payload.get("media_types", [])),
            media_to_subtypes={
                key: tuple(value) for key, value in payload.get("media_to_subtypes", {}).items()
            },
            business_units=tuple(payload.get("business_units", [])),
            pm_types=tuple(payload.get("pm_types", [])),
            financial_cycles=tuple(
                FinancialCycleInfo(
                    name=item["name"],
                    year=item.get("year"),
                    is_closed=bool(item.get("is_closed", False)),
                )
                for item in payload.get("financial_cycles", [])
            ),
            governance=tuple(
                GovernanceEntry(
                    entity_type=item["entity_type"],
                    name=item["name"],
                    status=item["status"],
                    merged_into=item.get("merged_into"),
                )
                for item in payload.get("governance", [])
            ),
        )


def _index(names: Any) -> dict[str, str]:
    index: dict[str, str] = {}
    for name in names:
        index.setdefault(lookup_key(name), name)
    return index
