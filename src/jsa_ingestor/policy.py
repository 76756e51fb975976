"""Per-table and per-field reconciliation policies.

Policies are read once from the packaged ``tables.yaml`` and handed to the
reconciliation engine as immutable values.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from importlib import resources
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Pattern, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .models import DEFAULT_POLICY_RESOURCE, IngestOptions

LOGGER = logging.getLogger("jsa.ingestor.policy")

NEVER_MATCH = re.compile(r"(?!)")


class TableModel(BaseModel):
    unique_key: List[str] = Field(default_factory=list)
    insert_only: bool = False
    auto_maintained: List[str] = Field(default_factory=list)
    range_columns: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class FieldsModel(BaseModel):
    missing_ok: List[str] = Field(default_factory=list)
    combinable: List[str] = Field(default_factory=list)
    no_range: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RestrictionModel(BaseModel):
    pattern: str
    tables: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")


class PolicyFileModel(BaseModel):
    tables: Dict[str, TableModel]
    fields: FieldsModel = Field(default_factory=FieldsModel)
    restrictions: Dict[str, RestrictionModel] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class UpdateRestriction(enum.Enum):
    NONE = "none"
    ONLY_INBEAM = "only_inbeam"
    ONLY_OBSTIME = "only_obstime"
    ONLY_OBSRADEC = "only_obsradec"

    @classmethod
    def from_options(cls, options: IngestOptions) -> "UpdateRestriction":
        if options.update_only_inbeam:
            return cls.ONLY_INBEAM
        if options.update_only_obstime:
            return cls.ONLY_OBSTIME
        return cls.NONE


@dataclass(frozen=True)
class RestrictionRule:
    pattern: Pattern[str]
    tables: Optional[FrozenSet[str]] = None

    def applies_to(self, table: str) -> bool:
        return self.tables is None or table in self.tables

    def allows(self, column: str) -> bool:
        return bool(self.pattern.search(column))


@dataclass(frozen=True)
class TablePolicy:
    name: str
    unique_key: Tuple[str, ...]
    insert_only: bool = False
    auto_maintained: FrozenSet[str] = frozenset()
    range_start: FrozenSet[str] = frozenset()
    range_end: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class FieldPolicy:
    missing_ok: Pattern[str] = NEVER_MATCH
    combinable: Pattern[str] = NEVER_MATCH
    no_range: Pattern[str] = NEVER_MATCH

    def may_be_missing(self, column: str) -> bool:
        return bool(self.missing_ok.search(column))

    def is_combinable(self, column: str) -> bool:
        return bool(self.combinable.search(column))

    def has_no_range(self, column: str) -> bool:
        return bool(self.no_range.search(column))


def _alternation(names: List[str]) -> str:
    # Longest first so that the alternation prefers the most specific name.
    return "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True))


def prefix_regex(names: List[str]) -> Pattern[str]:
    if not names:
        return NEVER_MATCH
    return re.compile(rf"\b(?:{_alternation(names)})", re.IGNORECASE)


def word_regex(names: List[str]) -> Pattern[str]:
    if not names:
        return NEVER_MATCH
    return re.compile(rf"\b(?:{_alternation(names)})\b", re.IGNORECASE)


@dataclass(frozen=True)
class Policies:
    tables: Mapping[str, TablePolicy]
    fields: FieldPolicy
    restrictions: Mapping[UpdateRestriction, RestrictionRule]

    def table(self, name: str) -> TablePolicy:
        policy = self.tables.get(name)
        if policy is None or not policy.unique_key:
            raise ConfigurationError(f"No unique key defined for table: '{name}'")
        return policy

    def restriction(
        self, restriction: UpdateRestriction, table: str
    ) -> Optional[RestrictionRule]:
        rule = self.restrictions.get(restriction)
        if rule is None or not rule.applies_to(table):
            return None
        return rule


def build_policies(document: Mapping[str, Any]) -> Policies:
    try:
        model = PolicyFileModel.model_validate(document)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid table policy document: {exc}") from exc

    tables: Dict[str, TablePolicy] = {}
    for name, table in model.tables.items():
        tables[name] = TablePolicy(
            name=name,
            unique_key=tuple(col.lower() for col in table.unique_key),
            insert_only=table.insert_only,
            auto_maintained=frozenset(col.lower() for col in table.auto_maintained),
            range_start=frozenset(col.lower() for col in table.range_columns),
            range_end=frozenset(col.lower() for col in table.range_columns.values()),
        )

    fields = FieldPolicy(
        missing_ok=prefix_regex(model.fields.missing_ok),
        combinable=word_regex(model.fields.combinable),
        no_range=word_regex(model.fields.no_range),
    )

    restrictions: Dict[UpdateRestriction, RestrictionRule] = {}
    for key, rule in model.restrictions.items():
        try:
            restriction = UpdateRestriction(key)
            pattern = re.compile(rule.pattern, re.IGNORECASE)
        except (ValueError, re.error) as exc:
            raise ConfigurationError(f"Invalid update restriction '{key}': {exc}") from exc
        restrictions[restriction] = RestrictionRule(
            pattern=pattern,
            tables=frozenset(rule.tables) if rule.tables is not None else None,
        )

    return Policies(
        tables=MappingProxyType(tables),
        fields=fields,
        restrictions=MappingProxyType(restrictions),
    )


def load_policies(resource: str = DEFAULT_POLICY_RESOURCE) -> Policies:
    try:
        with (
            resources.files("jsa_ingestor")
            .joinpath(resource)
            .open("r", encoding="utf-8") as fh
        ):
            document = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read table policies '{resource}': {exc}") from exc

    policies = build_policies(document or {})
    LOGGER.debug("Loaded policies for tables: %s", ", ".join(sorted(policies.tables)))
    return policies
