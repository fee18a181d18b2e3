"""Category registry for the archive.

Every archive item is one envelope plus exactly one variant payload selected
by its ``category`` tag. This module is the only place that knows which
fields each variant carries, which field holds its sub-type, and which values
that sub-type may take. The taxonomy resolver, the search predicate and the
lifecycle manager all read from here.
"""
import re
from types import MappingProxyType
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from ..errors import UnknownCategory

# Field kinds understood by the lifecycle manager
TEXT = "text"
LIST = "list"
DATE = "date"
BOOL = "bool"
GEO = "geo"

BLOCK_TYPES = ("paragraph", "heading", "image", "list", "table", "pdf", "video", "quote", "link")
# Blocks whose payload is prose; pdf/video/image/link carry URLs
TEXT_BLOCK_TYPES = ("paragraph", "heading", "list", "quote")

# Fixed iteration order for sub-type discovery. The last three only exist on
# items written by older versions of the archive.
SUBTYPE_FIELDS = (
    "subType", "serviceType", "transportType", "orgType", "mapType",
    "personType", "heritageType", "narrativeType",
)


class VariantField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: str = TEXT
    searchable: bool = False
    choices: tuple[str, ...] = ()


class VariantDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    label: str
    family: str
    fields: tuple[VariantField, ...]
    sub_type_field: str | None = None
    aliases: tuple[str, ...] = ()
    # incoming name -> canonical date field of this variant
    date_aliases: tuple[tuple[str, str], ...] = ()

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def search_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.searchable)

    @property
    def sub_type_values(self) -> tuple[str, ...]:
        if not self.sub_type_field:
            return ()
        return self.field(self.sub_type_field).choices

    def field(self, name: str) -> VariantField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


def _f(name, kind=TEXT, searchable=False, choices=()):
    return VariantField(name=name, kind=kind, searchable=searchable, choices=tuple(choices))


LOCATION_FIELDS = (
    _f("locationLink"),
    _f("coordinates", GEO),
    _f("address", searchable=True),
    _f("contactPhone"),
)

PERSON_FIELDS = (
    _f("dateOfBirth", DATE),
    _f("dateOfDeath", DATE),
    _f("profession", searchable=True),
    _f("education", searchable=True),
    _f("achievements", LIST, searchable=True),
)

NARRATIVE_FIELDS = (
    _f("period", searchable=True),
    _f("eventDate", DATE),
    _f("significance", searchable=True),
    _f("involvedParties", LIST, searchable=True),
)

OCCUPATION_STATUSES = ("Thriving", "Declining", "Extinct")

_VARIANTS = (
    # Narrative / heritage
    VariantDescriptor(
        category="history", label="History", family="narrative",
        fields=NARRATIVE_FIELDS,
        aliases=("heritage", "histories"),
        date_aliases=(("date", "eventDate"), ("dateOfIncident", "eventDate")),
    ),
    VariantDescriptor(
        category="culture", label="Culture", family="narrative",
        fields=NARRATIVE_FIELDS,
        aliases=("cultures",),
        date_aliases=(("date", "eventDate"), ("dateOfIncident", "eventDate")),
    ),
    VariantDescriptor(
        category="heartbreaking-stories", label="Heartbreaking Stories", family="narrative",
        fields=tuple(f for f in NARRATIVE_FIELDS if f.name != "eventDate") + (_f("dateOfIncident", DATE),),
        aliases=("heartbreaking-story", "narrative", "narratives"),
        date_aliases=(("eventDate", "dateOfIncident"), ("date", "dateOfIncident")),
    ),
    # Location-bearing
    VariantDescriptor(
        category="institution", label="Institutions", family="location",
        fields=LOCATION_FIELDS + (
            _f("subType", searchable=True,
               choices=("Educational", "Governmental", "Financial", "Religious", "Other")),
            _f("establishedDate", DATE),
            _f("headOfInstitution", searchable=True),
        ),
        sub_type_field="subType",
        aliases=("institutions", "education"),
        date_aliases=(("date", "establishedDate"),),
    ),
    VariantDescriptor(
        category="emergency-services", label="Emergency Services", family="location",
        fields=LOCATION_FIELDS + (
            _f("serviceType", searchable=True, choices=("Health", "Police", "Fire", "Ambulance")),
            _f("is24Hours", BOOL),
        ),
        sub_type_field="serviceType",
        aliases=("emergency", "emergency-service"),
    ),
    VariantDescriptor(
        category="transport", label="Transport", family="location",
        fields=LOCATION_FIELDS + (
            _f("transportType", searchable=True, choices=("Bus", "Train", "Auto-Stand")),
            _f("destinations", LIST, searchable=True),
        ),
        sub_type_field="transportType",
        aliases=("transports", "transportation"),
    ),
    VariantDescriptor(
        category="tourist-spots", label="Tourist Spots", family="location",
        fields=LOCATION_FIELDS + (
            _f("entryFee", searchable=True),
            _f("bestTimeToVisit", searchable=True),
        ),
        aliases=("tourist-spot",),
    ),
    VariantDescriptor(
        category="social-works", label="Social Works", family="location",
        fields=LOCATION_FIELDS + (
            _f("orgType"),
            _f("foundedBy", searchable=True),
            _f("missionStatement", searchable=True),
            _f("focusArea"),
            _f("establishedDate", DATE),
        ),
        sub_type_field="orgType",
        aliases=("social-work", "organization", "organizations"),
        date_aliases=(("date", "establishedDate"),),
    ),
    VariantDescriptor(
        category="interactive-map", label="Interactive Map", family="location",
        fields=LOCATION_FIELDS + (_f("mapType"),),
        sub_type_field="mapType",
        aliases=("interactive-maps", "map"),
    ),
    # Person-bearing
    VariantDescriptor(
        category="notable-people", label="Notable People", family="person",
        fields=PERSON_FIELDS + (_f("subType", searchable=True),),
        sub_type_field="subType",
        aliases=("notable-person", "person", "people"),
    ),
    VariantDescriptor(
        category="freedom-fighters", label="Freedom Fighters", family="person",
        fields=PERSON_FIELDS + (_f("sectorNo", searchable=True),),
        aliases=("freedom-fighter",),
    ),
    VariantDescriptor(
        category="meritorious-student", label="Meritorious Students", family="person",
        fields=PERSON_FIELDS + (
            _f("passingYear", searchable=True),
            _f("currentStatus", searchable=True),
        ),
        aliases=("meritorious-students", "student", "students"),
    ),
    VariantDescriptor(
        category="hidden-talent", label="Hidden Talents", family="person",
        fields=PERSON_FIELDS,
        aliases=("hidden-talents",),
    ),
    # Occupation
    VariantDescriptor(
        category="occupation", label="Occupations", family="occupation",
        fields=(
            _f("traditionalName", searchable=True),
            _f("toolsUsed", LIST, searchable=True),
            _f("occupationStatus", searchable=True, choices=OCCUPATION_STATUSES),
        ),
        aliases=("occupations",),
    ),
)


def normalize_category(category: str) -> str:
    """Fold any historical spelling of a category into kebab-case.

    ``"Emergency services"``, ``"emergency_services"`` and ``"EmergencyServices"``
    all become ``"emergency-services"``.
    """
    value = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", str(category).strip())
    value = re.sub(r"[\s_]+", "-", value.lower())
    return re.sub(r"-{2,}", "-", value).strip("-")


def _build_lookup(variants: Iterable[VariantDescriptor]):
    lookup = {}
    for variant in variants:
        if variant.sub_type_field and (variant.sub_type_field not in SUBTYPE_FIELDS
                                       or variant.sub_type_field not in variant.field_names):
            raise RuntimeError(f"{variant.category}: sub-type field {variant.sub_type_field} "
                               "must be a variant field listed in SUBTYPE_FIELDS")
        for name in (variant.category,) + variant.aliases:
            key = normalize_category(name)
            if key in lookup:
                raise RuntimeError(f"Category name '{name}' registered twice")
            lookup[key] = variant
    return MappingProxyType(lookup)


VARIANTS = MappingProxyType({v.category: v for v in _VARIANTS})
_LOOKUP = _build_lookup(_VARIANTS)


def _ordered_union(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


# Union of every variant's searchable text fields, in registry order
SEARCHABLE_FIELDS = _ordered_union(n for v in _VARIANTS for n in v.search_fields)
ALL_VARIANT_FIELDS = _ordered_union(n for v in _VARIANTS for n in v.field_names)


def all_variants() -> tuple[VariantDescriptor, ...]:
    return _VARIANTS


def find_variant(category: str | None) -> VariantDescriptor | None:
    if not category:
        return None
    return _LOOKUP.get(normalize_category(category))


def resolve_variant(category: str | None) -> VariantDescriptor:
    variant = find_variant(category)
    if variant is None:
        raise UnknownCategory(str(category))
    return variant


def _spelling_pattern(name: str) -> str:
    parts = [p for p in normalize_category(name).split("-") if p]
    return r"[\s_-]*".join(re.escape(p) for p in parts)


def category_pattern(category: str) -> re.Pattern:
    """Regex matching every stored spelling of ``category``, case-insensitively.

    For a registered category this covers the canonical id and all of its
    aliases; an unregistered one only matches its own spelling.
    """
    variant = find_variant(category)
    names = (variant.category,) + variant.aliases if variant else (category,)
    alternatives = "|".join(_spelling_pattern(n) for n in names)
    return re.compile(f"^(?:{alternatives})$", re.IGNORECASE)
