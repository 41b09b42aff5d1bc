"""Declarative header/label synonyms for show fields.

Both the labeled-line rules of the pattern extractor ("Venue: MSG") and the
CSV row mapper (a "Show Name" column) resolve labels through ``lookup_field``.
"""

import re
from typing import Dict, Mapping, Optional, Tuple

from show_import.models.import_models import FactType

FIELD_ALIASES: Dict[FactType, Tuple[str, ...]] = {
    FactType.EVENT_TITLE: (
        "show", "show name", "show title", "event", "event name", "event title",
        "title", "gig", "engagement", "festival", "tour", "subject",
    ),
    FactType.ARTIST: ("artist", "artist name", "performer", "act", "band", "headliner"),
    FactType.DATE: (
        "date", "show date", "event date", "performance date", "engagement date", "day",
    ),
    FactType.CITY: ("city", "town", "location city", "market"),
    FactType.STATE: ("state", "province", "region"),
    FactType.COUNTRY: ("country",),
    FactType.VENUE_NAME: ("venue", "venue name", "place", "club", "hall", "location"),
    FactType.ADDRESS: ("address", "venue address", "street", "street address"),
    FactType.CAPACITY: ("capacity", "cap", "venue capacity"),
    FactType.SET_TIME: ("set time", "set", "performance time", "stage time", "on stage"),
    FactType.DOOR_TIME: ("doors", "door time", "doors open"),
    FactType.SHOW_TIME: ("show time", "start time", "showtime", "start"),
    FactType.SOUNDCHECK_TIME: ("soundcheck", "sound check", "soundcheck time", "line check"),
    FactType.GUARANTEE: ("guarantee", "guaranteed fee", "guarantee amount"),
    FactType.FEE: ("fee", "artist fee", "performance fee", "payment", "deal"),
    FactType.CONTACT_NAME: (
        "contact", "contact name", "promoter", "promoter contact", "advance contact",
        "production contact", "day of show contact",
    ),
    FactType.CONTACT_EMAIL: ("email", "e-mail", "contact email", "promoter email"),
    FactType.CONTACT_PHONE: ("phone", "tel", "telephone", "mobile", "cell", "contact phone"),
    FactType.NOTES: ("notes", "note", "comments", "remarks", "additional info"),
}

_NON_WORD = re.compile(r"[^a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_label(label: str) -> str:
    """Lowercase a label and collapse camelCase, punctuation and underscores to spaces."""
    return _NON_WORD.sub(" ", _CAMEL_BOUNDARY.sub(" ", label or "").lower()).strip()


_ALIAS_INDEX: Dict[str, FactType] = {
    normalize_label(alias): fact_type
    for fact_type, aliases in FIELD_ALIASES.items()
    for alias in aliases
}


def lookup_field(label: str) -> Optional[FactType]:
    """Resolve a header or line label to its fact type.

    Args:
        label: Raw label such as "Show Name", "show_date" or "E-Mail"

    Returns:
        The matching FactType, or None for unknown labels
    """
    return _ALIAS_INDEX.get(normalize_label(label))


def map_row(row: Mapping[str, Optional[str]]) -> Dict[FactType, str]:
    """Map a CSV/dict row onto fact types.

    When several columns alias the same field, the first non-empty column in
    row order wins.
    """
    mapped: Dict[FactType, str] = {}
    for header, value in row.items():
        if header is None or value is None:
            continue
        fact_type = lookup_field(header)
        text = str(value).strip()
        if fact_type and text and fact_type not in mapped:
            mapped[fact_type] = text
    return mapped
