from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import ValidationError
from .text import normalize_text

DEFAULT_MAPPINGS: dict[str, str] = {
    # Facebook metadata
    "Publicerings-id": "post_id",
    "Sid-id": "account_id",
    "Sidnamn": "account_name",
    "Beskrivning": "description",
    "Publiceringstid": "publish_time",
    "Inläggstyp": "post_type",
    "Permalänk": "permalink",
    # Facebook metrics
    "Visningar": "views",
    "Räckvidd": "reach",
    "Reaktioner, kommentarer och delningar": "total_engagement",
    "Reaktioner": "likes",
    "Kommentarer": "comments",
    "Delningar": "shares",
    "Totalt antal klick": "total_clicks",
    "Länkklick": "link_clicks",
    "Övriga klick": "other_clicks",
    # Instagram metadata
    "Inläggs-ID": "post_id",
    "Konto-ID": "account_id",
    "Kontonamn": "account_name",
    "Användarnamn": "account_username",
    "Bildtext": "description",
    "Publicerat": "publish_time",
    "Medietyp": "post_type",
    "Länk": "permalink",
    # Instagram metrics
    "Intryck": "views",
    "Interaktioner totalt": "total_engagement",
    "Gilla-markeringar": "likes",
    "Sparade": "saves",
    "Profilbesök": "profile_visits",
    "Följare": "follows",
    "30-sekundersvisningar": "video_30sec_views",
    "Videospelningar": "video_plays",
    "Genomsnittlig visningstid": "avg_video_play_time",
}

DISPLAY_NAMES: dict[str, str] = {
    "post_id": "Post ID",
    "account_id": "Account ID",
    "account_name": "Account name",
    "account_username": "Username",
    "description": "Description/Caption",
    "publish_time": "Publish time",
    "post_type": "Post type",
    "permalink": "Link",
    "views": "Views/Impressions",
    "reach": "Reach",
    "total_engagement": "Total engagement",
    "likes": "Likes/Reactions",
    "comments": "Comments",
    "shares": "Shares",
    "total_clicks": "Total clicks",
    "link_clicks": "Link clicks",
    "other_clicks": "Other clicks",
    "saves": "Saves",
    "profile_visits": "Profile visits",
    "follows": "New followers",
    "video_30sec_views": "30-second views",
    "video_plays": "Video plays",
    "avg_video_play_time": "Average watch time",
}

# Suggestions for the mapping editor only; never used for matching.
COLUMN_EXAMPLES: dict[str, tuple[str, ...]] = {
    "views": ("Visningar", "Views", "Intryck", "Impressions"),
    "reach": ("Räckvidd", "Reach", "Audiences", "Unique users"),
    "total_engagement": (
        "Reaktioner, kommentarer och delningar",
        "Total engagement",
        "Interaktioner totalt",
        "Engagement",
    ),
    "likes": ("Reaktioner", "Likes", "Gilla-markeringar", "Reactions", "Likes and reactions"),
    "comments": ("Kommentarer", "Comments"),
    "shares": ("Delningar", "Shares"),
    "total_clicks": ("Totalt antal klick", "Total clicks", "All clicks"),
    "other_clicks": ("Övriga klick", "Other clicks"),
    "link_clicks": ("Länkklick", "Link clicks"),
    "post_id": ("Publicerings-id", "Post ID", "Inläggs-ID"),
    "account_id": ("Sid-id", "Page ID", "Konto-ID", "Account ID", "Instagram ID"),
    "account_name": ("Sidnamn", "Page name", "Account name", "Kontonamn", "Profile name"),
    "description": ("Beskrivning", "Description", "Bildtext", "Caption", "Titel", "Title"),
    "publish_time": ("Publiceringstid", "Publish time", "Datum", "Date", "Publicerat", "Timestamp"),
    "post_type": ("Inläggstyp", "Post type", "Typ", "Type", "Medietyp", "Media type"),
    "permalink": ("Permalänk", "Permanent link", "Länk", "Link", "URL", "Media URL"),
    "account_username": ("Användarnamn", "Username", "@username", "Handle"),
    "saves": ("Sparade", "Saved", "Bookmarks", "Saves"),
    "profile_visits": ("Profilbesök", "Profile visits", "Profile views", "Profile clicks"),
    "follows": ("Följare", "Follows", "New followers", "Gained followers"),
    "video_30sec_views": ("30-sekundersvisningar", "30s views", "Video watches"),
    "video_plays": ("Videospelningar", "Video plays", "Video views"),
    "avg_video_play_time": ("Genomsnittlig visningstid", "Average video play time", "Avg. time watched"),
}

SUMMARIZABLE_COLUMNS: tuple[str, ...] = (
    "views",
    "likes",
    "comments",
    "shares",
    "total_engagement",
    "total_clicks",
    "link_clicks",
    "other_clicks",
    "saves",
    "follows",
    "profile_visits",
    "video_plays",
    "video_30sec_views",
)

NON_SUMMARIZABLE_COLUMNS: tuple[str, ...] = (
    "post_id",
    "account_id",
    "account_name",
    "account_username",
    "description",
    "publish_time",
    "date",
    "post_type",
    "permalink",
    "platform",
)


# Field names used by older exports and API payloads, read when the canonical field is absent.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "account_id": ("page_id", "instagram_id"),
    "account_name": ("page_name", "profile_name"),
    "account_username": ("username",),
    "post_id": ("media_id",),
    "post_type": ("media_type",),
    "permalink": ("media_url",),
    "description": ("caption",),
    "publish_time": ("timestamp",),
    "views": ("impressions",),
    "reach": ("post_reach",),
    "likes": ("reactions",),
    "total_engagement": ("engagement_total", "total_interactions"),
}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def field_value(row: Mapping[str, Any], canonical: str) -> Any:
    """
    Value of a canonical field in a row, falling back to its aliases.

    A blank canonical cell counts as missing, so a filled alias column still supplies the value.
    """
    value = row.get(canonical)
    if not _is_missing(value):
        return value
    for alias in FIELD_ALIASES.get(canonical, ()):
        candidate = row.get(alias)
        if not _is_missing(candidate):
            return candidate
    return value


@dataclass
class MappingCache:
    """
    Session-scoped lookup tables derived from a FieldDictionary.

    Owned by whoever runs the session (CLI command, importer) and shared by reference;
    every dictionary mutation calls invalidate().
    """

    by_normalized: dict[str, str] | None = None
    inverse: dict[str, str] | None = None
    generation: int = 0

    def invalidate(self) -> None:
        self.by_normalized = None
        self.inverse = None
        self.generation += 1


@dataclass
class FieldDictionary:
    """Raw source header -> canonical field name, with user overrides."""

    mappings: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MAPPINGS))
    cache: MappingCache = field(default_factory=MappingCache)

    @classmethod
    def from_mappings(
        cls,
        mappings: Mapping[str, str] | None,
        *,
        cache: MappingCache | None = None,
    ) -> "FieldDictionary":
        seeded = dict(mappings) if mappings is not None else dict(DEFAULT_MAPPINGS)
        return cls(mappings=seeded, cache=cache or MappingCache())

    def _lookup_table(self) -> dict[str, str]:
        if self.cache.by_normalized is None:
            table: dict[str, str] = {}
            for raw, canonical in self.mappings.items():
                table.setdefault(normalize_text(raw), canonical)
            self.cache.by_normalized = table
        return self.cache.by_normalized

    def _inverse_table(self) -> dict[str, str]:
        if self.cache.inverse is None:
            inverse: dict[str, str] = {}
            for raw, canonical in self.mappings.items():
                inverse.setdefault(canonical, raw)
            self.cache.inverse = inverse
        return self.cache.inverse

    def resolve(self, raw_header: str | None) -> str | None:
        key = normalize_text(raw_header)
        if not key:
            return None
        return self._lookup_table().get(key)

    def reverse_lookup(self, canonical: str) -> str | None:
        return self._inverse_table().get((canonical or "").strip())

    def canonical_fields(self) -> list[str]:
        out: list[str] = []
        seen: set[str] = set()
        for canonical in self.mappings.values():
            if canonical not in seen:
                seen.add(canonical)
                out.append(canonical)
        return out

    def set_override(self, raw_header: str, canonical: str) -> None:
        raw = (raw_header or "").strip()
        target = (canonical or "").strip()
        if not raw or not normalize_text(raw):
            raise ValidationError("raw header must be non-empty")
        if not target:
            raise ValidationError("canonical field name must be non-empty")

        key = normalize_text(raw)
        for existing, existing_target in self.mappings.items():
            if existing == raw:
                continue
            if normalize_text(existing) == key and existing_target != target:
                raise ValidationError(
                    f"Header {raw!r} collides with existing mapping {existing!r} -> {existing_target!r}; "
                    "remove or rename that mapping first"
                )

        self.mappings[raw] = target
        self.cache.invalidate()

    def remove(self, raw_header: str) -> bool:
        raw = (raw_header or "").strip()
        if raw not in self.mappings:
            return False
        del self.mappings[raw]
        self.cache.invalidate()
        return True

    def reset(self) -> None:
        self.mappings = dict(DEFAULT_MAPPINGS)
        self.cache.invalidate()

    def as_dict(self) -> dict[str, str]:
        return dict(self.mappings)

    def known_names(self, canonical: str) -> list[str]:
        names: list[str] = []
        first = self.reverse_lookup(canonical)
        if first:
            names.append(first)
        for raw, target in self.mappings.items():
            if target == canonical and raw not in names:
                names.append(raw)
        for example in COLUMN_EXAMPLES.get(canonical, ()):
            if example not in names:
                names.append(example)
        return names


def display_name(canonical: str) -> str:
    return DISPLAY_NAMES.get(canonical, canonical)
