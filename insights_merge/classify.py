from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Sequence, cast

from .errors import ValidationError
from .text import normalize_text

Platform = Literal["facebook", "instagram"]
Detected = Literal["facebook", "instagram", "unknown"]

PLATFORMS: tuple[str, ...] = ("facebook", "instagram")

FACEBOOK_HEADERS: tuple[str, ...] = (
    "Sid-id",
    "Sidnamn",
    "Inläggstyp",
    "Publicerings-id",
    "Titel",
    "Reaktioner",
    "Reaktioner, kommentarer och delningar",
    "Totalt antal klick",
    "Länkklick",
    "Övriga klick",
    "Page ID",
    "Page name",
    "Title",
    "Reactions",
    "Reactions, comments and shares",
    "Total clicks",
    "Link clicks",
    "Other clicks",
)

INSTAGRAM_HEADERS: tuple[str, ...] = (
    "Användarnamn",
    "Konto-ID",
    "Kontonamn",
    "Medietyp",
    "Bildtext",
    "Sparade",
    "Profilbesök",
    "Följare",
    "Intryck",
    "30-sekundersvisningar",
    "Videospelningar",
    "Genomsnittlig visningstid",
    "Username",
    "Account ID",
    "Profile Name",
    "Media Type",
    "Caption",
    "Saves",
    "Profile Visits",
    "Followers",
    "Impressions",
    "30s Views",
    "Video Plays",
    "Avg. Watch Time",
)

# Substrings that only occur in Instagram exports.
INSTAGRAM_KEYWORDS: tuple[str, ...] = (
    "saves",
    "profile visit",
    "follow",
    "impression",
    "spara",
    "profilbes",
    "följ",
    "intryck",
    "videospelning",
    "sekundervisning",
    "användarnamn",
)

# Canonical keys present when classifying already-mapped rows.
INSTAGRAM_CANONICAL_KEYS: tuple[str, ...] = ("account_username", "saves", "profile_visits", "follows")

_FACEBOOK_SET = frozenset(normalize_text(h) for h in FACEBOOK_HEADERS)
_INSTAGRAM_SET = frozenset(normalize_text(h) for h in INSTAGRAM_HEADERS)
_KEYWORDS = tuple(normalize_text(k) for k in INSTAGRAM_KEYWORDS)


@dataclass(frozen=True)
class Classification:
    platform: Detected
    confidence: float
    matched_signals: Sequence[str]
    facebook_score: int
    instagram_score: int
    strong_signals: int

    def score_for(self, platform: str) -> int:
        if platform == "facebook":
            return self.facebook_score
        if platform == "instagram":
            return self.instagram_score
        return 0


@dataclass(frozen=True)
class PlatformDecision:
    platform: Platform
    source: Literal["hint", "detected", "default"]
    classification: Classification
    warnings: Sequence[str] = ()


def classify(
    headers: Iterable[str],
    *,
    sample_row: Mapping[str, Any] | None = None,
    strong_signal_weight: int = 2,
) -> Classification:
    """
    Score a header set against Facebook and Instagram export signatures.

    Returns the winning platform together with the signals behind the decision.
    """
    fb = 0
    ig = 0
    strong = 0
    signals: list[str] = []

    for header in headers:
        key = normalize_text(header)
        if not key:
            continue

        if key in _FACEBOOK_SET:
            fb += 1
            signals.append(f"facebook:header:{header}")
        if key in _INSTAGRAM_SET:
            ig += 1
            signals.append(f"instagram:header:{header}")

        if header in INSTAGRAM_CANONICAL_KEYS:
            strong += 1
            ig += strong_signal_weight
            signals.append(f"instagram:canonical:{header}")
            continue

        for kw in _KEYWORDS:
            if kw in key:
                strong += 1
                ig += strong_signal_weight
                signals.append(f"instagram:keyword:{kw}:{header}")
                break

    if sample_row is not None and str(sample_row.get("platform") or "").strip().lower() == "instagram":
        strong += 1
        ig += strong_signal_weight
        signals.append("instagram:platform_tag")

    total = fb + ig
    platform: Detected
    if ig > fb or (ig > 0 and fb == 0) or strong > 0:
        platform = "instagram"
        confidence = ig / total if total else 0.0
    elif fb > 0:
        platform = "facebook"
        confidence = fb / total
    else:
        platform = "unknown"
        confidence = 0.0

    return Classification(
        platform=platform,
        confidence=round(confidence, 4),
        matched_signals=tuple(signals),
        facebook_score=fb,
        instagram_score=ig,
        strong_signals=strong,
    )


def resolve_platform(
    classification: Classification,
    *,
    hint: str | None = None,
    unknown_default: Platform = "facebook",
) -> PlatformDecision:
    """
    Pick the platform to map with.

    An explicit hint always wins; contrary detection is reported as a warning, not an error.
    An unknown classification falls back to unknown_default.
    """
    chosen = (hint or "").strip().lower() or None
    if chosen is not None and chosen not in PLATFORMS:
        raise ValidationError(f"Unknown platform hint: {hint!r}")

    if chosen is not None:
        warnings: list[str] = []
        detected = classification.platform
        if detected not in ("unknown", chosen):
            contrary_strong = (
                (detected == "instagram" and classification.strong_signals > 0)
                or classification.score_for(chosen) == 0
            )
            if contrary_strong:
                warnings.append(
                    f"Selected platform is {chosen} but the headers look like {detected} "
                    f"(confidence {classification.confidence:.2f})"
                )
        return PlatformDecision(
            platform=cast(Platform, chosen),
            source="hint",
            classification=classification,
            warnings=tuple(warnings),
        )

    if classification.platform == "unknown":
        return PlatformDecision(
            platform=unknown_default,
            source="default",
            classification=classification,
            warnings=(f"Platform could not be detected; treating file as {unknown_default}",),
        )

    return PlatformDecision(
        platform=classification.platform,
        source="detected",
        classification=classification,
    )
