from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from lyric_cloze.config import is_development
from lyric_cloze.logging_utils import log_event

logger = logging.getLogger(__name__)

CHARS_PER_VISUAL_LINE = 55
DENSE_THRESHOLD = 65
SHORT_THRESHOLD = 25


class LayoutTier(str, Enum):
    """Content density buckets, densest first."""

    DENSE = "DENSE"
    BALANCED = "BALANCED"
    SHORT = "SHORT"


@dataclass(frozen=True)
class StyleProfile:
    text_px: int
    line_height: float
    tracking_em: float
    title_px: int
    artist_px: int
    image_px: int
    header_mb_px: int
    padding_mm: int
    columns: int
    column_gap_px: int


@dataclass(frozen=True)
class ExportProfile:
    font_size: str
    line_height: str
    letter_spacing: str
    title_size: str
    artist_size: str
    image_px: int
    header_margin: str
    margin: str
    columns: int
    column_gap: str


@dataclass(frozen=True)
class ResolvedStyles:
    tier: LayoutTier
    screen: StyleProfile
    export: ExportProfile


class UnmappedStyleValueError(KeyError):
    def __init__(self, table: str, value: object) -> None:
        super().__init__(f"{table}: no export mapping for screen value {value!r}")
        self.table = table
        self.value = value


SCREEN_PROFILES: dict[LayoutTier, StyleProfile] = {
    # 14px body is the floor; nothing smaller is offered.
    LayoutTier.DENSE: StyleProfile(
        text_px=14,
        line_height=1.5,
        tracking_em=0.0,
        title_px=24,
        artist_px=18,
        image_px=96,
        header_mb_px=24,
        padding_mm=15,
        columns=2,
        column_gap_px=32,
    ),
    LayoutTier.BALANCED: StyleProfile(
        text_px=16,
        line_height=1.625,
        tracking_em=0.0,
        title_px=30,
        artist_px=20,
        image_px=112,
        header_mb_px=32,
        padding_mm=20,
        columns=2,
        column_gap_px=48,
    ),
    LayoutTier.SHORT: StyleProfile(
        text_px=18,
        line_height=2.0,
        tracking_em=0.025,
        title_px=36,
        artist_px=20,
        image_px=128,
        header_mb_px=40,
        padding_mm=20,
        columns=1,
        column_gap_px=0,
    ),
}

_missing_tiers = set(LayoutTier) - set(SCREEN_PROFILES)
if _missing_tiers:
    raise RuntimeError(f"layout tiers without a style profile: {sorted(t.value for t in _missing_tiers)}")

FONT_POINTS = {14: "11pt", 16: "12pt", 18: "14pt", 20: "16pt", 24: "18pt", 30: "24pt", 36: "28pt"}
LINE_HEIGHT_PERCENT = {1.5: "130%", 1.625: "150%", 2.0: "200%"}
TRACKING_POINTS = {0.0: "0", 0.025: "0.5pt"}
HEADER_MARGIN_POINTS = {24: "18pt", 32: "24pt", 40: "30pt"}
PAGE_MARGINS = {15: "1.91cm", 20: "2.54cm"}
COLUMN_GAPS = {0: "0in", 32: "0.35in", 48: "0.5in"}
IMAGE_PIXELS = {96: 96, 112: 112, 128: 128}

EXPORT_TABLES: dict[str, tuple[dict, object]] = {
    "font_points": (FONT_POINTS, "12pt"),
    "line_height_percent": (LINE_HEIGHT_PERCENT, "150%"),
    "tracking_points": (TRACKING_POINTS, "0"),
    "header_margin_points": (HEADER_MARGIN_POINTS, "24pt"),
    "page_margins": (PAGE_MARGINS, "2.54cm"),
    "column_gaps": (COLUMN_GAPS, "0.5in"),
    "image_pixels": (IMAGE_PIXELS, 112),
}


def density_score(lines: Sequence[str]) -> int:
    return sum(math.ceil(max(1, len(line)) / CHARS_PER_VISUAL_LINE) for line in lines)


def classify(lines: Sequence[str]) -> LayoutTier:
    score = density_score(lines)
    if score > DENSE_THRESHOLD:
        return LayoutTier.DENSE
    if score < SHORT_THRESHOLD:
        return LayoutTier.SHORT
    return LayoutTier.BALANCED


def resolve(tier: LayoutTier) -> ResolvedStyles:
    screen = SCREEN_PROFILES[LayoutTier(tier)]
    return ResolvedStyles(tier=LayoutTier(tier), screen=screen, export=to_export_profile(screen))


def resolve_for_lines(lines: Sequence[str]) -> ResolvedStyles:
    tier = classify(lines)
    log_event(logger, "layout_resolved", logging.DEBUG, tier=tier.value, density=density_score(lines), lines=len(lines))
    return resolve(tier)


def to_export_profile(profile: StyleProfile) -> ExportProfile:
    return ExportProfile(
        font_size=export_unit("font_points", profile.text_px),
        line_height=export_unit("line_height_percent", profile.line_height),
        letter_spacing=export_unit("tracking_points", profile.tracking_em),
        title_size=export_unit("font_points", profile.title_px),
        artist_size=export_unit("font_points", profile.artist_px),
        image_px=export_unit("image_pixels", profile.image_px),
        header_margin=export_unit("header_margin_points", profile.header_mb_px),
        margin=export_unit("page_margins", profile.padding_mm),
        columns=2 if profile.columns >= 2 else 1,
        column_gap=export_unit("column_gaps", profile.column_gap_px),
    )


def export_unit(table_name: str, value):
    table, fallback = EXPORT_TABLES[table_name]
    if value in table:
        return table[value]
    if is_development():
        raise UnmappedStyleValueError(table_name, value)
    log_event(logger, "export_unit_unmapped", logging.WARNING, table=table_name, value=value, fallback=fallback)
    return fallback


def screen_css(profile: StyleProfile) -> dict[str, str]:
    """CSS values for the on-screen and printed worksheet."""
    return {
        "font_size": f"{profile.text_px}px",
        "line_height": _trim_float(profile.line_height),
        "letter_spacing": f"{_trim_float(profile.tracking_em)}em" if profile.tracking_em else "normal",
        "title_size": f"{profile.title_px}px",
        "artist_size": f"{profile.artist_px}px",
        "image_size": f"{profile.image_px}px",
        "header_mb": f"{profile.header_mb_px}px",
        "padding": f"{profile.padding_mm}mm",
        "columns": str(profile.columns),
        "column_gap": f"{profile.column_gap_px}px",
    }


def _trim_float(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")
