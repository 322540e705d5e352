from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from html import escape

from lyric_cloze.logging_utils import log_event
from lyric_cloze.models import ClozeResult, SongData
from lyric_cloze.worksheet.layout import ExportProfile
from lyric_cloze.worksheet.renderer import BADGE_TEXT

logger = logging.getLogger(__name__)

WORD_MEDIA_TYPE = "application/msword"
DEFAULT_FILENAME = "worksheet"
FILENAME_SUFFIX = "_cloze.doc"
A4_PAGE_SIZE = "595.3pt 841.9pt"
BYTE_ORDER_MARK = "\ufeff"


@dataclass(frozen=True)
class ExportedDocument:
    filename: str
    content: bytes
    media_type: str = WORD_MEDIA_TYPE


def export_document(
    song: SongData,
    result: ClozeResult,
    profile: ExportProfile,
    *,
    include_answer_key: bool = False,
) -> ExportedDocument:
    """Build a Word-readable HTML document for the worksheet.

    Word honours ``mso-*`` page directives but ignores CSS-only sizing on
    embedded images, so the cover carries explicit width/height attributes.
    """
    markup = render_document_markup(song, result, profile, include_answer_key=include_answer_key)
    content = (BYTE_ORDER_MARK + markup).encode("utf-8")
    filename = export_filename(song.title)
    log_event(logger, "document_exported", document=filename, bytes=len(content), columns=profile.columns)
    return ExportedDocument(filename=filename, content=content)


def export_filename(title: str) -> str:
    stem = re.sub(r"[^a-zA-Z0-9]", "", title or "").lower()
    return (stem or DEFAULT_FILENAME) + FILENAME_SUFFIX


def render_document_markup(
    song: SongData,
    result: ClozeResult,
    profile: ExportProfile,
    *,
    include_answer_key: bool = False,
) -> str:
    columns = f"mso-columns: 2 even {profile.column_gap};" if profile.columns == 2 else ""
    title = escape(song.title)
    artist = escape(song.artist)
    if song.cover_image:
        cover = (
            f'<img src="{escape(song.cover_image, quote=True)}" '
            f'width="{profile.image_px}" height="{profile.image_px}" alt="Cover" />'
        )
    else:
        cover = ""
    paragraphs = "\n".join(f"<p>{escape(line) if line.strip() else '&nbsp;'}</p>" for line in result.lines)
    answer_key = _answer_key_section(result) if include_answer_key else ""

    return f"""<html xmlns:o='urn:schemas-microsoft-com:office:office' xmlns:w='urn:schemas-microsoft-com:office:word' xmlns='http://www.w3.org/TR/REC-html40'>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
@page Section1 {{
  size: {A4_PAGE_SIZE};
  margin: {profile.margin};
  mso-header-margin: 35.4pt;
  mso-footer-margin: 35.4pt;
  mso-paper-source: 0;
  {columns}
}}
div.Section1 {{ page: Section1; }}
body {{
  font-family: 'Calibri', 'Arial', sans-serif;
  font-size: {profile.font_size};
  line-height: {profile.line_height};
  letter-spacing: {profile.letter_spacing};
  color: #000;
}}
h1 {{ font-family: 'Arial', sans-serif; font-size: {profile.title_size}; font-weight: bold; margin-bottom: 6pt; color: #111; }}
h2 {{ font-family: 'Arial', sans-serif; font-size: {profile.artist_size}; font-weight: normal; margin-bottom: 12pt; color: #555; }}
p {{ margin: 0 0 8pt 0; mso-pagination: widow-orphan; }}
.header-table {{ width: 100%; border-bottom: 1.5pt solid #eee; margin-bottom: {profile.header_margin}; padding-bottom: 12pt; }}
img {{ width: {profile.image_px}px; height: {profile.image_px}px; }}
</style>
</head>
<body>
<div class=Section1>
<table class="header-table">
<tr>
<td valign="middle">
<h1>{title}</h1>
<h2>{artist}</h2>
<p style="font-size: 10pt; color: #777; margin-top: 4pt; text-transform: uppercase; letter-spacing: 1pt;">{BADGE_TEXT}</p>
</td>
<td valign="middle" align="right" width="{profile.image_px + 20}">{cover}</td>
</tr>
</table>
{paragraphs}
{answer_key}
</div>
</body>
</html>
"""


def _answer_key_section(result: ClozeResult) -> str:
    items = "\n".join(f"<p>{idx}. {escape(word)}</p>" for idx, word in enumerate(result.answer_key, start=1))
    return f"<br clear=all style='page-break-before:always'>\n<h2>Answer Key</h2>\n{items}"
