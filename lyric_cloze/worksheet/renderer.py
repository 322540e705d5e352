from __future__ import annotations

from html import escape

from lyric_cloze.models import ClozeResult, SongData
from lyric_cloze.worksheet.layout import StyleProfile, screen_css

BADGE_TEXT = "Listening Cloze Exercise"
PLACEHOLDER_GLYPH = (
    "<svg xmlns='http://www.w3.org/2000/svg' fill='none' viewBox='0 0 24 24' stroke-width='1.5' "
    "stroke='currentColor' width='32' height='32' aria-hidden='true'>"
    "<path stroke-linecap='round' stroke-linejoin='round' d='M9 9l10.5-3m0 6.553v3.75a2.25 2.25 0 01-1.632 "
    "2.163l-1.32.377a1.803 1.803 0 11-.99-3.467l2.31-.66a2.25 2.25 0 001.632-2.163zm0 0V2.25L9 5.25v10.303m0 "
    "0v3.75a2.25 2.25 0 01-1.632 2.163l-1.32.377a1.803 1.803 0 01-.99-3.467l2.31-.66A2.25 2.25 0 009 15.553z'/>"
    "</svg>"
)


def render_worksheet(
    song: SongData,
    result: ClozeResult,
    profile: StyleProfile,
    *,
    print_mode: bool = False,
    toolbar: bool = True,
) -> str:
    css = screen_css(profile)
    title = escape(song.title.strip() or "Untitled Song")
    artist = escape(song.artist.strip() or "Unknown Artist")
    body_class = "lyrics cols-1" if profile.columns == 1 else "lyrics"
    lines_html = "\n".join(_line_block(line) for line in result.lines)
    answers_html = "\n".join(f"<li>{escape(word)}</li>" for word in result.answer_key)
    toolbar_html = _toolbar() if toolbar else ""
    print_script = "<script>window.addEventListener('load', () => window.print());</script>" if print_mode else ""

    return f"""<!DOCTYPE html>
<html lang=\"en\">
<head>
  <meta charset=\"UTF-8\" />
  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
  <title>{title} - Cloze Worksheet</title>
  <style>
    @page {{ size: A4; margin: 0; }}
    * {{ box-sizing:border-box; }}
    body {{ margin:0; background:#f3f4f6; font-family:'Avenir Next', Arial, sans-serif; color:#1f2937; }}
    .toolbar {{ max-width:210mm; margin:24px auto 16px; display:flex; justify-content:space-between; gap:12px; flex-wrap:wrap; padding:0 12px; }}
    .toolbar form {{ display:inline; }}
    .toolbar button, .toolbar a {{ border:0; border-radius:6px; padding:9px 16px; font-size:15px; font-weight:600; color:#fff; cursor:pointer; text-decoration:none; }}
    .btn-back {{ background:#4b5563; }}
    .btn-export {{ background:#4f46e5; }}
    .btn-print {{ background:#2563eb; }}
    .sheet {{ background:#fff; width:210mm; min-height:297mm; margin:0 auto 24px; padding:{css['padding']}; box-shadow:0 20px 40px rgba(0,0,0,.15); display:flex; flex-direction:column; }}
    .sheet-header {{ display:flex; justify-content:space-between; align-items:flex-start; margin-bottom:{css['header_mb']}; padding-bottom:16px; border-bottom:2px solid #f3f4f6; flex-shrink:0; }}
    .sheet-header .meta {{ flex:1; padding-right:24px; }}
    .sheet-header h1 {{ font-family:Georgia, 'Times New Roman', serif; font-size:{css['title_size']}; line-height:1.2; margin:0 0 4px; color:#111827; }}
    .sheet-header h2 {{ font-size:{css['artist_size']}; font-weight:500; margin:0; color:#4b5563; }}
    .badge {{ display:inline-block; margin-top:8px; padding:4px 12px; border-radius:999px; background:#f3f4f6; color:#6b7280; font-size:12px; font-weight:600; letter-spacing:.05em; text-transform:uppercase; }}
    .cover {{ width:{css['image_size']}; height:{css['image_size']}; flex-shrink:0; border-radius:8px; overflow:hidden; border:1px solid #e5e7eb; background:#f3f4f6; display:flex; align-items:center; justify-content:center; color:#d1d5db; }}
    .cover img {{ width:100%; height:100%; object-fit:cover; }}
    .lyrics {{ flex-grow:1; font-size:{css['font_size']}; line-height:{css['line_height']}; letter-spacing:{css['letter_spacing']}; column-count:{css['columns']}; column-gap:{css['column_gap']}; }}
    .lyrics.cols-1 {{ max-width:42rem; margin:0 auto; text-align:center; }}
    .lyrics p {{ margin:0 0 12px; break-inside:avoid; page-break-inside:avoid; }}
    .answer-key {{ page-break-before:always; break-before:page; }}
    .answer-key h3 {{ font-size:{css['artist_size']}; margin:0 0 12px; }}
    .answer-key ol {{ font-size:{css['font_size']}; line-height:{css['line_height']}; column-count:2; }}
    .tip {{ text-align:center; color:#6b7280; font-size:14px; }}
    @media print {{
      body {{ background:#fff; }}
      .toolbar, .tip {{ display:none; }}
      .sheet {{ box-shadow:none; margin:0; width:100%; min-height:auto; }}
    }}
  </style>
</head>
<body>
  {toolbar_html}
  <div class=\"sheet\">
    <header class=\"sheet-header\">
      <div class=\"meta\">
        <h1>{title}</h1>
        <h2>{artist}</h2>
        <div class=\"badge\">{BADGE_TEXT}</div>
      </div>
      <div class=\"cover\">{_cover_slot(song.cover_image)}</div>
    </header>
    <main class=\"{body_class}\">
{lines_html}
    </main>
  </div>
  <div class=\"sheet answer-key\">
    <h3>Answer Key: {title}</h3>
    <ol>
{answers_html}
    </ol>
  </div>
  <p class=\"tip\">Tip: Set margins to "None" or "Default" in your printer settings.</p>
  {print_script}
</body>
</html>
"""


def _line_block(line: str) -> str:
    return f"      <p>{escape(line) if line.strip() else '&nbsp;'}</p>"


def _cover_slot(cover_image: str | None) -> str:
    if cover_image:
        return f"<img src=\"{escape(cover_image, quote=True)}\" alt=\"Album Cover\" />"
    return PLACEHOLDER_GLYPH


def _toolbar() -> str:
    return """<div class=\"toolbar\">
    <form method=\"post\" action=\"/reset\"><button type=\"submit\" class=\"btn-back\">&larr; Edit / New</button></form>
    <div>
      <a href=\"/export\" class=\"btn-export\">Export to Word</a>
      <a href=\"/print\" class=\"btn-print\">Print to PDF</a>
    </div>
  </div>"""
