from __future__ import annotations

import pytest

from lyric_cloze.models import ClozeResult, SongData
from lyric_cloze.worksheet.exporter import export_document, export_filename
from lyric_cloze.worksheet.layout import LayoutTier, classify, resolve
from lyric_cloze.worksheet.renderer import PLACEHOLDER_GLYPH, render_worksheet

COVER = "data:image/png;base64,iVBORw0KGgo="


def _markup(document) -> str:
    return document.content.decode("utf-8")


def test_export_filename_rules():
    assert export_filename("Don't Stop Me Now!") == "dontstopmenow_cloze.doc"
    assert export_filename("") == "worksheet_cloze.doc"
    assert export_filename("!!! ???") == "worksheet_cloze.doc"
    assert export_filename("Café 2024") == "caf2024_cloze.doc"


def test_export_starts_with_bom_and_fixes_a4(sample_song, sample_result):
    styles = resolve(classify(sample_result.lines))
    document = export_document(sample_song, sample_result, styles.export)
    assert document.media_type == "application/msword"
    assert document.content.startswith(b"\xef\xbb\xbf")
    assert document.filename == "yesterday_cloze.doc"
    markup = _markup(document)
    assert "size: 595.3pt 841.9pt;" in markup
    assert f"margin: {styles.export.margin};" in markup
    assert "Listening Cloze Exercise" in markup


def test_dense_export_uses_smallest_font_and_two_columns(sample_song):
    lines = tuple("So I walk along the __________ city road" for _ in range(80))
    result = ClozeResult(lines=lines, answer_key=("empty",) * 12)
    styles = resolve(classify(result.lines))
    assert styles.tier == LayoutTier.DENSE

    markup = _markup(export_document(sample_song, result, styles.export))
    assert "font-size: 11pt;" in markup
    assert "mso-columns: 2 even 0.35in;" in markup
    assert markup.count("<p>So I walk along") == 80


def test_short_export_is_single_column(sample_song):
    result = ClozeResult(lines=("la la __________",) * 10, answer_key=("la",) * 10)
    styles = resolve(classify(result.lines))
    assert styles.tier == LayoutTier.SHORT
    markup = _markup(export_document(sample_song, result, styles.export))
    assert "mso-columns" not in markup
    assert "font-size: 14pt;" in markup


def test_export_cover_has_explicit_pixel_size(sample_song, sample_result):
    song = SongData(title=sample_song.title, artist=sample_song.artist, cover_image=COVER)
    styles = resolve(LayoutTier.BALANCED)
    markup = _markup(export_document(song, sample_result, styles.export))
    assert f'<img src="{COVER}" width="112" height="112" alt="Cover" />' in markup
    assert 'width="132"' in markup


def test_export_without_cover_has_no_image(sample_song, sample_result):
    markup = _markup(export_document(sample_song, sample_result, resolve(LayoutTier.BALANCED).export))
    assert "<img " not in markup


@pytest.mark.parametrize("blank", ["", "   "])
def test_export_keeps_empty_lines_as_nbsp(sample_song, blank):
    result = ClozeResult(lines=("first", blank, "third"), answer_key=())
    markup = _markup(export_document(sample_song, result, resolve(LayoutTier.SHORT).export))
    assert "<p>first</p>\n<p>&nbsp;</p>\n<p>third</p>" in markup


def test_export_is_byte_identical_for_same_input(sample_song, sample_result):
    profile = resolve(classify(sample_result.lines)).export
    first = export_document(sample_song, sample_result, profile)
    second = export_document(sample_song, sample_result, profile)
    assert first.content == second.content
    assert first.filename == second.filename


def test_export_escapes_user_text(sample_result):
    song = SongData(title="<b>Loud</b> & Clear", artist="A&B")
    markup = _markup(export_document(song, sample_result, resolve(LayoutTier.BALANCED).export))
    assert "<h1>&lt;b&gt;Loud&lt;/b&gt; &amp; Clear</h1>" in markup
    assert "<h2>A&amp;B</h2>" in markup


def test_export_answer_key_is_optional(sample_song, sample_result):
    profile = resolve(LayoutTier.BALANCED).export
    assert "Answer Key" not in _markup(export_document(sample_song, sample_result, profile))
    with_key = _markup(export_document(sample_song, sample_result, profile, include_answer_key=True))
    assert "Answer Key" in with_key
    assert "<p>1. heart</p>" in with_key


def test_worksheet_placeholder_when_no_cover(sample_song, sample_result):
    html = render_worksheet(sample_song, sample_result, resolve(LayoutTier.BALANCED).screen)
    assert PLACEHOLDER_GLYPH in html
    assert "width:112px; height:112px;" in html


def test_worksheet_renders_cover_in_same_slot(sample_song, sample_result):
    song = SongData(title="Yesterday", artist="The Beatles", cover_image=COVER)
    html = render_worksheet(song, sample_result, resolve(LayoutTier.BALANCED).screen)
    assert f'<img src="{COVER}" alt="Album Cover" />' in html
    assert PLACEHOLDER_GLYPH not in html
    assert "width:112px; height:112px;" in html


def test_worksheet_header_and_fallbacks(sample_result):
    html = render_worksheet(SongData(), sample_result, resolve(LayoutTier.BALANCED).screen)
    assert "<h1>Untitled Song</h1>" in html
    assert "<h2>Unknown Artist</h2>" in html
    assert "Listening Cloze Exercise" in html


def test_worksheet_lines_are_atomic_blocks(sample_song):
    result = ClozeResult(lines=("one", "", "<three>", " \t"), answer_key=("x",))
    html = render_worksheet(sample_song, result, resolve(LayoutTier.SHORT).screen)
    assert "break-inside:avoid" in html
    assert "<p>one</p>" in html
    assert html.count("<p>&nbsp;</p>") == 2
    assert "<p>&lt;three&gt;</p>" in html
    assert 'class="lyrics cols-1"' in html


def test_worksheet_answer_key_page(sample_song, sample_result):
    html = render_worksheet(sample_song, sample_result, resolve(LayoutTier.BALANCED).screen)
    assert "page-break-before:always" in html
    assert html.index("<li>heart</li>") < html.index("<li>river</li>")
    assert "column-count:2" in html


def test_print_mode_triggers_print_dialog(sample_song, sample_result):
    screen = resolve(LayoutTier.BALANCED).screen
    assert "window.print()" not in render_worksheet(sample_song, sample_result, screen)
    assert "window.print()" in render_worksheet(sample_song, sample_result, screen, print_mode=True)
