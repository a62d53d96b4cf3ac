"""Unit tests for HTML stripping and word/sentence/paragraph splitting."""

from __future__ import annotations

from readalong.text.cleaners import (
    count_words,
    detect_paragraphs,
    split_sentences,
    split_words,
    strip_html_tags,
)


def test_strip_html_tags_keeps_block_breaks_and_unescapes_entities() -> None:
    """Block tags should become paragraph breaks; scripts and styles are dropped."""

    html = (
        "<html><head><style>p { color: red; }</style></head><body>"
        "<h1>Title</h1><p>First &amp; <b>bold</b> line.</p>"
        "<script>alert('x')</script><p>Second   para.</p></body></html>"
    )

    assert strip_html_tags(html) == "Title\n\nFirst & bold line.\n\nSecond para."


def test_plain_text_passes_through_strip_html_tags() -> None:
    text = "One paragraph.\n\nAnother one."

    assert strip_html_tags(text) == text


def test_word_splitting_and_counting() -> None:
    text = "  The quick\nbrown   fox.  "

    assert split_words(text) == ["The", "quick", "brown", "fox."]
    assert count_words(text) == 4
    assert count_words("") == 0


def test_detect_paragraphs_splits_on_blank_lines() -> None:
    text = "First para\nstill first.\n\n  \nSecond para."

    assert detect_paragraphs(text) == ["First para\nstill first.", "Second para."]


def test_detect_paragraphs_falls_back_to_single_line_breaks() -> None:
    """Text without blank lines should treat every non-empty line as a paragraph."""

    text = "Line one.\nLine two.\n\nLine three."
    single = "Line one.\nLine two.\nLine three."

    assert detect_paragraphs(text) == ["Line one.\nLine two.", "Line three."]
    assert detect_paragraphs(single) == ["Line one.", "Line two.", "Line three."]


def test_split_sentences_never_crosses_paragraphs() -> None:
    text = "Hello there. How are you?\n\nFine! Thanks"

    assert split_sentences(text) == ["Hello there.", "How are you?", "Fine!", "Thanks"]
