# pylint: disable=missing-module-docstring,missing-function-docstring

from transcript.links import TranscriptLinkExtractor, extract_links


def test_finalize_extracts_link():
    extractor = TranscriptLinkExtractor()
    extractor.append_delta("call us at ")
    extractor.append_delta("https://wa.me/123 now")

    text, links = extractor.finalize()

    assert text == "call us at https://wa.me/123 now"
    assert links == ["https://wa.me/123"]


def test_text_without_scheme_has_no_links():
    extractor = TranscriptLinkExtractor()
    extractor.append_delta("visit wa.me/123 or www.example.com")

    assert extractor.finalize().links == []


def test_turn_isolation():
    extractor = TranscriptLinkExtractor()
    extractor.append_delta("first turn http://a.example")
    first = extractor.finalize()

    extractor.append_delta("second turn")
    second = extractor.finalize()

    assert "first turn" in first.text
    assert second.text == "second turn"
    assert second.links == []


def test_links_keep_order_and_trailing_punctuation():
    assert extract_links("see https://x.io/a, then http://y.io.") == [
        "https://x.io/a,",
        "http://y.io.",
    ]


def test_clear_drops_current_turn():
    extractor = TranscriptLinkExtractor()
    extractor.append_delta("https://stale.example")
    extractor.clear()

    assert extractor.text == ""
    assert extractor.finalize().links == []
