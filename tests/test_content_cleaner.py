from __future__ import annotations

from webscout.tools.content_cleaner import cap_length, clean_for_synthesis


def test_clean_for_synthesis_removes_boilerplate():
    text = "\n".join(
        [
            "<div>Acme Corp reported record revenue.</div>",
            "Skip to main content",
            "AAPL +1.2% MSFT -0.4% GOOG +2.1%",
            "HOME NEWS SPORTS BUSINESS WORLD MARKETS OPINION",
            "Analysts expect the trend to continue next year.",
            "",
            "",
            "",
            "© 2026 Example Media. All rights reserved.",
        ]
    )
    cleaned = clean_for_synthesis(text)

    assert "Acme Corp reported record revenue." in cleaned
    assert "Analysts expect the trend to continue next year." in cleaned
    assert "<div>" not in cleaned
    assert "Skip to main content" not in cleaned
    assert "AAPL" not in cleaned
    assert "SPORTS" not in cleaned
    assert "All rights reserved" not in cleaned
    assert "\n\n\n" not in cleaned


def test_long_prose_mentioning_a_footer_phrase_is_kept():
    line = (
        "The company updated its privacy policy after regulators in three countries raised concerns "
        "about how location data was shared with advertisers."
    )
    assert clean_for_synthesis(line) == line


def test_cap_length_prefers_sentence_boundary():
    text = "First sentence is here. Second sentence is a bit longer. Third sentence runs on and on."
    capped = cap_length(text, 60)

    assert capped == "First sentence is here. Second sentence is a bit longer. ..."


def test_cap_length_leaves_short_text_alone():
    assert cap_length("short", 100) == "short"
    assert cap_length("anything", 0) == "anything"


def test_long_glued_caps_token_is_removed():
    text = "SUBSCRIBENOWHOMEMARKETS Acme Corp filed its annual report with the SEC and NASDAQ on Monday."
    assert clean_for_synthesis(text) == "Acme Corp filed its annual report with the SEC and NASDAQ on Monday."
