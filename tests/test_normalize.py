from inventory_ai.config import MAX_INPUT_CHARS, NORMALIZED_KEY_MAX_CHARS
from inventory_ai.normalize import basic_clean, clamp_text_length, normalize_key, strip_html, title_case


def test_strip_html_basic():
    html = "<p>The <b>grand piano</b> is large</p>"
    assert strip_html(html) == "The grand piano is large"


def test_strip_html_leaves_plain_text_alone():
    assert strip_html("2 dining chairs") == "2 dining chairs"
    assert strip_html(None) == ""


def test_basic_clean_trims_whitespace_html_and_quotes():
    raw = "   <div>Piano’s   case</div>\n"
    assert basic_clean(raw) == "Piano's case"


def test_clamp_text_length_caps_input():
    long_text = "a" * (MAX_INPUT_CHARS + 50)
    assert len(clamp_text_length(long_text)) == MAX_INPUT_CHARS
    assert len(basic_clean(long_text)) == MAX_INPUT_CHARS


def test_normalize_key_lowercases_trims_and_caps():
    assert normalize_key("  Antique PIANO ") == "antique piano"
    assert normalize_key(None) == ""
    assert len(normalize_key("x" * 300)) == NORMALIZED_KEY_MAX_CHARS


def test_title_case():
    assert title_case("antique piano") == "Antique Piano"
    assert title_case("  GARDEN   shed ") == "Garden Shed"
    assert title_case("") == ""
