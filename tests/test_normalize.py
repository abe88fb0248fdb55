from emoji_cache.normalize import (
    basic_clean,
    is_clean_token,
    normalize_query,
    tokenize,
    tokenize_all,
)


def test_basic_clean_collapses_whitespace_and_keeps_case():
    assert basic_clean("  Thumbs\t  Up\n") == "Thumbs Up"
    assert basic_clean(None) == ""


def test_basic_clean_normalises_fancy_quotes():
    assert basic_clean("“ok” — fine") == '"ok" - fine'


def test_normalize_query_lowercases_and_trims():
    assert normalize_query("  Red   HEART ") == "red heart"
    assert normalize_query("Red Heart") == normalize_query("red heart  ")


def test_tokenize_splits_on_non_alphanumeric():
    assert tokenize("Face with Tears-of-Joy!") == ["face", "with", "tears", "of", "joy"]
    assert tokenize("thumbs_up") == ["thumbs", "up"]
    assert tokenize("+1") == ["1"]
    assert tokenize("🚀") == []
    assert tokenize("") == []


def test_tokenize_all_dedupes_in_order():
    assert tokenize_all(["love", "heart", "Love letter"]) == ["love", "heart", "letter"]


def test_is_clean_token():
    assert is_clean_token("rocket")
    assert is_clean_token("  Rocket ")
    assert not is_clean_token("thumbs up")
    assert not is_clean_token("+1")
    assert not is_clean_token("🚀")
    assert not is_clean_token("")
