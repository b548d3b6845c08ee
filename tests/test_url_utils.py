import pytest

from tidymarks.core.url_utils import (
    is_probeable_url,
    is_tracking_param,
    normalize_bookmark_url,
    parse_bookmark_url,
    strip_tracking_params,
    try_parse_bookmark_url,
)


def test_scheme_and_www_are_ignored() -> None:
    assert normalize_bookmark_url("https://www.Example.com/a") == "example.com/a"
    assert normalize_bookmark_url("http://example.com/a") == "example.com/a"


def test_tracking_params_removed_other_params_kept_in_order() -> None:
    url = "https://example.com/p?b=2&utm_source=x&a=1&fbclid=abc&gclid=z&UTM_Medium=y"
    assert normalize_bookmark_url(url) == "example.com/p?b=2&a=1"


def test_empty_path_normalizes_to_slash() -> None:
    assert normalize_bookmark_url("https://example.com") == "example.com/"
    assert normalize_bookmark_url("https://example.com/") == "example.com/"


def test_fragment_and_path_case_are_significant() -> None:
    assert normalize_bookmark_url("https://example.com/A#x") == "example.com/A#x"
    assert normalize_bookmark_url("https://example.com/a") != normalize_bookmark_url(
        "https://example.com/A"
    )


def test_non_default_port_stays_in_key() -> None:
    assert normalize_bookmark_url("http://localhost:8080/") == "localhost:8080/"


def test_is_root_reads_the_query_as_written() -> None:
    tracked = parse_bookmark_url("https://example.com/?utm_source=newsletter")
    assert not tracked.is_root
    assert tracked.query == ""
    assert tracked.raw_query == "utm_source=newsletter"
    assert parse_bookmark_url("https://example.com").is_root
    assert parse_bookmark_url("https://example.com/?").is_root
    assert not parse_bookmark_url("https://example.com/?page=2").is_root
    assert not parse_bookmark_url("https://example.com/#top").is_root
    assert not parse_bookmark_url("https://example.com/docs").is_root


@pytest.mark.parametrize("url", ["", "not a url", "example.com/path", "https://", "http://host:99999/"])
def test_malformed_urls_raise(url: str) -> None:
    with pytest.raises(ValueError):
        parse_bookmark_url(url)
    assert try_parse_bookmark_url(url) is None


def test_try_parse_accepts_none() -> None:
    assert try_parse_bookmark_url(None) is None


def test_strip_tracking_params_drops_empty_pairs() -> None:
    assert strip_tracking_params("a=1&&utm_term=x&") == "a=1"
    assert strip_tracking_params("") == ""


def test_is_tracking_param() -> None:
    assert is_tracking_param("utm_campaign")
    assert is_tracking_param("FBCLID")
    assert not is_tracking_param("utmost")
    assert not is_tracking_param("q")


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://example.com", True),
        ("HTTP://example.com", True),
        ("javascript:alert(1)", False),
        ("chrome://settings", False),
        ("file:///tmp/x.html", False),
        (None, False),
    ],
)
def test_is_probeable_url(url: str | None, expected: bool) -> None:
    assert is_probeable_url(url) is expected
