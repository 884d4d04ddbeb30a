"""Tests for blogpipe.shared.text helpers."""

from blogpipe.shared.text import (
    hostname,
    natural_join,
    read_time_minutes,
    slugify,
    unique,
    word_count,
)


class TestSlugify:
    def test_basic(self):
        assert slugify("Ankle Sprain Recovery") == "ankle-sprain-recovery"

    def test_strips_punctuation(self):
        assert slugify("Runner's Knee: What Now?") == "runners-knee-what-now"

    def test_collapses_whitespace(self):
        assert slugify("  Neck   Pain  ") == "neck-pain"

    def test_trims_edge_hyphens(self):
        assert slugify("-Back Pain-") == "back-pain"

    def test_keeps_inner_hyphen_runs(self):
        assert slugify("post--op care") == "post--op-care"

    def test_empty(self):
        assert slugify("") == ""
        assert slugify("!!!") == ""


class TestReadTime:
    def test_word_count(self):
        assert word_count("one two  three\nfour") == 4
        assert word_count("") == 0

    def test_400_words_is_two_minutes(self):
        assert read_time_minutes(" ".join(["word"] * 400)) == 2

    def test_rounds_up(self):
        assert read_time_minutes(" ".join(["word"] * 201)) == 2
        assert read_time_minutes("a few words") == 1

    def test_empty_is_zero(self):
        assert read_time_minutes("") == 0


class TestHostname:
    def test_strips_www(self):
        assert hostname("https://www.nhs.uk/conditions/") == "nhs.uk"

    def test_keeps_subdomain(self):
        assert hostname("https://my.clevelandclinic.org/health") == "my.clevelandclinic.org"

    def test_none_and_garbage(self):
        assert hostname(None) is None
        assert hostname("") is None
        assert hostname("not a url") is None

    def test_malformed_url(self):
        assert hostname("http://[broken/path") is None


class TestNaturalJoin:
    def test_lengths(self):
        assert natural_join([]) == ""
        assert natural_join(["NHS"]) == "NHS"
        assert natural_join(["NHS", "APTA"]) == "NHS and APTA"
        assert natural_join(["NHS", "APTA", "Mayo"]) == "NHS, APTA, and Mayo"


class TestUnique:
    def test_preserves_first_seen_order(self):
        assert unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
