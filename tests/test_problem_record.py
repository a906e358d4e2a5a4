"""Tests for problem snapshot helpers and record merge rules."""

from solvesync.services.problem_record import (
    ProblemContext,
    SubmissionStats,
    canonical_url,
    merge_record,
    normalize_difficulty,
    slug_from_url,
    topics_from_url,
)

URL = "https://takeuforward.org/plus/dsa/problems/3-sum"


def make_context(**overrides) -> ProblemContext:
    values = dict(title="3 Sum", url=URL, language="python", code="def f(): return []", difficulty=1)
    values.update(overrides)
    return ProblemContext(**values)


def merge(existing, solved, tries=1, **kwargs):
    kwargs.setdefault("start_time", 1000)
    kwargs.setdefault("paused_time", 0)
    return merge_record(
        existing, make_context(), platform="takeuforward", solved=solved, tries=tries, now_ms=5000, **kwargs
    )


class TestUrlHelpers:
    def test_canonical_url_drops_query(self):
        assert canonical_url(f"{URL}?category=arrays#top") == URL

    def test_slug(self):
        assert slug_from_url(f"{URL}/") == "3-sum"
        assert slug_from_url("https://example.com") == ""

    def test_topics_from_category(self):
        assert topics_from_url(f"{URL}?category=linked-list&subcategory=x") == ["Linked List"]
        assert topics_from_url(URL) == ["General"]

    def test_normalize_difficulty(self):
        assert normalize_difficulty("Easy") == 0
        assert normalize_difficulty("  HARD ") == 2
        assert normalize_difficulty("unknown") == 1
        assert normalize_difficulty(None) == 1
        assert normalize_difficulty(2) == 2


class TestContext:
    def test_missing_fields(self):
        assert make_context().missing_fields(10) == []
        assert make_context(title="").missing_fields() == ["title"]
        assert make_context(code="short").missing_fields(10) == ["code"]
        assert make_context(code="x" * 10).missing_fields(10) == []
        assert make_context(code="x" * 9).missing_fields(10) == ["code"]

    def test_difficulty_name(self):
        assert make_context(difficulty=0).difficulty_name == "Easy"


class TestMergeRecord:
    def test_new_solved_record(self):
        record = merge({}, solved=True, tries=3)
        assert record["solved"] == {"value": True, "date": 5000, "tries": 3}
        assert record["name"] == "3 Sum"
        assert record["problem_link"] == URL
        assert record["parent_topic"] == ["General"]

    def test_zero_tries_recorded_as_one_when_solved(self):
        assert merge({}, solved=True, tries=0)["solved"]["tries"] == 1

    def test_solved_is_sticky(self):
        first = merge({}, solved=True, tries=2)
        later = merge_record(
            first, make_context(), platform="takeuforward", solved=False, tries=9,
            start_time=1, paused_time=0, now_ms=9000,
        )
        assert later["solved"] == {"value": True, "date": 5000, "tries": 2}

    def test_unknown_fields_preserved(self):
        record = merge({"custom": "keep", "ignored": True}, solved=True)
        assert record["custom"] == "keep"
        assert record["ignored"] is True

    def test_timer_fields_refreshed(self):
        record = merge({"start_time": 1, "paused_time": 50}, solved=True, start_time=700, paused_time=20)
        assert record["start_time"] == 700
        assert record["paused_time"] == 20

    def test_analysis_fields_kept_when_not_supplied(self):
        first = merge({}, solved=True, tags=["Edge Cases"], summary="note")
        second = merge(first, solved=True)
        assert second["tags"] == ["Edge Cases"]
        assert second["summary"] == "note"

    def test_stats_attached(self):
        context = make_context(stats=SubmissionStats(status="Accepted", runtime="0.1s"))
        record = merge_record(
            {}, context, platform="takeuforward", solved=True, tries=1, start_time=1, paused_time=0,
        )
        assert record["stats"]["status"] == "Accepted"
        assert record["stats"]["runtime"] == "0.1s"
