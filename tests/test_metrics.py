from worklog.data import parse_record, records_frame
from worklog.metrics import aggregate, compute_kpis, daily_counts, difficulty_breakdown, group_counts
from worklog.records import Level, WorkRecord


def test_kpis_scenario(records):
    kpis = compute_kpis(records[:3])
    assert kpis == {
        "total_cases": 3,
        "done_cases": 2,
        "completion_rate": 67,
        "total_minutes": 80,
        "avg_minutes": 40,
        "pending_cases": 1,
        "urgent_pending": 1,
    }


def test_kpis_empty_set_is_all_zero():
    kpis = compute_kpis([])
    assert set(kpis.values()) == {0}


def test_kpis_accept_a_frame(records):
    assert compute_kpis(records_frame(records)) == compute_kpis(records)


def test_pending_minutes_are_not_counted():
    recs = [
        WorkRecord(is_done=True, minutes=10),
        WorkRecord(is_done=False, minutes=500),
        WorkRecord(is_done=True, minutes=None),
    ]
    kpis = compute_kpis(recs)
    assert kpis["total_minutes"] == 10
    # Done records without minutes still count in the average's denominator.
    assert kpis["avg_minutes"] == 5


def test_completion_rate_rounds_half_up():
    recs = [WorkRecord(is_done=True)] + [WorkRecord(is_done=False)] * 7
    assert compute_kpis(recs)["completion_rate"] == 13


class TestGrouping:
    def test_missing_values_go_to_unknown(self, records):
        assert group_counts([records[0], records[1], records[3]], "system") == [("ERP", 2), ("unknown", 1)]

    def test_counts_sum_to_total(self, records):
        for field in ("system", "question_type", "questioner"):
            assert sum(n for _, n in group_counts(records, field)) == len(records)

    def test_ties_keep_first_seen_order(self):
        recs = [WorkRecord(system=s) for s in ("OA", "CRM", "ERP", "CRM", "ERP")]
        assert group_counts(recs, "system") == [("CRM", 2), ("ERP", 2), ("OA", 1)]

    def test_custom_unknown_label_and_sheet_header(self, records):
        out = group_counts(records, "系統別", unknown_label="未填")
        assert ("未填", 1) in out

    def test_empty(self):
        assert group_counts([], "system") == []


class TestDailyBuckets:
    def test_unparseable_dates_are_left_out(self, records):
        assert daily_counts(records) == [("2024-06-01", 2), ("2024-06-02", 1)]

    def test_order_follows_the_calendar_across_years(self):
        recs = [WorkRecord(question_date=d) for d in ("2025-01-02", "2024-12-30", "2025-01-02T18:00", "2024-12-31")]
        assert daily_counts(recs) == [("2024-12-30", 1), ("2024-12-31", 1), ("2025-01-02", 2)]

    def test_empty(self):
        assert daily_counts([]) == []


class TestDifficultyBreakdown:
    def test_always_three_levels_in_order(self):
        out = difficulty_breakdown([])
        assert [row["level"] for row in out] == ["HIGH", "MID", "LOW"]
        assert all(row["count"] == 0 and row["avg_minutes"] == 0 for row in out)

    def test_only_done_records_count(self, records):
        out = {row["level"]: row for row in difficulty_breakdown(records)}
        assert out["HIGH"]["count"] == 1
        assert out["HIGH"]["avg_minutes"] == 30
        assert out["MID"]["count"] == 1
        assert out["MID"]["total_minutes"] == 50
        assert out["LOW"]["count"] == 0

    def test_blank_difficulty_counts_as_mid(self):
        recs = [WorkRecord(is_done=True, minutes=20), WorkRecord(is_done=True, difficulty=Level.MID, minutes=41)]
        mid = difficulty_breakdown(recs)[1]
        assert mid["count"] == 2
        assert mid["avg_minutes"] == 31
        assert mid["label"] == "中"


def test_aggregate_shape(records):
    out = aggregate(records)
    assert out["kpis"]["total_cases"] == 4
    assert set(out["groupings"]) == {"system", "question_type"}
    assert out["buckets"]["daily"][0] == ("2024-06-01", 2)
    assert len(out["difficulty"]) == 3


def test_unrecognised_difficulty_is_skipped():
    recs = [
        parse_record({"難度": "極難", "是否完成": "是", "處理分鐘數": 100}),
        parse_record({"難度": "中", "是否完成": "是", "處理分鐘數": 20}),
    ]
    out = {row["level"]: row for row in difficulty_breakdown(recs)}
    assert sum(row["count"] for row in out.values()) == 1
    assert out["MID"]["count"] == 1
    assert out["MID"]["avg_minutes"] == 20


def test_overflowing_minutes_degrade_to_zero():
    recs = [
        parse_record({"是否完成": "是", "處理分鐘數": "1e999"}),
        WorkRecord(is_done=True, minutes="inf"),
        WorkRecord(is_done=True, minutes=30),
    ]
    kpis = compute_kpis(recs)
    assert kpis["total_minutes"] == 30
    assert kpis["avg_minutes"] == 10


def test_aggregate_buckets_aware_dates_in_the_given_zone():
    recs = [WorkRecord(question_date="2024-06-01T18:00:00Z")]
    assert aggregate(recs)["buckets"]["daily"] == [("2024-06-01", 1)]
    assert aggregate(recs, tz="Asia/Taipei")["buckets"]["daily"] == [("2024-06-02", 1)]
    assert daily_counts(recs, tz="Asia/Taipei") == [("2024-06-02", 1)]
