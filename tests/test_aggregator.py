from datetime import datetime, timedelta, timezone

import pytest

from uptower.aggregator import aggregate_hour, compute_hourly_stats, hour_bucket
from uptower.checker import CheckResult
from uptower.db.repo import Heartbeat

from tests.helpers import NOW, down, up


def beat(status, ms):
    return Heartbeat(id=1, monitor_id=1, ts=NOW, status=status, status_code=None, response_time_ms=ms, message=None)


def test_hour_bucket_is_previous_full_hour():
    assert hour_bucket(NOW) == datetime(2026, 10, 18, 11, 0, tzinfo=timezone.utc)
    assert hour_bucket(datetime(2026, 10, 18, 0, 0, 5, tzinfo=timezone.utc)) == datetime(2026, 10, 17, 23, 0, tzinfo=timezone.utc)


def test_hour_bucket_accepts_naive_utc():
    assert hour_bucket(NOW.replace(tzinfo=None)) == datetime(2026, 10, 18, 11, 0, tzinfo=timezone.utc)


def test_compute_stats_rounds_half_up():
    stats = compute_hourly_stats([beat(True, 100), beat(True, 101), beat(False, None)])
    assert stats.check_count == 3
    assert stats.up_count == 2
    assert stats.down_count == 1
    # 2/3 = 66.67% -> 67, среднее по двум ненулевым временам 100.5 -> 101
    assert stats.uptime_percentage == 67
    assert stats.avg_response_time == 101
    assert stats.min_response_time == 100
    assert stats.max_response_time == 101


def test_compute_stats_without_response_times():
    stats = compute_hourly_stats([beat(False, None), beat(False, None)])
    assert stats.avg_response_time is None
    assert stats.min_response_time is None
    assert stats.uptime_percentage == 0


def test_compute_stats_empty():
    assert compute_hourly_stats([]) is None


def test_aggregate_hour_bounds_and_idempotence(repo, make_monitor):
    m = make_monitor()
    idle = make_monitor()
    start = hour_bucket(NOW)
    repo.insert_result(m.id, up(ms=120), start)
    repo.insert_result(m.id, down(ms=80), start + timedelta(minutes=59, seconds=59))
    # границы: до начала часа и ровно конец часа не входят
    repo.insert_result(m.id, down(ms=999), start - timedelta(seconds=1))
    repo.insert_result(m.id, down(ms=999), start + timedelta(hours=1))

    first = aggregate_hour(repo, [m.id, idle.id], NOW)
    second = aggregate_hour(repo, [m.id, idle.id], NOW)

    assert first == second
    assert set(first) == {m.id}
    rows = repo.get_hourly_stats(m.id, start - timedelta(hours=5))
    assert len(rows) == 1
    assert rows[0].hour == start
    assert rows[0].check_count == 2
    assert rows[0].avg_response_time == 100
    assert rows[0].uptime_percentage == 50
    assert repo.get_hourly_stats(idle.id, start - timedelta(hours=5)) == []


def test_aggregate_hour_overwrites_with_new_data(repo, make_monitor):
    m = make_monitor()
    start = hour_bucket(NOW)
    repo.insert_result(m.id, up(ms=100), start + timedelta(minutes=1))
    aggregate_hour(repo, [m.id], NOW)
    repo.insert_result(m.id, CheckResult.down("late arrival", response_time_ms=300), start + timedelta(minutes=2))
    aggregate_hour(repo, [m.id], NOW)

    (row,) = repo.get_hourly_stats(m.id, start)
    assert row.check_count == 2
    assert row.down_count == 1
    assert row.avg_response_time == 200


def test_aggregate_hour_with_no_monitors(repo):
    assert aggregate_hour(repo, [], NOW) == {}
