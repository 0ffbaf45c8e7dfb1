import uuid
from datetime import datetime, timedelta, timezone

import pytest

from pushup_rep_engine.recorder import (
    EventKind,
    RecordedEvent,
    SessionRecorder,
    best_window_count,
)

T0 = datetime(2025, 9, 6, 10, 0, 0, tzinfo=timezone.utc)


def recorder_with_events(kinds_and_times, *, duration_s=60.0):
    r = SessionRecorder()
    r.start(8.0, T0)
    for kind, t in kinds_and_times:
        r.record_event(kind, t)
    return r.finish(T0 + timedelta(seconds=duration_s))


def test_best_window_two_pointer():
    assert best_window_count([0, 10, 20, 29, 31, 59]) == 4
    assert best_window_count([]) == 0
    assert best_window_count([5]) == 1
    # both endpoints inclusive
    assert best_window_count([0, 30]) == 2
    assert best_window_count([0, 30.001]) == 1
    assert best_window_count([59, 0, 31, 10, 29, 20]) == 4


def test_best_cadence_and_average():
    s = recorder_with_events([(EventKind.REP, t) for t in [0, 10, 20, 29, 31, 59]], duration_s=120)
    assert s.total_reps == 6
    assert s.best_cadence_30s_rpm == 8.0
    assert s.avg_cadence_rpm == pytest.approx(3.0)
    assert s.duration_s == 120.0
    assert s.height_delta_cm == 8.0


def test_percent_clean():
    evs = [(EventKind.REP, float(i)) for i in range(10)]
    evs += [(EventKind.TOO_FAST, 3.5), (EventKind.TOO_FAST, 7.5)]
    s = recorder_with_events(evs)
    assert s.total_reps == 10
    assert s.percent_clean == pytest.approx(0.8)


def test_percent_clean_clamped_at_zero():
    evs = [(EventKind.REP, 0.0)] + [(EventKind.TOO_FAST, 0.1 * i) for i in range(1, 4)]
    s = recorder_with_events(evs)
    assert s.percent_clean == 0.0


def test_zero_rep_session():
    s = recorder_with_events([(EventKind.TOO_FAST, 1.0)])
    assert s.total_reps == 0
    assert s.avg_cadence_rpm == 0
    assert s.best_cadence_30s_rpm == 0
    assert s.percent_clean == 1.0


def test_samples_downsampled_events_not():
    r = SessionRecorder()
    r.start(8.0, T0)
    for t in [0.0, 0.1, 0.2, 0.35, 0.5, 0.7]:
        r.record_sample(10.0, 2.0, True, t, min_interval_s=0.3)
        r.record_event(EventKind.TOO_FAST, t)
    s = r.finish(T0 + timedelta(seconds=1))
    assert [x.t_rel for x in s.samples] == [0.0, 0.35, 0.7]
    assert len(s.events) == 6


def test_times_relative_to_first_record():
    r = SessionRecorder()
    r.start(8.0, T0)
    r.record_sample(12.0, 4.0, False, 1000.0)
    r.record_event(EventKind.REP, 1002.5)
    s = r.finish(T0 + timedelta(seconds=5))
    assert s.samples[0].t_rel == 0.0
    assert s.samples[0].armed is False
    assert s.events == (RecordedEvent(2.5, EventKind.REP),)


def test_record_before_start_is_noop():
    r = SessionRecorder()
    assert r.record_sample(10.0, 2.0, True, 0.0) is False
    r.record_event(EventKind.REP, 0.0)
    s = r.finish(T0)
    assert s.duration_s == 0.0
    assert s.started_at == T0
    assert s.total_reps == 0
    assert s.samples == () and s.events == ()


def test_finish_clears_state_for_reuse():
    r = SessionRecorder()
    r.start(8.0, T0)
    r.record_event(EventKind.REP, 1.0)
    first = r.finish(T0 + timedelta(seconds=30))
    assert first.total_reps == 1
    assert not r.active
    r.record_event(EventKind.REP, 2.0)
    second = r.finish(T0 + timedelta(seconds=60))
    assert second.total_reps == 0
    assert second.id != first.id


def test_negative_wall_duration_clamped():
    r = SessionRecorder()
    r.start(8.0, T0)
    s = r.finish(T0 - timedelta(seconds=5))
    assert s.duration_s == 0.0
    assert s.avg_cadence_rpm == 0.0


def test_session_identity_and_dict_roundtrip():
    sid = uuid.uuid4()
    r = SessionRecorder()
    r.start(6.5, T0)
    r.record_sample(10.0, 3.5, True, 0.0)
    r.record_event(EventKind.REP, 1.0)
    r.record_event(EventKind.TOO_FAST, 1.2)
    s = r.finish(T0 + timedelta(seconds=10), session_id=sid)
    d = s.to_dict()
    assert d["events"] == [{"t": 1.0, "kind": "rep"}, {"t": 1.2, "kind": "too_fast"}]
    back = type(s).from_dict(d)
    assert back == s
    assert hash(back) == hash(s)
    assert back.events == s.events
    assert back.started_at == T0
