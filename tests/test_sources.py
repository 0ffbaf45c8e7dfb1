import asyncio
import math

import pytest

from pushup_rep_engine.sources import CsvDistanceSource, DistanceSample, SyntheticDistanceSource


def test_synthetic_samples_follow_sine():
    src = SyntheticDistanceSource(rate_hz=10, center_cm=10, amplitude_cm=5, freq_hz=0.5)
    src.start()
    out = list(src.samples(2.0))
    assert len(out) == 21
    assert out[0] == DistanceSample(10.0, 0.0)
    # quarter period at 0.5 Hz is the peak
    assert out[5].cm == pytest.approx(15.0)
    assert out[-1].t == pytest.approx(2.0)


def test_synthetic_needs_start():
    src = SyntheticDistanceSource()
    assert list(src.samples(1.0)) == []


def test_synthetic_noise_is_seeded():
    a = SyntheticDistanceSource(noise_cm=0.5, seed=3)
    b = SyntheticDistanceSource(noise_cm=0.5, seed=3)
    a.start()
    b.start()
    assert [s.cm for s in a.samples(1.0)] == [s.cm for s in b.samples(1.0)]


def test_synthetic_rejects_bad_rate():
    with pytest.raises(ValueError):
        SyntheticDistanceSource(rate_hz=0)


def test_synthetic_async_stream():
    src = SyntheticDistanceSource(rate_hz=20)
    src.start()

    async def collect():
        return [s async for s in src.stream(0.5)]

    out = asyncio.run(collect())
    assert len(out) == 11


def test_csv_replay_with_glitches(tmp_path):
    p = tmp_path / "capture.csv"
    p.write_text("t,cm\n0.0,10\n0.1,abc\n0.2,5\nbad,7\n0.3,9.5\n", encoding="utf-8")
    src = CsvDistanceSource(p)
    src.start()
    out = list(src.samples())
    assert [s.t for s in out] == [0.0, 0.1, 0.2, 0.3]
    assert math.isnan(out[1].cm)
    assert out[2].cm == 5.0


def test_csv_duration_and_t_sec_column(tmp_path):
    p = tmp_path / "export.csv"
    p.write_text("t_sec,cm,threshold,armed\n1.0,10,2,true\n2.0,9,2,true\n5.0,8,2,false\n", encoding="utf-8")
    src = CsvDistanceSource(p)
    src.start()
    assert [s.t for s in src.samples(1.5)] == [1.0, 2.0]


def test_csv_missing_columns(tmp_path):
    p = tmp_path / "bad.csv"
    p.write_text("time,distance\n0,1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        CsvDistanceSource(p)
