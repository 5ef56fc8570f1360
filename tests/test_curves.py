from __future__ import annotations

import numpy as np
import pytest

from funlib.analysis.features import channel_stats
from funlib.analysis.peaks import actions_to_zigzag, connect_segments, peak_kinds, speeds, split_to_segments
from funlib.analysis.simplify import line_deviation, simplify_linear_curve
from funlib.analysis.smoothing import device_smooth, limit_peak_speed, moving_average, smooth_curve
from funlib.core.models import Action

from _factories import line, sine, zigzag


def _pairs(actions):
    return [(a.at, a.pos) for a in actions]


def test_speeds_and_peak_kinds() -> None:
    actions = [Action(0, 0), Action(1000, 100), Action(1500, 50), Action(2000, 0), Action(3000, 100)]
    np.testing.assert_allclose(speeds(actions), [100, -100, -100, 100])
    assert list(peak_kinds(actions)) == [1, 1, 0, -1, -1]
    assert _pairs(actions_to_zigzag(actions)) == [(0, 0), (1000, 100), (2000, 0), (3000, 100)]


def test_segments_share_boundaries() -> None:
    actions = [Action(0, 0), Action(1000, 100), Action(1500, 50), Action(2000, 0)]
    segments = split_to_segments(actions)
    assert [len(s) for s in segments] == [2, 3]
    assert segments[0][-1] is segments[1][0]
    assert connect_segments(segments) == actions


def test_limit_peak_speed_pulls_peaks_together() -> None:
    actions = zigzag(9, 1000)
    result = limit_peak_speed(actions, 50)

    assert result.converged
    assert result.passes == 1
    assert [a.pos for a in result.actions] == [25, 75, 25, 75, 25, 75, 25, 75, 25]
    np.testing.assert_allclose(speeds(result.actions), [50, -50, 50, -50, 50, -50, 50, -50])
    assert actions[0].pos == 0


def test_limit_peak_speed_reinterpolates_interior_points() -> None:
    actions = [Action(0, 0), Action(500, 50), Action(1000, 100), Action(2000, 0)]
    result = limit_peak_speed(actions, 50)
    at_500 = next(a for a in result.actions if a.at == 500)
    first, crest = result.actions[0], result.actions[2]
    assert at_500.pos == pytest.approx((first.pos + crest.pos) / 2)


def test_limit_peak_speed_is_identity_when_slow_enough() -> None:
    actions = zigzag(5, 1000, 40, 60)
    result = limit_peak_speed(actions, 550)
    assert result.passes == 0
    assert _pairs(result.actions) == _pairs(actions)
    assert result.actions[0] is not actions[0]


def test_device_smooth_respects_device_limits() -> None:
    actions = zigzag(21, 100)
    smoothed = device_smooth(actions)

    assert [a.at for a in smoothed] == sorted(a.at for a in smoothed)
    assert all(0 <= a.pos <= 100 for a in smoothed)
    assert all(float(a.at).is_integer() and float(a.pos).is_integer() for a in smoothed)
    assert np.max(np.abs(speeds(smoothed))) <= 560
    assert actions[1].pos == 100


def test_device_smooth_drops_non_finite_actions(caplog) -> None:
    actions = [Action(0, 0), Action(100, float("nan")), Action(200, 100), Action(300, 0)]
    smoothed = device_smooth(actions)

    assert len(smoothed) >= 2
    assert all(np.isfinite(a.pos) and np.isfinite(a.at) for a in smoothed)
    assert {a.at for a in smoothed} <= {0, 200, 300}
    assert "non-finite" in caplog.text


def test_device_smooth_thins_dense_segments() -> None:
    actions = line(0, 100, 41, 25)
    smoothed = device_smooth(actions)
    assert _pairs(smoothed) == [(0, 0), (1000, 100)]


@pytest.mark.parametrize("count", [0, 1])
def test_transforms_are_identity_for_short_input(count: int) -> None:
    actions = zigzag(count)
    assert _pairs(device_smooth(actions)) == _pairs(actions)
    assert _pairs(smooth_curve(actions)) == _pairs(actions)
    assert _pairs(simplify_linear_curve(actions, 1)) == _pairs(actions)
    assert limit_peak_speed(actions, 10).converged


def test_simplify_linear_curve_keeps_peaks() -> None:
    straight = line(0, 100, 11, 100)
    assert line_deviation(straight) == pytest.approx(0)
    assert _pairs(simplify_linear_curve(straight, 1)) == [(0, 0), (1000, 100)]

    wavy = zigzag(7, 500)
    assert _pairs(simplify_linear_curve(wavy, 1)) == _pairs(wavy)


def test_smoothing_filters_do_not_mutate() -> None:
    actions = sine()
    before = _pairs(actions)
    smoothed = smooth_curve(actions, time_radius=250, iterations=2, preserve_ends=True)
    averaged = moving_average(actions, 3)

    assert _pairs(actions) == before
    assert _pairs(smoothed)[0] == before[0]
    assert _pairs(smoothed)[-1] == before[-1]
    assert max(a.pos for a in smoothed) < max(a.pos for a in actions)
    assert len(averaged) == len(actions)


def test_channel_stats() -> None:
    stats = channel_stats(zigzag(9, 1000))
    assert stats.action_count == 9
    assert stats.max_speed == pytest.approx(100)
    assert stats.avg_speed == pytest.approx(100)
    assert stats.to_mapping() == {"Duration": "0:08", "ActionCount": 9, "MaxSpeed": 100, "AvgSpeed": 100}
