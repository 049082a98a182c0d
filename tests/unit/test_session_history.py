"""Unit tests for the session history ring buffer and metrics."""

import pytest

from cadence.intelligence import SessionHistory, error_clusters
from cadence.types import Action, Position


class TestRingBuffer:
    def test_capacity_three_keeps_latest(self, make_action):
        history = SessionHistory(max_size=3)
        a, b, c, d = (make_action(t, type=name) for t, name in enumerate("ABCD"))
        for action in (a, b, c, d):
            history.add(action)
        assert history.get_all() == [b, c, d]
        assert history.get_latest(2) == [d, c]

    def test_get_all_chronological_across_wraps(self, make_action):
        history = SessionHistory(max_size=4)
        for t in range(11):
            history.add(make_action(t))
        assert [a.timestamp for a in history.get_all()] == [7, 8, 9, 10]

    def test_get_latest_more_than_size(self, make_action):
        history = SessionHistory(max_size=5)
        history.add(make_action(1))
        history.add(make_action(2))
        assert [a.timestamp for a in history.get_latest(10)] == [2, 1]
        assert history.get_latest(0) == []

    def test_add_normalises_mapping(self):
        history = SessionHistory()
        action = history.add({"type": "swipe", "timestamp": 10, "end_pos": {"x": 3, "y": 4}})
        assert isinstance(action, Action)
        assert action.success is True
        assert action.duration_ms == 0
        assert action.start_pos == Position(0, 0)
        assert action.distance == 5

    @pytest.mark.parametrize("bad", [{"timestamp": 1}, {"type": "x"}, "nope", None])
    def test_add_rejects_invalid(self, bad):
        history = SessionHistory()
        assert history.add(bad) is None
        assert history.size() == 0

    def test_stats_and_clear(self, make_action):
        history = SessionHistory(max_size=2)
        for t in range(3):
            history.add(make_action(t))
        assert history.get_stats() == {
            "max_size": 2,
            "current_size": 2,
            "total_actions": 3,
            "is_full": True,
        }
        history.clear()
        assert history.size() == 0
        assert history.get_stats()["total_actions"] == 0

    def test_recorded_action_metadata_is_read_only(self):
        history = SessionHistory()
        source = {"route": "/home"}
        action = history.add({"type": "tap", "timestamp": 1, "metadata": source})
        source["route"] = "/changed"
        with pytest.raises(TypeError):
            action.metadata["route"] = "/x"
        assert action.metadata["route"] == "/home"
        assert action.to_dict()["metadata"] == {"route": "/home"}

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SessionHistory(max_size=0)


class TestMetrics:
    def test_empty(self):
        metrics = SessionHistory().get_metrics()
        assert metrics.total == 0
        assert metrics.error_rate == 0
        assert metrics.velocity_profile == []

    def test_basic_metrics(self, make_action, history):
        history.add(make_action(0, type="tap", duration=100, end_pos=Position(10, 0)))
        history.add(make_action(200, type="tap", success=False, duration=300))
        history.add(make_action(500, type="swipe", duration=0, end_pos=Position(5, 0)))
        history.add(make_action(900, type="pinch", success=False, duration=200))

        m = history.get_metrics()
        assert m.total == 4
        assert m.error_rate == 0.5
        assert m.average_duration == 150
        # 10/100, then zero-distance, zero-duration and zero-distance actions
        assert m.average_speed == pytest.approx(0.1 / 4)
        assert m.action_variety == 3 / 4
        assert m.action_types == {"tap": 2, "swipe": 1, "pinch": 1}
        assert [(e.timestamp, e.time_since_last) for e in m.recent_errors] == [(200, 0), (900, 700)]
        assert m.time_window == 900

    def test_window_uses_latest_actions(self, make_action, history):
        for t in range(10):
            history.add(make_action(t * 100, success=t < 5))
        assert history.get_metrics(window=5).error_rate == 1.0
        assert history.get_metrics().error_rate == 0.5

    def test_velocity_profile(self, make_action, history):
        history.add(make_action(0, end_pos=Position(0, 0)))
        history.add(make_action(100, end_pos=Position(10, 0)))
        history.add(make_action(200, end_pos=Position(30, 0)))
        profile = history.get_metrics().velocity_profile
        assert profile[0].velocity == 0 and profile[0].acceleration == 0
        assert profile[1].velocity == pytest.approx(0.1)
        assert profile[1].acceleration == pytest.approx(0.001)
        assert profile[2].velocity == pytest.approx(0.3)
        assert profile[2].acceleration == pytest.approx(0.002)

    def test_steady_motion_has_no_acceleration(self, make_action, history):
        history.add(make_action(0, end_pos=Position(100, 0)))
        history.add(make_action(100, end_pos=Position(100, 0)))
        profile = history.get_metrics().velocity_profile
        assert profile[1].velocity == pytest.approx(1.0)
        assert profile[1].acceleration == 0

    def test_acceleration_uses_previous_gap(self, make_action, history):
        history.add(make_action(0, end_pos=Position(0, 0)))
        history.add(make_action(50, end_pos=Position(10, 0)))
        history.add(make_action(250, end_pos=Position(20, 0)))
        profile = history.get_metrics().velocity_profile
        # previous velocity is 10 over its own 50ms gap
        assert profile[2].velocity == pytest.approx(0.1)
        assert profile[2].acceleration == pytest.approx((0.1 - 0.2) / 200)

    def test_metrics_to_dict(self, make_action, history):
        history.add(make_action(0, success=False))
        data = history.get_metrics().to_dict()
        assert data["recent_errors"][0]["type"] == "tap"


class TestErrorClusters:
    def test_single_cluster_of_four(self, make_action, history):
        times = [0, 11_000, 22_000, 22_300, 22_600, 22_900, 34_000, 45_000, 56_000, 67_000]
        for i, t in enumerate(times, start=1):
            history.add(make_action(t, success=not 3 <= i <= 6))
        report = history.get_error_clusters(time_window_ms=5000)
        assert report.total_clusters == 1
        assert report.max_cluster_size == 4
        assert report.average_cluster_size == 4
        assert [a.timestamp for a in report.clusters[0]] == [22_000, 22_300, 22_600, 22_900]

    def test_isolated_errors_not_reported(self, make_action):
        actions = [make_action(t, success=False) for t in (0, 10_000, 20_000)]
        report = error_clusters(actions, 5000)
        assert report.total_clusters == 0
        assert report.max_cluster_size == 0

    def test_multiple_clusters(self, make_action):
        actions = [make_action(t, success=False) for t in (0, 100, 200, 20_000, 20_100)]
        report = error_clusters(actions, 1000)
        assert report.total_clusters == 2
        assert report.max_cluster_size == 3
        assert report.average_cluster_size == 2.5

    def test_no_errors(self, make_action):
        report = error_clusters([make_action(0)], 1000)
        assert report.clusters == []
