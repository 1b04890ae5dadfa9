"""Tests for perturbation scheduling."""

import pytest
import numpy as np
import pandas as pd
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from squadsim.exceptions import InvalidParameterError, InvalidPerturbationError, MissingNodeError
from squadsim.network import example_network
from squadsim.perturbation import (
    EVENT_COLUMNS,
    Perturbation,
    PerturbationScheduler,
    build_event_table,
    check_event_table,
    event_windows,
    perturb_nodes,
)


class TestEventTableConstruction:
    """Test expansion of perturbations into events."""

    def test_single_pulse_rows(self):
        """Test duration 1 at step 0.01 gives two rows at 10.00 and 10.01."""
        events = perturb_nodes(["X"], [10], [1], [0.25], 0.01)
        assert list(events.columns) == EVENT_COLUMNS
        assert len(events) == 2
        np.testing.assert_allclose(events["time"], [10.00, 10.01])
        assert list(events["var"]) == ["X", "X"]
        assert list(events["value"]) == [0.25, 0.25]
        assert set(events["method"]) == {"rep"}

    @pytest.mark.parametrize("duration", [0, 1, 5, 37])
    def test_window_cardinality(self, duration):
        """Test d steps give d + 1 rows."""
        events = perturb_nodes(["A"], [2.5], [duration], [1.0], 0.1)
        assert len(events) == duration + 1
        np.testing.assert_allclose(events["time"].iloc[-1], 2.5 + duration * 0.1)

    def test_zero_duration_single_row(self):
        events = perturb_nodes(["A"], [3], [0], [0.5], 0.01)
        assert len(events) == 1
        assert events["time"].iloc[0] == 3.0

    def test_times_on_grid(self):
        """Test event times equal exact grid values."""
        events = perturb_nodes(["X"], [10], [3], [1.0], 0.01)
        assert list(events["time"]) == [10.0, 10.01, 10.02, 10.03]

    def test_input_order_kept(self):
        """Test rows are concatenated in input order, not sorted by time."""
        events = perturb_nodes(["Y", "X"], [20, 10], [1, 1], [1.0, 0.5], 0.01)
        assert list(events["var"]) == ["Y", "Y", "X", "X"]
        np.testing.assert_allclose(events["time"], [20.0, 20.01, 10.0, 10.01])

    def test_overlapping_rows_kept(self):
        """Test overlapping windows keep both rows; later one comes last."""
        events = perturb_nodes(["X", "X"], [1.0, 1.01], [2, 1], [0.2, 0.9], 0.01)
        at_101 = events[np.isclose(events["time"], 1.01)]
        assert list(at_101["value"]) == [0.2, 0.9]

    def test_off_grid_start_snapped(self):
        """Test start times move forward to the next grid point."""
        with pytest.warns(UserWarning):
            events = perturb_nodes(["X"], [1.004], [0], [1.0], 0.01)
        assert events["time"].iloc[0] == 1.01

    def test_off_grid_start_never_early(self):
        """Test forcing does not begin before the requested time."""
        with pytest.warns(UserWarning):
            events = perturb_nodes(["X"], [10], [1], [1.0], 0.03)
        assert list(events["time"]) == [10.02, 10.05]
        assert events["time"].min() >= 10.0

    def test_records_and_lists_agree(self):
        records = [Perturbation("X", 10, 1, 1.0), Perturbation("Y", 20, 2, 0.5)]
        from_records = build_event_table(records, 0.01)
        from_lists = perturb_nodes(["X", "Y"], [10, 20], [1, 2], [1.0, 0.5], 0.01)
        pd.testing.assert_frame_equal(from_records, from_lists)

    def test_empty(self):
        events = build_event_table([], 0.01)
        assert list(events.columns) == EVENT_COLUMNS
        assert len(events) == 0


class TestPerturbationValidation:
    """Test error handling."""

    def test_mismatched_lengths(self):
        with pytest.raises(InvalidPerturbationError):
            perturb_nodes(["X", "Y"], [10], [1, 1], [1.0, 1.0], 0.01)

    def test_negative_duration(self):
        with pytest.raises(InvalidPerturbationError):
            perturb_nodes(["X"], [10], [-1], [1.0], 0.01)

    def test_fractional_duration(self):
        with pytest.raises(InvalidPerturbationError):
            Perturbation("X", 10, 1.5, 1.0)

    def test_integral_float_duration(self):
        assert Perturbation("X", 10, 2.0, 1.0).duration == 2

    def test_non_finite_intensity(self):
        with pytest.raises(InvalidPerturbationError):
            Perturbation("X", 10, 1, float("nan"))

    @pytest.mark.parametrize("step", [0, -0.01])
    def test_bad_step_size(self, step):
        with pytest.raises(InvalidParameterError):
            perturb_nodes(["X"], [10], [1], [1.0], step)

    def test_unknown_target(self):
        """Test perturbing a node outside the topology."""
        with pytest.raises(MissingNodeError):
            perturb_nodes(["Q"], [10], [1], [1.0], 0.01, network=example_network())

    def test_check_event_table(self):
        events = perturb_nodes(["X"], [10], [1], [1.0], 0.01)
        check_event_table(events, example_network().nodes)
        with pytest.raises(InvalidPerturbationError):
            check_event_table(events.drop(columns=["method"]))
        with pytest.raises(InvalidPerturbationError):
            check_event_table(events.assign(method="add"))
        with pytest.raises(MissingNodeError):
            check_event_table(events, ["A", "B"])


class TestWindowRoundTrip:
    """Test recovering perturbations from an event table."""

    def test_round_trip(self):
        """Test windows re-derived from the table match the input."""
        records = [
            Perturbation("X", 10.0, 1, 1.0),
            Perturbation("Y", 20.0, 0, 0.25),
            Perturbation("X", 15.0, 12, 0.75),
        ]
        events = build_event_table(records, 0.01)
        assert event_windows(events, 0.01) == records

    def test_round_trip_lists(self):
        events = perturb_nodes(["X", "Y"], [10, 20], [1, 1], [0.25, 0.25], 0.01)
        windows = PerturbationScheduler(0.01).windows(events)
        assert [(w.node, w.at_time, w.duration, w.intensity) for w in windows] == [
            ("X", 10.0, 1, 0.25),
            ("Y", 20.0, 1, 0.25),
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
