"""
Framelens Test Suite - Counter Attribution Tests
================================================
Tests for selecting counter samples and extrapolating them to frames.
"""

import math

import pytest

from framelens.analysis.attribution import (
    CounterAttributor,
    attribute_counters,
    average,
    estimate_counters,
    extrapolate,
)
from framelens.analysis.frames import Frame
from framelens.core.schema import AttributedCounters, CounterType
from framelens.core.utils import ms_to_ns


class TestExtrapolate:
    """Tests for rate normalisation."""

    def test_rate_times_interval(self, make_sample):
        samples = [make_sample(0, CounterType.L2_MISS, 100, duration_ms=100)]
        assert extrapolate(samples, 100) == pytest.approx(100.0)
        assert extrapolate(samples, 50) == pytest.approx(50.0)

    def test_durations_are_summed(self, make_sample):
        samples = [
            make_sample(0, CounterType.L2_MISS, 30, duration_ms=10),
            make_sample(10, CounterType.L2_MISS, 70, duration_ms=40),
        ]
        assert extrapolate(samples, 100) == pytest.approx(200.0)

    def test_no_samples(self):
        assert extrapolate([], 100) == 0.0

    def test_zero_duration(self, make_sample):
        samples = [make_sample(0, CounterType.L2_MISS, 100, duration_ms=0)]

        value = extrapolate(samples, 100)

        assert value == 0.0
        assert math.isfinite(value)

    def test_average(self, make_sample):
        samples = [make_sample(0, CounterType.IPC, 1.0), make_sample(10, CounterType.IPC, 2.0)]
        assert average(samples) == pytest.approx(1.5)
        assert average([]) == 0.0


class TestAttributeCounters:
    """Tests for the per-frame estimate."""

    @pytest.fixture
    def steady_samples(self, make_sample):
        """Every 10 ms: 5 L2 misses over 10 ms, IPC 1.2."""
        samples = []
        for t in range(0, 200, 10):
            samples.append(make_sample(t, CounterType.L2_MISS, 5, duration_ms=10))
            samples.append(make_sample(t, CounterType.IPC, 1.2, duration_ms=10))
        return samples

    def test_linear_in_interval(self, steady_samples, at):
        short = attribute_counters(steady_samples, 0, at(0), at(100))
        long = attribute_counters(steady_samples, 0, at(0), at(200))

        assert short.l2_misses == pytest.approx(50.0)
        assert long.l2_misses == pytest.approx(100.0)
        assert short.ipc == pytest.approx(1.2)
        assert long.ipc == pytest.approx(1.2)

    def test_explicit_interval(self, steady_samples, at):
        counters = attribute_counters(steady_samples, 0, at(0), at(100), interval_ms=20)
        assert counters.l2_misses == pytest.approx(10.0)

    def test_l1_is_l2_miss_plus_l2_hit(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L2_MISS, 100),
            make_sample(0, CounterType.L2_HIT, 20),
        ]

        counters = attribute_counters(samples, 0, at(0), at(100))

        assert counters.l1_misses == pytest.approx(120.0)
        assert counters.l1_misses == counters.l2_misses + counters.l2_hits

    def test_no_samples_is_exact_zero(self, at):
        counters = attribute_counters([], 0, at(0), at(100))

        assert counters == AttributedCounters.zero()
        assert counters.is_zero()
        assert all(math.isfinite(v) for v in counters.to_dict().values())

    def test_zero_duration_kind_only_zeroes_that_kind(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L2_MISS, 100, duration_ms=0),
            make_sample(0, CounterType.L3_MISS, 40, duration_ms=100),
        ]

        counters = attribute_counters(samples, 0, at(0), at(100))

        assert counters.l2_misses == 0.0
        assert counters.l3_misses == pytest.approx(40.0)

    def test_tlb_uses_own_durations(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L2_MISS, 100, duration_ms=100),
            make_sample(0, CounterType.TLB_MISS, 10, duration_ms=50),
        ]

        counters = attribute_counters(samples, 0, at(0), at(100))

        assert counters.tlb_misses == pytest.approx(20.0)
        assert counters.l2_misses == pytest.approx(100.0)

    def test_tlb_without_cache_samples(self, make_sample, at):
        counters = attribute_counters(
            [make_sample(0, CounterType.TLB_MISS, 10)], 0, at(0), at(100)
        )

        assert counters.tlb_misses == pytest.approx(10.0)
        assert counters.l2_misses == 0.0

    def test_clock_counters_averaged(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L2_CLOCK, 0.4),
            make_sample(50, CounterType.L2_CLOCK, 0.6),
            make_sample(0, CounterType.L3_CLOCK, 0.2),
        ]

        counters = attribute_counters(samples, 0, at(0), at(100))

        assert counters.l2_clock == pytest.approx(0.5)
        assert counters.l3_clock == pytest.approx(0.2)

    def test_other_cores_ignored(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L2_MISS, 100, core=0),
            make_sample(0, CounterType.L2_MISS, 900, core=1),
        ]

        assert attribute_counters(samples, 0, at(0), at(100)).l2_misses == pytest.approx(100.0)
        assert attribute_counters(samples, 1, at(0), at(100)).l2_misses == pytest.approx(900.0)

    def test_window_inclusive_at_both_ends(self, make_sample, at):
        samples = [
            make_sample(0, CounterType.L3_MISS, 10),
            make_sample(100, CounterType.L3_MISS, 30),
            make_sample(101, CounterType.L3_MISS, 1000),
        ]

        counters = attribute_counters(samples, 0, at(0), at(100))

        # Two 100 ms samples summing to 40 -> 20 per 100 ms
        assert counters.l3_misses == pytest.approx(20.0)

    def test_every_counter_kind_reaches_its_field(self, make_sample):
        samples = [make_sample(0, kind, 10.0) for kind in CounterType]

        counters = estimate_counters(samples, 100)

        assert counters.to_dict() == {
            "l1_misses": pytest.approx(20.0),
            "l2_misses": pytest.approx(10.0),
            "l3_misses": pytest.approx(10.0),
            "l2_hits": pytest.approx(10.0),
            "l3_hits": pytest.approx(10.0),
            "ipc": pytest.approx(10.0),
            "l2_clock": pytest.approx(10.0),
            "l3_clock": pytest.approx(10.0),
            "tlb_misses": pytest.approx(10.0),
        }

    def test_estimate_counters_directly(self, make_sample):
        counters = estimate_counters([make_sample(0, CounterType.L3_HIT, 7)], 100)
        assert counters.l3_hits == pytest.approx(7.0)


class TestCounterAttributor:
    """Tests for frame-set attribution."""

    @pytest.fixture
    def samples(self, make_sample):
        return [
            make_sample(150, CounterType.L2_MISS, 60, core=1),
            make_sample(0, CounterType.L2_MISS, 100),
            make_sample(100, CounterType.L2_MISS, 300),
            make_sample(200, CounterType.L2_MISS, 500),
            make_sample(0, CounterType.IPC, 2.0),
        ]

    def test_select_is_inclusive(self, samples, at):
        attributor = CounterAttributor(samples)

        selected = attributor.select(0, at(0), at(100))

        assert [s.value for s in selected] == [100, 2.0, 300]
        assert attributor.select(3, at(0), at(100)) == []
        assert attributor.sample_count == 5

    def test_matches_pure_function(self, samples, at):
        attributor = CounterAttributor(samples)

        for core in (0, 1):
            for start in (0, 100):
                frame = Frame(start_ns=at(start), duration_ns=ms_to_ns(100), core=core)
                expected = attribute_counters(samples, core, at(start), at(start + 100))
                assert attributor.attribute(frame) == expected

    def test_attribute_does_not_modify_frame(self, samples, at):
        frame = Frame(start_ns=at(0), duration_ns=ms_to_ns(100), core=0)

        CounterAttributor(samples).attribute(frame)

        assert frame.counters.is_zero()

    def test_attribute_all(self, samples, at):
        frames = [
            Frame(start_ns=at(0), duration_ns=ms_to_ns(100), core=0),
            Frame(start_ns=at(100), duration_ns=ms_to_ns(100), core=0),
            Frame(start_ns=at(100), duration_ns=ms_to_ns(100), core=1),
            Frame(start_ns=at(300), duration_ns=ms_to_ns(100), core=1),
        ]

        CounterAttributor(samples, workers=2).attribute_all(frames)

        assert frames[0].counters.l2_misses == pytest.approx(200.0)
        assert frames[0].counters.ipc == pytest.approx(2.0)
        assert frames[1].counters.l2_misses == pytest.approx(400.0)
        assert frames[2].counters.l2_misses == pytest.approx(60.0)
        assert frames[3].counters.is_zero()

    def test_attribute_all_empty(self):
        assert CounterAttributor([]).attribute_all([]) == []
