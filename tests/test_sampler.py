"""Tests for the traffic sampler."""

import pytest

from zenoguard_agent.results import EMPTY, TrafficSample
from zenoguard_agent.sampler import TrafficSampler


@pytest.fixture
def sampler(clock):
    return TrafficSampler(sample_interval=300, clock=clock)


class TestSampling:
    """Counter snapshots to delta samples."""

    def test_seed_then_sample(self, sampler, clock):
        """First read seeds, second read produces the delta."""
        assert sampler.sample("eth0", 1000, 500) is None
        assert len(sampler) == 0

        clock.advance(10)
        sample = sampler.sample("eth0", 1500, 700)

        assert len(sampler) == 1
        assert sample.in_bytes == 500
        assert sample.out_bytes == 200
        assert sample.total_bytes == 700
        assert sample.time_delta_seconds == 10.0
        assert sample.timestamp == clock.now

    def test_deltas_sum_to_counter_growth(self, sampler, clock):
        """Non-decreasing counters: sum of deltas equals final minus seed."""
        readings = [(100, 50), (400, 50), (400, 90), (1000, 1000), (1000, 1000), (5000, 1001)]
        for in_bytes, out_bytes in readings:
            sampler.sample("eth0", in_bytes, out_bytes)
            clock.advance(300)

        summary = sampler.drain()
        assert sum(s.in_bytes for s in summary.samples) == 5000 - 100
        assert sum(s.out_bytes for s in summary.samples) == 1001 - 50

    def test_counter_reset_floors_to_zero(self, sampler, clock):
        """A decreasing counter never produces negative traffic."""
        sampler.sample("eth0", 10_000, 10_000)
        clock.advance(300)
        sample = sampler.sample("eth0", 200, 12_000)

        assert sample.in_bytes == 0
        assert sample.out_bytes == 2000
        assert sample.total_bytes == 2000

    def test_reset_continues_from_new_baseline(self, sampler, clock):
        """After a reset the next delta is measured from the reset value."""
        sampler.sample("eth0", 10_000, 10_000)
        clock.advance(300)
        sampler.sample("eth0", 200, 10_500)
        clock.advance(300)
        sample = sampler.sample("eth0", 700, 10_600)

        assert sample.in_bytes == 500
        assert sample.out_bytes == 100

    def test_zero_traffic_sample_discarded(self, sampler, clock):
        """No traffic in either direction is not buffered."""
        sampler.sample("eth0", 1000, 1000)
        clock.advance(300)
        assert sampler.sample("eth0", 1000, 1000) is None
        assert len(sampler) == 0

    def test_both_directions_reset_discarded(self, sampler, clock):
        sampler.sample("eth0", 1000, 1000)
        clock.advance(300)
        assert sampler.sample("eth0", 10, 10) is None
        assert len(sampler) == 0

    def test_interface_change_reseeds(self, sampler, clock):
        """Switching interface drops one sample and starts fresh."""
        sampler.sample("eth0", 1000, 1000)
        clock.advance(300)
        assert sampler.sample("ens3", 50_000, 50_000) is None
        assert sampler.interface == "ens3"
        assert len(sampler) == 0

        clock.advance(300)
        sample = sampler.sample("ens3", 50_100, 50_000)
        assert sample.in_bytes == 100

    def test_interface_change_keeps_buffered_attribution(self, sampler, clock):
        """Traffic buffered before a switch is still reported for its own interface."""
        sampler.sample("eth0", 1000, 500)
        clock.advance(10)
        sampler.sample("eth0", 1500, 700)
        clock.advance(10)
        sampler.sample("eth1", 10**9, 10**9)

        summary = sampler.drain()
        assert summary.interface == "eth0"
        assert summary.samples[0].interface == "eth0"
        assert summary.samples[0].in_bytes == 500

    def test_summary_never_mixes_interfaces(self, sampler, clock):
        """Samples of the new interface wait until the old ones are reported."""
        sampler.sample("eth0", 0, 0)
        clock.advance(300)
        sampler.sample("eth0", 100, 100)
        clock.advance(300)
        sampler.sample("eth1", 5000, 5000)
        clock.advance(300)
        sampler.sample("eth1", 5400, 5000)

        first = sampler.drain()
        assert first.interface == "eth0"
        assert first.sample_count == 1
        assert first.avg_in_rate == pytest.approx(100 / 300)

        sampler.clear(first)
        second = sampler.drain()
        assert second.interface == "eth1"
        assert second.sample_count == 1
        assert second.samples[0].in_bytes == 400

    def test_samples_are_immutable(self, sampler, clock):
        sampler.sample("eth0", 0, 0)
        clock.advance(1)
        sample = sampler.sample("eth0", 1, 1)
        with pytest.raises(AttributeError):
            sample.in_bytes = 5


class TestShouldSample:
    """Sampling cadence."""

    def test_true_before_first_sample(self, sampler):
        assert sampler.should_sample() is True

    def test_false_within_interval(self, sampler, clock):
        sampler.sample("eth0", 1, 1)
        clock.advance(299)
        assert sampler.should_sample() is False

    def test_true_after_interval(self, sampler, clock):
        sampler.sample("eth0", 1, 1)
        clock.advance(300)
        assert sampler.should_sample() is True

    def test_explicit_now(self, sampler, clock):
        sampler.sample("eth0", 1, 1)
        assert sampler.should_sample(now=clock.now + 600) is True


class TestDrain:
    """Summaries of the buffer."""

    def test_empty_buffer_is_empty(self, sampler):
        assert sampler.drain() is EMPTY

    def test_seed_only_is_empty(self, sampler):
        sampler.sample("eth0", 1000, 500)
        assert sampler.drain() is EMPTY

    def test_drain_does_not_remove(self, sampler, clock):
        sampler.sample("eth0", 0, 0)
        clock.advance(10)
        sampler.sample("eth0", 100, 100)

        first = sampler.drain()
        second = sampler.drain()
        assert first.sample_count == 1
        assert second.samples == first.samples
        assert len(sampler) == 1

    def test_time_weighted_average(self, sampler, clock):
        """Average rate is total bytes over total seconds."""
        sampler.sample("eth0", 0, 0)
        clock.advance(100)
        sampler.sample("eth0", 1000, 0)
        clock.advance(300)
        sampler.sample("eth0", 4000, 800)

        summary = sampler.drain()
        assert summary.interface == "eth0"
        assert summary.sample_count == 2
        assert summary.avg_in_rate == pytest.approx(4000 / 400)
        assert summary.avg_out_rate == pytest.approx(800 / 400)

    def test_zero_duration_guarded(self, sampler, clock):
        """Samples taken at the same instant do not divide by zero."""
        sampler.sample("eth0", 0, 0)
        sampler.sample("eth0", 100, 0)

        summary = sampler.drain()
        assert summary.sample_count == 1
        assert summary.avg_in_rate == 0.0
        assert summary.avg_out_rate == 0.0

    def test_order_preserved(self, sampler, clock):
        sampler.sample("eth0", 0, 0)
        for i in range(1, 5):
            clock.advance(300)
            sampler.sample("eth0", i * 100, 0)

        timestamps = [s.timestamp for s in sampler.drain().samples]
        assert timestamps == sorted(timestamps)
        assert len(timestamps) == 4


class TestClear:
    """Buffer clearing after a confirmed report."""

    def _fill(self, sampler, clock, count):
        sampler.sample("eth0", 0, 0)
        for i in range(1, count + 1):
            clock.advance(300)
            sampler.sample("eth0", i * 100, 0)

    def test_clear_all(self, sampler, clock):
        self._fill(sampler, clock, 3)
        sampler.clear()
        assert len(sampler) == 0
        assert sampler.drain() is EMPTY

    def test_clear_keeps_counter_state(self, sampler, clock):
        """Clearing the buffer does not reseed the counters."""
        self._fill(sampler, clock, 2)
        sampler.clear()
        clock.advance(300)
        sample = sampler.sample("eth0", 250, 0)
        assert isinstance(sample, TrafficSample)
        assert sample.in_bytes == 50

    def test_clear_reported_prefix_only(self, sampler, clock):
        """Samples added after the drain survive the clear."""
        self._fill(sampler, clock, 2)
        reported = sampler.drain()

        clock.advance(300)
        late = sampler.sample("eth0", 900, 0)

        sampler.clear(reported)
        remaining = sampler.drain()
        assert remaining.samples == (late,)
