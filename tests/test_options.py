import pytest
import torch

from mcmultigpu.errors import InvalidInputError
from mcmultigpu.options import (
    EXPECTED,
    MATURITY,
    RATE,
    SPOT,
    STRIKE,
    UNSET,
    VOLATILITY,
    OptionBatch,
    OptionData,
    OptionValue,
    generate_option_batch,
)
from mcmultigpu.timing import StopWatch


class TestOptionBatch:
    def test_generated_parameters_within_ranges(self):
        batch = generate_option_batch(500, seed=123)
        data = batch.data
        assert data.shape == (500, 5)
        assert torch.all((data[:, SPOT] >= 5.0 - 1e-4) & (data[:, SPOT] <= 50.0 + 1e-4))
        assert torch.all((data[:, STRIKE] >= 10.0 - 1e-4) & (data[:, STRIKE] <= 25.0 + 1e-4))
        assert torch.all((data[:, MATURITY] >= 1.0 - 1e-4) & (data[:, MATURITY] <= 5.0 + 1e-4))
        assert torch.allclose(data[:, RATE], torch.full((500,), 0.06))
        assert torch.allclose(data[:, VOLATILITY], torch.full((500,), 0.10))

    def test_generation_is_reproducible(self):
        first = generate_option_batch(32, seed=7)
        second = generate_option_batch(32, seed=7)
        assert torch.equal(first.data, second.data)

    def test_values_start_unset(self, small_batch):
        assert small_batch.unset_indices() == list(range(10))
        assert not small_batch.value(0).is_set

    def test_values_view_writes_through(self, small_batch):
        view = small_batch.values_view(2, 3)
        view.fill_(1.5)
        assert small_batch.value(3) == OptionValue(expected=1.5, confidence=1.5)
        assert small_batch.unset_indices() == [0, 1, 5, 6, 7, 8, 9]

    def test_reset_restores_sentinel(self, small_batch):
        small_batch.values[:, EXPECTED] = 3.0
        small_batch.reset_values()
        assert torch.all(small_batch.values == UNSET)

    def test_failed_indices_reports_nan_rows(self, small_batch):
        small_batch.values_view(4, 2).fill_(float("nan"))
        assert small_batch.failed_indices() == [4, 5]

    def test_out_of_range_view_rejected(self, small_batch):
        with pytest.raises(IndexError):
            small_batch.data_view(8, 5)

    def test_round_trip_through_option_data(self, sample_option):
        batch = OptionBatch.from_options([sample_option])
        option = batch.option(0)
        assert option.spot == pytest.approx(30.0)
        assert option.volatility == pytest.approx(0.10)

    def test_non_finite_option_rejected(self):
        with pytest.raises(InvalidInputError):
            OptionData(spot=float("nan"), strike=10.0, maturity=1.0, rate=0.06, volatility=0.1)


class TestStopWatch:
    def test_accumulates_and_resets(self):
        watch = StopWatch()
        assert watch.elapsed_ms() == 0.0
        watch.start()
        assert watch.running
        watch.stop()
        first = watch.elapsed_ms()
        assert first >= 0.0
        watch.start()
        watch.stop()
        assert watch.elapsed_ms() >= first
        watch.reset()
        assert watch.elapsed_ms() == 0.0
        assert not watch.running
