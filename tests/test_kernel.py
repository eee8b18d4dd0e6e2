import math

import pytest
import torch

from mcmultigpu.analytic import black_scholes_call
from mcmultigpu.kernel import discounted_payoffs, price_option, price_options
from mcmultigpu.options import OptionBatch, OptionData
from mcmultigpu.paths import PathGenerator, spawn_seeds
from mcmultigpu.statistics import PathMoments


class TestPathGenerator:
    def test_same_seed_same_samples(self):
        first = PathGenerator(42).normals((4, 100))
        second = PathGenerator(42).normals((4, 100))
        assert torch.equal(first, second)

    def test_successive_draws_differ(self):
        generator = PathGenerator(42)
        assert not torch.equal(generator.normals((100,)), generator.normals((100,)))

    @pytest.mark.parametrize("method", ["normal", "box-muller"])
    def test_samples_are_standard_normal(self, method):
        samples = PathGenerator(3, dtype=torch.float64, method=method).normals((200_000,))
        assert abs(float(samples.mean())) < 0.01
        assert float(samples.std()) == pytest.approx(1.0, abs=0.01)

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            PathGenerator(1, method="sobol")

    def test_spawned_seeds_are_distinct_and_reproducible(self):
        seeds = spawn_seeds(123, 8)
        assert len(set(seeds)) == 8
        assert seeds == spawn_seeds(123, 8)
        assert all(0 <= seed < 2**63 for seed in seeds)


class TestPathMoments:
    def test_chunked_reduction_matches_direct_statistics(self):
        values = torch.randn((3, 1000), generator=torch.Generator().manual_seed(0), dtype=torch.float64) * 5 + 40
        moments = PathMoments(3)
        for chunk in torch.split(values, [300, 300, 400], dim=1):
            moments.update(chunk)
        assert moments.count == 1000
        assert torch.allclose(moments.mean, values.mean(dim=1), rtol=0, atol=1e-10)
        assert torch.allclose(moments.std(), values.std(dim=1, unbiased=True), rtol=0, atol=1e-10)

    def test_confidence_is_scaled_standard_error(self):
        values = torch.tensor([[1.0, 2.0, 3.0, 4.0]], dtype=torch.float64)
        moments = PathMoments(1)
        moments.update(values)
        expected = 1.96 * values.std(unbiased=True) / math.sqrt(4)
        assert torch.allclose(moments.confidence(), expected.reshape(1))


class TestPricingKernel:
    def test_payoffs_are_discounted_and_non_negative(self, sample_option):
        data = OptionBatch.from_options([sample_option]).data
        normals = torch.tensor([[0.0, -10.0]])
        payoffs = discounted_payoffs(data, normals)
        terminal = 30.0 * math.exp((0.06 - 0.005) * 2.0)
        assert float(payoffs[0, 0]) == pytest.approx((terminal - 20.0) * math.exp(-0.12), rel=1e-5)
        assert float(payoffs[0, 1]) == 0.0

    def test_same_seed_gives_identical_values(self, sample_option):
        first = price_option(sample_option, PathGenerator(99), 65536)
        second = price_option(sample_option, PathGenerator(99), 65536)
        assert first == second

    def test_estimate_close_to_analytic_price(self, sample_option):
        value = price_option(sample_option, PathGenerator(5, dtype=torch.float64), 262144)
        reference = black_scholes_call(sample_option)
        assert abs(value.expected - reference) < 4 * value.confidence
        assert value.confidence > 0

    def test_confidence_shrinks_with_square_root_of_paths(self, sample_option):
        coarse = price_option(sample_option, PathGenerator(5, dtype=torch.float64), 16384)
        fine = price_option(sample_option, PathGenerator(6, dtype=torch.float64), 65536)
        assert coarse.confidence / fine.confidence == pytest.approx(2.0, rel=0.1)

    def test_block_pricing_with_small_budget_and_grid(self):
        options = [
            OptionData(spot=s, strike=20.0, maturity=2.0, rate=0.06, volatility=0.10) for s in (15.0, 20.0, 35.0, 45.0, 50.0)
        ]
        data = OptionBatch.from_options(options).data.to(torch.float64)
        values = price_options(data, PathGenerator(8, dtype=torch.float64), 50_000, grid_size=2, max_samples=10_000)
        assert values.shape == (5, 2)
        for option, (expected, confidence) in zip(options, values.tolist()):
            assert abs(expected - black_scholes_call(option)) < 5 * confidence + 1e-6

    def test_too_few_paths_rejected(self, sample_option):
        with pytest.raises(ValueError):
            price_option(sample_option, PathGenerator(1), 1)

    def test_empty_block(self):
        values = price_options(torch.empty((0, 5)), PathGenerator(1), 1024)
        assert values.shape == (0, 2)
