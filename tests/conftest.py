import matplotlib

matplotlib.use("Agg")

import pytest
import torch

from mcmultigpu.devices import DeviceInfo
from mcmultigpu.options import OptionData, generate_option_batch


def make_devices(count: int, *, compute_units: int = 64) -> list[DeviceInfo]:
    return [
        DeviceInfo(
            index=index,
            name=f"test-cpu-{index}",
            torch_device=torch.device("cpu"),
            compute_units=compute_units,
        )
        for index in range(count)
    ]


@pytest.fixture
def devices_factory():
    return make_devices


@pytest.fixture
def sample_option() -> OptionData:
    return OptionData(spot=30.0, strike=20.0, maturity=2.0, rate=0.06, volatility=0.10)


@pytest.fixture
def small_batch():
    return generate_option_batch(10, seed=123)
