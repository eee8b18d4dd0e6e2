import math

import pytest

import monte_carlo_multi_gpu
from mcmultigpu import runtime
from mcmultigpu.aggregate import AccuracyReport
from mcmultigpu.devices import DeviceContext
from mcmultigpu.errors import ConfigurationError, DeviceError
from mcmultigpu.runtime import RunConfig, execute_run


def test_sixteen_option_single_device_run_passes(devices_factory):
    config = RunConfig(method="streamed", scaling="weak", options=16, paths=262144)
    result = execute_run(config, devices=devices_factory(1), suppress_output=True)

    batch = result["batch"]
    assert len(batch) == 16
    assert batch.unset_indices() == []
    assert math.isfinite(result["accuracy"].l1_norm)
    assert result["accuracy"].average_reserve > 1.0
    assert result["exit_code"] == 0

    messages = result["messages"]
    assert "Using single CPU thread for multiple GPUs" in messages
    assert "Total number of options = 16" in messages
    assert "Number of paths         = 262144" in messages
    assert "\tNote: This is elapsed time for all to compute." in messages
    assert messages[-4] == "Test Summary..."
    assert messages[-3].startswith("L1 norm        : ")
    assert messages[-2].startswith("Average reserve: ")
    assert messages[-1] == "Test passed"


def test_weak_scaling_grows_with_devices(devices_factory):
    config = RunConfig(method="threaded", options=6, paths=8192)
    result = execute_run(config, devices=devices_factory(3), suppress_output=True)
    assert len(result["batch"]) == 18
    assert [plan.option_count for plan in result["partition"]] == [6, 6, 6]
    assert "main(): waiting for GPU results..." in result["messages"]
    assert sum(line.startswith("Total time (ms.): ") for line in result["messages"]) == 3


def test_strong_scaling_keeps_problem_size(devices_factory):
    config = RunConfig(method="streamed", scaling="strong", options=7, paths=8192)
    result = execute_run(config, devices=devices_factory(3), suppress_output=True)
    assert len(result["batch"]) == 7
    assert [plan.option_count for plan in result["partition"]] == [3, 2, 2]


def test_small_devices_shrink_the_batch(devices_factory):
    config = RunConfig(options=8192, paths=4096)
    result = execute_run(config, devices=devices_factory(2, compute_units=8), suppress_output=True)
    assert len(result["batch"]) == 8


def test_qatest_runs_both_methods(devices_factory):
    config = RunConfig(qatest=True, options=4, paths=65536)
    result = execute_run(config, devices=devices_factory(2), suppress_output=True)
    assert [run.method for run in result["runs"]] == ["threaded", "streamed"]
    assert "main(): GPU statistics, threaded" in result["messages"]
    assert "main(): GPU statistics, streamed" in result["messages"]
    threaded, streamed = (run.accuracy for run in result["runs"])
    assert threaded.l1_norm == pytest.approx(streamed.l1_norm, rel=0.5)


def failing_report(batch, reference=None):
    return AccuracyReport(l1_norm=0.1, average_reserve=0.5, option_count=len(batch))


def test_device_failure_fails_the_run(devices_factory, monkeypatch):
    original_launch = DeviceContext.launch

    def flaky_launch(self):
        if self.plan.device.index == 1:
            raise DeviceError("boom", device_index=1)
        original_launch(self)

    monkeypatch.setattr(DeviceContext, "launch", flaky_launch)
    config = RunConfig(method="streamed", options=4, paths=8192)
    result = execute_run(config, devices=devices_factory(2), suppress_output=True)

    assert result["exit_code"] == 1
    assert "Device #1 failed (4 options): device #1: boom" in result["messages"]
    assert result["accuracy"].failed_count == 4
    assert result["messages"][-1] == "Test failed!"


def test_low_reserve_fails_the_run(devices_factory, monkeypatch):
    monkeypatch.setattr(runtime, "compare_with_reference", failing_report)
    config = RunConfig(method="threaded", options=4, paths=8192)
    result = execute_run(config, devices=devices_factory(2), suppress_output=True)

    assert not result["runs"][-1].execution.failures
    assert result["exit_code"] == 1
    assert result["messages"][-2] == "Average reserve: 0.500000"
    assert result["messages"][-1] == "Test failed!"


def test_plots_are_saved(devices_factory, tmp_path):
    config = RunConfig(options=4, paths=4096, plot_dir=tmp_path)
    result = execute_run(config, devices=devices_factory(2), suppress_output=True)
    assert len(result["saved_paths"]) == 2
    assert all(path.exists() for path in result["saved_paths"])


@pytest.mark.parametrize(
    "overrides",
    [{"method": "fast"}, {"scaling": "linear"}, {"options": 0}, {"paths": 1}, {"devices": 0}, {"precision": "float16"}],
)
def test_invalid_configuration_rejected(overrides):
    with pytest.raises(ConfigurationError):
        RunConfig(**overrides)


class TestCommandLine:
    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            monte_carlo_multi_gpu.parse_args(["--help"])
        assert excinfo.value.code == 0
        assert "--method" in capsys.readouterr().out

    def test_defaults(self):
        args = monte_carlo_multi_gpu.parse_args([])
        assert args.method == "streamed"
        assert args.scaling == "weak"
        assert args.qatest is False
        assert args.paths == 262144

    def test_method_is_case_insensitive(self):
        args = monte_carlo_multi_gpu.parse_args(["--method=Threaded", "--scaling=STRONG"])
        assert args.method == "threaded"
        assert args.scaling == "strong"

    def test_invalid_method_is_a_usage_error(self):
        with pytest.raises(SystemExit) as excinfo:
            monte_carlo_multi_gpu.parse_args(["--method=fast"])
        assert excinfo.value.code == 2

    def test_configuration_error_exit_code(self):
        assert monte_carlo_multi_gpu.main(["--device", "cpu", "--options", "0"]) == 2

    def test_cpu_run_prints_report(self, capsys):
        code = monte_carlo_multi_gpu.main(["--device", "cpu", "--devices", "2", "--options", "2", "--paths", "65536"])
        out = capsys.readouterr().out
        assert code in (0, 1)
        assert "MonteCarloMultiGPU\n==================" in out
        assert "Test Summary..." in out
        assert out.rstrip().endswith("Test passed" if code == 0 else "Test failed!")

    def test_statistical_failure_exit_code(self, capsys, monkeypatch):
        monkeypatch.setattr(runtime, "compare_with_reference", failing_report)
        code = monte_carlo_multi_gpu.main(["--device", "cpu", "--devices", "2", "--options", "2", "--paths", "4096"])
        assert code == 1
        assert capsys.readouterr().out.rstrip().endswith("Test failed!")
