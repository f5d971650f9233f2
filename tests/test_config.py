"""
Tests for run configuration, device selection and system info.
"""

from pathlib import Path

import pytest

from gpubench.backends.base import DeviceClass, DeviceHandle
from gpubench.core.config import RunConfiguration, RunMode
from gpubench.core.device_info import DeviceProfile, get_system_info, select_devices


class TestRunConfiguration:
    def test_defaults(self):
        config = RunConfiguration()
        assert config.mode is RunMode.STANDARD
        assert config.iterations == 5
        assert config.warmup_iterations == 2
        assert config.latency_iterations == 100
        assert config.alloc_iterations == 50
        assert config.suites == ()

    def test_quick(self):
        config = RunConfiguration(quick=True)
        assert config.mode is RunMode.QUICK
        assert config.iterations == 3
        assert config.warmup_iterations == 1
        assert config.latency_iterations == 50
        assert config.alloc_iterations == 25

    def test_full(self):
        assert RunConfiguration(full=True).mode is RunMode.FULL

    def test_quick_wins_over_full(self):
        assert RunConfiguration(quick=True, full=True).mode is RunMode.QUICK

    @pytest.mark.parametrize("size", [0, -8])
    def test_rejects_non_positive_size(self, size):
        with pytest.raises(ValueError, match="positive"):
            RunConfiguration(size=size)

    @pytest.mark.parametrize("name", ["out.json", "out.md", "OUT.MD"])
    def test_accepts_export_formats(self, name):
        assert RunConfiguration(export_path=Path(name)).export_path == Path(name)

    def test_rejects_other_export_formats(self):
        with pytest.raises(ValueError, match="Unsupported export format"):
            RunConfiguration(export_path=Path("out.csv"))

    def test_is_immutable(self):
        config = RunConfiguration()
        with pytest.raises(AttributeError):
            config.quick = True


@pytest.fixture
def handles():
    return [
        DeviceHandle(0, "NVIDIA GeForce RTX 4090", DeviceClass.CUDA),
        DeviceHandle(1, "AMD Radeon RX 7900", DeviceClass.ROCM),
        DeviceHandle(0, "AMD Ryzen 9 7950X", DeviceClass.CPU),
    ]


class TestSelectDevices:
    def test_no_filter_keeps_all(self, handles):
        assert select_devices(handles) == handles
        assert select_devices(handles, "") == handles

    def test_index(self, handles):
        assert select_devices(handles, "2") == [handles[2]]

    def test_gpu_class(self, handles):
        assert select_devices(handles, "gpu") == handles[:2]

    @pytest.mark.parametrize("key, index", [("cuda", 0), ("ROCm", 1), ("CPU", 2)])
    def test_device_class(self, handles, key, index):
        assert select_devices(handles, key) == [handles[index]]

    def test_name_substring(self, handles):
        assert select_devices(handles, "amd") == handles[1:]
        assert select_devices(handles, " RTX ") == [handles[0]]

    @pytest.mark.parametrize("key", ["7", "intel"])
    def test_no_match_raises(self, handles, key):
        with pytest.raises(ValueError, match="No device matches"):
            select_devices(handles, key)


class TestDeviceProfile:
    def test_from_accelerator(self, make_device):
        accelerator = make_device("Mock GPU", memory_size=1024)
        profile = DeviceProfile.from_accelerator(accelerator, 3)

        assert profile.name == "Mock GPU"
        assert profile.device_index == 3
        assert profile.memory_size == 1024
        assert profile.driver_version == "555.42"
        assert not profile.is_cpu
        assert profile.color == "green"

    def test_cpu_profile(self, cpu_profile):
        assert cpu_profile.is_cpu
        assert cpu_profile.color == "yellow"


def test_system_info():
    info = get_system_info()
    for key in ("platform", "machine", "python_version", "pytorch_version"):
        assert isinstance(info[key], str)
