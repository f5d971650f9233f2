"""
Tests for the benchmark kernels and the torch backend.
"""

import numpy as np
import pytest
import torch

from gpubench.backends.base import DeviceClass, LaunchDomain
from gpubench.backends.torch_backend import TorchBackend
from gpubench.core.errors import BackendError
from gpubench.core.metrics import VerificationStatus
from gpubench.core.verification import CrossDeviceVerifier
from gpubench.kernels.compute import (
    FP32_FMA,
    INT32_FMA,
    VECTOR_ADD,
    VECTOR_FMA,
    vector_add_host,
    vector_fma_host,
)
from gpubench.kernels.matmul import (
    NAIVE_MATMUL,
    TILED_MATMUL,
    matmul_flops,
    naive_matmul_host,
    tiled_launch_domain,
    tiled_matmul_host,
)
from gpubench.kernels.memory import random_read_host, sequential_read_host, strided_read_host


def random_inputs(rng, n):
    a = rng.uniform(-1.0, 1.0, n * n).astype(np.float32)
    b = rng.uniform(-1.0, 1.0, n * n).astype(np.float32)
    return a, b


def expected_product(a, b, n):
    return (a.reshape(n, n).astype(np.float64) @ b.reshape(n, n).astype(np.float64)).ravel()


class TestMatmulKernels:
    """Naive and tiled host implementations."""

    @pytest.mark.parametrize("n", [16, 100, 512, 1024])
    def test_naive_and_tiled_agree(self, rng, n):
        a, b = random_inputs(rng, n)
        naive = np.zeros(n * n, dtype=np.float32)
        tiled = np.zeros(n * n, dtype=np.float32)

        naive_matmul_host(LaunchDomain.square(n), a, b, naive, n)
        tiled_matmul_host(tiled_launch_domain(n), a, b, tiled, n)

        expected = expected_product(a, b, n)
        np.testing.assert_allclose(naive, expected, atol=1e-2)
        np.testing.assert_allclose(tiled, expected, atol=1e-2)

        verifier = CrossDeviceVerifier()
        assert verifier.verify(("matmul", n), tiled, "tiled") is VerificationStatus.REFERENCE
        assert verifier.verify(("matmul", n), naive, "naive") is VerificationStatus.PASSED

    def test_tiled_launch_geometry(self):
        domain = tiled_launch_domain(100)
        assert domain.group == (16, 16)
        assert domain.grid == (7, 7)
        assert domain.thread_count >= 100 * 100

    def test_tiled_rejects_other_groups(self, rng):
        a, b = random_inputs(rng, 32)
        c = np.zeros(32 * 32, dtype=np.float32)
        with pytest.raises(ValueError, match="group dims"):
            tiled_matmul_host(LaunchDomain.grouped((4, 4), (8, 8)), a, b, c, 32)

    def test_out_of_range_threads_write_nothing(self, rng):
        n = 20
        a, b = random_inputs(rng, n)
        c = np.full(n * n, -7.0, dtype=np.float32)
        naive_matmul_host(LaunchDomain.square(n + 12), a, b, c, n)
        np.testing.assert_allclose(c, expected_product(a, b, n), atol=1e-3)

    def test_flop_count(self):
        assert matmul_flops(1024) == 2.0 * 1024**3


class TestComputeKernels:
    def test_vector_add(self):
        a = np.arange(8, dtype=np.float32)
        b = np.ones(8, dtype=np.float32)
        c = np.zeros(8, dtype=np.float32)
        vector_add_host(LaunchDomain.linear(8), a, b, c)
        np.testing.assert_array_equal(c, a + 1)

    def test_vector_fma_accumulates_in_place(self):
        a = np.full(4, 2.0, dtype=np.float32)
        b = np.full(4, 3.0, dtype=np.float32)
        c = np.ones(4, dtype=np.float32)
        vector_fma_host(LaunchDomain.linear(4), a, b, c)
        vector_fma_host(LaunchDomain.linear(4), a, b, c)
        np.testing.assert_array_equal(c, np.full(4, 13.0))

    def test_fma_chain_fills_every_thread(self, fast_fma):
        out = np.full(1000, np.nan, dtype=np.float32)
        FP32_FMA.host(LaunchDomain.linear(1000), out)
        assert np.all(np.isfinite(out))
        assert out[0] == pytest.approx(0.0001 * (1 + 1.0001 + 1.0001**2 + 1.0001**3), rel=1e-4)

    def test_int32_chain_wraps(self):
        out = np.zeros(16, dtype=np.int32)
        INT32_FMA.host(LaunchDomain.linear(16), out)
        assert out.dtype == np.int32


class TestMemoryKernels:
    def test_sequential(self):
        src = np.arange(10, dtype=np.float32)
        dst = np.zeros(10, dtype=np.float32)
        sequential_read_host(LaunchDomain.linear(10), src, dst)
        np.testing.assert_array_equal(dst, src)

    def test_random_gathers_by_index(self, rng):
        src = rng.uniform(size=64).astype(np.float32)
        indices = rng.permutation(64).astype(np.int32)
        dst = np.zeros(64, dtype=np.float32)
        random_read_host(LaunchDomain.linear(64), src, indices, dst)
        np.testing.assert_array_equal(dst, src[indices])

    @pytest.mark.parametrize("stride", [1, 2, 4, 8, 16, 32])
    def test_strided_wraps_around(self, stride):
        src = np.arange(100, dtype=np.float32)
        dst = np.zeros(100, dtype=np.float32)
        strided_read_host(LaunchDomain.linear(100), src, dst, stride, 100)
        np.testing.assert_array_equal(dst, (np.arange(100) * stride) % 100)


class TestTorchBackendHost:
    """The torch backend's host CPU path."""

    @pytest.fixture
    def cpu(self):
        backend = TorchBackend(include_cpu=True)
        handle = backend.enumerate_devices()[-1]
        with backend.create_accelerator(handle) as accelerator:
            yield accelerator

    def test_cpu_enumerated_last(self):
        handles = TorchBackend(include_cpu=True).enumerate_devices()
        assert handles[-1].device_class is DeviceClass.CPU
        assert all(h.device_class is not DeviceClass.CPU for h in handles[:-1])

    def test_cpu_metadata(self, cpu):
        assert cpu.memory_size > 0
        assert cpu.compute_units >= 1
        assert cpu.max_threads_per_group >= 256

    def test_upload_and_download(self, cpu):
        host = np.arange(32, dtype=np.float32)
        with cpu.upload(host) as buffer:
            assert len(buffer) == 32
            assert buffer.dtype == np.float32
            np.testing.assert_array_equal(buffer.to_host_array(), host)

    def test_device_copy(self, cpu):
        host = np.arange(8, dtype=np.float32)
        with cpu.upload(host) as src, cpu.allocate(np.float32, 8) as dst:
            src.copy_to(dst)
            np.testing.assert_array_equal(dst.to_host_array(), host)

    def test_disposed_buffer_raises(self, cpu):
        buffer = cpu.allocate(np.float32, 4)
        buffer.dispose()
        with pytest.raises(BackendError):
            buffer.to_host_array()

    def test_launch_host_kernel(self, cpu):
        a = np.arange(16, dtype=np.float32)
        b = np.ones(16, dtype=np.float32)
        invocable = cpu.compile(VECTOR_ADD)
        with cpu.upload(a) as buf_a, cpu.upload(b) as buf_b, cpu.allocate(np.float32, 16) as buf_c:
            invocable.launch(LaunchDomain.linear(16), buf_a, buf_b, buf_c)
            cpu.synchronize()
            np.testing.assert_array_equal(buf_c.to_host_array(), a + 1)

    def test_tiled_needs_grouped_domain(self, cpu, rng):
        n = 32
        a, b = random_inputs(rng, n)
        invocable = cpu.compile(TILED_MATMUL)
        with cpu.upload(a) as buf_a, cpu.upload(b) as buf_b, cpu.allocate(np.float32, n * n) as buf_c:
            with pytest.raises(BackendError, match="grid/group"):
                invocable.launch(LaunchDomain.square(n), buf_a, buf_b, buf_c, n)

            invocable.launch(tiled_launch_domain(n), buf_a, buf_b, buf_c, n)
            np.testing.assert_allclose(buf_c.to_host_array(), expected_product(a, b, n), atol=1e-3)


@pytest.mark.cuda
@pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
class TestTritonKernels:
    """Triton implementations against the host implementations."""

    @pytest.fixture
    def gpu(self):
        backend = TorchBackend(include_cpu=False)
        with backend.create_accelerator(backend.enumerate_devices()[0]) as accelerator:
            yield accelerator

    @pytest.mark.parametrize("n", [16, 100, 512])
    def test_matmul_matches_host(self, gpu, rng, n):
        a, b = random_inputs(rng, n)
        expected = expected_product(a, b, n)

        for kernel, domain in (
            (NAIVE_MATMUL, LaunchDomain.square(n)),
            (TILED_MATMUL, tiled_launch_domain(n)),
        ):
            invocable = gpu.compile(kernel)
            with gpu.upload(a) as buf_a, gpu.upload(b) as buf_b, gpu.allocate(np.float32, n * n) as buf_c:
                invocable.launch(domain, buf_a, buf_b, buf_c, n)
                gpu.synchronize()
                np.testing.assert_allclose(buf_c.to_host_array(), expected, atol=1e-2)

    def test_vector_fma(self, gpu, rng):
        n = 10_000
        a, b, c = (rng.uniform(-1, 1, n).astype(np.float32) for _ in range(3))
        invocable = gpu.compile(VECTOR_FMA)
        with gpu.upload(a) as buf_a, gpu.upload(b) as buf_b, gpu.upload(c) as buf_c:
            invocable.launch(LaunchDomain.linear(n), buf_a, buf_b, buf_c)
            gpu.synchronize()
            np.testing.assert_allclose(buf_c.to_host_array(), a * b + c, atol=1e-5)

    def test_fp32_chain_matches_host(self, gpu):
        n = 4096
        invocable = gpu.compile(FP32_FMA)
        expected = np.zeros(n, dtype=np.float32)
        FP32_FMA.host(LaunchDomain.linear(n), expected)
        with gpu.allocate(np.float32, n) as out:
            invocable.launch(LaunchDomain.linear(n), out)
            gpu.synchronize()
            np.testing.assert_allclose(out.to_host_array(), expected, atol=1e-2)
