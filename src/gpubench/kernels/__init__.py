"""
Benchmark kernels with Triton device launchers and NumPy host implementations.
"""
