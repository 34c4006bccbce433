"""Global numeric settings shared by the compiled kernels."""

FASTMATH = False  # Global flag for Numba's fastmath option
