"""Run, check and track small Rust programming exercises."""

__version__ = "0.1.0"
__all__ = ["__version__"]