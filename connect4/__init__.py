"""Connect Four engine with batched, optionally accelerated, leaf evaluation."""

__version__ = "1.0.0"
