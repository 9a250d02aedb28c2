"""Knowledge-graph memory, sequential thinking, greeter handlers and rate-limiting middleware."""

__version__ = "0.1.0"
__all__ = ["__version__"]