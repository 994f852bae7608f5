"""NBA News Hub: NBA headline aggregation with fan sentiment."""

__version__ = "0.1.0"
