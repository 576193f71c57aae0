"""Column types, expressions and pull-based query operators over rows of strings."""

__version__ = "1.0.0"

__all__ = [
    "data_type",
    "expression",
    "compiled_predicate",
    "operators",
    "filter",
    "aggregation",
    "join",
]