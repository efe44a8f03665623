"""JSON Schema draft 2020-12: schema model, JSON Pointers, resolution and validation."""

__version__ = "0.1.0"

__all__ = [
    "annotations",
    "instance",
    "json_pointer",
    "process",
    "resolve",
    "schema",
    "util",
    "validate",
]