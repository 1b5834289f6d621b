"""Game suggestion engine: fuses weak similarity signals into ranked suggestions."""

__version__ = "0.1.0"
