"""uploadflow: image upload intake for two-phase (test, then paid) orders."""

__version__ = "1.0.0"
