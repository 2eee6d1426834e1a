"""etalon: detect benchmark regressions between two revisions."""

__version__ = "0.1.0"
