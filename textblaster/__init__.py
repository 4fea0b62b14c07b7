"""Text documents in Parquet files, with sentence and word splitting."""

__version__ = "0.1.0"