"""Core data types shared by the readers and writers."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "ConfigError",
    "ParquetInputConfig",
    "PipelineError",
    "TextDocument",
    "UnexpectedError",
]


@dataclass
class TextDocument:
    """A single text document moving through the pipeline."""

    id: str
    content: str
    source: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ParquetInputConfig:
    """Where and how to read documents from a Parquet file."""

    path: str
    text_column: str
    id_column: str | None = None
    batch_size: int | None = None


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigError(PipelineError):
    """The configuration does not match the data it is applied to."""


class UnexpectedError(PipelineError):
    """The data turned out to be malformed while it was being processed."""