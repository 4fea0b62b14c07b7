"""Writing text documents to Parquet files."""

from __future__ import annotations

import json
from typing import BinaryIO, Iterable

from .model import PipelineError, TextDocument
from .parquet_format import Field, ParquetFileWriter

__all__ = ["ParquetWriter", "DOCUMENT_FIELDS"]

DOCUMENT_FIELDS: tuple[Field, ...] = (
    Field("id", nullable=False),
    Field("source", nullable=False),
    Field("content", nullable=False),
    # Metadata is stored as a JSON string; empty metadata is written as null.
    Field("metadata", nullable=True),
)


def _metadata_json(metadata: dict[str, str]) -> str | None:
    if not metadata:
        return None
    try:
        return json.dumps(metadata, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return None


class ParquetWriter:
    """Writes TextDocuments to a Parquet file, one row group per batch.

    The file is created, or truncated if it exists, when the writer is made.
    Call close() (or use the writer as a context manager) to finalise it.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._file: BinaryIO | None = open(path, "wb")
        try:
            self._writer: ParquetFileWriter | None = ParquetFileWriter(
                self._file, DOCUMENT_FIELDS
            )
        except Exception:
            self._file.close()
            self._file = None
            raise

    @property
    def closed(self) -> bool:
        return self._writer is None

    def write_batch(self, documents: Iterable[TextDocument]) -> None:
        """Write a batch of documents; an empty batch writes nothing."""
        docs = list(documents)
        if not docs:
            return
        if self._writer is None:
            raise PipelineError("Writer is closed")
        columns = {
            "id": [doc.id for doc in docs],
            "source": [doc.source for doc in docs],
            "content": [doc.content for doc in docs],
            "metadata": [_metadata_json(doc.metadata) for doc in docs],
        }
        try:
            self._writer.write_row_group(columns)
        except (TypeError, ValueError) as exc:
            raise PipelineError(f"Failed to write batch to '{self.path}': {exc}") from exc

    def close(self) -> None:
        """Write the footer and close the file. Closing twice does nothing."""
        writer, handle = self._writer, self._file
        self._writer = None
        self._file = None
        if writer is None or handle is None:
            return
        try:
            writer.close()
        finally:
            handle.close()

    def __enter__(self) -> "ParquetWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()