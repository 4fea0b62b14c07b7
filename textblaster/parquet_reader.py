"""Reading text documents from Parquet files."""

from __future__ import annotations

import json
import logging
from typing import BinaryIO, Iterator

from .model import ConfigError, ParquetInputConfig, PipelineError, TextDocument, UnexpectedError
from .parquet_format import Field, ParquetFileReader

__all__ = ["ParquetReader", "METADATA_COLUMN"]

logger = logging.getLogger(__name__)

METADATA_COLUMN = "metadata"


def _is_text(field: Field) -> bool:
    return field.physical_type == "BYTE_ARRAY" and field.is_string


def _describe(field: Field) -> str:
    if field.physical_type == "BYTE_ARRAY":
        return "Binary"
    return field.physical_type


def _parse_metadata(raw: str, doc_id: str) -> dict[str, str]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        logger.warning(
            "Failed to parse metadata JSON for ID %s: '%s'. Error: %s. Using empty metadata.",
            doc_id, raw, exc,
        )
        return {}
    if not isinstance(parsed, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in parsed.items()
    ):
        logger.warning(
            "Metadata JSON for ID %s is not a map of strings: '%s'. Using empty metadata.",
            doc_id, raw,
        )
        return {}
    return parsed


class ParquetReader:
    """Reads TextDocuments from a Parquet file."""

    def __init__(self, config: ParquetInputConfig) -> None:
        self.config = config

    def read_documents(self) -> Iterator[TextDocument]:
        """Validate the file's schema and return an iterator over its documents.

        Schema problems raise ConfigError at once; bad rows raise
        UnexpectedError while iterating.
        """
        config = self.config
        handle = open(config.path, "rb")
        try:
            try:
                reader = ParquetFileReader(handle)
            except ValueError as exc:
                raise PipelineError(
                    f"Failed to open Parquet file '{config.path}': {exc}"
                ) from exc
            fields = {field.name: field for field in reader.fields}

            text_field = fields.get(config.text_column)
            if text_field is None:
                raise ConfigError(
                    f"Text column '{config.text_column}' not found in Parquet schema."
                )
            if not _is_text(text_field):
                raise ConfigError(
                    f"Expected text column '{config.text_column}' to be Utf8 or "
                    f"LargeUtf8, but found {_describe(text_field)}"
                )

            id_field: Field | None = None
            if config.id_column is not None:
                id_field = fields.get(config.id_column)
                if id_field is None:
                    raise ConfigError(
                        f"ID column '{config.id_column}' not found in Parquet schema."
                    )

            metadata_field = fields.get(METADATA_COLUMN)
            if metadata_field is not None and not _is_text(metadata_field):
                logger.warning(
                    "Metadata column '%s' found but is not a string type. "
                    "Metadata will not be loaded.",
                    METADATA_COLUMN,
                )
                metadata_field = None
        except BaseException:
            handle.close()
            raise

        return self._documents(handle, reader, id_field, metadata_field)

    def _documents(
        self,
        handle: BinaryIO,
        reader: ParquetFileReader,
        id_field: Field | None,
        metadata_field: Field | None,
    ) -> Iterator[TextDocument]:
        config = self.config
        path = config.path
        with handle:
            batches = reader.iter_batches(config.batch_size)
            while True:
                try:
                    batch = next(batches)
                except StopIteration:
                    return
                except (ValueError, KeyError, IndexError, UnicodeDecodeError) as exc:
                    raise UnexpectedError(
                        f"Failed to read Parquet batch from '{path}': {exc}"
                    ) from exc

                if id_field is not None and not _is_text(id_field):
                    raise UnexpectedError(
                        f"ID Column '{id_field.name}' is not a valid Utf8 StringArray"
                    )
                texts = batch[config.text_column]
                ids = batch[id_field.name] if id_field is not None else None
                metadata = batch[metadata_field.name] if metadata_field is not None else None

                # Row numbers restart at zero for every batch.
                for row, content in enumerate(texts):
                    if content is None:
                        raise UnexpectedError(
                            f"Row {row} in source '{path}' has null value in text "
                            f"column '{config.text_column}'"
                        )
                    raw_id = ids[row] if ids is not None else None
                    doc_id = raw_id if raw_id is not None else f"{path}_row_{row}"
                    raw_meta = metadata[row] if metadata is not None else None
                    meta = _parse_metadata(raw_meta, doc_id) if raw_meta is not None else {}
                    yield TextDocument(id=doc_id, content=content, source=path, metadata=meta)