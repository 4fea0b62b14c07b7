import pytest

from textblaster.model import (
    ConfigError,
    ParquetInputConfig,
    PipelineError,
    TextDocument,
    UnexpectedError,
)
from textblaster.parquet_format import Field, ParquetFileWriter
from textblaster.parquet_reader import ParquetReader
from textblaster.parquet_writer import ParquetWriter


def _doc(doc_id, content, source, meta=None):
    return TextDocument(id=doc_id, content=content, source=source, metadata=meta or {})


def _write_raw(path, fields, columns):
    with open(path, "wb") as handle:
        writer = ParquetFileWriter(handle, fields)
        writer.write_row_group(columns)
        writer.close()


def test_parquet_read_write_roundtrip(tmp_path):
    path = str(tmp_path / "roundtrip.parquet")
    original = [
        _doc("doc1", "Hello Parquet!", "source1", {"key1": "val1"}),
        _doc("doc2", "Testing read and write.", "source2"),
        _doc("doc3", "Another document with metadata.", "source3",
             {"lang": "en", "topic": "test"}),
    ]
    writer = ParquetWriter(path)
    writer.write_batch(original)
    writer.close()

    config = ParquetInputConfig(path=path, text_column="content", id_column="id", batch_size=10)
    read = list(ParquetReader(config).read_documents())

    assert len(read) == len(original)
    original.sort(key=lambda d: d.id)
    read.sort(key=lambda d: d.id)
    for before, after in zip(original, read):
        assert after.id == before.id
        assert after.content == before.content
        assert after.source == path
        assert after.metadata == before.metadata


def test_missing_text_column(tmp_path):
    path = str(tmp_path / "d.parquet")
    with ParquetWriter(path) as writer:
        writer.write_batch([_doc("a", "x", "s")])
    config = ParquetInputConfig(path=path, text_column="body")
    with pytest.raises(ConfigError, match="Text column 'body' not found"):
        ParquetReader(config).read_documents()


def test_missing_id_column(tmp_path):
    path = str(tmp_path / "d.parquet")
    with ParquetWriter(path) as writer:
        writer.write_batch([_doc("a", "x", "s")])
    config = ParquetInputConfig(path=path, text_column="content", id_column="uid")
    with pytest.raises(ConfigError, match="ID column 'uid' not found"):
        ParquetReader(config).read_documents()


def test_text_column_must_be_string(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(path, [Field("content", "INT64", False, False)], {"content": [1, 2]})
    config = ParquetInputConfig(path=path, text_column="content")
    with pytest.raises(ConfigError, match="Utf8 or LargeUtf8"):
        ParquetReader(config).read_documents()


def test_ids_fall_back_to_row_numbers_per_batch(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(path, [Field("content")], {"content": ["a", "b", "c"]})
    config = ParquetInputConfig(path=path, text_column="content", batch_size=2)
    docs = list(ParquetReader(config).read_documents())
    assert [d.id for d in docs] == [f"{path}_row_0", f"{path}_row_1", f"{path}_row_0"]
    assert [d.content for d in docs] == ["a", "b", "c"]
    assert all(d.metadata == {} for d in docs)


def test_null_id_falls_back_to_row_number(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(
        path,
        [Field("id"), Field("content")],
        {"id": ["first", None], "content": ["a", "b"]},
    )
    config = ParquetInputConfig(path=path, text_column="content", id_column="id")
    docs = list(ParquetReader(config).read_documents())
    assert [d.id for d in docs] == ["first", f"{path}_row_1"]


def test_null_text_raises_while_iterating(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(path, [Field("content")], {"content": ["ok", None]})
    config = ParquetInputConfig(path=path, text_column="content")
    docs = ParquetReader(config).read_documents()
    assert next(docs).content == "ok"
    with pytest.raises(UnexpectedError, match="Row 1 .* null value in text column 'content'"):
        next(docs)


def test_bad_metadata_becomes_empty(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(
        path,
        [Field("content"), Field("metadata")],
        {
            "content": ["a", "b", "c", "d", "e"],
            "metadata": ["not json", "", None, '{"k": 1}', '{"k": "v"}'],
        },
    )
    config = ParquetInputConfig(path=path, text_column="content")
    docs = list(ParquetReader(config).read_documents())
    assert [d.metadata for d in docs] == [{}, {}, {}, {}, {"k": "v"}]


def test_non_string_metadata_column_is_ignored(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(
        path,
        [Field("content"), Field("metadata", "INT32", False, False)],
        {"content": ["a"], "metadata": [7]},
    )
    config = ParquetInputConfig(path=path, text_column="content")
    docs = list(ParquetReader(config).read_documents())
    assert docs[0].metadata == {}
    assert docs[0].content == "a"


def test_non_string_id_column_raises(tmp_path):
    path = str(tmp_path / "d.parquet")
    _write_raw(
        path,
        [Field("id", "INT64", False, False), Field("content")],
        {"id": [5], "content": ["a"]},
    )
    config = ParquetInputConfig(path=path, text_column="content", id_column="id")
    with pytest.raises(UnexpectedError, match="ID Column 'id'"):
        list(ParquetReader(config).read_documents())


def test_missing_file_raises(tmp_path):
    config = ParquetInputConfig(path=str(tmp_path / "nope.parquet"), text_column="content")
    with pytest.raises(FileNotFoundError):
        ParquetReader(config).read_documents()


def test_not_a_parquet_file_raises(tmp_path):
    target = tmp_path / "bad.parquet"
    target.write_bytes(b"this is certainly not a parquet file")
    config = ParquetInputConfig(path=str(target), text_column="content")
    with pytest.raises(PipelineError):
        ParquetReader(config).read_documents()


def test_empty_file_yields_no_documents(tmp_path):
    path = str(tmp_path / "d.parquet")
    ParquetWriter(path).close()
    config = ParquetInputConfig(path=path, text_column="content", id_column="id")
    assert list(ParquetReader(config).read_documents()) == []