import io

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from textblaster.parquet_format import (
    Compression,
    Field,
    ParquetFileReader,
    ParquetFileWriter,
    snappy_decompress,
)

FIELDS = [
    Field("id", nullable=False),
    Field("content", nullable=False),
    Field("metadata", nullable=True),
]


def _write(groups, fields=FIELDS, compression=Compression.UNCOMPRESSED):
    buf = io.BytesIO()
    writer = ParquetFileWriter(buf, fields)
    writer.compression = compression
    for group in groups:
        writer.write_row_group(group)
    writer.close()
    buf.seek(0)
    return buf


def _read_all(buf, batch_size=None):
    reader = ParquetFileReader(buf)
    merged = {f.name: [] for f in reader.fields}
    for batch in reader.iter_batches(batch_size):
        for name, values in batch.items():
            merged[name].extend(values)
    return reader, merged


SAMPLE = {
    "id": ["doc1", "doc2", "doc3"],
    "content": ["Hello Parquet!", "Testing read and write.", "Another document with metadata."],
    "metadata": ['{"key1":"val1"}', None, '{"lang":"en"}'],
}


def test_file_has_magic_at_both_ends():
    data = _write([SAMPLE]).getvalue()
    assert data[:4] == b"PAR1"
    assert data[-4:] == b"PAR1"


@pytest.mark.parametrize("codec", list(Compression))
def test_roundtrip_with_each_codec(codec):
    reader, merged = _read_all(_write([SAMPLE], compression=codec))
    assert merged == SAMPLE
    assert reader.num_rows == 3


def test_schema_is_preserved():
    reader = ParquetFileReader(_write([SAMPLE]))
    assert reader.fields == FIELDS


def test_batches_span_row_groups():
    groups = [
        {k: v[:2] for k, v in SAMPLE.items()},
        {k: v[2:] for k, v in SAMPLE.items()},
    ]
    reader = ParquetFileReader(_write(groups))
    batches = list(reader.iter_batches(2))
    assert [len(b["id"]) for b in batches] == [2, 1]
    assert batches[1]["id"] == ["doc3"]


def test_non_string_columns_roundtrip():
    fields = [
        Field("n", physical_type="INT64", nullable=True, is_string=False),
        Field("flag", physical_type="BOOLEAN", nullable=False, is_string=False),
        Field("raw", nullable=False, is_string=False),
    ]
    columns = {"n": [5, None, -7], "flag": [True, False, True], "raw": [b"a", b"", b"\xff"]}
    reader, merged = _read_all(_write([columns], fields=fields))
    assert merged == columns
    assert [f.is_string for f in reader.fields] == [False, False, False]


def test_null_in_required_column_rejected():
    buf = io.BytesIO()
    writer = ParquetFileWriter(buf, FIELDS)
    with pytest.raises(ValueError):
        writer.write_row_group({"id": [None], "content": ["x"], "metadata": [None]})


def test_mismatched_lengths_rejected():
    writer = ParquetFileWriter(io.BytesIO(), FIELDS)
    with pytest.raises(ValueError):
        writer.write_row_group({"id": ["a", "b"], "content": ["x"], "metadata": [None]})


def test_missing_column_rejected():
    writer = ParquetFileWriter(io.BytesIO(), FIELDS)
    with pytest.raises(ValueError):
        writer.write_row_group({"id": ["a"], "content": ["x"]})


def test_write_after_close_rejected():
    writer = ParquetFileWriter(io.BytesIO(), FIELDS)
    writer.close()
    with pytest.raises(ValueError):
        writer.write_row_group(SAMPLE)


def test_not_parquet_rejected():
    with pytest.raises(ValueError):
        ParquetFileReader(io.BytesIO(b"definitely not a parquet file"))


def test_bad_batch_size_rejected():
    reader = ParquetFileReader(_write([SAMPLE]))
    with pytest.raises(ValueError):
        list(reader.iter_batches(0))


def test_unknown_physical_type_rejected():
    with pytest.raises(ValueError):
        Field("x", physical_type="STRING")


def test_snappy_literal():
    assert snappy_decompress(b"\x05\x10hello") == b"hello"


def test_snappy_overlapping_copy():
    assert snappy_decompress(b"\x08\x04ab\x09\x02") == b"abababab"


def test_snappy_truncated_rejected():
    with pytest.raises(ValueError):
        snappy_decompress(b"\x05\x10hel")


def test_snappy_bad_offset_rejected():
    with pytest.raises(ValueError):
        snappy_decompress(b"\x08\x04ab\x09\x09")


@settings(max_examples=40)
@given(st.lists(st.one_of(st.none(), st.text()), max_size=30), st.sampled_from(list(Compression)))
def test_roundtrip_property(values, codec):
    fields = [Field("text", nullable=True)]
    _, merged = _read_all(_write([{"text": values}], fields=fields, compression=codec), 7)
    assert merged["text"] == values