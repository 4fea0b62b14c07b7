# textblaster

Read and write collections of text documents as Parquet files, and split
text into sentences and words. The package needs no Arrow installation. It
has its own small Parquet reader and writer, written in Python, and depends
only on `regex` and `zstandard`.

## Installation

```
pip install textblaster
```

To run the tests:

```
pip install "textblaster[test]"
pytest
```

## Documents

`textblaster.model` defines the shared types:

- `TextDocument` is a dataclass with `id`, `content`, `source` and
  `metadata` (a `dict[str, str]`, empty by default).
- `ParquetInputConfig` is a dataclass with `path`, `text_column`, and the
  optional `id_column` and `batch_size`.
- `PipelineError` is the base exception. It has two subclasses:
  `ConfigError` and `UnexpectedError`.

```python
from textblaster.model import TextDocument

doc = TextDocument(
    id="doc1",
    content="Hello Parquet!",
    source="source1",
    metadata={"lang": "en"},
)
```

## Writing

`textblaster.parquet_writer.ParquetWriter(path)` creates the file, or
truncates it if it already exists. The file has four string columns: `id`,
`source` and `content`, which must not be null, and `metadata`.
Metadata is stored as a compact JSON string. Empty metadata is stored as
null.

- Each call to `write_batch(documents)` adds one row group.
- An empty batch writes nothing.
- Writing a non-empty batch after `close()` raises `PipelineError`.
- `close()` writes the footer and closes the file. Calling it a second time
  does nothing.
- The writer also works as a context manager, and closes itself when the
  `with` block ends.

```python
from textblaster.parquet_writer import ParquetWriter

with ParquetWriter("documents.parquet") as writer:
    writer.write_batch([doc])
```

## Reading

`textblaster.parquet_reader.ParquetReader(config)` takes a
`ParquetInputConfig`.

`read_documents()` opens the file and checks it straight away:

- It raises `PipelineError` if the file is not a readable Parquet file.
- It raises `ConfigError` if the text column or the configured id column is
  missing, or if the text column does not hold strings.

It then returns an iterator that yields documents lazily, `batch_size` rows
at a time. The default is 1024 rows.

```python
from textblaster.model import ParquetInputConfig
from textblaster.parquet_reader import ParquetReader

config = ParquetInputConfig(
    path="documents.parquet",
    text_column="content",
    id_column="id",
    batch_size=10,
)
for document in ParquetReader(config).read_documents():
    print(document.id, document.content, document.metadata)
```

While reading:

- Each document's `source` is the file path.
- If no id column is configured, or a row's id is null, the id becomes
  `<path>_row_<n>`, where `n` is the row's position within its batch.
- A string column named `metadata` is read if the file has one. If that
  column exists but is not a string column, it is ignored and a warning is
  logged.
- Metadata that is not valid JSON, or is not an object of strings, becomes
  empty metadata and a warning is logged.
- A null in the text column raises `UnexpectedError` when that row is
  reached.
- A configured id column that does not hold strings also raises
  `UnexpectedError`.

## Low-level Parquet access

`textblaster.parquet_format` holds the file-level code that the reader and
writer are built on:

- `Field(name, physical_type="BYTE_ARRAY", nullable=True, is_string=True)`
  describes a flat column.
- `ParquetFileWriter(fileobj, fields)` writes PLAIN-encoded data pages.
  Each call to `write_row_group(columns)` takes a mapping from column name
  to values. `close()` writes the footer and leaves the file object open.
- The writer's `compression` attribute selects the page codec, from
  `Compression.UNCOMPRESSED`, `SNAPPY`, `GZIP` and `ZSTD`. The Snappy
  output uses literal blocks only.
- The writer handles the physical types `BYTE_ARRAY`, `INT32`, `INT64`,
  `FLOAT`, `DOUBLE` and `BOOLEAN`.
- `ParquetFileReader(fileobj)` reads flat files.
  - It handles version 1 and version 2 data pages.
  - It handles PLAIN and dictionary encodings.
  - It handles the four codecs above.
  - `iter_batches(batch_size)` yields dictionaries that map each column to
    a list of at most `batch_size` values.
- `snappy_decompress(data)` decodes a raw Snappy block.

## Text utilities

`textblaster.text` provides:

- `split_into_sentences(text)` returns trimmed, non-empty sentences.
- `split_into_words(text)` returns the word-like segments, without spaces
  or punctuation.
- `PUNCTUATION` is a frozenset of punctuation and control characters.
- `DANISH_STOP_WORDS` is a frozenset of Danish stop words.

```python
from textblaster.text import split_into_sentences, split_into_words

split_into_sentences("  Første sætning.   Anden sætning!  Tredje sætning?  ")
# ['Første sætning.', 'Anden sætning!', 'Tredje sætning?']

split_into_words("en, to, tre!")
# ['en', 'to', 'tre']
```

## What it does not do

The package is a library only:

- It has no command-line program.
- It has no filtering pipeline.
- It has no means of spreading work over several processes or machines.

The Parquet support covers flat schemas only. It does not cover nested
columns, LZ4 or Brotli compression, column statistics, or
`INT96`/`FIXED_LEN_BYTE_ARRAY` columns.