"""A small, self-contained reader and writer for flat Parquet files."""

from __future__ import annotations

import gzip
import itertools
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Iterator, Mapping, Sequence

import zstandard

__all__ = [
    "Compression",
    "Field",
    "ParquetFileReader",
    "ParquetFileWriter",
    "snappy_decompress",
]

MAGIC = b"PAR1"

_TYPE_NAMES = (
    "BOOLEAN",
    "INT32",
    "INT64",
    "INT96",
    "FLOAT",
    "DOUBLE",
    "BYTE_ARRAY",
    "FIXED_LEN_BYTE_ARRAY",
)
_FIXED_FORMATS = {"INT32": "i", "INT64": "q", "FLOAT": "f", "DOUBLE": "d"}

# Page types and encodings.
_DATA_PAGE, _INDEX_PAGE, _DICTIONARY_PAGE, _DATA_PAGE_V2 = 0, 1, 2, 3
_PLAIN, _PLAIN_DICTIONARY, _RLE, _RLE_DICTIONARY = 0, 2, 3, 8

# Thrift compact protocol type ids.
_BOOL, _TRUE, _FALSE = 1, 1, 2
_BYTE, _I16, _I32, _I64, _DOUBLE = 3, 4, 5, 6, 7
_BINARY, _LIST, _SET, _MAP, _STRUCT = 8, 9, 10, 11, 12


class Compression(IntEnum):
    """Page compression codecs, numbered as in the Parquet format."""

    UNCOMPRESSED = 0
    SNAPPY = 1
    GZIP = 2
    ZSTD = 6


@dataclass(frozen=True)
class Field:
    """A flat column: its name, physical type and whether it holds text."""

    name: str
    physical_type: str = "BYTE_ARRAY"
    nullable: bool = True
    is_string: bool = True

    def __post_init__(self) -> None:
        if self.physical_type not in _TYPE_NAMES:
            raise ValueError(f"unknown physical type {self.physical_type!r}")


# --- thrift compact protocol ----------------------------------------------


def _varint(n: int) -> bytes:
    out = bytearray()
    while True:
        low = n & 0x7F
        n >>= 7
        if n:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _zigzag(n: int) -> int:
    return n * 2 if n >= 0 else -n * 2 - 1


def _encode_value(ctype: int, value) -> bytes:
    if ctype in (_I16, _I32, _I64):
        return _varint(_zigzag(value))
    if ctype == _BINARY:
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        return _varint(len(raw)) + raw
    if ctype == _STRUCT:
        return _encode_struct(value)
    if ctype == _LIST:
        etype, items = value
        header = bytes([(len(items) << 4) | etype]) if len(items) < 15 else (
            bytes([0xF0 | etype]) + _varint(len(items))
        )
        return header + b"".join(_encode_value(etype, item) for item in items)
    raise ValueError(f"cannot encode thrift type {ctype}")


def _encode_struct(fields) -> bytes:
    out = bytearray()
    last = 0
    for fid, ctype, value in fields:
        if value is None:
            continue
        if ctype == _BOOL:
            ctype = _TRUE if value else _FALSE
            payload = b""
        else:
            payload = _encode_value(ctype, value)
        delta = fid - last
        if 0 < delta <= 15:
            out.append((delta << 4) | ctype)
        else:
            out.append(ctype)
            out += _varint(_zigzag(fid))
        out += payload
        last = fid
    out.append(0)
    return bytes(out)


class _CompactReader:
    def __init__(self, data: bytes, pos: int = 0) -> None:
        self.data = data
        self.pos = pos

    def byte(self) -> int:
        if self.pos >= len(self.data):
            raise ValueError("truncated thrift data")
        value = self.data[self.pos]
        self.pos += 1
        return value

    def varint(self) -> int:
        result = shift = 0
        while True:
            b = self.byte()
            result |= (b & 0x7F) << shift
            shift += 7
            if not b & 0x80:
                return result

    def signed(self) -> int:
        n = self.varint()
        return (n >> 1) ^ -(n & 1)

    def struct(self) -> dict:
        result = {}
        last = 0
        while True:
            header = self.byte()
            if header == 0:
                return result
            ctype, delta = header & 0x0F, header >> 4
            fid = last + delta if delta else self.signed()
            last = fid
            result[fid] = ctype == _TRUE if ctype in (_TRUE, _FALSE) else self.value(ctype)

    def value(self, ctype: int):
        if ctype in (_TRUE, _FALSE):
            return self.byte() == 1
        if ctype == _BYTE:
            return struct.unpack("b", bytes([self.byte()]))[0]
        if ctype in (_I16, _I32, _I64):
            return self.signed()
        if ctype == _DOUBLE:
            raw = self.take(8)
            return struct.unpack("<d", raw)[0]
        if ctype == _BINARY:
            return self.take(self.varint())
        if ctype in (_LIST, _SET):
            header = self.byte()
            size, etype = header >> 4, header & 0x0F
            if size == 15:
                size = self.varint()
            return [self.value(etype) for _ in range(size)]
        if ctype == _MAP:
            size = self.varint()
            if not size:
                return {}
            kinds = self.byte()
            return {self.value(kinds >> 4): self.value(kinds & 0x0F) for _ in range(size)}
        if ctype == _STRUCT:
            return self.struct()
        raise ValueError(f"unknown thrift type {ctype}")

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ValueError("truncated thrift data")
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk


# --- snappy and codecs -----------------------------------------------------


def snappy_decompress(data: bytes) -> bytes:
    """Decompress a raw (unframed) Snappy block."""
    reader = _CompactReader(bytes(data))
    length = reader.varint()
    out = bytearray()
    while reader.pos < len(reader.data):
        tag = reader.byte()
        kind = tag & 3
        if kind == 0:
            n = tag >> 2
            if n >= 60:
                n = int.from_bytes(reader.take(n - 59), "little")
            out += reader.take(n + 1)
            continue
        if kind == 1:
            n = ((tag >> 2) & 7) + 4
            offset = ((tag >> 5) << 8) | reader.byte()
        else:
            n = (tag >> 2) + 1
            offset = int.from_bytes(reader.take(2 if kind == 2 else 4), "little")
        if offset == 0 or offset > len(out):
            raise ValueError("invalid snappy copy offset")
        for _ in range(n):
            out.append(out[-offset])
    if len(out) != length:
        raise ValueError("snappy length mismatch")
    return bytes(out)


def _snappy_compress(data: bytes) -> bytes:
    out = bytearray(_varint(len(data)))
    for start in range(0, len(data), 65536):
        chunk = data[start : start + 65536]
        n = len(chunk) - 1
        if n < 60:
            out.append(n << 2)
        else:
            out.append(61 << 2)
            out += n.to_bytes(2, "little")
        out += chunk
    return bytes(out)


def _compress(codec: Compression, data: bytes) -> bytes:
    if codec is Compression.UNCOMPRESSED:
        return data
    if codec is Compression.SNAPPY:
        return _snappy_compress(data)
    if codec is Compression.GZIP:
        return gzip.compress(data)
    return zstandard.ZstdCompressor().compress(data)


def _decompress(codec: Compression, data: bytes, size: int) -> bytes:
    if codec is Compression.UNCOMPRESSED:
        return data
    if codec is Compression.SNAPPY:
        return snappy_decompress(data)
    if codec is Compression.GZIP:
        return gzip.decompress(data)
    return zstandard.ZstdDecompressor().decompress(data, max_output_size=size)


# --- value encodings -------------------------------------------------------


def _rle_encode(values: Sequence[int], bit_width: int) -> bytes:
    width = (bit_width + 7) // 8
    out = bytearray()
    for value, run in itertools.groupby(values):
        out += _varint(len(list(run)) << 1) + value.to_bytes(width, "little")
    return bytes(out)


def _rle_decode(data: bytes, pos: int, bit_width: int, count: int) -> list[int]:
    reader = _CompactReader(data, pos)
    width = (bit_width + 7) // 8
    mask = (1 << bit_width) - 1
    values: list[int] = []
    while len(values) < count:
        header = reader.varint()
        if header & 1:
            groups = header >> 1
            packed = int.from_bytes(reader.take(groups * bit_width), "little")
            values.extend((packed >> (i * bit_width)) & mask for i in range(groups * 8))
        else:
            run = header >> 1
            value = int.from_bytes(reader.take(width), "little")
            if run == 0 and reader.pos >= len(data):
                raise ValueError("truncated RLE data")
            values.extend([value] * run)
    return values[:count]


def _plain_encode(field: Field, values: list) -> bytes:
    ptype = field.physical_type
    if ptype == "BYTE_ARRAY":
        out = bytearray()
        for value in values:
            if isinstance(value, str):
                raw = value.encode("utf-8")
            elif isinstance(value, (bytes, bytearray, memoryview)):
                raw = bytes(value)
            else:
                raise TypeError(f"column {field.name!r} expects text or bytes")
            out += struct.pack("<I", len(raw)) + raw
        return bytes(out)
    if ptype in _FIXED_FORMATS:
        try:
            return struct.pack(f"<{len(values)}{_FIXED_FORMATS[ptype]}", *values)
        except struct.error as exc:
            raise ValueError(f"bad value in column {field.name!r}: {exc}") from exc
    if ptype == "BOOLEAN":
        bits = sum(1 << i for i, value in enumerate(values) if value)
        return bits.to_bytes((len(values) + 7) // 8, "little")
    raise ValueError(f"writing {ptype} columns is not supported")


def _plain_decode(field: Field, data: bytes, pos: int, count: int) -> list:
    ptype = field.physical_type
    if ptype == "BYTE_ARRAY":
        reader = _CompactReader(data, pos)
        values = []
        for _ in range(count):
            (n,) = struct.unpack("<I", reader.take(4))
            raw = reader.take(n)
            values.append(raw.decode("utf-8") if field.is_string else raw)
        return values
    if ptype in _FIXED_FORMATS:
        fmt = f"<{count}{_FIXED_FORMATS[ptype]}"
        if pos + struct.calcsize(fmt) > len(data):
            raise ValueError("truncated page data")
        return list(struct.unpack_from(fmt, data, pos))
    if ptype == "BOOLEAN":
        bits = int.from_bytes(data[pos : pos + (count + 7) // 8], "little")
        return [bool((bits >> i) & 1) for i in range(count)]
    raise ValueError(f"reading {ptype} columns is not supported")


# --- writer ----------------------------------------------------------------


class ParquetFileWriter:
    """Writes rows of flat columns to a binary file object, one row group at a time."""

    def __init__(self, fileobj: BinaryIO, fields: Sequence[Field]) -> None:
        names = [f.name for f in fields]
        if not names or len(set(names)) != len(names):
            raise ValueError("fields must be non-empty with unique names")
        self.fields = list(fields)
        self.compression = Compression.UNCOMPRESSED
        self._file = fileobj
        self._offset = 0
        self._row_groups: list = []
        self._num_rows = 0
        self._closed = False
        self._write(MAGIC)

    def _write(self, data: bytes) -> None:
        self._file.write(data)
        self._offset += len(data)

    def write_row_group(self, columns: Mapping[str, Sequence]) -> None:
        """Write one row group; every field needs a column of equal length."""
        if self._closed:
            raise ValueError("writer is closed")
        if set(columns) != {f.name for f in self.fields}:
            raise ValueError("columns do not match the writer's fields")
        data = {f.name: list(columns[f.name]) for f in self.fields}
        lengths = {len(values) for values in data.values()}
        if len(lengths) != 1:
            raise ValueError("columns have different lengths")
        num_rows = lengths.pop()
        for field in self.fields:
            if not field.nullable and any(v is None for v in data[field.name]):
                raise ValueError(f"column {field.name!r} is not nullable")

        codec = Compression(self.compression)
        chunks = []
        total = 0
        for field in self.fields:
            values = data[field.name]
            present = [v for v in values if v is not None]
            body = b""
            if field.nullable:
                levels = _rle_encode([0 if v is None else 1 for v in values], 1)
                body = struct.pack("<I", len(levels)) + levels
            body += _plain_encode(field, present)
            compressed = _compress(codec, body)
            header = _encode_struct([
                (1, _I32, _DATA_PAGE),
                (2, _I32, len(body)),
                (3, _I32, len(compressed)),
                (5, _STRUCT, [
                    (1, _I32, num_rows),
                    (2, _I32, _PLAIN),
                    (3, _I32, _RLE),
                    (4, _I32, _RLE),
                ]),
            ])
            offset = self._offset
            self._write(header + compressed)
            size = len(header) + len(compressed)
            total += len(header) + len(body)
            chunks.append([
                (2, _I64, offset),
                (3, _STRUCT, [
                    (1, _I32, _TYPE_NAMES.index(field.physical_type)),
                    (2, _LIST, (_I32, [_PLAIN, _RLE])),
                    (3, _LIST, (_BINARY, [field.name])),
                    (4, _I32, int(codec)),
                    (5, _I64, num_rows),
                    (6, _I64, len(header) + len(body)),
                    (7, _I64, size),
                    (9, _I64, offset),
                ]),
            ])
        self._row_groups.append([
            (1, _LIST, (_STRUCT, chunks)),
            (2, _I64, total),
            (3, _I64, num_rows),
        ])
        self._num_rows += num_rows

    def close(self) -> None:
        """Write the footer. The file object itself stays open."""
        if self._closed:
            return
        schema = [[(4, _BINARY, "schema"), (5, _I32, len(self.fields))]]
        for field in self.fields:
            text = field.is_string and field.physical_type == "BYTE_ARRAY"
            schema.append([
                (1, _I32, _TYPE_NAMES.index(field.physical_type)),
                (3, _I32, 1 if field.nullable else 0),
                (4, _BINARY, field.name),
                (6, _I32, 0 if text else None),
                (10, _STRUCT, [(1, _STRUCT, [])] if text else None),
            ])
        footer = _encode_struct([
            (1, _I32, 1),
            (2, _LIST, (_STRUCT, schema)),
            (3, _I64, self._num_rows),
            (4, _LIST, (_STRUCT, self._row_groups)),
            (6, _BINARY, "textblaster"),
        ])
        self._write(footer + struct.pack("<I", len(footer)) + MAGIC)
        self._closed = True


# --- reader ----------------------------------------------------------------


class ParquetFileReader:
    """Reads flat Parquet files from a seekable binary file object."""

    def __init__(self, fileobj: BinaryIO) -> None:
        self._file = fileobj
        size = fileobj.seek(0, 2)
        if size < 12:
            raise ValueError("file is too small to be Parquet")
        fileobj.seek(0)
        head = fileobj.read(4)
        fileobj.seek(size - 8)
        tail = fileobj.read(8)
        if head != MAGIC or tail[4:] != MAGIC:
            raise ValueError("not a Parquet file")
        (footer_len,) = struct.unpack("<I", tail[:4])
        if footer_len > size - 12:
            raise ValueError("corrupt Parquet footer length")
        fileobj.seek(size - 8 - footer_len)
        meta = _CompactReader(fileobj.read(footer_len)).struct()

        elements = meta.get(2, [])
        if not elements:
            raise ValueError("Parquet file has no schema")
        self.fields: list[Field] = []
        for element in elements[1:]:
            if element.get(5) or element.get(3) == 2 or 1 not in element:
                raise ValueError("only flat schemas are supported")
            type_id = element[1]
            if not 0 <= type_id < len(_TYPE_NAMES):
                raise ValueError(f"unknown physical type id {type_id}")
            self.fields.append(Field(
                name=element[4].decode("utf-8"),
                physical_type=_TYPE_NAMES[type_id],
                nullable=element.get(3, 0) == 1,
                is_string=element.get(6) == 0 or 1 in element.get(10, {}),
            ))
        self.num_rows: int = meta.get(3, 0)
        self._row_groups = meta.get(4, [])

    def _read_column(self, chunk: dict, field: Field) -> list:
        cm = chunk[3]
        codec = Compression(cm.get(4, 0))
        start = cm[9]
        if cm.get(11):
            start = min(start, cm[11])
        self._file.seek(start)
        data = self._file.read(cm[7])
        expected = cm[5]
        reader = _CompactReader(data)
        dictionary: list | None = None
        values: list = []
        while len(values) < expected:
            header = reader.struct()
            page = reader.take(header[3])
            kind = header[1]
            if kind == _DICTIONARY_PAGE:
                body = _decompress(codec, page, header[2])
                dictionary = _plain_decode(field, body, 0, header[7][1])
                continue
            if kind == _DATA_PAGE:
                ph = header[5]
                count, encoding = ph[1], ph[2]
                body = _decompress(codec, page, header[2])
                pos = 0
                levels = [1] * count
                if field.nullable:
                    (n,) = struct.unpack_from("<I", body, 0)
                    levels = _rle_decode(body[4 : 4 + n], 0, 1, count)
                    pos = 4 + n
            elif kind == _DATA_PAGE_V2:
                ph = header[8]
                count, encoding = ph[1], ph[4]
                def_len, rep_len = ph.get(5, 0), ph.get(6, 0)
                split = def_len + rep_len
                levels = [1] * count
                if field.nullable:
                    levels = _rle_decode(page[rep_len:split], 0, 1, count)
                body = page[split:]
                if ph.get(7, True):
                    body = _decompress(codec, body, header[2] - split)
                pos = 0
            else:
                continue
            defined = sum(levels)
            if encoding == _PLAIN:
                present = _plain_decode(field, body, pos, defined)
            elif encoding in (_PLAIN_DICTIONARY, _RLE_DICTIONARY):
                if dictionary is None:
                    raise ValueError("dictionary page missing")
                indices = _rle_decode(body, pos + 1, body[pos], defined)
                present = [dictionary[i] for i in indices]
            else:
                raise ValueError(f"unsupported encoding {encoding}")
            found = iter(present)
            values.extend(next(found) if level else None for level in levels)
        return values

    def iter_batches(self, batch_size: int | None) -> Iterator[dict[str, list]]:
        """Yield column dictionaries of at most batch_size rows (1024 if None)."""
        size = 1024 if batch_size is None else batch_size
        if size < 1:
            raise ValueError("batch_size must be positive")
        pending: dict[str, list] = {f.name: [] for f in self.fields}
        for group in self._row_groups:
            for field, chunk in zip(self.fields, group.get(1, [])):
                pending[field.name].extend(self._read_column(chunk, field))
            while self.fields and len(pending[self.fields[0].name]) >= size:
                yield {name: values[:size] for name, values in pending.items()}
                pending = {name: values[size:] for name, values in pending.items()}
        if self.fields and pending[self.fields[0].name]:
            yield pending