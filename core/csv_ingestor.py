"""
CSV Ingestor - Turns uploaded CSV text into a Table of headers + string rows.

Parsing is best-effort: blank lines are dropped, short rows are padded with
empty strings, long rows are cut to the header width. Nothing is rejected.
"""

import io
import csv
from dataclasses import dataclass, field

import pandas as pd


@dataclass(frozen=True)
class Table:
    """Parsed CSV: ordered unique headers and one dict of raw strings per row."""
    headers: list = field(default_factory=list)
    rows: list = field(default_factory=list)
    name: str = "Data"

    @property
    def row_count(self):
        return len(self.rows)

    @property
    def column_count(self):
        return len(self.headers)

    def column(self, header, limit=None):
        """Raw values of one column, optionally only the first `limit` rows."""
        rows = self.rows if limit is None else self.rows[:limit]
        return [row.get(header, "") for row in rows]

    def to_frame(self):
        """Copy of the table as a string-typed DataFrame."""
        return pd.DataFrame(
            [[row.get(h, "") for h in self.headers] for row in self.rows],
            columns=self.headers, dtype=str,
        )


def decode_upload(raw_bytes):
    """Decode uploaded bytes: UTF-8 (with or without BOM), else latin-1."""
    if isinstance(raw_bytes, str):
        return raw_bytes
    try:
        return raw_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        print("[WARN] Upload is not UTF-8, decoding as latin-1")
        return raw_bytes.decode("latin-1")


def table_name_from_filename(filename, default="Data"):
    """'Q1 sales.csv' -> 'Q1_sales'."""
    if not filename:
        return default
    stem = filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    safe = "".join(c if c.isalnum() else "_" for c in stem).strip("_")
    return safe or default


def _read_records(text):
    """Records via pandas; raises pd.errors.ParserError on broken quoting."""
    source = io.StringIO(text)
    try:
        first = pd.read_csv(
            source, header=None, nrows=1, dtype=str, sep=",", quotechar='"',
            skipinitialspace=True, keep_default_na=False, engine="python",
        )
    except pd.errors.EmptyDataError:
        return []
    width = first.shape[1]

    def _truncate(bad_line):
        return bad_line[:width]

    source.seek(0)
    frame = pd.read_csv(
        source,
        header=None,
        dtype=str,
        sep=",",
        quotechar='"',
        doublequote=True,
        skipinitialspace=True,
        skip_blank_lines=True,
        keep_default_na=False,
        engine="python",
        on_bad_lines=_truncate,
    )
    frame = frame.fillna("")

    return [
        [str(value).strip() for value in record]
        for record in frame.itertuples(index=False, name=None)
    ]


def _split_lines(text):
    """Last resort: one record per non-blank line, split on every comma."""
    return [
        [field.strip().strip('"').strip() for field in line.split(",")]
        for line in text.splitlines()
        if line.strip()
    ]


def parse_records(text):
    """Split CSV text into a list of field lists.

    Quoted fields may contain commas and newlines; a doubled quote inside
    quotes is a literal quote. Blank lines are skipped and every field is
    trimmed. The first record decides the expected width.

    A quote left open runs to the end of the input, the same as a closing
    quote at the very end. Text that still cannot be read is split line by
    line.
    """
    if not text or not text.strip():
        return []

    try:
        return _read_records(text)
    except (pd.errors.ParserError, csv.Error) as e:
        print(f"[WARN] CSV quoting is broken ({e}); closing the open quote")

    try:
        return _read_records(text.rstrip("\r\n") + '"')
    except (pd.errors.ParserError, csv.Error) as e:
        print(f"[FALLBACK] Splitting CSV line by line: {e}")
    return _split_lines(text)


def _unique_headers(raw_headers):
    """Fill empty header names and de-duplicate repeats (Name, Name.1, ...)."""
    headers = []
    seen = {}
    for idx, name in enumerate(raw_headers):
        name = name or f"Column{idx + 1}"
        if name in seen:
            seen[name] += 1
            candidate = f"{name}.{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}.{seen[name]}"
            print(f"[WARN] Duplicate header '{name}' renamed to '{candidate}'")
            name = candidate
        seen.setdefault(name, 0)
        headers.append(name)
    return headers


def parse(text, table_name="Data"):
    """Parse CSV text into a Table. Never raises for malformed content."""
    records = parse_records(text)
    if not records:
        return Table(headers=[], rows=[], name=table_name)

    headers = _unique_headers(records[0])
    rows = []
    for record in records[1:]:
        padded = list(record[:len(headers)])
        padded.extend([""] * (len(headers) - len(padded)))
        rows.append(dict(zip(headers, padded)))

    table = Table(headers=headers, rows=rows, name=table_name)
    print(f"[OK] Parsed CSV '{table_name}': "
          f"{table.row_count} rows x {table.column_count} columns")
    return table
