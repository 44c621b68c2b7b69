"""
Data Analyzer - Classifies CSV columns and produces a profile of a Table.
The profile is JSON-serializable and designed to feed into Claude for analysis.
"""

import re
import sys
import json
import warnings
from pathlib import Path

import pandas as pd
import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config import settings


class ColumnType:
    NUMERIC = "numeric"
    DATE = "date"
    BOOLEAN = "boolean"
    CATEGORICAL = "categorical"


# Checked in this order; the first type reaching the threshold wins.
TYPE_PRECEDENCE = (ColumnType.DATE, ColumnType.NUMERIC, ColumnType.BOOLEAN)

_DATE_SHAPE_RE = re.compile(r"\d{1,4}[-/]\d{1,2}[-/]\d{1,4}")
_CURRENCY_RE = re.compile(r"^[\$€£¥]\s*|\s*%$")
_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}(\D|$))")


# ------------------------------------------------------------------ #
#  Value parse rules                                                   #
# ------------------------------------------------------------------ #

def parse_number(value):
    """Float for a numeric-looking string ('1,200', '$5', '12%'), else None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    text = _CURRENCY_RE.sub("", text)
    text = _THOUSANDS_RE.sub("", text)
    number = pd.to_numeric(text, errors="coerce")
    if pd.isna(number) or not np.isfinite(number):
        return None
    return float(number)


def parse_date(value):
    """pandas Timestamp for a date-looking string, else None.

    Requires a numeric y-m-d / m/d/y shape so plain numbers and free text
    are never read as dates.
    """
    text = str(value or "").strip()
    if not text or not _DATE_SHAPE_RE.search(text):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if pd.isna(parsed):
        return None
    return parsed


def is_boolean(value):
    return str(value or "").strip().lower() in ("true", "false")


_MATCHERS = {
    ColumnType.DATE: lambda v: parse_date(v) is not None,
    ColumnType.NUMERIC: lambda v: parse_number(v) is not None,
    ColumnType.BOOLEAN: is_boolean,
}


class DataAnalyzer:
    """Classify table columns and build a column-by-column profile."""

    def __init__(self, sample_size=None, threshold=None):
        self.sample_size = sample_size or settings.CLASSIFY_SAMPLE_SIZE
        self.threshold = threshold if threshold is not None else settings.CLASSIFY_THRESHOLD

    # ------------------------------------------------------------------ #
    #  Semantic type classification                                        #
    # ------------------------------------------------------------------ #

    def classify(self, table):
        """Map every header to numeric / date / boolean / categorical.

        Only the first `sample_size` rows are inspected. A type is chosen
        when at least `threshold` of the non-empty sampled values match its
        parse rule; empty or unclassifiable columns are categorical.
        """
        types = {}
        for header in table.headers:
            types[header] = self._classify_column(
                table.column(header, limit=self.sample_size)
            )
        return types

    def _classify_column(self, values):
        non_empty = [v for v in values if str(v).strip()]
        if not non_empty:
            return ColumnType.CATEGORICAL

        needed = self.threshold * len(non_empty)
        for col_type in TYPE_PRECEDENCE:
            matches = sum(1 for v in non_empty if _MATCHERS[col_type](v))
            if matches >= needed:
                return col_type
        return ColumnType.CATEGORICAL

    # ------------------------------------------------------------------ #
    #  Sample helpers used by the synthesizer                              #
    # ------------------------------------------------------------------ #

    def numeric_sample(self, table, header):
        """Parsed numbers among the sampled values of a column."""
        values = (parse_number(v) for v in table.column(header, limit=self.sample_size))
        return [v for v in values if v is not None]

    def has_nonzero(self, table, header):
        return any(v != 0 for v in self.numeric_sample(table, header))

    def has_variation(self, table, header):
        """True when the sampled numbers are not all zero and not all equal."""
        sample = self.numeric_sample(table, header)
        return len(set(sample)) > 1 and any(v != 0 for v in sample)

    # ------------------------------------------------------------------ #
    #  Keys and relationships                                              #
    # ------------------------------------------------------------------ #

    def detect_key_candidates(self, table):
        """Headers whose values are all distinct. A hint only."""
        if table.row_count == 0:
            return []
        return [
            h for h in table.headers
            if len(set(table.column(h))) == table.row_count
        ]

    def detect_relationships(self, table, classification=None):
        classification = classification or self.classify(table)
        return {
            "dateColumns": [h for h in table.headers
                            if classification.get(h) == ColumnType.DATE],
            "numericColumns": [h for h in table.headers
                               if classification.get(h) == ColumnType.NUMERIC],
            "potentialKeys": self.detect_key_candidates(table),
        }

    # ------------------------------------------------------------------ #
    #  Stats                                                               #
    # ------------------------------------------------------------------ #

    def column_stats(self, table, header):
        """Counts for any column plus min/max/avg/sum when numbers exist."""
        values = [v for v in table.column(header) if str(v).strip()]
        stats = {
            "totalCount": table.row_count,
            "nonNullCount": len(values),
            "nullCount": table.row_count - len(values),
            "uniqueCount": len(set(values)),
        }

        numbers = pd.Series(
            [parse_number(v) for v in values], dtype="float64"
        ).dropna()
        if len(numbers) > 0:
            stats["min"] = self._safe_scalar(numbers.min())
            stats["max"] = self._safe_scalar(numbers.max())
            stats["avg"] = self._safe_scalar(numbers.mean())
            stats["sum"] = self._safe_scalar(numbers.sum())
        return stats

    # ------------------------------------------------------------------ #
    #  Profile                                                             #
    # ------------------------------------------------------------------ #

    def analyze(self, table, classification=None, sample_rows=5):
        """Generate a JSON-serializable profile for prompts and exports."""
        classification = classification or self.classify(table)
        print(f"[OK] Analyzing table: {table.name}")
        print(f"     {table.row_count} rows x {table.column_count} columns")

        profile = {
            "table_name": table.name,
            "row_count": table.row_count,
            "column_count": table.column_count,
            "columns": [],
            "key_candidates": self.detect_key_candidates(table),
            "sample_rows": table.rows[:sample_rows],
        }
        type_counts = {}
        for header in table.headers:
            sem = classification.get(header, ColumnType.CATEGORICAL)
            type_counts[sem] = type_counts.get(sem, 0) + 1
            profile["columns"].append({
                "name": header,
                "semantic_type": sem,
                "stats": self.column_stats(table, header),
            })
        profile["semantic_type_summary"] = type_counts

        print(f"     Types: {type_counts}")
        return profile

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _safe_scalar(self, value):
        """Convert numpy scalars to native Python types for JSON serialization."""
        if isinstance(value, (np.integer,)):
            return int(value)
        if isinstance(value, (np.floating, float)):
            val = float(value)
            if np.isnan(val) or np.isinf(val):
                return None
            return round(val, 4)
        return value


def classify(table, sample_size=None, threshold=None):
    return DataAnalyzer(sample_size, threshold).classify(table)


def detect_key_candidates(table):
    return DataAnalyzer().detect_key_candidates(table)


def columns_of_type(table, classification, col_type):
    return [h for h in table.headers if classification.get(h) == col_type]


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    from core.csv_ingestor import parse, table_name_from_filename

    project_root = Path(__file__).parent.parent.resolve()
    matches = sorted(project_root.glob("*.csv"))
    if not matches:
        print("[ERROR] No CSV file found in project root")
        sys.exit(1)

    data_file = matches[0]
    print(f"=== Data Analysis: {data_file.name} ===")
    print("=" * 60)
    text = data_file.read_text(encoding="utf-8", errors="replace")
    table = parse(text, table_name_from_filename(data_file.name))
    profile = DataAnalyzer().analyze(table)
    print(json.dumps(profile["semantic_type_summary"], indent=2))
    for col in profile["columns"]:
        print(f"  [{col['semantic_type'].upper():11s}] {col['name']}")
