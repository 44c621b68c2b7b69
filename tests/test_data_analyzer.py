from core.csv_ingestor import parse
from core.data_analyzer import (
    ColumnType, DataAnalyzer, classify, detect_key_candidates, parse_number, parse_date,
)


def test_sales_columns_are_classified(sales_table):
    assert classify(sales_table) == {
        "Date": ColumnType.DATE,
        "Region": ColumnType.CATEGORICAL,
        "Revenue": ColumnType.NUMERIC,
    }


def test_classification_is_deterministic(sales_table):
    analyzer = DataAnalyzer()
    assert analyzer.classify(sales_table) == analyzer.classify(sales_table)


def test_threshold_boundary():
    seven = parse("V\n" + "\n".join(["1"] * 7 + ["x"] * 3))
    six = parse("V\n" + "\n".join(["1"] * 6 + ["x"] * 4))
    assert classify(seven)["V"] == ColumnType.NUMERIC
    assert classify(six)["V"] == ColumnType.CATEGORICAL


def test_date_wins_over_numeric_on_a_tie():
    table = parse("V\n2024-01-01\n2024-01-02\n5\n6\n")
    assert DataAnalyzer(threshold=0.5).classify(table)["V"] == ColumnType.DATE


def test_only_the_sample_is_inspected():
    table = parse("V\n1\n2\n3\nx\ny\nz\nw\n")
    assert DataAnalyzer(sample_size=3).classify(table)["V"] == ColumnType.NUMERIC
    assert DataAnalyzer(sample_size=100).classify(table)["V"] == ColumnType.CATEGORICAL


def test_empty_columns_are_categorical():
    table = parse("A,B\n,1\n,2\n")
    assert classify(table)["A"] == ColumnType.CATEGORICAL


def test_booleans():
    table = parse("Active\ntrue\nFALSE\nTrue\n")
    assert classify(table)["Active"] == ColumnType.BOOLEAN


def test_parse_number_handles_currency_and_thousands():
    assert parse_number("$1,200") == 1200.0
    assert parse_number("12%") == 12.0
    assert parse_number("-3.5") == -3.5
    assert parse_number("abc") is None
    assert parse_number("") is None


def test_plain_numbers_and_text_are_not_dates():
    assert parse_date("1200") is None
    assert parse_date("hello") is None
    assert parse_date("1/5/2024").year == 2024


def test_key_candidates(sales_table):
    keys = detect_key_candidates(sales_table)
    assert "Date" in keys
    assert "Region" not in keys
    assert detect_key_candidates(parse("A\n")) == []


def test_column_stats(sales_table):
    stats = DataAnalyzer().column_stats(sales_table, "Revenue")
    assert stats["totalCount"] == 10
    assert stats["nullCount"] == 0
    assert stats["min"] == 137
    assert stats["max"] == 470
    assert stats["sum"] == sum(100 + d * 37 for d in range(1, 11))

    region = DataAnalyzer().column_stats(sales_table, "Region")
    assert region["uniqueCount"] == 4
    assert "sum" not in region


def test_profile_is_json_ready(sales_table, sales_types):
    import json

    profile = DataAnalyzer().analyze(sales_table, sales_types)
    assert profile["row_count"] == 10
    assert [c["name"] for c in profile["columns"]] == sales_table.headers
    json.dumps(profile)
