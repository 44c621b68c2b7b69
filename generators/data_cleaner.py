"""
Data Cleaner - Power BI-ready copy of a Table plus its Power Query (M) script.

Cleaning rules per column type:
  numeric      empty or unparseable -> 0, currency/thousands marks removed
  date         parseable -> YYYY-MM-DD, otherwise kept as-is
  boolean      TRUE / FALSE
  categorical  trimmed text
The source Table is never modified.
"""

import sys
from pathlib import Path

import pandas as pd

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from core.csv_ingestor import Table
from core.data_analyzer import ColumnType, parse_number, parse_date

M_TYPES = {
    ColumnType.NUMERIC: "type number",
    ColumnType.DATE: "type date",
    ColumnType.BOOLEAN: "type logical",
    ColumnType.CATEGORICAL: "type text",
}


def _clean_number(value):
    number = parse_number(value)
    if number is None:
        return "0"
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _clean_date(value):
    text = str(value).strip()
    if not text:
        return ""
    parsed = parse_date(text)
    return parsed.strftime("%Y-%m-%d") if parsed is not None else text


def _clean_boolean(value):
    text = str(value).strip()
    if not text:
        return ""
    return "TRUE" if text.lower() == "true" else "FALSE"


def _clean_text(value):
    return str(value).strip()


CLEANERS = {
    ColumnType.NUMERIC: _clean_number,
    ColumnType.DATE: _clean_date,
    ColumnType.BOOLEAN: _clean_boolean,
    ColumnType.CATEGORICAL: _clean_text,
}


def clean_table(table, classification):
    """Return a cleaned copy of table. Headers and row count are unchanged."""
    frame = table.to_frame()
    for header in table.headers:
        cleaner = CLEANERS[classification.get(header, ColumnType.CATEGORICAL)]
        frame[header] = frame[header].map(cleaner)

    rows = frame.to_dict("records") if table.headers else [{} for _ in table.rows]
    cleaned = Table(headers=list(table.headers), rows=rows, name=table.name)
    print(f"[OK] Cleaned {cleaned.row_count} rows x {cleaned.column_count} columns")
    return cleaned


def to_csv_text(table):
    """CSV text with minimal quoting (fields with commas, quotes or newlines)."""
    if not table.headers:
        return ""
    return table.to_frame().to_csv(index=False, lineterminator="\n")


def cleaned_file_name(table_name):
    return f"{table_name}_cleaned.csv"


def windows_data_path(file_name):
    """Portable path the user updates once in Power Query."""
    return f"C:\\PBI_Data\\{file_name}"


def _m_string(text):
    return '"' + str(text).replace('"', '""') + '"'


def power_query_m(file_name, headers, classification, file_path=None):
    """Power Query M script that loads the cleaned CSV with typed columns.

    Csv.Document -> PromoteHeaders -> TransformColumnTypes -> Distinct.
    """
    return "\n".join(power_query_lines(file_name, headers, classification, file_path)) + "\n"


def power_query_lines(file_name, headers, classification, file_path=None):
    path = file_path or windows_data_path(file_name)
    pairs = ", ".join(
        f"{{{_m_string(h)}, {M_TYPES[classification.get(h, ColumnType.CATEGORICAL)]}}}"
        for h in headers
    )
    return [
        "let",
        f"    Source = Csv.Document(File.Contents({_m_string(path)}),"
        f"[Delimiter=\",\",Columns={len(headers)},Encoding=65001,QuoteStyle=QuoteStyle.Csv]),",
        '    #"Promoted Headers" = Table.PromoteHeaders(Source, [PromoteAllScalars=true]),',
        f'    #"Changed Type" = Table.TransformColumnTypes(#"Promoted Headers",{{{pairs}}}),',
        '    #"Removed Duplicates" = Table.Distinct(#"Changed Type")',
        "in",
        '    #"Removed Duplicates"',
    ]


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    from core.csv_ingestor import parse
    from core.data_analyzer import classify

    table = parse('Date,Region,Revenue,Active\n1/5/2024, East ,"$1,200",true\n'
                  '2024-01-06,West,,FALSE\n', "Sales")
    types = classify(table)
    cleaned = clean_table(table, types)
    print(to_csv_text(cleaned))
    print(power_query_m(cleaned_file_name(table.name), table.headers, types))
    print(pd.DataFrame(cleaned.rows))
