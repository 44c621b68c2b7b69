from core.csv_ingestor import Table, parse, decode_upload, table_name_from_filename


def test_quoted_commas_and_doubled_quotes():
    table = parse('"a,b",c\n"d""e",f\n')
    assert table.headers == ["a,b", "c"]
    assert table.rows == [{"a,b": 'd"e', "c": "f"}]


def test_short_rows_are_padded_and_long_rows_cut():
    table = parse("A,B,C\n1,2\n4,5,6,7\n")
    assert table.rows[0] == {"A": "1", "B": "2", "C": ""}
    assert table.rows[1] == {"A": "4", "B": "5", "C": "6"}


def test_blank_lines_are_skipped():
    table = parse("A,B\n\n1,2\n\n3,4\n\n")
    assert table.row_count == 2


def test_fields_are_trimmed():
    table = parse(" Name , City \n Ann , Oslo \n")
    assert table.headers == ["Name", "City"]
    assert table.rows == [{"Name": "Ann", "City": "Oslo"}]


def test_duplicate_and_empty_headers_are_made_unique():
    table = parse("Name,Name,\n1,2,3\n")
    assert table.headers == ["Name", "Name.1", "Column3"]
    assert table.rows[0]["Name.1"] == "2"


def test_empty_input_gives_empty_table():
    for text in ("", "   \n\n"):
        table = parse(text, "Empty")
        assert table.headers == []
        assert table.rows == []
        assert table.name == "Empty"


def test_header_only_has_no_rows():
    table = parse("A,B\n")
    assert table.headers == ["A", "B"]
    assert table.row_count == 0


def test_every_value_stays_a_string(sales_table):
    assert all(isinstance(v, str) for row in sales_table.rows for v in row.values())
    assert sales_table.rows[0]["Revenue"] == "137"


def test_table_column_and_frame(sales_table):
    assert sales_table.column("Region", limit=2) == ["West", "North"]
    frame = sales_table.to_frame()
    assert list(frame.columns) == ["Date", "Region", "Revenue"]
    assert len(frame) == 10


def test_decode_upload_handles_bom_and_latin1():
    assert decode_upload(b"\xef\xbb\xbfA,B\n") == "A,B\n"
    assert decode_upload("caf\xe9".encode("latin-1")) == "caf\xe9"
    assert decode_upload("already text") == "already text"


def test_table_name_from_filename():
    assert table_name_from_filename("Q1 sales.csv") == "Q1_sales"
    assert table_name_from_filename("C:\\data\\orders.CSV") == "orders"
    assert table_name_from_filename("", "Data") == "Data"
    assert table_name_from_filename("---.csv", "Data") == "Data"


def test_table_defaults():
    table = Table()
    assert table.row_count == 0 and table.column_count == 0


def test_unclosed_quote_does_not_raise():
    table = parse('Name,Amount\n"Acme,100\nBeta,200\n')
    assert table.headers == ["Name", "Amount"]
    assert table.row_count >= 1
    assert table.rows[0]["Name"].startswith("Acme")
    assert all(set(row) == {"Name", "Amount"} for row in table.rows)


def test_unclosed_quote_in_header_row_does_not_raise():
    table = parse('"Name,Amount\nAcme,100\n')
    assert table.column_count >= 1
    assert table.headers[0].startswith("Name")
