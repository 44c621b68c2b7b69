import io
import json
import zipfile

from core.csv_ingestor import Table, parse
from core.data_analyzer import ColumnType, classify
from generators.data_cleaner import (
    clean_table, cleaned_file_name, power_query_m, to_csv_text, windows_data_path,
)
from generators.dax_generator import (
    format_measures_for_export, measures_for, measures_for_visual, setup_guide,
    utility_measures, validate_dax,
)
from generators.pbip_generator import project_to_package, to_zip_bytes, write_bundle

TYPES = {
    "Date": ColumnType.DATE,
    "Region": ColumnType.CATEGORICAL,
    "Revenue": ColumnType.NUMERIC,
    "Active": ColumnType.BOOLEAN,
}


# ------------------------------------------------------------------ #
#  Data cleaner                                                        #
# ------------------------------------------------------------------ #

def test_clean_table_normalizes_each_type():
    raw = Table(
        headers=["Date", "Region", "Revenue", "Active"],
        rows=[
            {"Date": "1/5/2024", "Region": " East ", "Revenue": "$1,200", "Active": "true"},
            {"Date": "2024-01-06", "Region": "West", "Revenue": "", "Active": "False"},
        ],
        name="Sales",
    )
    cleaned = clean_table(raw, TYPES)

    assert cleaned.rows[0] == {"Date": "2024-01-05", "Region": "East",
                               "Revenue": "1200", "Active": "TRUE"}
    assert cleaned.rows[1]["Revenue"] == "0"
    assert cleaned.rows[1]["Active"] == "FALSE"
    assert raw.rows[0]["Revenue"] == "$1,200"
    assert cleaned.row_count == raw.row_count


def test_csv_text_quotes_only_when_needed():
    table = Table(headers=["Name", "City"], rows=[{"Name": "a,b", "City": "X"}])
    assert to_csv_text(table) == 'Name,City\n"a,b",X\n'
    assert to_csv_text(Table()) == ""


def test_power_query_types_and_steps():
    script = power_query_m(cleaned_file_name("Sales"), list(TYPES), TYPES)
    assert 'File.Contents("C:\\PBI_Data\\Sales_cleaned.csv")' in script
    assert '{"Revenue", type number}' in script
    assert '{"Date", type date}' in script
    assert '{"Active", type logical}' in script
    assert "Table.PromoteHeaders" in script
    assert script.rstrip().endswith('#"Removed Duplicates"')
    assert windows_data_path("x.csv") == "C:\\PBI_Data\\x.csv"


# ------------------------------------------------------------------ #
#  DAX                                                                 #
# ------------------------------------------------------------------ #

def test_measures_are_unique_by_name(seven_visual_spec):
    names = [m["name"] for m in measures_for(seven_visual_spec, "Sales")]
    assert len(names) == len(set(names))
    assert "Total Revenue" in names
    assert "Revenue by Region" in names


def test_time_intelligence_needs_a_date_column(seven_visual_spec):
    without = [m["name"] for m in measures_for(seven_visual_spec, "Sales")]
    with_date = [m["name"] for m in measures_for(seven_visual_spec, "Sales", "Date")]
    assert "Revenue YTD" not in without
    assert "Revenue YTD" in with_date
    assert "Revenue Moving Avg" in with_date


def test_placeholder_visual_gets_no_measures():
    visual = {"type": "bar", "title": "x", "dataKey": "<numeric field>", "xAxis": "Region"}
    assert measures_for_visual(visual, "Sales") == []


def test_generated_measures_are_valid(seven_visual_spec, sales_table, sales_types):
    measures = measures_for(seven_visual_spec, "Sales", "Date")
    measures += utility_measures(sales_table, sales_types)
    for m in measures:
        assert validate_dax(m["formula"]) == [], m["name"]


def test_validate_dax_catches_problems():
    assert validate_dax("") == ["empty formula"]
    assert "missing assignment operator (=)" in validate_dax("SUM('Sales'[Revenue])")
    assert any("parentheses" in e for e in validate_dax("Bad = SUM('Sales'[Revenue]"))
    assert "formula is just a literal number" in validate_dax("X = 5")
    assert any("Python" in e for e in validate_dax("X = lambda x: x"))
    assert validate_dax("Odd (1) = SUM('Sales (EU)'[Net (USD)])") == []


def test_export_text_groups_by_visual(seven_visual_spec):
    text = format_measures_for_export(measures_for(seven_visual_spec, "Sales"))
    assert "// ===== Card (KPI) Measures =====" in text
    assert "// ===== Bar Chart Measures =====" in text
    assert "Total Revenue = SUM('Sales'[Revenue])" in text


def test_setup_guide_lists_every_visual(seven_visual_spec):
    guide = setup_guide(seven_visual_spec, {"Date": ColumnType.DATE})
    for num in range(1, 8):
        assert f"### Visual {num}:" in guide
    assert "custom_theme.json" in guide


# ------------------------------------------------------------------ #
#  PBIP bundle                                                         #
# ------------------------------------------------------------------ #

def test_bundle_layout(seven_visual_spec, sales_table, sales_types):
    bundle = project_to_package(seven_visual_spec, sales_table, classification=sales_types)
    files = bundle["files"]

    for path in [
        "Sales_Review.pbip",
        "Sales_Review.Report/.platform",
        "Sales_Review.Report/definition.pbir",
        "Sales_Review.Report/definition/report.json",
        "Sales_Review.Report/definition/version.json",
        "Sales_Review.Report/definition/pages/pages.json",
        "Sales_Review.Report/StaticResources/RegisteredResources/custom_theme.json",
        "Sales_Review.SemanticModel/definition.pbism",
        "Sales_Review.SemanticModel/definition/model.tmdl",
        "Sales_Review.SemanticModel/definition/tables/Sales.tmdl",
        "Sales_cleaned.csv", "measures.dax", "power_query.m",
        "SETUP_GUIDE.md", "README.txt",
    ]:
        assert path in files, path

    visuals = [p for p in files if p.endswith("/visual.json")]
    assert len(visuals) == 7 == bundle["visual_count"]
    assert bundle["warnings"] == []

    pbir = json.loads(files["Sales_Review.Report/definition.pbir"])
    assert pbir["datasetReference"]["byPath"]["path"] == "../Sales_Review.SemanticModel"


def test_visual_json_contents(seven_visual_spec, sales_table, sales_types):
    spec = dict(seven_visual_spec)
    spec["visuals"] = [dict(v) for v in seven_visual_spec["visuals"]]
    spec["visuals"][1]["topN"] = 5
    files = project_to_package(spec, sales_table, classification=sales_types)["files"]

    docs = [json.loads(t) for p, t in files.items() if p.endswith("/visual.json")]
    docs.sort(key=lambda d: d["position"]["tabOrder"])

    card, bar = docs[0], docs[1]
    assert card["visual"]["visualType"] == "card"
    assert card["position"]["height"] == 150
    projection = card["visual"]["query"]["queryState"]["Values"]["projections"][0]
    assert projection["queryRef"] == "Sum(Sales.Revenue)"

    assert bar["visual"]["visualType"] == "barChart"
    category = bar["visual"]["query"]["queryState"]["Category"]["projections"][0]
    assert category["field"]["Column"]["Property"] == "Region"
    top = bar["filterConfig"]["filters"][0]
    assert top["type"] == "TopN"
    assert top["filter"]["From"][0]["Expression"]["Subquery"]["Query"]["Top"] == 5

    assert docs[6]["visual"]["visualType"] == "tableEx"
    values = docs[6]["visual"]["query"]["queryState"]["Values"]["projections"]
    assert [v["nativeQueryRef"] for v in values] == ["Date", "Region", "Sum of Revenue"]


def test_visuals_do_not_overlap(seven_visual_spec, sales_table, sales_types):
    files = project_to_package(seven_visual_spec, sales_table, classification=sales_types)["files"]
    boxes = [json.loads(t)["position"] for p, t in files.items() if p.endswith("/visual.json")]
    for i, a in enumerate(boxes):
        for b in boxes[i + 1:]:
            apart = (a["x"] + a["width"] <= b["x"] or b["x"] + b["width"] <= a["x"]
                     or a["y"] + a["height"] <= b["y"] or b["y"] + b["height"] <= a["y"])
            assert apart


def test_table_tmdl(seven_visual_spec, sales_table, sales_types):
    tmdl = project_to_package(seven_visual_spec, sales_table,
                              classification=sales_types)["files"][
        "Sales_Review.SemanticModel/definition/tables/Sales.tmdl"]
    assert tmdl.startswith("table Sales\n")
    assert "\tcolumn Revenue\n\t\tdataType: double" in tmdl
    assert "\tcolumn Date\n\t\tdataType: dateTime" in tmdl
    assert "\tmeasure 'Total Revenue' = SUM('Sales'[Revenue])" in tmdl
    assert "\tpartition Sales = m" in tmdl
    assert "Sales_cleaned.csv" in tmdl


def test_dangling_fields_are_repaired_with_warnings(seven_visual_spec, sales_table, sales_types):
    spec = dict(seven_visual_spec)
    spec["visuals"] = [dict(v) for v in seven_visual_spec["visuals"]]
    spec["visuals"][0]["dataKey"] = "Profit"
    bundle = project_to_package(spec, sales_table, classification=sales_types)

    assert any("Profit" in w for w in bundle["warnings"])
    assert "Profit" in bundle["files"]["README.txt"]
    assert seven_visual_spec["visuals"][0]["dataKey"] == "Revenue"


def test_measure_named_like_a_column_is_skipped():
    table = parse("Region,Revenue,Total Revenue\nEast,1,2\nWest,3,4\n", "Sales")
    spec = {"title": "T", "colorPalette": "ocean", "visuals": [
        {"type": "card", "title": "Total Revenue", "dataKey": "Revenue"}]}
    bundle = project_to_package(spec, table)

    assert any("Total Revenue" in w and "column" in w for w in bundle["warnings"])
    assert "measure 'Total Revenue'" not in bundle["files"]["T.SemanticModel/definition/tables/Sales.tmdl"]
    theme = json.loads(bundle["files"]["custom_theme.json"])
    assert theme["name"] == "Ocean Blue"


def test_theme_override(seven_visual_spec, sales_table):
    bundle = project_to_package(seven_visual_spec, sales_table, theme="forest")
    assert json.loads(bundle["files"]["custom_theme.json"])["name"] == "Forest Green"


def test_zip_and_folder_output(seven_visual_spec, sales_table, tmp_path):
    bundle = project_to_package(seven_visual_spec, sales_table)
    with zipfile.ZipFile(io.BytesIO(to_zip_bytes(bundle))) as z:
        assert sorted(z.namelist()) == sorted(bundle["files"])

    root = write_bundle(bundle, tmp_path / "out")
    assert (root / "Sales_Review.pbip").exists()
    assert (root / "Sales_Review.SemanticModel" / "definition" / "model.tmdl").exists()
