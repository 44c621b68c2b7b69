"""
PBIP Generator - Projects a dashboard specification onto a Power BI Project.

Layout matches PBI Desktop with the enhanced report format (PBIR) and TMDL
semantic models enabled. Everything is built in memory as a bundle
{"files": {relative_path: text}, "warnings": [...]}; to_zip_bytes() and
write_bundle() turn it into a download or a folder.

Structure produced (flat siblings, no parent folder):
  {name}.pbip                              project pointer
  {name}.Report/
    .platform                              type: Report
    definition.pbir                        report -> semantic model pointer
    definition/
      report.json                          base + custom theme registration
      version.json
      pages/pages.json
      pages/{pageId}/page.json
      pages/{pageId}/visuals/{vizId}/visual.json
    StaticResources/SharedResources/BaseThemes/CY25SU12.json
    StaticResources/RegisteredResources/custom_theme.json
  {name}.SemanticModel/
    .platform                              type: SemanticModel
    definition.pbism
    definition/database.tmdl
    definition/model.tmdl
    definition/cultures/en-US.tmdl
    definition/tables/{table}.tmdl         columns, measures, M partition
  {table}_cleaned.csv                      data the partition loads
  measures.dax, power_query.m, custom_theme.json, SETUP_GUIDE.md, README.txt
"""

import io
import re
import sys
import json
import uuid
import zipfile
from copy import deepcopy
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config.themes import build_powerbi_theme
from core.data_analyzer import DataAnalyzer, ColumnType
from core.dashboard_spec import DEFAULT_TITLE, repair_references
from generators.data_cleaner import (
    clean_table, to_csv_text, cleaned_file_name, power_query_m, power_query_lines,
)
from generators.dax_generator import (
    measures_for, utility_measures, merge_measures, validate_dax,
    format_measures_for_export, setup_guide,
)
from generators.pbip_reference import (
    PBIP_TEMPLATE, PLATFORM_TEMPLATE, PBIR_TEMPLATE,
    REPORT_JSON_TEMPLATE, VERSION_JSON_TEMPLATE, PAGES_JSON_TEMPLATE,
    PAGE_JSON_TEMPLATE, VISUAL_JSON_TEMPLATE, PBISM_TEMPLATE,
    DATABASE_TMDL, CULTURE_TMDL, BASE_THEME, BASE_THEME_NAME, CUSTOM_THEME_FILE,
    VISUAL_TYPE_MAP, ROLE_MAP, DEFAULT_ROLE_MAP, VALUE_ROLES, DEFAULT_LAYOUT,
)

PBI_DATA_TYPES = {
    ColumnType.NUMERIC: "double",
    ColumnType.DATE: "dateTime",
    ColumnType.BOOLEAN: "boolean",
    ColumnType.CATEGORICAL: "string",
}

_TMDL_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PBIPGenerator:
    """Generate a complete PBIP bundle from a specification and its Table."""

    def __init__(self, theme=None, layout=None, analyzer=None):
        self.theme = theme
        self.layout = dict(DEFAULT_LAYOUT, **(layout or {}))
        self.analyzer = analyzer or DataAnalyzer()

    # ------------------------------------------------------------------ #
    #  Public API                                                          #
    # ------------------------------------------------------------------ #

    def generate(self, spec, table, classification=None):
        """Build the bundle.

        Args:
            spec:            dashboard specification (never modified).
            table:           the Table the specification was built from.
            classification:  column -> ColumnType; computed when omitted.

        Returns:
            dict: {"files": {path: text}, "warnings": [str], "measures": [...],
                   "visual_count": int}
        """
        if classification is None:
            classification = self.analyzer.classify(table)

        spec, warnings = repair_references(spec, table, classification)
        title = spec.get("title") or DEFAULT_TITLE
        safe = self._safe_name(title) or self._safe_name(table.name) or "Dashboard"
        table_name = table.name

        dates = [h for h in table.headers if classification.get(h) == ColumnType.DATE]
        measures = self._valid_measures(
            merge_measures(
                measures_for(spec, table_name, dates[0] if dates else None),
                utility_measures(table, classification, table_name),
            ),
            table.headers, warnings,
        )

        cleaned = clean_table(table, classification)
        data_file = cleaned_file_name(table_name)
        theme = self._theme_for(spec)

        files = {}
        report = f"{safe}.Report"
        model = f"{safe}.SemanticModel"

        # Semantic model
        files[f"{model}/.platform"] = self._platform(title, "SemanticModel")
        files[f"{model}/definition.pbism"] = _dump(deepcopy(PBISM_TEMPLATE))
        files[f"{model}/definition/database.tmdl"] = DATABASE_TMDL
        files[f"{model}/definition/cultures/en-US.tmdl"] = CULTURE_TMDL
        files[f"{model}/definition/model.tmdl"] = self._model_tmdl([table_name])
        files[f"{model}/definition/tables/{table_name}.tmdl"] = self._table_tmdl(
            table, classification, measures, data_file
        )
        print(f"    [+] {model} ({len(measures)} measures)")

        # Report
        pbip = deepcopy(PBIP_TEMPLATE)
        pbip["artifacts"][0]["report"]["path"] = report
        files[f"{safe}.pbip"] = _dump(pbip)
        files[f"{report}/.platform"] = self._platform(title, "Report")

        pbir = deepcopy(PBIR_TEMPLATE)
        pbir["datasetReference"]["byPath"]["path"] = f"../{model}"
        files[f"{report}/definition.pbir"] = _dump(pbir)
        files[f"{report}/definition/report.json"] = _dump(deepcopy(REPORT_JSON_TEMPLATE))
        files[f"{report}/definition/version.json"] = _dump(deepcopy(VERSION_JSON_TEMPLATE))

        page_id = uuid.uuid4().hex[:20]
        visual_docs, page_height = self._visual_docs(spec, table_name, classification)
        page = deepcopy(PAGE_JSON_TEMPLATE)
        page["name"] = page_id
        page["displayName"] = title
        page["height"] = max(page["height"], page_height)
        pages_dir = f"{report}/definition/pages"
        files[f"{pages_dir}/{page_id}/page.json"] = _dump(page)
        for doc in visual_docs:
            files[f"{pages_dir}/{page_id}/visuals/{doc['name']}/visual.json"] = _dump(doc)

        pages = deepcopy(PAGES_JSON_TEMPLATE)
        pages["pageOrder"] = [page_id]
        pages["activePageName"] = page_id
        files[f"{pages_dir}/pages.json"] = _dump(pages)
        print(f"    [+] page '{title}': {len(visual_docs)} visuals")

        static = f"{report}/StaticResources"
        files[f"{static}/SharedResources/BaseThemes/{BASE_THEME_NAME}.json"] = _dump(BASE_THEME)
        files[f"{static}/RegisteredResources/{CUSTOM_THEME_FILE}"] = _dump(theme)

        # Companion files
        files[data_file] = to_csv_text(cleaned)
        files["power_query.m"] = power_query_m(data_file, table.headers, classification)
        files["measures.dax"] = format_measures_for_export(measures)
        files[CUSTOM_THEME_FILE] = _dump(theme)
        files["SETUP_GUIDE.md"] = setup_guide(spec, classification, CUSTOM_THEME_FILE)
        files["README.txt"] = self._readme(safe, title, data_file, warnings)

        print(f"[OK] PBIP bundle generated: {len(files)} files, "
              f"{len(warnings)} warnings")
        return {
            "files": files,
            "warnings": warnings,
            "measures": measures,
            "visual_count": len(visual_docs),
        }

    # ------------------------------------------------------------------ #
    #  Measures                                                            #
    # ------------------------------------------------------------------ #

    def _valid_measures(self, measures, headers, warnings):
        """Drop measures with broken DAX or a name already used by a column."""
        columns = {h.lower() for h in headers}
        valid = []
        for m in measures:
            if m["name"].lower() in columns:
                warnings.append(f"Measure '{m['name']}' skipped: a column has the same name")
                print(f"    [SKIP] measure '{m['name']}': clashes with a column")
                continue
            errors = validate_dax(m["formula"])
            if errors:
                warnings.append(f"Measure '{m['name']}' skipped: {'; '.join(errors)}")
                print(f"    [SKIP] measure '{m['name']}': {errors}")
                continue
            valid.append(m)
        return valid

    def _theme_for(self, spec):
        if isinstance(self.theme, dict):
            return deepcopy(self.theme)
        if isinstance(self.theme, str):
            return build_powerbi_theme(self.theme)
        return build_powerbi_theme(spec.get("colorPalette"), spec.get("customColors"))

    # ------------------------------------------------------------------ #
    #  Visuals                                                             #
    # ------------------------------------------------------------------ #

    def _visual_docs(self, spec, table_name, classification):
        """visual.json documents in specification order, plus the page height."""
        lay = self.layout
        cols = max(1, int(lay["columns"]))
        docs = []
        y = lay["padding"]
        visuals = spec.get("visuals", [])

        # Row height is the tallest visual in the row so rows never overlap
        for start in range(0, len(visuals), cols):
            row = visuals[start:start + cols]
            heights = [self._height_for(v) for v in row]
            for offset, visual in enumerate(row):
                index = start + offset
                position = {
                    "x": lay["padding"] + offset * (lay["width"] + lay["padding"]),
                    "y": y,
                    "z": index,
                    "height": heights[offset],
                    "width": lay["width"],
                    "tabOrder": index,
                }
                docs.append(self._visual_json(visual, position, table_name, classification))
            y += max(heights) + lay["padding"]

        return docs, y

    def _height_for(self, visual):
        if visual.get("type") == "card":
            return self.layout["card_height"]
        return self.layout["height"]

    def _visual_json(self, visual, position, table_name, classification):
        kind = visual.get("type", "card")
        doc = deepcopy(VISUAL_JSON_TEMPLATE)
        doc["name"] = uuid.uuid4().hex[:20]
        doc["position"] = position
        doc["visual"]["visualType"] = VISUAL_TYPE_MAP.get(kind, "tableEx")
        doc["visual"]["query"]["queryState"] = self._build_query_state(
            visual, table_name, classification
        )

        title = visual.get("title", "")
        if title:
            literal = "'" + title.replace("'", "''") + "'"
            doc["visual"]["objects"] = {
                "title": [{
                    "properties": {
                        "text": {"expr": {"Literal": {"Value": literal}}},
                        "show": {"expr": {"Literal": {"Value": "true"}}},
                    }
                }]
            }

        top_n = self._build_top_n_filter(visual, table_name)
        if top_n:
            doc["filterConfig"] = {"filters": [top_n]}
        return doc

    def _build_query_state(self, visual, table_name, classification):
        """queryState matching PBI Desktop format.

        Numeric columns in value roles (X, Y, Values) are wrapped in a Sum
        aggregation; category and axis roles get plain Column refs.
        """
        role_map = ROLE_MAP.get(visual.get("type"), DEFAULT_ROLE_MAP)
        query_state = {}
        for key, pbi_role in role_map.items():
            value = visual.get(key)
            if not value:
                continue
            fields = value if isinstance(value, list) else [value]
            aggregate = pbi_role in VALUE_ROLES
            projections = [
                self._build_field_projection(f, table_name, classification, aggregate)
                for f in fields
            ]
            query_state.setdefault(pbi_role, {"projections": []})
            query_state[pbi_role]["projections"].extend(projections)
        return query_state

    @staticmethod
    def _column_ref(field_name, table_name):
        return {
            "Column": {
                "Expression": {"SourceRef": {"Entity": table_name}},
                "Property": field_name,
            }
        }

    def _build_field_projection(self, field_name, table_name, classification,
                                aggregate=False):
        col_ref = self._column_ref(field_name, table_name)
        if aggregate and classification.get(field_name) == ColumnType.NUMERIC:
            return {
                "field": {
                    "Aggregation": {
                        "Expression": col_ref,
                        "Function": 0,  # 0 = Sum
                    }
                },
                "queryRef": f"Sum({table_name}.{field_name})",
                "nativeQueryRef": f"Sum of {field_name}",
            }
        return {
            "field": col_ref,
            "queryRef": f"{table_name}.{field_name}",
            "nativeQueryRef": field_name,
        }

    def _build_top_n_filter(self, visual, table_name):
        """Visual-level TopN filter: keep the N categories with the largest sum."""
        n = visual.get("topN")
        category = visual.get("nameKey") or visual.get("xAxis")
        measure = visual.get("dataKey")
        if not n or not category or not measure:
            return None

        def source_col(name):
            return {"Column": {"Expression": {"SourceRef": {"Source": "d"}},
                               "Property": name}}

        return {
            "name": uuid.uuid4().hex[:20],
            "field": self._column_ref(category, table_name),
            "type": "TopN",
            "filter": {
                "Version": 2,
                "From": [
                    {
                        "Name": "subquery",
                        "Expression": {"Subquery": {"Query": {
                            "Version": 2,
                            "From": [{"Name": "d", "Entity": table_name, "Type": 0}],
                            "Select": [dict(source_col(category), Name="field")],
                            "OrderBy": [{
                                "Direction": 2,
                                "Expression": {"Aggregation": {
                                    "Expression": source_col(measure),
                                    "Function": 0,
                                }},
                            }],
                            "Top": int(n),
                        }}},
                        "Type": 2,
                    },
                    {"Name": "d", "Entity": table_name, "Type": 0},
                ],
                "Where": [{"Condition": {"In": {
                    "Expressions": [source_col(category)],
                    "Table": {"SourceRef": {"Source": "subquery"}},
                }}}],
            },
        }

    # ------------------------------------------------------------------ #
    #  TMDL files                                                          #
    # ------------------------------------------------------------------ #

    def _model_tmdl(self, table_names):
        lines = [
            "model Model",
            "\tculture: en-US",
            "\tdefaultPowerBIDataSourceVersion: powerBI_V3",
            "\tsourceQueryCulture: en-US",
            "\tdataAccessOptions",
            "\t\tlegacyRedirects",
            "\t\treturnErrorValuesAsNull",
            "",
            "annotation __PBI_TimeIntelligenceEnabled = 1",
            "",
            f"annotation PBI_QueryOrder = {json.dumps(table_names)}",
            "",
            'annotation PBI_ProTooling = ["DevMode"]',
            "",
        ]
        for tbl in table_names:
            lines.append(f"ref table {self._tmdl_quote(tbl)}")
        lines.append("")
        lines.append("ref cultureInfo en-US")
        lines.append("")
        return "\n".join(lines) + "\n"

    def _table_tmdl(self, table, classification, measures, data_file):
        """Columns from the classification, measures, and the M partition."""
        quoted_tbl = self._tmdl_quote(table.name)
        lines = [f"table {quoted_tbl}", f"\tlineageTag: {uuid.uuid4()}", ""]

        for header in table.headers:
            col_type = classification.get(header, ColumnType.CATEGORICAL)
            dt = PBI_DATA_TYPES[col_type]
            lines.append(f"\tcolumn {self._tmdl_quote(header)}")
            lines.append(f"\t\tdataType: {dt}")
            if dt == "dateTime":
                lines.append("\t\tformatString: Long Date")
            lines.append(f"\t\tlineageTag: {uuid.uuid4()}")
            lines.append("\t\tsummarizeBy: " + ("sum" if col_type == ColumnType.NUMERIC else "none"))
            lines.append(f"\t\tsourceColumn: {header}")
            lines.append("")
            lines.append("\t\tannotation SummarizationSetBy = Automatic")
            if dt == "double":
                lines.append("")
                lines.append('\t\tannotation PBI_FormatHint = {"isGeneralNumber":true}')
            lines.append("")

        for m in measures:
            expression = m["expression"].strip()
            name = self._tmdl_quote(m["name"])
            if "\n" in expression:
                lines.append(f"\tmeasure {name} =")
                lines.extend(f"\t\t\t{line}" for line in expression.splitlines())
            else:
                lines.append(f"\tmeasure {name} = {expression}")
            lines.append(f"\t\tformatString: {m.get('formatString', '#,0')}")
            lines.append(f"\t\tlineageTag: {uuid.uuid4()}")
            lines.append("")

        lines.append(f"\tpartition {quoted_tbl} = m")
        lines.append("\t\tmode: import")
        lines.append("\t\tsource =")
        for m_line in power_query_lines(data_file, table.headers, classification):
            lines.append(f"\t\t\t\t{m_line}")
        lines.append("")
        lines.append("\tannotation PBI_ResultType = Table")
        lines.append("")
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------ #
    #  Small documents                                                     #
    # ------------------------------------------------------------------ #

    def _platform(self, display_name, artifact_type):
        doc = deepcopy(PLATFORM_TEMPLATE)
        doc["metadata"]["type"] = artifact_type
        doc["metadata"]["displayName"] = display_name
        doc["config"]["logicalId"] = str(uuid.uuid4())
        return _dump(doc)

    def _readme(self, safe, title, data_file, warnings):
        readme = (
            f"Power BI Project: {title}\n"
            f"{'=' * (len(title) + 18)}\n\n"
            f"HOW TO OPEN:\n"
            f"  1. Extract this entire ZIP to a folder on your computer\n"
            f"  2. Copy {data_file} to C:\\PBI_Data\\ (or edit the path in\n"
            f"     Power Query: Transform data > Source)\n"
            f"  3. Double-click {safe}.pbip to open it in Power BI Desktop\n\n"
            f"REQUIREMENTS:\n"
            f"  - Power BI Desktop with PBIP preview features enabled:\n"
            f"    File > Options > Preview features > check all PBIP options\n\n"
            f"FILES:\n"
            f"  {safe}.pbip               -- Power BI project file\n"
            f"  {safe}.Report/            -- Report layout, pages, visuals\n"
            f"  {safe}.SemanticModel/     -- Data model, DAX measures\n"
            f"  {data_file}               -- Cleaned data\n"
            f"  measures.dax              -- Measures to paste by hand\n"
            f"  power_query.m             -- Query to paste by hand\n"
            f"  SETUP_GUIDE.md            -- Step-by-step visual setup\n"
        )
        if warnings:
            readme += "\nADJUSTMENTS MADE DURING EXPORT:\n"
            readme += "".join(f"  - {w}\n" for w in warnings)
        return readme

    @staticmethod
    def _safe_name(name):
        safe = str(name).replace(" ", "_").replace("/", "_").replace("\\", "_")
        safe = "".join(c for c in safe if c.isalnum() or c in ("_", "-", "."))
        return safe.strip(".")[:80]

    @staticmethod
    def _tmdl_quote(name):
        """Quote a TMDL identifier unless it is letters, digits and underscores."""
        if not _TMDL_IDENT_RE.match(name):
            return "'" + name.replace("'", "''") + "'"
        return name


def _dump(data):
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


# ------------------------------------------------------------------ #
#  Module-level API                                                    #
# ------------------------------------------------------------------ #

def project_to_package(spec, table, theme=None, layout=None, classification=None):
    """Bundle of PBIP files for spec over table. spec is not modified."""
    return PBIPGenerator(theme, layout).generate(spec, table, classification)


def to_zip_bytes(bundle):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as z:
        for path, text in sorted(bundle["files"].items()):
            z.writestr(path, text)
    return buf.getvalue()


def write_bundle(bundle, output_dir):
    """Write every file of a bundle under output_dir. Returns the folder."""
    root = Path(output_dir)
    for rel, text in bundle["files"].items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
    print(f"[OK] Wrote {len(bundle['files'])} files to {root}")
    return root


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    from config import settings
    from core.csv_ingestor import parse
    from core.spec_synthesizer import synthesize

    table = parse(
        "Date,Region,Revenue,Units\n"
        "2024-01-01,East,1200,10\n2024-01-02,West,800,7\n"
        "2024-01-03,North,1500,12\n2024-01-04,South,950,9\n",
        "Sales",
    )
    types = DataAnalyzer().classify(table)
    spec = synthesize(table, types)
    spec["visuals"][3]["topN"] = 3
    bundle = project_to_package(spec, table, classification=types)
    for path in sorted(bundle["files"]):
        print(f"  {path}")
    out = write_bundle(bundle, settings.OUTPUT_DIR / "Sales_pbip")
    print(f"  zip: {len(to_zip_bytes(bundle))} bytes -> {out}")
