"""
DAX Generator - Builds DAX measures that match the visuals of a specification.

One template per visual kind; measures are de-duplicated by name so a
column shown in several visuals yields one "Total ..." measure. Time
intelligence is only emitted when a date column is known.
"""

import re
import sys
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from core.data_analyzer import ColumnType
from core.dashboard_spec import PLACEHOLDERS, VISUAL_LABELS, referenced_fields


def table_ref(table_name):
    """'Sales Data' style quoted table reference."""
    return "'" + table_name.replace("'", "''") + "'"


def column_ref(table_name, column):
    return f"{table_ref(table_name)}[{column.replace(']', ']]')}]"


def _measure(name, expression, description, visual=None, usage="", fmt="#,0"):
    return {
        "name": name,
        "expression": expression,
        "formula": f"{name} = {expression}",
        "description": description,
        "formatString": fmt,
        "visualType": visual.get("type") if visual else None,
        "visualTitle": visual.get("title", "") if visual else "",
        "usage": usage,
    }


# ------------------------------------------------------------------ #
#  Per-visual templates                                                #
# ------------------------------------------------------------------ #

def measures_for_visual(visual, table_name="Data", date_column=None):
    """Measures for one visual. Empty when a needed field is a placeholder."""
    if any(name in PLACEHOLDERS for _, name in referenced_fields(visual)):
        return []

    kind = visual.get("type")
    data = visual.get("dataKey")
    x = visual.get("xAxis")
    t = table_ref(table_name)
    measures = []

    if kind in ("table", "matrix"):
        measures.append(_measure(
            "Row Count", f"COUNTROWS({t})", "Total number of rows",
            visual, "Shows the total record count",
        ))
        if data:
            measures.append(_measure(
                f"Total {data}", f"SUM({column_ref(table_name, data)})",
                f"Sum of {data} for table totals", visual,
                f"Drag this measure to Values in '{visual.get('title', '')}'",
            ))
        return measures

    if not data:
        return []
    total = f"SUM({column_ref(table_name, data)})"

    if kind == "card":
        measures.append(_measure(
            f"Total {data}", total, f"Total sum of {data} for KPI card", visual,
            f"Use this measure in a Card visual with title \"{visual.get('title', '')}\"",
        ))
        if date_column:
            date = column_ref(table_name, date_column)
            measures.append(_measure(
                f"{data} YTD",
                f"\nCALCULATE(\n    {total},\n    DATESYTD({date})\n)",
                f"Year-to-date total for {data}", visual,
                "Optional secondary value for the card",
            ))
            measures.append(_measure(
                f"{data} vs PY",
                f"\nVAR CurrentValue = {total}\n"
                f"VAR PreviousYear =\n    CALCULATE(\n        {total},\n"
                f"        SAMEPERIODLASTYEAR({date})\n    )\nRETURN\n"
                f"    DIVIDE(CurrentValue - PreviousYear, PreviousYear, 0)",
                "Year-over-year growth percentage", visual,
                "Supporting measure for calculations", fmt="0.0%",
            ))

    elif kind in ("line", "area"):
        measures.append(_measure(
            f"{data} Over Time", total,
            f"Sum of {data} for time series visualization", visual,
            f"Drag \"{x}\" to X-Axis, drag this measure to Y-Axis",
        ))
        if date_column and x == date_column:
            xr = column_ref(table_name, x)
            measures.append(_measure(
                f"{data} Moving Avg",
                f"\nAVERAGEX(\n    DATESINPERIOD(\n        {xr},\n"
                f"        LASTDATE({xr}),\n        -7,\n        DAY\n    ),\n"
                f"    {total}\n)",
                "7-day moving average for trend analysis", visual,
                "Add as a second line for the trend",
            ))

    elif kind in ("bar", "column"):
        xr = column_ref(table_name, x) if x else None
        measures.append(_measure(
            f"{data} by {x}", total, f"Sum of {data} grouped by {x}", visual,
            f"Drag \"{x}\" to Axis, drag this measure to Values",
        ))
        if xr:
            measures.append(_measure(
                f"% of Total {data}",
                f"\nDIVIDE(\n    {total},\n    CALCULATE(\n        {total},\n"
                f"        ALL({xr})\n    ),\n    0\n)",
                "Percentage contribution to total", visual,
                "Supporting measure for calculations", fmt="0.0%",
            ))
            measures.append(_measure(
                f"Rank by {data}",
                f"\nRANKX(\n    ALL({xr}),\n    CALCULATE({total}),\n    ,\n"
                f"    DESC,\n    Dense\n)",
                f"Ranking by {data} value", visual,
                "Use as a tooltip or to sort the axis", fmt="0",
            ))

    elif kind in ("pie", "donut"):
        name_key = visual.get("nameKey")
        measures.append(_measure(
            f"{data} Distribution", total, "Sum for distribution chart", visual,
            f"Drag \"{name_key}\" to Legend, drag this measure to Values",
        ))
        measures.append(_measure(
            f"% Share of {data}",
            f"\nDIVIDE(\n    {total},\n    CALCULATE(\n        {total},\n"
            f"        ALL({t})\n    ),\n    0\n)",
            "Percentage share of total", visual,
            "Supporting measure for calculations", fmt="0.0%",
        ))

    elif kind == "gauge":
        measures.append(_measure(
            f"{data} Actual", total, "Actual value for gauge", visual,
            "Drag this measure to Value field in gauge",
        ))
        measures.append(_measure(
            f"{data} Target", f"[{data} Actual] * 1.2",
            "Target value (120% of actual)", visual,
            "Drag this measure to Target value",
        ))
        measures.append(_measure(
            f"{data} Achievement %",
            f"\nDIVIDE(\n    [{data} Actual],\n    [{data} Target],\n    0\n)",
            "Achievement percentage vs target", visual,
            "Use as the gauge tooltip", fmt="0.0%",
        ))

    elif kind == "scatter":
        y = visual.get("yAxis") or data
        for col, axis in ((x or data, "X-Axis"), (y, "Y-Axis")):
            measures.append(_measure(
                f"Avg {col}", f"AVERAGE({column_ref(table_name, col)})",
                f"Average for {axis}", visual, f"Drag to {axis}", fmt="#,0.00",
            ))

    elif kind == "waterfall":
        measures.append(_measure(
            f"{data} Value", total, "Value for waterfall chart", visual,
            f"Drag \"{x}\" to Category, drag this measure to Y-Axis",
        ))
        if date_column:
            measures.append(_measure(
                f"{data} Change",
                f"\nVAR CurrentValue = {total}\nVAR PreviousValue =\n"
                f"    CALCULATE(\n        {total},\n"
                f"        PREVIOUSMONTH({column_ref(table_name, date_column)})\n"
                f"    )\nRETURN\n    CurrentValue - PreviousValue",
                "Period-over-period change", visual,
                "Supporting measure for calculations",
            ))

    elif kind == "funnel":
        measures.append(_measure(
            f"{data} Funnel", total, "Value for funnel stage", visual,
            f"Drag \"{x}\" to Category, drag this measure to Values",
        ))
        if x:
            measures.append(_measure(
                "Conversion Rate",
                f"\nVAR CurrentStage = {total}\nVAR FirstStage =\n"
                f"    MAXX(ALL({column_ref(table_name, x)}), CALCULATE({total}))\n"
                f"RETURN\n    DIVIDE(CurrentStage, FirstStage, 0)",
                "Conversion rate from first stage", visual,
                "Use as a tooltip", fmt="0.0%",
            ))

    else:
        measures.append(_measure(
            f"{data} Measure", total, f"Sum of {data}", visual,
            "Drag this measure to Values",
        ))

    return measures


def measures_for(spec, table_name="Data", date_column=None):
    """Ordered, name-unique measures for every visual of a specification."""
    seen = set()
    measures = []
    for visual in spec.get("visuals", []):
        for m in measures_for_visual(visual, table_name, date_column):
            if m["name"] in seen:
                continue
            seen.add(m["name"])
            measures.append(m)
    return measures


def utility_measures(table, classification, table_name=None):
    """Record count plus Total / Average for every numeric column."""
    table_name = table_name or table.name
    measures = [_measure(
        "Record Count", f"COUNTROWS({table_ref(table_name)})",
        "Total number of records", usage="Use for counting records", fmt="0",
    )]
    for header in table.headers:
        if classification.get(header) != ColumnType.NUMERIC:
            continue
        ref = column_ref(table_name, header)
        measures.append(_measure(
            f"Total {header}", f"SUM({ref})", f"Sum of all {header} values",
            usage="General purpose total",
        ))
        measures.append(_measure(
            f"Average {header}", f"AVERAGE({ref})", f"Average of {header}",
            usage="General purpose average", fmt="#,0.00",
        ))
    return measures


def merge_measures(*groups):
    seen = set()
    merged = []
    for group in groups:
        for m in group:
            if m["name"] not in seen:
                seen.add(m["name"])
                merged.append(m)
    return merged


# ------------------------------------------------------------------ #
#  Validation                                                          #
# ------------------------------------------------------------------ #

_QUOTED_RE = re.compile(r"'(?:[^']|'')*'|\[(?:[^\]]|\]\])*\]|\"(?:[^\"]|\"\")*\"")


def validate_dax(formula):
    """List of problems with a 'Name = expression' formula. Empty means OK.

    A safety net, not a parser: checks the assignment, balanced brackets
    and parentheses, and foreign syntax leaking in.
    """
    errors = []
    if not formula or not formula.strip():
        return ["empty formula"]

    if "=" not in formula:
        errors.append("missing assignment operator (=)")

    # Names inside quotes or brackets may contain parentheses
    bare = _QUOTED_RE.sub("", formula)
    if "[" in bare or "]" in bare:
        errors.append("unmatched brackets")
    if bare.count("(") != bare.count(")"):
        errors.append(f"unmatched parentheses: {bare.count('(')} open vs "
                      f"{bare.count(')')} close")
    if bare.count('"') % 2:
        errors.append("unbalanced double quotes")

    foreign_patterns = [
        (r"\bdef\s+", "Python 'def' keyword"),
        (r"\bimport\s+", "Python 'import' keyword"),
        (r"\bSELECT\s+", "SQL SELECT statement"),
        (r"\blambda\s+", "Python 'lambda' keyword"),
    ]
    for pattern, desc in foreign_patterns:
        if re.search(pattern, bare, re.IGNORECASE):
            errors.append(f"contains {desc}")

    expression = formula.split("=", 1)[-1].strip()
    if re.match(r"^[\d.]+$", expression):
        errors.append("formula is just a literal number")
    return errors


# ------------------------------------------------------------------ #
#  Export text                                                         #
# ------------------------------------------------------------------ #

def format_measures_for_export(measures):
    """measures.dax text grouped by visual kind."""
    lines = [
        "// ============================================================",
        "// Power BI DAX Measures",
        "// Generated to match your dashboard visuals",
        "// ============================================================",
        "",
    ]
    grouped = {}
    for m in measures:
        label = VISUAL_LABELS.get(m.get("visualType"), "Other")
        grouped.setdefault(label, []).append(m)

    for label, group in grouped.items():
        lines.append(f"// ===== {label} Measures =====")
        lines.append("")
        for m in group:
            lines.append(f"// {m['description']}")
            if m.get("visualTitle"):
                lines.append(f"// Visual: \"{m['visualTitle']}\"")
            if m.get("usage"):
                lines.append(f"// Usage: {m['usage']}")
            lines.append(m["formula"])
            lines.append("")

    lines.extend([
        "// ============================================================",
        "// Copy and paste these measures into Power BI Desktop",
        "// Go to: Modeling > New Measure > Paste formula",
        "// ============================================================",
    ])
    return "\n".join(lines) + "\n"


def setup_guide(spec, classification=None, theme_file="custom_theme.json"):
    """Markdown steps to recreate every visual by hand in Power BI Desktop."""
    classification = classification or {}
    out = [
        "# Power BI Visual Setup Guide",
        "",
        f"Dashboard: **{spec.get('title', '')}**",
        "",
        "Follow these steps to recreate the dashboard exactly as designed.",
    ]
    for num, visual in enumerate(spec.get("visuals", []), 1):
        kind = visual.get("type")
        label = VISUAL_LABELS.get(kind, kind)
        data, x = visual.get("dataKey"), visual.get("xAxis")
        out += ["", f"### Visual {num}: {visual.get('title', '')}", "",
                f"**Type:** {label}", "", "**Setup Steps:**"]

        if kind == "card":
            steps = ['Add a "Card" visual to your canvas',
                     f'Drag the measure **"Total {data}"** to the **Fields** well']
        elif kind in ("line", "area"):
            axis_type = ("Continuous (Date)" if classification.get(x) == ColumnType.DATE
                         else "Categorical")
            steps = [f'Add a "{label}" visual',
                     f'Drag **"{x}"** column to **X-Axis** ({axis_type})',
                     f'Drag measure **"{data} Over Time"** to **Y-Axis**']
        elif kind in ("bar", "column"):
            steps = [f'Add a "{label}" visual',
                     f'Drag **"{x}"** column to **Axis**',
                     f'Drag measure **"{data} by {x}"** to **Values**',
                     "Sort: Descending by values"]
        elif kind in ("pie", "donut"):
            steps = [f'Add a "{label}" visual',
                     f'Drag **"{visual.get("nameKey")}"** column to **Legend**',
                     f'Drag measure **"{data} Distribution"** to **Values**']
        elif kind in ("table", "matrix"):
            cols = ", ".join(visual.get("columns") or [])
            steps = [f'Add a "{label}" visual',
                     f"Drag these columns to **Values**: {cols}"]
        elif kind == "gauge":
            steps = ['Add a "Gauge" visual',
                     f'Drag measure **"{data} Actual"** to **Value**',
                     f'Drag measure **"{data} Target"** to **Target value**']
        else:
            steps = [f'Add a "{label}" visual', "Configure fields as needed"]

        steps.append(f'Title: "{visual.get("title", "")}"')
        if visual.get("topN"):
            steps.append(f"Filter: Top {visual['topN']} by sum of {data}")
        out += [f"{i}. {s}" for i, s in enumerate(steps, 1)]

    out += [
        "", "## Color Theme", "",
        f"Apply the included `{theme_file}` file:",
        "1. Go to View > Themes > Browse for themes",
        f"2. Select the `{theme_file}` file",
        "",
    ]
    return "\n".join(out)
