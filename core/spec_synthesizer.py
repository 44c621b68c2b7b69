"""
Spec Synthesizer - Builds the first dashboard specification for a classified table.

Deterministic rules: KPI cards, a trend line, a category breakdown (bar + pie)
and a detail table. An optional LLM collaborator may propose the design
instead; its proposal is used only when every field it references exists.
"""

import sys
import json
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config.prompts import ANALYZE_SYSTEM_PROMPT
from core.data_analyzer import DataAnalyzer, ColumnType, columns_of_type
from core.dashboard_spec import (
    new_spec, normalize_spec, find_dangling_references, DEFAULT_TITLE,
)
from core.llm_client import Success

MAX_CARDS = 3
TABLE_COLUMNS = 5


class SpecSynthesizer:
    """Turn a classified Table into a DashboardSpecification dict."""

    def __init__(self, analyzer=None):
        self.analyzer = analyzer or DataAnalyzer()

    # ------------------------------------------------------------------ #
    #  Rule-based design                                                   #
    # ------------------------------------------------------------------ #

    def synthesize(self, table, classification):
        numeric = columns_of_type(table, classification, ColumnType.NUMERIC)
        dates = columns_of_type(table, classification, ColumnType.DATE)
        categories = columns_of_type(table, classification, ColumnType.CATEGORICAL)

        visuals = []

        # 1. KPI cards: columns with a non-zero value first, order kept otherwise
        ranked = sorted(numeric, key=lambda h: not self.analyzer.has_nonzero(table, h))
        for col in ranked[:MAX_CARDS]:
            visuals.append({
                "type": "card",
                "title": f"Total {col}",
                "dataKey": col,
                "format": "number",
            })

        measure = self._informative_numeric(table, numeric)

        # 2. Trend over time
        if dates and measure:
            visuals.append({
                "type": "line",
                "title": f"{measure} Over Time",
                "xAxis": dates[0],
                "yAxis": measure,
                "dataKey": measure,
            })

        # 3. Category breakdown
        if categories and measure:
            visuals.append({
                "type": "bar",
                "title": f"{measure} by {categories[0]}",
                "xAxis": categories[0],
                "yAxis": measure,
                "dataKey": measure,
            })
            visuals.append({
                "type": "pie",
                "title": f"Distribution by {categories[0]}",
                "nameKey": categories[0],
                "dataKey": measure,
            })

        # 4. Detail table, always present
        visuals.append({
            "type": "table",
            "title": "Top 10 Records",
            "columns": list(table.headers[:TABLE_COLUMNS]),
        })

        spec = new_spec(DEFAULT_TITLE, "corporate", visuals)
        print(f"[OK] Synthesized {len(visuals)} visuals "
              f"({len(numeric)} numeric, {len(dates)} date, "
              f"{len(categories)} categorical columns)")
        return spec

    def _informative_numeric(self, table, numeric):
        """First numeric column whose values vary, else the first numeric."""
        for col in numeric:
            if self.analyzer.has_variation(table, col):
                return col
        return numeric[0] if numeric else None

    def describe(self, table, spec):
        kinds = []
        for v in spec["visuals"]:
            if v["type"] not in kinds:
                kinds.append(v["type"])
        return (
            f"I've analyzed your dataset with {table.row_count} rows and "
            f"{table.column_count} columns. Here's a recommended dashboard with "
            f"{len(spec['visuals'])} visuals ({', '.join(kinds)}) using the "
            f"{spec['colorPalette']} color palette, ready for Power BI."
        )

    # ------------------------------------------------------------------ #
    #  Initial analysis (LLM first, rules as fallback)                     #
    # ------------------------------------------------------------------ #

    def analyze(self, table, classification, collaborator=None):
        """Return {message, dashboardSpec, source, fallbackReason}."""
        reason = None
        if collaborator is not None:
            proposal, reason = self._ask_collaborator(table, classification, collaborator)
            if proposal is not None:
                return {
                    "message": proposal["message"],
                    "dashboardSpec": proposal["dashboardSpec"],
                    "source": "llm",
                    "fallbackReason": None,
                }
            print(f"[FALLBACK] Using rule-based design: {reason}")

        spec = self.synthesize(table, classification)
        return {
            "message": self.describe(table, spec),
            "dashboardSpec": spec,
            "source": "rules",
            "fallbackReason": reason,
        }

    def _ask_collaborator(self, table, classification, collaborator):
        profile = self.analyzer.analyze(table, classification)
        user_message = (
            f"DATASET PROFILE:\n{json.dumps(profile, indent=2, default=str)}\n\n"
            f"AVAILABLE COLUMNS: {json.dumps(table.headers)}\n\n"
            "Design the initial dashboard."
        )
        result = collaborator.request_json(ANALYZE_SYSTEM_PROMPT, user_message)
        if not isinstance(result, Success):
            return None, result.reason

        payload = result.payload
        if not isinstance(payload, dict):
            return None, "response is not a JSON object"
        try:
            spec = normalize_spec(payload.get("dashboardSpec"))
        except ValueError as e:
            return None, f"invalid specification: {e}"
        if not spec["visuals"]:
            return None, "specification has no visuals"
        dangling = find_dangling_references(spec, table.headers)
        if dangling:
            names = sorted({d["field"] for d in dangling})
            return None, f"unknown columns referenced: {', '.join(names)}"

        message = payload.get("message") or self.describe(table, spec)
        return {"message": str(message), "dashboardSpec": spec}, None


def synthesize(table, classification):
    return SpecSynthesizer().synthesize(table, classification)


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    from core.csv_ingestor import parse

    sample = "Date,Region,Revenue\n" + "\n".join(
        f"2024-01-{d:02d},{'East' if d % 2 else 'West'},{100 + d * 7}"
        for d in range(1, 11)
    )
    table = parse(sample, "Sales")
    analyzer = DataAnalyzer()
    spec = SpecSynthesizer(analyzer).synthesize(table, analyzer.classify(table))
    print(json.dumps(spec, indent=2))
