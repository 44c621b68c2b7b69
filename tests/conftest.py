import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.csv_ingestor import parse
from core.data_analyzer import DataAnalyzer
from core.llm_client import Success, Failure

SALES_CSV = "Date,Region,Revenue\n" + "\n".join(
    f"2024-01-{d:02d},{['East', 'West', 'North', 'South'][d % 4]},{100 + d * 37}"
    for d in range(1, 11)
) + "\n"


class FakeCollaborator:
    """Returns canned results in order and records every prompt."""

    def __init__(self, *results):
        self.results = list(results)
        self.prompts = []
        self.last_call = None

    def request_json(self, system_prompt, user_message):
        self.prompts.append(user_message)
        self.last_call = {
            "engine": "fake",
            "model": "fake-1",
            "prompt_summary": user_message[:50],
            "response_summary": "canned",
        }
        if not self.results:
            return Failure("no canned result left")
        return self.results.pop(0)


@pytest.fixture
def sales_csv():
    return SALES_CSV


@pytest.fixture
def sales_table():
    return parse(SALES_CSV, "Sales")


@pytest.fixture
def sales_types(sales_table):
    return DataAnalyzer().classify(sales_table)


@pytest.fixture
def seven_visual_spec():
    """Card, three bars, a line, a pie and a table over the sales columns."""
    return {
        "title": "Sales Review",
        "colorPalette": "corporate",
        "visuals": [
            {"type": "card", "title": "Total Revenue", "dataKey": "Revenue", "format": "number"},
            {"type": "bar", "title": "Revenue by Region", "xAxis": "Region",
             "yAxis": "Revenue", "dataKey": "Revenue"},
            {"type": "bar", "title": "Regional Split", "xAxis": "Region",
             "yAxis": "Revenue", "dataKey": "Revenue"},
            {"type": "line", "title": "Revenue Over Time", "xAxis": "Date",
             "yAxis": "Revenue", "dataKey": "Revenue"},
            {"type": "bar", "title": "Daily Revenue", "xAxis": "Date",
             "yAxis": "Revenue", "dataKey": "Revenue"},
            {"type": "pie", "title": "Distribution by Region", "nameKey": "Region",
             "dataKey": "Revenue"},
            {"type": "table", "title": "Top 10 Records",
             "columns": ["Date", "Region", "Revenue"]},
        ],
    }


@pytest.fixture
def fake_collaborator():
    return FakeCollaborator


@pytest.fixture
def success():
    return Success


@pytest.fixture
def failure():
    return Failure
