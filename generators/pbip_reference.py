"""
PBIP Reference Templates - Static skeletons of a Power BI Project (PBIP).

Matches the layout PBI Desktop writes with the enhanced report format
(PBIR) and TMDL semantic models enabled. The generator deep-copies these
and fills in names, visuals, columns and measures only.
"""

# ------------------------------------------------------------------ #
#  {name}.pbip  (root pointer - sibling to .Report and .SemanticModel)
# ------------------------------------------------------------------ #
PBIP_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/pbip/pbipProperties/1.0.0/schema.json",
    "version": "1.0",
    "artifacts": [{"report": {"path": None}}],
    "settings": {"enableAutoRecovery": True},
}

# ------------------------------------------------------------------ #
#  .platform  (used for both .Report and .SemanticModel)
# ------------------------------------------------------------------ #
PLATFORM_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/gitIntegration/platformProperties/2.0.0/schema.json",
    "metadata": {"type": None, "displayName": None},
    "config": {"version": "2.0", "logicalId": None},
}

# ------------------------------------------------------------------ #
#  {name}.Report/definition.pbir  (report -> semantic model pointer)
# ------------------------------------------------------------------ #
PBIR_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definitionProperties/2.0.0/schema.json",
    "version": "4.0",
    "datasetReference": {"byPath": {"path": None}},
}

# ------------------------------------------------------------------ #
#  {name}.Report/definition/report.json
#  Base theme plus the generated palette registered as a custom theme.
# ------------------------------------------------------------------ #
BASE_THEME_NAME = "CY25SU12"
CUSTOM_THEME_FILE = "custom_theme.json"

REPORT_JSON_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definition/report/3.1.0/schema.json",
    "themeCollection": {
        "baseTheme": {
            "name": BASE_THEME_NAME,
            "reportVersionAtImport": {
                "visual": "2.5.0", "report": "3.1.0", "page": "2.3.0",
            },
            "type": "SharedResources",
        },
        "customTheme": {
            "name": CUSTOM_THEME_FILE,
            "reportVersionAtImport": {
                "visual": "2.5.0", "report": "3.1.0", "page": "2.3.0",
            },
            "type": "RegisteredResources",
        },
    },
    "resourcePackages": [{
        "name": "SharedResources",
        "type": "SharedResources",
        "items": [{
            "name": BASE_THEME_NAME,
            "path": f"BaseThemes/{BASE_THEME_NAME}.json",
            "type": "BaseTheme",
        }],
    }, {
        "name": "RegisteredResources",
        "type": "RegisteredResources",
        "items": [{
            "name": CUSTOM_THEME_FILE,
            "path": CUSTOM_THEME_FILE,
            "type": "CustomTheme",
        }],
    }],
    "settings": {
        "useStylableVisualContainerHeader": True,
        "exportDataMode": "AllowSummarized",
        "defaultDrillFilterOtherVisuals": True,
        "allowChangeFilterTypes": True,
        "useEnhancedTooltips": True,
        "useDefaultAggregateDisplayName": True,
    },
}

VERSION_JSON_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definition/versionMetadata/1.0.0/schema.json",
    "version": "2.0.0",
}

PAGES_JSON_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definition/pagesMetadata/1.0.0/schema.json",
    "pageOrder": [],
    "activePageName": None,
}

PAGE_JSON_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definition/page/2.0.0/schema.json",
    "name": None,
    "displayName": None,
    "displayOption": "FitToPage",
    "height": 720,
    "width": 1280,
}

VISUAL_JSON_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/report/definition/visualContainer/2.5.0/schema.json",
    "name": None,
    "position": {
        "x": 0, "y": 0, "z": 0,
        "height": 300, "width": 400, "tabOrder": 0,
    },
    "visual": {
        "visualType": None,
        "query": {"queryState": {}},
        "drillFilterOtherVisuals": True,
    },
}

# ------------------------------------------------------------------ #
#  {name}.SemanticModel
# ------------------------------------------------------------------ #
PBISM_TEMPLATE = {
    "$schema": "https://developer.microsoft.com/json-schemas/fabric/item/semanticModel/definitionProperties/1.0.0/schema.json",
    "version": "4.2",
    "settings": {},
}

DATABASE_TMDL = "database\n\tcompatibilityLevel: 1600\n\n"

CULTURE_TMDL = (
    "cultureInfo en-US\n"
    "\n"
    "\tlinguisticMetadata =\n"
    "\t\t\t{\n"
    '\t\t\t  "Version": "1.0.0",\n'
    '\t\t\t  "Language": "en-US"\n'
    "\t\t\t}\n"
    "\t\tcontentType: json\n"
    "\n"
)

# ------------------------------------------------------------------ #
#  Visual kind -> PBI visualType, and the query roles each one fills
# ------------------------------------------------------------------ #
VISUAL_TYPE_MAP = {
    "card": "card",
    "line": "lineChart",
    "bar": "barChart",
    "column": "clusteredColumnChart",
    "area": "areaChart",
    "pie": "pieChart",
    "donut": "donutChart",
    "scatter": "scatterChart",
    "table": "tableEx",
    "matrix": "pivotTable",
    "gauge": "gauge",
    "waterfall": "waterfallChart",
    "funnel": "funnel",
    "treemap": "treemap",
}

# spec key -> PBI query role; value roles get a Sum aggregation
ROLE_MAP = {
    "card": {"dataKey": "Values"},
    "gauge": {"dataKey": "Y"},
    "pie": {"nameKey": "Category", "dataKey": "Y"},
    "donut": {"nameKey": "Category", "dataKey": "Y"},
    "scatter": {"xAxis": "X", "yAxis": "Y"},
    "table": {"columns": "Values"},
    "matrix": {"columns": "Rows"},
}
DEFAULT_ROLE_MAP = {"xAxis": "Category", "dataKey": "Y"}
VALUE_ROLES = {"Y", "X", "Values"}

# ------------------------------------------------------------------ #
#  Grid layout on the 1280 x 720 page
# ------------------------------------------------------------------ #
DEFAULT_LAYOUT = {
    "columns": 3,
    "width": 400,
    "card_height": 150,
    "height": 300,
    "padding": 20,
}

# Stand-in base theme; PBI Desktop swaps in its own copy on first save
BASE_THEME = {
    "name": BASE_THEME_NAME,
    "dataColors": [
        "#118DFF", "#12239E", "#E66C37", "#6B007B",
        "#E044A7", "#744EC2", "#D9B300", "#D64550",
    ],
    "foreground": "#252423",
    "background": "#FFFFFF",
    "tableAccent": "#118DFF",
}
