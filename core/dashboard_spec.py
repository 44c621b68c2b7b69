"""
Dashboard specification helpers.

A specification is a plain JSON-serializable dict:

    {"title": str, "colorPalette": str, "visuals": [visual, ...]}

Each visual has a "type" and "title" plus the field references its kind
uses (dataKey / xAxis / yAxis / nameKey / columns) and an optional "topN".
Every transform in this project returns a new dict and leaves its input alone.
"""

from copy import deepcopy

from config.themes import COLOR_PALETTES, DEFAULT_PALETTE
from core.data_analyzer import ColumnType

DEFAULT_TITLE = "Data Overview Dashboard"

VISUAL_KINDS = (
    "card", "line", "bar", "column", "area", "pie", "donut", "scatter",
    "table", "matrix", "gauge", "waterfall", "funnel", "treemap",
)

# Visual kinds a "top N" filter applies to.
TOP_N_KINDS = ("bar", "pie", "column")

VISUAL_LABELS = {
    "card": "Card (KPI)",
    "line": "Line Chart",
    "bar": "Bar Chart",
    "column": "Column Chart",
    "area": "Area Chart",
    "pie": "Pie Chart",
    "donut": "Donut Chart",
    "scatter": "Scatter Chart",
    "table": "Table",
    "matrix": "Matrix",
    "gauge": "Gauge",
    "waterfall": "Waterfall Chart",
    "funnel": "Funnel Chart",
    "treemap": "Treemap",
}

# Column classes a field role can need.
NUMERIC = "numeric"
CATEGORY = "category"
TEMPORAL = "temporal"   # a date column, else a category
ANY = "any"

_CATEGORY_AXIS = {"xAxis": CATEGORY, "dataKey": NUMERIC}

FIELD_ROLES = {
    "card": {"dataKey": NUMERIC},
    "gauge": {"dataKey": NUMERIC},
    "line": {"xAxis": TEMPORAL, "dataKey": NUMERIC},
    "area": {"xAxis": TEMPORAL, "dataKey": NUMERIC},
    "bar": _CATEGORY_AXIS,
    "column": _CATEGORY_AXIS,
    "waterfall": _CATEGORY_AXIS,
    "funnel": _CATEGORY_AXIS,
    "treemap": _CATEGORY_AXIS,
    "pie": {"nameKey": CATEGORY, "dataKey": NUMERIC},
    "donut": {"nameKey": CATEGORY, "dataKey": NUMERIC},
    "scatter": {"xAxis": NUMERIC, "yAxis": NUMERIC, "dataKey": NUMERIC},
    "table": {"columns": ANY},
    "matrix": {"columns": ANY},
}

REFERENCE_KEYS = ("dataKey", "xAxis", "yAxis", "nameKey")

# Used only when neither an existing visual nor a classified table can
# supply a real header. Never a valid column name.
PLACEHOLDER_NUMERIC = "<numeric field>"
PLACEHOLDER_CATEGORY = "<category field>"
PLACEHOLDERS = (PLACEHOLDER_NUMERIC, PLACEHOLDER_CATEGORY)


def new_spec(title=DEFAULT_TITLE, palette=DEFAULT_PALETTE, visuals=None):
    return {"title": title, "colorPalette": palette, "visuals": list(visuals or [])}


def copy_spec(spec):
    return deepcopy(spec)


def field_class(kind, role):
    """Column class a role of a visual kind needs."""
    roles = FIELD_ROLES.get(kind, _CATEGORY_AXIS)
    if role in roles:
        return roles[role]
    if role in ("dataKey", "yAxis"):
        return NUMERIC
    if role == "columns":
        return ANY
    return CATEGORY


def referenced_fields(visual):
    """(role, header) pairs a visual points at, in a stable order."""
    refs = []
    for key in REFERENCE_KEYS:
        value = visual.get(key)
        if isinstance(value, str) and value:
            refs.append((key, value))
    for col in visual.get("columns") or []:
        if isinstance(col, str):
            refs.append(("columns", col))
    return refs


def find_dangling_references(spec, headers):
    """Every field reference that is not one of `headers`."""
    valid = set(headers)
    dangling = []
    for idx, visual in enumerate((spec or {}).get("visuals", [])):
        for role, name in referenced_fields(visual):
            if name not in valid:
                dangling.append({
                    "index": idx,
                    "title": visual.get("title", ""),
                    "role": role,
                    "field": name,
                })
    return dangling


def placeholder_fields(spec):
    return [
        ref for ref in find_dangling_references(spec, [])
        if ref["field"] in PLACEHOLDERS
    ]


def columns_for_class(headers, classification, needed):
    """Headers usable for a column class, best candidates first."""
    by_type = {}
    for h in headers:
        by_type.setdefault(classification.get(h, ColumnType.CATEGORICAL), []).append(h)

    numeric = by_type.get(ColumnType.NUMERIC, [])
    dates = by_type.get(ColumnType.DATE, [])
    categorical = by_type.get(ColumnType.CATEGORICAL, []) + by_type.get(ColumnType.BOOLEAN, [])

    if needed == NUMERIC:
        return numeric
    if needed == TEMPORAL:
        return dates + categorical
    if needed == CATEGORY:
        return categorical + dates
    return list(headers)


def pick_default(headers, classification, needed):
    candidates = columns_for_class(headers, classification, needed)
    return candidates[0] if candidates else None


# ------------------------------------------------------------------ #
#  Field reference validation & auto-fix                               #
# ------------------------------------------------------------------ #

def fuzzy_match_column(name, valid_columns):
    """Find the matching column name ignoring case, spaces, '_' and '-'."""
    if not name or not valid_columns:
        return None

    name_lower = name.lower().strip()
    for vc in valid_columns:
        if vc.lower().strip() == name_lower:
            return vc

    def normalise(s):
        return "".join(s.lower().split()).replace("_", "").replace("-", "")

    name_norm = normalise(name)
    for vc in valid_columns:
        if normalise(vc) == name_norm:
            return vc
    return None


def repair_references(spec, table, classification):
    """Return (repaired_copy, warnings) with every reference valid for table.

    A dangling reference is replaced by its case/spacing-insensitive match,
    else by the first column of the class the role needs. A visual whose
    required field has no candidate at all is dropped.
    """
    headers = list(table.headers)
    valid = set(headers)
    warnings = []
    repaired = copy_spec(spec)
    kept = []

    for visual in repaired.get("visuals", []):
        kind = visual.get("type", "")
        label = visual.get("title") or kind
        drop = False

        for key in REFERENCE_KEYS:
            name = visual.get(key)
            if not isinstance(name, str) or not name or name in valid:
                continue
            match = fuzzy_match_column(name, headers)
            if match is None:
                match = pick_default(headers, classification, field_class(kind, key))
            if match is None:
                warnings.append(
                    f"Visual '{label}' dropped: '{name}' ({key}) is not in the "
                    f"data and no {field_class(kind, key)} column can replace it"
                )
                drop = True
                break
            warnings.append(
                f"Visual '{label}': '{name}' ({key}) not found, using '{match}'"
            )
            visual[key] = match

        if drop:
            continue

        if "columns" in visual:
            fixed_cols = []
            for name in visual.get("columns") or []:
                match = name if name in valid else fuzzy_match_column(name, headers)
                if match is None:
                    warnings.append(
                        f"Visual '{label}': column '{name}' not found, removed"
                    )
                    continue
                if match != name:
                    warnings.append(
                        f"Visual '{label}': column '{name}' not found, using '{match}'"
                    )
                if match not in fixed_cols:
                    fixed_cols.append(match)
            if not fixed_cols and headers:
                fixed_cols = headers[:5]
                warnings.append(
                    f"Visual '{label}': no valid columns left, using the first "
                    f"{len(fixed_cols)} columns"
                )
            visual["columns"] = fixed_cols

        kept.append(visual)

    repaired["visuals"] = kept
    for w in warnings:
        print(f"    [FIELD FIX] {w}")
    return repaired, warnings


# ------------------------------------------------------------------ #
#  Shape normalization for specifications from outside                 #
# ------------------------------------------------------------------ #

def normalize_spec(raw):
    """Validate the shape of a specification from an external source.

    Returns a cleaned copy. Raises ValueError when it is not a usable spec.
    """
    if not isinstance(raw, dict):
        raise ValueError("specification is not an object")
    visuals = raw.get("visuals")
    if not isinstance(visuals, list):
        raise ValueError("specification has no 'visuals' list")

    clean = []
    for idx, visual in enumerate(visuals):
        if not isinstance(visual, dict):
            raise ValueError(f"visual {idx} is not an object")
        kind = str(visual.get("type", "")).lower()
        if kind not in VISUAL_KINDS:
            raise ValueError(f"visual {idx} has unknown type '{kind}'")
        item = {k: v for k, v in visual.items() if v is not None}
        item["type"] = kind
        item["title"] = str(visual.get("title") or VISUAL_LABELS[kind])
        if "topN" in item:
            try:
                item["topN"] = int(item["topN"])
            except (TypeError, ValueError):
                raise ValueError(f"visual {idx} has a non-integer topN")
        clean.append(item)

    palette = raw.get("colorPalette") or DEFAULT_PALETTE
    if palette not in COLOR_PALETTES and palette != "custom":
        palette = DEFAULT_PALETTE
    spec = new_spec(str(raw.get("title") or DEFAULT_TITLE), palette, clean)
    if palette == "custom" and raw.get("customColors"):
        spec["customColors"] = list(raw["customColors"])
    return spec
