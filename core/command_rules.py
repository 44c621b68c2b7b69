"""
Command Rules - Ordered registry of chat-command rules.

Each CommandRule pairs a predicate over the lower-cased user text with a
transform of the specification and a message template. Rules are grouped
by concern; concerns are applied in CONCERNS order and, inside a concern,
the last matching rule wins. Transforms never modify the specification they are given.
"""

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config.themes import COLOR_PALETTES, generate_color_palette
from core.data_analyzer import ColumnType
from core.dashboard_spec import (
    copy_spec, columns_for_class, referenced_fields, field_class,
    VISUAL_LABELS, TOP_N_KINDS, PLACEHOLDERS,
    PLACEHOLDER_NUMERIC, PLACEHOLDER_CATEGORY, NUMERIC, CATEGORY, TEMPORAL,
)

CONCERNS = ("palette", "add", "remove", "filter", "convert", "rename", "help")

DEFAULT_TOP_N = 10
TABLE_COLUMNS = 5


@dataclass(frozen=True)
class CommandRule:
    name: str
    concern: str
    predicate: Callable
    transform: Callable
    message: str
    mutates: bool = True


@dataclass(frozen=True)
class RuleContext:
    text: str                 # original text, case kept
    scan: str                 # lower-cased text that predicates look at
    table: object = None
    classification: dict = None
    rename: tuple = None      # ("dashboard" | kind, new_title) when a rename was asked


# ------------------------------------------------------------------ #
#  Text helpers                                                        #
# ------------------------------------------------------------------ #

KIND_WORDS = {
    "kpi": "card", "kpis": "card", "card": "card", "cards": "card",
    "line": "line", "lines": "line", "trend": "line",
    "bar": "bar", "bars": "bar",
    "column": "column", "columns": "column",
    "area": "area",
    "pie": "pie", "pies": "pie",
    "donut": "donut", "donuts": "donut", "doughnut": "donut", "doughnuts": "donut",
    "scatter": "scatter",
    "table": "table", "tables": "table",
    "matrix": "matrix",
    "gauge": "gauge", "gauges": "gauge",
    "waterfall": "waterfall",
    "funnel": "funnel", "funnels": "funnel",
    "treemap": "treemap", "treemaps": "treemap",
}

_KIND_RE = re.compile(r"\b(" + "|".join(sorted(KIND_WORDS, key=len, reverse=True)) + r")\b")
_COLOR_WORD_RE = re.compile(r"\b(colou?rs?|palette|theme|scheme)\b")
_HEX_RE = re.compile(r"#[0-9a-f]{6}\b")
_ADD_RE = re.compile(r"\b(add|create|insert|include|new)\b")
_REMOVE_RE = re.compile(r"\b(remove|delete|drop|clear|get rid of)\b")
_FILTER_TALK_RE = re.compile(r"\bfilters?\b|\btop\s+\d+")
_TOP_N_RE = re.compile(r"(?<!at the )(?<!to the )\btop\b(?:\s+(\d+))?")
_SHOW_ALL_RE = re.compile(
    r"\bshow all\b|\bno limit\b"
    r"|\b(clear|remove|reset|drop)\s+(the\s+)?(top[\s-]*(n|\d+)?\s*)?filters?\b"
    r"|\b(clear|remove|reset|drop)\s+(the\s+)?top[\s-]*(n|\d+)\b"
)
_PREPEND_RE = re.compile(r"\b(at|to) the (top|beginning|start|front)\b|\bfirst position\b")
_POSITION_RE = re.compile(r"\bat position (\d+)\b")
_CONVERT_RE = re.compile(r"\b(change|convert|switch|turn|make)\b")
_INTO_RE = re.compile(r"\b(to|into)\b")
_QUESTION_RE = re.compile(r"\bhow (do|can|should|would) i\b|\bwhat can (you|i)\b|\?\s*$")

_VISUAL_RENAME_RES = [
    re.compile(r"\brename\s+(?:the\s+)?(?P<kind>\w+)(?:\s+(?:chart|visual|graph))?\s+(?:to|as)\s+(?P<title>.+)$", re.I),
    re.compile(r"\b(?:change|set)\s+(?:the\s+)?(?P<kind>\w+)(?:\s+(?:chart|visual|graph))?\s+title\s+(?:to|as)\s+(?P<title>.+)$", re.I),
]
_DASHBOARD_RENAME_RES = [
    re.compile(r"\b(?:change|set|update|make)\s+(?:the\s+)?(?:dashboard\s+|report\s+)?title\s+(?:to|as)\s+(?P<title>.+)$", re.I),
    re.compile(r"\brename\s+(?:the\s+)?(?:dashboard|report)\s+(?:to|as)\s+(?P<title>.+)$", re.I),
    re.compile(r"^\s*title\s*:\s*(?P<title>.+)$", re.I),
    re.compile(r"\bcall\s+(?:it|the\s+dashboard)\s+(?P<title>.+)$", re.I),
]


def kinds_in(text):
    """Visual kinds mentioned in text, with their positions, in order."""
    return [(m.start(), KIND_WORDS[m.group(1)]) for m in _KIND_RE.finditer(text)]


def first_kind(text):
    found = kinds_in(text)
    return found[0][1] if found else None


def _clean_title(raw):
    return raw.strip().strip("\"'").rstrip(".!").strip().strip("\"'")


def build_context(text, table=None, classification=None):
    """Lower-case the text and split off a requested title, if any.

    The title text is hidden from the other rules so a title like
    'Ocean Sales Overview' does not also change the palette.
    """
    text = text or ""
    rename = None
    cut = len(text)

    for pattern in _VISUAL_RENAME_RES:
        m = pattern.search(text)
        if m and m.group("kind").lower() in KIND_WORDS:
            title = _clean_title(m.group("title"))
            if title:
                rename = (KIND_WORDS[m.group("kind").lower()], title)
                cut = m.start("title")
                break

    if rename is None:
        for pattern in _DASHBOARD_RENAME_RES:
            m = pattern.search(text)
            if m:
                title = _clean_title(m.group("title"))
                if title:
                    rename = ("dashboard", title)
                    cut = m.start("title")
                    break

    return RuleContext(
        text=text,
        scan=text[:cut].lower(),
        table=table,
        classification=classification or {},
        rename=rename,
    )


# ------------------------------------------------------------------ #
#  Field inference                                                     #
# ------------------------------------------------------------------ #

def _is_usable(ctx, name):
    if not isinstance(name, str) or not name or name in PLACEHOLDERS:
        return False
    if ctx.table is not None:
        return name in ctx.table.headers
    return True


def _known_headers(ctx, spec):
    if ctx.table is not None:
        return list(ctx.table.headers)
    names = []
    for visual in (spec or {}).get("visuals", []):
        for _, name in referenced_fields(visual):
            if _is_usable(ctx, name) and name not in names:
                names.append(name)
    return names


def _is_numeric_header(ctx, spec, name):
    if ctx.table is not None:
        return ctx.classification.get(name) == ColumnType.NUMERIC
    return any(
        v.get("dataKey") == name or v.get("yAxis") == name
        for v in (spec or {}).get("visuals", [])
    )


def mentioned_headers(ctx, spec):
    """Headers named in the text, in the order they appear."""
    found = []
    for name in _known_headers(ctx, spec):
        m = re.search(r"(?<!\w)" + re.escape(name.lower()) + r"(?!\w)", ctx.scan)
        if m:
            found.append((m.start(), name))
    return [name for _, name in sorted(found)]


def infer_numeric(spec, ctx, exclude=()):
    """Numeric field for a new visual, or None when the table has none."""
    for visual in spec.get("visuals", []):
        key = visual.get("dataKey")
        if _is_usable(ctx, key) and key not in exclude:
            return key
    if ctx.table is not None:
        candidates = [c for c in columns_for_class(ctx.table.headers, ctx.classification, NUMERIC)
                      if c not in exclude]
        return candidates[0] if candidates else None
    return PLACEHOLDER_NUMERIC


def infer_category(spec, ctx, kind):
    """Axis / legend field for a new visual, or None when the table has none."""
    visuals = spec.get("visuals", [])
    temporal = field_class(kind, "xAxis") == TEMPORAL

    if temporal:
        for visual in visuals:
            if visual.get("type") in ("line", "area") and _is_usable(ctx, visual.get("xAxis")):
                return visual["xAxis"]
        if ctx.table is not None:
            dates = [h for h in ctx.table.headers
                     if ctx.classification.get(h) == ColumnType.DATE]
            if dates:
                return dates[0]

    for visual in visuals:
        if visual.get("type") == "scatter":
            continue
        for key in ("xAxis", "nameKey"):
            if _is_usable(ctx, visual.get(key)):
                return visual[key]

    if ctx.table is not None:
        candidates = columns_for_class(
            ctx.table.headers, ctx.classification, TEMPORAL if temporal else CATEGORY
        )
        return candidates[0] if candidates else None
    return PLACEHOLDER_CATEGORY


def default_title(visual):
    kind = visual["type"]
    data = visual.get("dataKey", "")
    if kind in ("card", "gauge"):
        return f"Total {data}" if kind == "card" else f"{data} Gauge"
    if kind in ("line", "area"):
        return f"{data} Over Time"
    if kind in ("pie", "donut"):
        return f"Distribution by {visual.get('nameKey', '')}"
    if kind == "scatter":
        return f"{visual.get('yAxis', data)} vs {visual.get('xAxis', '')}"
    if kind in ("table", "matrix"):
        return "Data Table" if kind == "table" else "Data Matrix"
    return f"{data} by {visual.get('xAxis', '')}"


def fill_fields(visual, spec, ctx, mentioned=()):
    """Complete the field references a visual's kind needs.

    Returns the visual, or None when the table has no column that fits.
    Fields already set are kept; names from `mentioned` are used first.
    """
    kind = visual["type"]
    numeric_named = [h for h in mentioned if _is_numeric_header(ctx, spec, h)]
    other_named = [h for h in mentioned if h not in numeric_named]

    if kind in ("table", "matrix"):
        if not visual.get("columns"):
            if mentioned:
                visual["columns"] = list(mentioned)
            else:
                visual["columns"] = _known_headers(ctx, spec)[:TABLE_COLUMNS]
        return visual

    if kind == "scatter":
        xs = numeric_named or []
        y_set = (visual.get("yAxis"),) if visual.get("yAxis") else ()
        x = visual.get("xAxis") or (xs[0] if xs else
                                    infer_numeric(spec, ctx, exclude=y_set) or infer_numeric(spec, ctx))
        if x is None:
            return None
        y = visual.get("yAxis") or (xs[1] if len(xs) > 1 else
                                    infer_numeric(spec, ctx, exclude=(x,)) or x)
        visual.update({"xAxis": x, "yAxis": y})
        visual.setdefault("dataKey", y)
        return visual

    if not visual.get("dataKey"):
        data = numeric_named[0] if numeric_named else infer_numeric(spec, ctx)
        if data is None:
            return None
        visual["dataKey"] = data

    axis_key = "nameKey" if kind in ("pie", "donut") else "xAxis"
    if kind not in ("card", "gauge") and not visual.get(axis_key):
        axis = other_named[0] if other_named else infer_category(spec, ctx, kind)
        if axis is None:
            return None
        visual[axis_key] = axis
    if kind in ("line", "area", "bar", "column") and "yAxis" not in visual:
        visual["yAxis"] = visual["dataKey"]
    return visual


def _placeholder_note(visual):
    if any(name in PLACEHOLDERS for _, name in referenced_fields(visual)):
        return (" I couldn't tell which fields to use, so it has placeholder "
                "fields; tell me which columns to show.")
    return ""


def _label(kind):
    return VISUAL_LABELS.get(kind, kind).lower()


# ------------------------------------------------------------------ #
#  Palette                                                             #
# ------------------------------------------------------------------ #

def _set_palette(name):
    def transform(spec, ctx, match):
        new = copy_spec(spec)
        new["colorPalette"] = name
        new.pop("customColors", None)
        return new, {"palette": name, "display": COLOR_PALETTES[name]["name"]}
    return transform


def _named_palette(ctx, spec):
    for name in COLOR_PALETTES:
        m = re.search(r"\b" + name + r"\b", ctx.scan)
        if m and (_COLOR_WORD_RE.search(ctx.scan)
                  or re.search(r"\b(use|apply|switch to|try)\s+(the\s+)?" + name + r"\b", ctx.scan)):
            return name
    return None


def _apply_named_palette(spec, ctx, name):
    return _set_palette(name)(spec, ctx, name)


def _apply_brand_color(spec, ctx, match):
    brand = match.group(0).upper()
    new = copy_spec(spec)
    new["colorPalette"] = "custom"
    new["customColors"] = generate_color_palette(brand)
    return new, {"brand": brand}


# ------------------------------------------------------------------ #
#  Add                                                                 #
# ------------------------------------------------------------------ #

def _add_kind(ctx, spec):
    m = _ADD_RE.search(ctx.scan)
    if not m:
        return None
    after = kinds_in(ctx.scan[m.end():])
    return after[0][1] if after else None


def _apply_add(spec, ctx, kind):
    new = copy_spec(spec)
    visual = fill_fields({"type": kind}, new, ctx, mentioned_headers(ctx, new))
    if visual is None:
        return new, {"summary": (
            f"I couldn't add a {_label(kind)} because the data has no column "
            f"it can use."
        )}
    title = default_title(visual)
    visual = {"type": kind, "title": title,
              **{k: v for k, v in visual.items() if k != "type"}}
    if kind == "card":
        visual["format"] = "number"

    visuals = new["visuals"]
    pos = _POSITION_RE.search(ctx.scan)
    if _PREPEND_RE.search(ctx.scan):
        index, where = 0, " at the top"
    elif pos:
        index = max(0, min(len(visuals), int(pos.group(1)) - 1))
        where = f" at position {index + 1}"
    else:
        index, where = len(visuals), ""
    visuals.insert(index, visual)

    return new, {"summary": (
        f"Added a {_label(kind)} '{visual['title']}'{where}." + _placeholder_note(visual)
    )}


# ------------------------------------------------------------------ #
#  Remove                                                              #
# ------------------------------------------------------------------ #

def _wants_remove(ctx, spec=None):
    return (bool(_REMOVE_RE.search(ctx.scan)) and not _FILTER_TALK_RE.search(ctx.scan)
            and not _SHOW_ALL_RE.search(ctx.scan))


def _remove_at(which):
    def transform(spec, ctx, match):
        new = copy_spec(spec)
        if not new["visuals"]:
            return new, {"summary": "There are no visuals to remove."}
        removed = new["visuals"].pop(0 if which == "first" else -1)
        return new, {"summary": f"Removed the {which} visual '{removed.get('title', '')}'."}
    return transform


def _remove_all(spec, ctx, match):
    new = copy_spec(spec)
    count = len(new["visuals"])
    new["visuals"] = []
    return new, {"summary": f"Removed all {count} visuals."}


def _remove_kind_target(ctx, spec):
    if not _wants_remove(ctx):
        return None
    return first_kind(ctx.scan[_REMOVE_RE.search(ctx.scan).start():])


def _remove_kind(spec, ctx, kind):
    new = copy_spec(spec)
    matches = [i for i, v in enumerate(new["visuals"]) if v.get("type") == kind]
    label = _label(kind)
    if not matches:
        return new, {"summary": f"Removed 0 {label} visuals; there are none."}

    if re.search(r"\bfirst\b", ctx.scan):
        targets, scope = {matches[0]}, "the first "
    elif re.search(r"\blast\b", ctx.scan):
        targets, scope = {matches[-1]}, "the last "
    else:
        targets, scope = set(matches), ""

    new["visuals"] = [v for i, v in enumerate(new["visuals"]) if i not in targets]
    count = len(targets)
    noun = "visual" if count == 1 else "visuals"
    if scope:
        return new, {"summary": f"Removed {scope}{label} (1 visual)."}
    return new, {"summary": f"Removed {count} {label} {noun}."}


def _title_target(ctx, spec):
    """Index of the visual whose title is named in the text (longest title wins)."""
    if not _wants_remove(ctx) or spec is None:
        return None
    kind = _remove_kind_target(ctx, spec)
    if kind and _wants_every(ctx):
        return None
    labels = {label.lower() for label in VISUAL_LABELS.values()}
    best = None
    for idx, visual in enumerate(spec.get("visuals", [])):
        title = str(visual.get("title", "")).lower().strip()
        if kind and title in labels:
            # "remove the bar chart" names a kind, not a visual
            continue
        if len(title) >= 3 and title in ctx.scan:
            if best is None or len(title) > best[1]:
                best = (idx, len(title))
    return best[0] if best else None


def _wants_every(ctx):
    """True for "all bar charts", "the pies", "every table" and the like."""
    if re.search(r"\b(all|every|each|both)\b", ctx.scan):
        return True
    if re.search(r"\b(charts|visuals|graphs)\b", ctx.scan):
        return True
    # plural kind words: bars, pies, kpis
    return any(m.group(1).endswith("s") and KIND_WORDS[m.group(1)] != m.group(1)
               for m in _KIND_RE.finditer(ctx.scan))


def _remove_by_title(spec, ctx, index):
    new = copy_spec(spec)
    removed = new["visuals"].pop(index)
    return new, {"summary": f"Removed '{removed.get('title', '')}'."}


# ------------------------------------------------------------------ #
#  Filter                                                              #
# ------------------------------------------------------------------ #

def _top_n_match(ctx, spec):
    if _SHOW_ALL_RE.search(ctx.scan):
        return None
    m = _TOP_N_RE.search(ctx.scan)
    if m and not m.group(1) and _add_kind(ctx, spec):
        # "add a card to the top" is a position, not a filter
        return None
    return m


def _apply_top_n(spec, ctx, match):
    n = max(1, int(match.group(1))) if match.group(1) else DEFAULT_TOP_N
    new = copy_spec(spec)
    count = 0
    for visual in new["visuals"]:
        if visual.get("type") in TOP_N_KINDS:
            visual["topN"] = n
            count += 1
    if not count:
        return new, {"summary": "There are no bar, pie or column visuals to limit."}
    return new, {"summary": f"Showing the top {n} items in {count} chart(s)."}


def _clear_top_n(spec, ctx, match):
    new = copy_spec(spec)
    count = 0
    for visual in new["visuals"]:
        if visual.pop("topN", None) is not None:
            count += 1
    return new, {"summary": f"Cleared the top-N filter from {count} chart(s)."}


# ------------------------------------------------------------------ #
#  Convert                                                             #
# ------------------------------------------------------------------ #

def _convert_pair(ctx, spec):
    if ctx.rename is not None or "title" in ctx.scan:
        return None
    verb = _CONVERT_RE.search(ctx.scan)
    if not verb:
        return None
    into = _INTO_RE.search(ctx.scan, verb.end())
    if not into:
        return None
    before = kinds_in(ctx.scan[verb.end():into.start()])
    after = kinds_in(ctx.scan[into.end():])
    if not before or not after or before[0][1] == after[0][1]:
        return None
    return before[0][1], after[0][1]


def _apply_convert(spec, ctx, pair):
    source, target = pair
    new = copy_spec(spec)
    converted = 0
    kept = []
    for visual in new["visuals"]:
        if visual.get("type") != source:
            kept.append(visual)
            continue
        changed = dict(visual)
        changed["type"] = target
        if target in ("table", "matrix"):
            columns = []
            for _, name in referenced_fields(visual):
                if name not in columns and _is_usable(ctx, name):
                    columns.append(name)
            changed = {"type": target, "title": visual.get("title", ""),
                       "columns": columns}
        if target in ("pie", "donut") and "nameKey" not in changed and changed.get("xAxis"):
            changed["nameKey"] = changed.pop("xAxis")
        elif target not in ("pie", "donut") and changed.get("nameKey"):
            changed.setdefault("xAxis", changed["nameKey"])
            changed.pop("nameKey")
        if target in ("card", "gauge"):
            changed.pop("xAxis", None)
            changed.pop("nameKey", None)
        if target == "scatter" and changed.get("xAxis") and not _is_numeric_header(ctx, new, changed["xAxis"]):
            # a scatter plots two numbers
            changed.pop("xAxis")
        if target not in ("table", "matrix"):
            changed.pop("columns", None)
        if target not in TOP_N_KINDS:
            changed.pop("topN", None)
        filled = fill_fields(changed, new, ctx)
        if filled is None:
            kept.append(visual)
            continue
        kept.append(filled)
        converted += 1
    new["visuals"] = kept
    return new, {"summary": (
        f"Converted {converted} {_label(source)} visual(s) to {_label(target)}."
    )}


# ------------------------------------------------------------------ #
#  Rename                                                              #
# ------------------------------------------------------------------ #

def _rename_dashboard(spec, ctx, match):
    new = copy_spec(spec)
    new["title"] = ctx.rename[1]
    return new, {"title": ctx.rename[1]}


def _rename_visual(spec, ctx, match):
    kind, title = ctx.rename
    new = copy_spec(spec)
    for visual in new["visuals"]:
        if visual.get("type") == kind:
            visual["title"] = title
            return new, {"summary": f"Renamed the {_label(kind)} to '{title}'."}
    return new, {"summary": f"There is no {_label(kind)} to rename."}


# ------------------------------------------------------------------ #
#  Help                                                                #
# ------------------------------------------------------------------ #

HELP_TEXT = (
    "Try: 'add a pie chart', 'add a KPI card at the top', 'remove the last "
    "visual', 'remove all bar charts', 'show top 5', 'show all', 'use ocean "
    "colors', 'change the bar chart to a column chart' or 'change the title "
    "to Sales Overview'."
)

TROUBLESHOOTING = {
    "blank": (
        "Blank visuals in Power BI usually mean a measure references a column "
        "that was renamed. Open the Fields pane, check the table name matches "
        "the one in the DAX measures, then refresh."
    ),
    "loading": (
        "If the data is not loading, update the file path in Power Query "
        "(Transform data > Data source settings) to the cleaned CSV and refresh."
    ),
    "types": (
        "If data types look wrong, open Transform data and set each column's "
        "type; the generated power_query.m already sets numbers, dates and "
        "true/false columns."
    ),
}


def _answer(key):
    def transform(spec, ctx, match):
        return copy_spec(spec) if spec is not None else None, {"summary": TROUBLESHOOTING[key]}
    return transform


def _help(spec, ctx, match):
    return copy_spec(spec) if spec is not None else None, {"summary": HELP_TEXT}


# ------------------------------------------------------------------ #
#  Registry                                                            #
# ------------------------------------------------------------------ #

def _search(pattern):
    return lambda ctx, spec: pattern.search(ctx.scan)


def _remove_first(ctx, spec):
    return _wants_remove(ctx) and re.search(r"\bfirst\b", ctx.scan)


def _remove_everything(ctx, spec):
    return (_wants_remove(ctx) and not kinds_in(ctx.scan)
            and re.search(r"\b(all|everything)\b", ctx.scan))


def _rename_of(target):
    def predicate(ctx, spec):
        if ctx.rename is None:
            return None
        is_dashboard = ctx.rename[0] == "dashboard"
        return ctx.rename if is_dashboard == (target == "dashboard") else None
    return predicate


RULES = [
    # palette
    CommandRule("generic_color", "palette",
                _search(_COLOR_WORD_RE), _set_palette("vibrant"),
                "Switched to the {display} color palette."),
    CommandRule("named_palette", "palette",
                _named_palette, _apply_named_palette,
                "Switched to the {display} color palette."),
    CommandRule("brand_color", "palette",
                _search(_HEX_RE), _apply_brand_color,
                "Applied a custom palette built from {brand}."),

    # add
    CommandRule("add_visual", "add", _add_kind, _apply_add, "{summary}"),

    # remove
    CommandRule("remove_last", "remove", _wants_remove, _remove_at("last"), "{summary}"),
    CommandRule("remove_first", "remove", _remove_first, _remove_at("first"), "{summary}"),
    CommandRule("remove_all", "remove", _remove_everything, _remove_all, "{summary}"),
    CommandRule("remove_kind", "remove", _remove_kind_target, _remove_kind, "{summary}"),
    CommandRule("remove_title", "remove", _title_target, _remove_by_title, "{summary}"),

    # filter
    CommandRule("top_n", "filter", _top_n_match, _apply_top_n, "{summary}"),
    CommandRule("show_all", "filter", _search(_SHOW_ALL_RE), _clear_top_n, "{summary}"),

    # convert
    CommandRule("convert_kind", "convert", _convert_pair, _apply_convert, "{summary}"),

    # rename
    CommandRule("rename_visual", "rename", _rename_of("visual"), _rename_visual, "{summary}"),
    CommandRule("rename_dashboard", "rename", _rename_of("dashboard"), _rename_dashboard,
                "Changed the dashboard title to '{title}'."),

    # help
    CommandRule("help", "help",
                _search(re.compile(r"\bhelp\b|\bwhat can (you|i) do\b|\bhow (do|can) i\b|\bcommands\b")),
                _help, "{summary}", mutates=False),
    CommandRule("blank_visuals", "help",
                _search(re.compile(r"\bblank\b|\bempty (visual|chart)s?\b|\bnothing (shows|showing)\b")),
                _answer("blank"), "{summary}", mutates=False),
    CommandRule("data_not_loading", "help",
                _search(re.compile(r"\bnot (loading|load|refreshing)\b|\bwon'?t load\b|\bcan'?t load\b")),
                _answer("loading"), "{summary}", mutates=False),
    CommandRule("wrong_types", "help",
                _search(re.compile(r"\bwrong (data )?types?\b|\bdata types?\b")),
                _answer("types"), "{summary}", mutates=False),
]


def select_rules(ctx, spec, rules=None):
    """Pick the winning (rule, match) for each concern, in CONCERNS order.

    A predicate returns None or False for no match; any other value is
    handed to the transform.
    When a help rule matches a question, only non-mutating rules are kept.
    """
    winners = {}
    for rule in rules or RULES:
        match = rule.predicate(ctx, spec)
        if match is None or match is False:
            continue
        winners[rule.concern] = (rule, match)
    selected = [winners[c] for c in CONCERNS if c in winners]
    if "help" in winners and _QUESTION_RE.search(ctx.scan):
        # a how-to question is answered, not carried out
        selected = [(rule, match) for rule, match in selected if not rule.mutates]
    return selected
