"""
Command Interpreter - Applies a chat message to the current dashboard specification.

Runs the ordered rule registry from core.command_rules. When an LLM
collaborator is configured it is asked first; any failure (timeout, bad
JSON, unknown columns) silently falls back to the rules.
"""

import sys
import json
from dataclasses import dataclass
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config import settings
from config.prompts import REFINE_SYSTEM_PROMPT
from core.command_rules import build_context, select_rules, HELP_TEXT
from core.dashboard_spec import copy_spec, normalize_spec, find_dangling_references
from core.llm_client import Failure


class ClassificationError(Exception):
    """A change was requested but there is no dashboard specification yet."""


@dataclass(frozen=True)
class ConversationTurn:
    role: str       # "user" | "assistant"
    content: str


NOT_UNDERSTOOD = "I'm not sure what you'd like to change. " + HELP_TEXT


def _turn_parts(turn):
    if isinstance(turn, dict):
        return turn.get("role", "user"), turn.get("content", "")
    return turn.role, turn.content


class CommandInterpreter:
    """Turn free-text requests into new specification values."""

    def __init__(self, table=None, classification=None, collaborator=None, rules=None):
        self.table = table
        self.classification = classification or {}
        self.collaborator = collaborator
        self.rules = rules
        self.last_call = None

    # ------------------------------------------------------------------ #
    #  Main entry point                                                    #
    # ------------------------------------------------------------------ #

    def interpret(self, current_spec, user_text, history=None):
        """Return {message, updatedSpec, source, fallbackReason}.

        `current_spec` is never modified. Raises ClassificationError only
        when a change is requested and `current_spec` is None.
        """
        reason = None
        if self.collaborator is not None and current_spec is not None:
            delegated, reason = self._delegate(current_spec, user_text, history)
            if delegated is not None:
                return delegated
            print(f"[FALLBACK] Using rule-based interpreter: {reason}")

        result = self.apply_rules(current_spec, user_text)
        result["fallbackReason"] = reason
        return result

    def apply_rules(self, current_spec, user_text):
        ctx = build_context(user_text, self.table, self.classification)
        selected = select_rules(ctx, current_spec, self.rules)

        if not selected:
            return {
                "message": NOT_UNDERSTOOD,
                "updatedSpec": copy_spec(current_spec),
                "source": "rules",
                "matched": [],
            }

        if current_spec is None and any(rule.mutates for rule, _ in selected):
            raise ClassificationError(
                "There is no dashboard yet. Upload a CSV file first."
            )

        spec = current_spec
        messages = []
        for rule, match in selected:
            spec, fields = rule.transform(spec, ctx, match)
            messages.append(rule.message.format(**fields))
        if spec is current_spec:
            spec = copy_spec(current_spec)

        return {
            "message": " ".join(messages),
            "updatedSpec": spec,
            "source": "rules",
            "matched": [rule.name for rule, _ in selected],
        }

    # ------------------------------------------------------------------ #
    #  Delegation                                                          #
    # ------------------------------------------------------------------ #

    def build_prompt(self, current_spec, user_text, history=None):
        turns = list(history or [])[-settings.HISTORY_TURNS:]
        convo = "\n".join(f"{role}: {content}" for role, content in map(_turn_parts, turns))
        parts = [f"CURRENT SPECIFICATION:\n{json.dumps(current_spec, indent=2)}"]
        if self.table is not None:
            parts.append(f"AVAILABLE COLUMNS: {json.dumps(self.table.headers)}")
        if convo:
            parts.append(f"RECENT CONVERSATION:\n{convo}")
        parts.append(f"USER REQUEST:\n{user_text}")
        return "\n\n".join(parts)

    def _delegate(self, current_spec, user_text, history):
        """(result, None) from the collaborator, or (None, reason)."""
        prompt = self.build_prompt(current_spec, user_text, history)
        result = self.collaborator.request_json(REFINE_SYSTEM_PROMPT, prompt)
        self.last_call = getattr(self.collaborator, "last_call", None)
        if isinstance(result, Failure):
            return None, result.reason

        payload = result.payload
        if not isinstance(payload, dict):
            return None, "response is not a JSON object"
        try:
            spec = normalize_spec(payload.get("dashboardSpec"))
        except ValueError as e:
            return None, f"invalid specification: {e}"
        if self.table is not None:
            dangling = find_dangling_references(spec, self.table.headers)
            if dangling:
                names = sorted({d["field"] for d in dangling})
                return None, f"unknown columns referenced: {', '.join(names)}"

        return {
            "message": str(payload.get("message") or "I've updated the dashboard."),
            "updatedSpec": spec,
            "source": "llm",
            "matched": [],
            "fallbackReason": None,
        }, None


def interpret(current_spec, user_text, history=None, table=None, classification=None):
    """Rule-only interpretation."""
    return CommandInterpreter(table, classification).interpret(current_spec, user_text, history)


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    from core.csv_ingestor import parse
    from core.data_analyzer import DataAnalyzer
    from core.spec_synthesizer import SpecSynthesizer

    table = parse("Date,Region,Revenue\n2024-01-01,East,100\n2024-01-02,West,250\n", "Sales")
    classification = DataAnalyzer().classify(table)
    spec = SpecSynthesizer().synthesize(table, classification)
    interpreter = CommandInterpreter(table, classification)

    for text in ["add a pie chart", "use ocean colors", "show top 5",
                 "remove all bar charts", "change the title to Sales Overview",
                 "asdfasdf"]:
        result = interpreter.interpret(spec, text)
        spec = result["updatedSpec"]
        print(f"> {text}\n  {result['message']}  ({len(spec['visuals'])} visuals)")
