"""
Dashboard Session - One user's upload, chat and export state.

Holds the immutable Table, its classification, the current specification,
an append-only conversation history and the previous specifications for
undo. Sessions share nothing with each other.
"""

import sys
import json
import threading
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config import settings
from core.csv_ingestor import parse, decode_upload, table_name_from_filename
from core.data_analyzer import DataAnalyzer
from core.spec_synthesizer import SpecSynthesizer
from core.command_interpreter import CommandInterpreter, ConversationTurn, ClassificationError
from core.dashboard_spec import copy_spec, placeholder_fields
from core.trace_logger import TraceLogger
from generators.pbip_generator import project_to_package


class DashboardSession:
    """Upload -> synthesize -> chat -> export, for a single user."""

    def __init__(self, collaborator=None, analyzer=None):
        self.collaborator = collaborator
        self.analyzer = analyzer or DataAnalyzer()
        self.trace = TraceLogger()
        self.table = None
        self.classification = {}
        self.spec = None
        self.history = []
        self._undo_stack = []
        self._revision = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    #  Upload                                                              #
    # ------------------------------------------------------------------ #

    def load_csv(self, text, filename="data.csv"):
        """Parse, classify and synthesize. Returns the assistant message."""
        text = decode_upload(text)
        table = parse(text, table_name_from_filename(filename, settings.DEFAULT_TABLE_NAME))
        classification = self.analyzer.classify(table)
        keys = self.analyzer.detect_key_candidates(table)

        result = SpecSynthesizer(self.analyzer).analyze(
            table, classification, self.collaborator
        )
        with self._lock:
            self.table = table
            self.classification = classification
            self.spec = result["dashboardSpec"]
            self.history = []
            self._undo_stack = []
            self._revision += 1

            summary = {}
            for col_type in classification.values():
                summary[col_type] = summary.get(col_type, 0) + 1
            self.trace.reset()
            self.trace.log_file_loaded(filename, table.row_count, table.column_count, summary)
            self.trace.log_classification(classification, keys)
            if self.collaborator is not None:
                self._log_llm(getattr(self.collaborator, "last_call", None))
            if result["fallbackReason"]:
                self.trace.log_fallback("initial analysis", result["fallbackReason"])
            self.history.append(ConversationTurn("assistant", result["message"]))

        print(f"[OK] Session loaded '{filename}' ({result['source']})")
        return result["message"]

    # ------------------------------------------------------------------ #
    #  Chat                                                                #
    # ------------------------------------------------------------------ #

    def send(self, message):
        """Apply one chat message. Returns the assistant reply.

        The result is computed from a snapshot outside the lock and only
        committed if no other command landed in the meantime; a superseded
        result is discarded and reported as such.
        """
        with self._lock:
            spec = self.spec
            revision = self._revision
            history = list(self.history)
            interpreter = CommandInterpreter(
                self.table, self.classification, self.collaborator
            )

        try:
            result = interpreter.interpret(spec, message, history)
        except ClassificationError as e:
            with self._lock:
                self.history.append(ConversationTurn("user", message))
                self.history.append(ConversationTurn("assistant", str(e)))
            return str(e)

        with self._lock:
            if revision != self._revision:
                print("[SKIP] Discarding result of a superseded command")
                return "That request was superseded by a newer change and was not applied."

            self.history.append(ConversationTurn("user", message))
            self.history.append(ConversationTurn("assistant", result["message"]))
            if result["updatedSpec"] != self.spec:
                self._undo_stack.append(self.spec)
                self.spec = result["updatedSpec"]
                self._revision += 1

            self._log_llm(interpreter.last_call)
            if result.get("fallbackReason"):
                self.trace.log_fallback("chat", result["fallbackReason"])
            for ref in placeholder_fields(self.spec):
                self.trace.log_warning(
                    f"Visual '{ref['title']}' uses placeholder {ref['field']} ({ref['role']})"
                )
            self.trace.log_command(
                message, result["message"],
                len((self.spec or {}).get("visuals", [])), result["source"],
            )
        return result["message"]

    def undo(self):
        """Restore the previous specification. False when there is none."""
        with self._lock:
            if not self._undo_stack:
                return False
            self.spec = self._undo_stack.pop()
            self._revision += 1
            self.history.append(ConversationTurn("assistant", "Reverted the last change."))
        return True

    # ------------------------------------------------------------------ #
    #  Export                                                              #
    # ------------------------------------------------------------------ #

    def export_package(self, theme=None, layout=None):
        with self._lock:
            spec, table = copy_spec(self.spec), self.table
        if spec is None or table is None:
            raise ClassificationError("There is no dashboard to export yet.")

        bundle = project_to_package(spec, table, theme, layout,
                                    classification=self.classification)
        for w in bundle["warnings"]:
            self.trace.log_warning(w)
        self.trace.log_deliverable("pbip_package", f"{table.name}.zip", {
            "files": len(bundle["files"]),
            "visuals": len(spec["visuals"]),
            "warnings": len(bundle["warnings"]),
        })
        bundle["files"]["TRACE_LOG.md"] = self.trace.build_markdown()
        return bundle

    def export_spec_json(self):
        with self._lock:
            return json.dumps(self.spec, indent=2, ensure_ascii=False)

    def _log_llm(self, call):
        if call:
            self.trace.log_llm_call(call["engine"], call["model"],
                                    call["prompt_summary"], call["response_summary"])
