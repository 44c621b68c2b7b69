"""
Trace Logger -- audit trail for a dashboard session.

Records file loads, column classification, chat commands, LLM calls,
fallbacks to the rules, field substitutions and exported packages into a
structured log that can be exported as Markdown.
"""
import os
from datetime import datetime


class TraceLogger:
    """Creates a processing log document for each session."""

    def __init__(self):
        self.entries = []

    def log(self, action, details):
        self.entries.append({
            "timestamp": datetime.now().isoformat(),
            "action": action,
            "details": details,
        })

    def log_file_loaded(self, filename, rows, cols, types_summary):
        self.log("file_loaded", {
            "filename": filename,
            "rows": rows,
            "columns": cols,
            "types": types_summary,
        })

    def log_classification(self, classification, key_candidates):
        self.log("classification", {
            "columns": dict(classification),
            "key_candidates": list(key_candidates),
        })

    def log_command(self, user_text, message, visual_count, source):
        self.log("command", {
            "user_text": str(user_text)[:200],
            "message": str(message)[:200],
            "visual_count": visual_count,
            "source": source,
        })

    def log_llm_call(self, engine, model, prompt_summary, response_summary):
        self.log("llm_call", {
            "engine": engine,
            "model": model,
            "prompt_summary": str(prompt_summary)[:200],
            "response_summary": str(response_summary)[:200],
        })

    def log_fallback(self, stage, reason):
        self.log("fallback", {"stage": stage, "reason": str(reason)[:200]})

    def log_warning(self, message):
        self.log("warning", {"message": message})

    def log_deliverable(self, deliverable_type, output_path, config):
        self.log("deliverable", {
            "type": deliverable_type,
            "output_path": output_path,
            "config": config,
        })

    def reset(self):
        self.entries = []

    # ------------------------------------------------------------------
    # Document generation
    # ------------------------------------------------------------------

    def generate_trace_doc(self, output_path):
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.build_markdown())
        return output_path

    def _by_action(self, action):
        return [e for e in self.entries if e["action"] == action]

    def _qa_recommendations(self):
        tips = []
        for e in self._by_action("fallback"):
            d = e["details"]
            tips.append(
                f"The language model was skipped during {d['stage']} "
                f"({d['reason']}); the result came from the built-in rules."
            )
        for e in self._by_action("warning"):
            msg = e["details"]["message"]
            if "<" in msg and "field>" in msg:
                tips.append(f"Replace placeholder fields before publishing: {msg}")
            else:
                tips.append(f"Check the field substitution: {msg}")
        for e in self._by_action("file_loaded"):
            d = e["details"]
            tips.append(
                f"Confirm {d['filename']} loaded {d['rows']} rows and "
                f"{d['columns']} columns as expected."
            )
        if not tips:
            tips.append("No specific QA flags -- review deliverables manually.")
        return tips

    # ------------------------------------------------------------------
    # Markdown
    # ------------------------------------------------------------------

    def build_markdown(self):
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            "# Dashboard Session - Processing Trace Log",
            f"Generated: {now}", "",
        ]

        files = self._by_action("file_loaded")
        if files:
            lines.append("## Files Loaded")
            for e in files:
                d = e["details"]
                lines.append(
                    f"- **{d['filename']}** -- {d['rows']} rows, "
                    f"{d['columns']} columns ({e['timestamp']})"
                )
                if d.get("types"):
                    lines.append(f"  - Types: {d['types']}")
            lines.append("")

        classes = self._by_action("classification")
        if classes:
            lines.append("## Column Classification")
            d = classes[-1]["details"]
            for col, col_type in d["columns"].items():
                lines.append(f"- {col}: {col_type}")
            if d.get("key_candidates"):
                lines.append(f"  - Key candidates: {', '.join(d['key_candidates'])}")
            lines.append("")

        commands = self._by_action("command")
        if commands:
            lines.append("## Chat Commands")
            for e in commands:
                d = e["details"]
                lines.append(f"- `{d['user_text']}` ({d['source']}, "
                             f"{d['visual_count']} visuals)")
                lines.append(f"  - Reply: {d['message']}")
            lines.append("")

        llm = self._by_action("llm_call")
        if llm:
            lines.append("## LLM Calls")
            for e in llm:
                d = e["details"]
                lines.append(f"- [{d['engine']}/{d['model']}] {e['timestamp']}")
                lines.append(f"  - Prompt: {d['prompt_summary']}")
                lines.append(f"  - Response: {d['response_summary']}")
            lines.append("")

        delivs = self._by_action("deliverable")
        if delivs:
            lines.append("## Deliverables Produced")
            for e in delivs:
                d = e["details"]
                lines.append(f"- **{d['type']}** -> `{d['output_path']}` ({e['timestamp']})")
                for k, v in (d.get("config") or {}).items():
                    lines.append(f"  - {k}: {v}")
            lines.append("")

        lines.append("## Recommendations for QA")
        for tip in self._qa_recommendations():
            lines.append(f"- {tip}")
        lines.append("")

        return "\n".join(lines)
