"""
LLM Client - Optional text-generation collaborators (Claude / OpenAI).

Every call returns Success(payload) or Failure(reason). Provider errors,
timeouts and unparseable responses never escape this module; callers fall
back to the deterministic rules on Failure.
"""

import sys
import json
import time
from dataclasses import dataclass
from pathlib import Path

import anthropic
from openai import OpenAI

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))
from config import settings


@dataclass(frozen=True)
class Success:
    payload: object


@dataclass(frozen=True)
class Failure:
    reason: str


def extract_first_json(text):
    """First top-level JSON object or array in free text, else None.

    Tolerates code fences and prose before/after the JSON.
    """
    if not text:
        return None
    decoder = json.JSONDecoder()
    for idx, ch in enumerate(text):
        if ch not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            continue
        return value
    return None


class _Collaborator:
    """Shared retry / parse loop. Subclasses implement _call()."""

    ENGINE = "llm"
    MODEL = ""
    MAX_TOKENS = 4096

    def __init__(self, timeout=None, max_retries=None):
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries or settings.LLM_MAX_RETRIES)
        self.last_call = None

    def request_json(self, system_prompt, user_message):
        """Ask the model and return Success(parsed_json) or Failure(reason)."""
        print(f"\n[CALL] Sending request to {self.ENGINE} ({self.MODEL})...")
        reason = "no attempt made"
        for attempt in range(1, self.max_retries + 1):
            try:
                raw_text = self._call(system_prompt, user_message)
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
                print(f"       [RETRY {attempt}/{self.max_retries}] API error: {reason}")
                if attempt < self.max_retries:
                    time.sleep(min(2 ** attempt, 4))
                continue

            self.last_call = {
                "engine": self.ENGINE,
                "model": self.MODEL,
                "prompt_summary": user_message[:200],
                "response_summary": (raw_text or "")[:200],
            }
            payload = extract_first_json(raw_text)
            if payload is None:
                reason = "response contained no JSON"
                print(f"       [RETRY {attempt}/{self.max_retries}] {reason}")
                continue
            print(f"[OK] JSON received on attempt {attempt}")
            return Success(payload)

        return Failure(reason)

    def _call(self, system_prompt, user_message):
        raise NotImplementedError


class ClaudeCollaborator(_Collaborator):
    """Claude via the anthropic SDK."""

    ENGINE = "claude"
    MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key=None, timeout=None, max_retries=None):
        super().__init__(timeout, max_retries)
        api_key = api_key or settings.ANTHROPIC_API_KEY
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY not set.")
        self.client = anthropic.Anthropic(
            api_key=api_key, timeout=self.timeout, max_retries=0,
        )
        print(f"[OK] Claude collaborator ready (model: {self.MODEL})")

    def _call(self, system_prompt, user_message):
        t0 = time.time()
        response = self.client.messages.create(
            model=self.MODEL,
            max_tokens=self.MAX_TOKENS,
            temperature=0,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        elapsed = time.time() - t0
        text = response.content[0].text
        print(f"       Response: {response.usage.output_tokens} tokens out, "
              f"{response.usage.input_tokens} tokens in, {elapsed:.1f}s")
        return text


class OpenAICollaborator(_Collaborator):
    """GPT via the openai SDK, JSON response mode."""

    ENGINE = "openai"
    MODEL = "gpt-4o"

    def __init__(self, api_key=None, timeout=None, max_retries=None):
        super().__init__(timeout, max_retries)
        api_key = api_key or settings.OPENAI_API_KEY
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set.")
        self.client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
        print(f"[OK] OpenAI collaborator ready (model: {self.MODEL})")

    def _call(self, system_prompt, user_message):
        t0 = time.time()
        response = self.client.chat.completions.create(
            model=self.MODEL,
            max_tokens=self.MAX_TOKENS,
            temperature=0,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        )
        elapsed = time.time() - t0
        text = response.choices[0].message.content
        print(f"       Response: {response.usage.completion_tokens} tokens out, "
              f"{response.usage.prompt_tokens} tokens in, {elapsed:.1f}s")
        return text


def build_collaborator(provider=None):
    """Collaborator for the configured provider, or None for rules only."""
    provider = (provider or settings.LLM_PROVIDER or "none").lower()
    try:
        if provider == "anthropic":
            return ClaudeCollaborator()
        if provider == "openai":
            return OpenAICollaborator()
    except RuntimeError as e:
        print(f"[WARN] {e} Using rule-based mode.")
        return None
    if provider != "none":
        print(f"[WARN] Unknown LLM_PROVIDER '{provider}'. Using rule-based mode.")
    return None


# ------------------------------------------------------------------ #
#  CLI test                                                            #
# ------------------------------------------------------------------ #

if __name__ == "__main__":
    print("=== LLM Client Test ===")
    print("=" * 60)
    collab = build_collaborator()
    if collab is None:
        print("[SKIP] No LLM provider configured")
        sys.exit(0)
    result = collab.request_json(
        "Reply with a JSON object only.",
        'Return {"message": "pong", "dashboardSpec": null}',
    )
    print(result)
