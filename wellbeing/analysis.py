# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Deite analysis engine — derives a day's emotion scores from its transcript.

Talks to an Ollama-style /api/generate endpoint (default localhost:11434,
llama3:70b). One fixed scoring prompt, first {...} object in the response
is taken as the answer, every score must be a number in 1..100.

Failures are typed, never defaulted:
  - TransientFetchFailure: connection refused, HTTP error, timeout
  - AnalysisFailure: no JSON, bad JSON, missing or out-of-range score
"""

import asyncio
import json
import logging
import re
import urllib.error
import urllib.request
from typing import Any, Dict, Iterable, List, Optional

from wellbeing.schemas import (
    AnalysisFailure, ChatMessage, DayScores, SCORE_FIELDS, TransientFetchFailure,
)

logger = logging.getLogger("deite.analysis")

DEFAULT_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3:70b"
DEFAULT_TIMEOUT = 120  # seconds

MIN_MESSAGES = 2
WELCOME_MESSAGE_ID = "welcome"

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_PROMPT = """Analyze the emotional state from this conversation and provide numerical scores (0-100) for:
- happiness (how positive/joyful)
- energy (how energetic/motivated)
- anxiety (how worried/anxious)
- stress (how stressed/pressured)

Conversation:
{conversation}

Respond ONLY with a JSON object in this exact format:
{{
  "happiness": <number>,
  "energy": <number>,
  "anxiety": <number>,
  "stress": <number>
}}"""


# ============================================================================
# Transcript preparation
# ============================================================================

def usable_messages(messages: Optional[Iterable[ChatMessage]]) -> List[ChatMessage]:
    """Drop the welcome message, whisper-session messages and blank texts."""
    if not messages:
        return []
    return [
        m for m in messages
        if m.id != WELCOME_MESSAGE_ID
        and not m.is_whisper_session
        and m.text.strip()
    ]


def has_enough_signal(messages: List[ChatMessage]) -> bool:
    return len(messages) >= MIN_MESSAGES


def build_prompt(messages: Iterable[ChatMessage]) -> str:
    lines = [
        f"{'User' if m.sender == 'user' else 'Assistant'}: {m.text}"
        for m in messages
    ]
    return _PROMPT.format(conversation="\n".join(lines))


# ============================================================================
# Response parsing
# ============================================================================

def parse_scores(response_text: str) -> DayScores:
    """Pull the first JSON object out of model output and validate it."""
    match = _JSON_OBJECT.search(response_text or "")
    if not match:
        raise AnalysisFailure("No JSON object in analysis response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AnalysisFailure(f"Malformed JSON in analysis response: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisFailure("Analysis response is not an object")

    scores: Dict[str, int] = {}
    for field in SCORE_FIELDS:
        value = data.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise AnalysisFailure(f"Score '{field}' missing or not a number")
        if value < 1 or value > 100:
            raise AnalysisFailure(f"Score '{field}'={value} outside 1..100")
        scores[field] = int(round(value))
    return DayScores(**scores)


# ============================================================================
# Engine
# ============================================================================

class AnalysisEngine:
    """
    HTTP client for the scoring model.

    derive_scores() is async; the blocking urllib call runs on the
    analysis worker pool when one is given.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        pool=None,
    ):
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._pool = pool

    def _api_call(self, endpoint: str, payload: dict) -> Dict[str, Any]:
        """Raw HTTP call. Returns parsed JSON or raises a typed failure."""
        url = f"{self.url}{endpoint}"
        data = json.dumps(payload).encode("utf-8")

        req = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise TransientFetchFailure(f"Analysis API error ({endpoint}): {e}") from e

        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise AnalysisFailure(f"Analysis API returned an unreadable body: {e}") from e

    def generate(self, prompt: str) -> str:
        """Blocking: send a prompt, get the model's response text."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.3,
                "num_predict": 300,
            },
        }
        result = self._api_call("/api/generate", payload)
        if not isinstance(result, dict):
            raise AnalysisFailure("Analysis API returned a non-object body")
        text = result.get("response") or result.get("text") or result.get("output") or ""
        if not isinstance(text, str):
            raise AnalysisFailure(f"Analysis response is a {type(text).__name__}, not text")
        return text.strip()

    def score_transcript(self, messages: List[ChatMessage]) -> DayScores:
        """Blocking: full transcript -> validated scores."""
        if not messages:
            raise AnalysisFailure("Empty transcript")
        return parse_scores(self.generate(build_prompt(messages)))

    async def derive_scores(self, messages: List[ChatMessage]) -> DayScores:
        if self._pool is not None:
            scores = await self._pool.submit(self.score_transcript, messages)
        else:
            loop = asyncio.get_running_loop()
            scores = await loop.run_in_executor(None, self.score_transcript, messages)
        logger.debug("Derived scores: %s", scores.model_dump())
        return scores
