"""Mistake analysis via Google Gemini.

Sends every viable attempt for the solved problem, oldest first, and asks
for a short markdown analysis that starts with a ``TAGS:`` line.  The tags
line is split off into a list and the rest is kept as the summary.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Sequence

import requests

from solvesync.services.contracts import AnalysisResult, ServiceResult
from solvesync.services.errors import ConfigurationMissing, NetworkFailure

if TYPE_CHECKING:
    from solvesync.config import Settings
    from solvesync.services.attempt_tracker import Attempt
    from solvesync.services.problem_record import ProblemContext

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

MISTAKE_TAGS = [
    "Logic Error",
    "Syntax Error",
    "Algorithm Choice",
    "Edge Cases",
    "Data Structure",
    "Time Complexity",
    "Space Complexity",
    "Input Handling",
    "Loop Logic",
    "Conditional Logic",
    "Array Bounds",
    "Null Pointer",
    "Off By One",
]

_TAGS_LINE = re.compile(r"^TAGS:\s*(.+)$", re.MULTILINE)

ANALYSIS_INSTRUCTIONS = """

CRITICAL: You MUST start your response with exactly this format:
TAGS: tag1, tag2, tag3

Use ONLY these specific tag categories (pick 1-3 most relevant):
{tags}

Then provide brief analysis:
1. **Time-Travel Debugging**: From all the attempts pick the most memorable moments/code snippets, \
the ones that would remind the user how they solved this problem even long after.
2. **Key Issues**: What specific errors occurred.
3. **Improvements**: As attempts progressed, what improved.
Keep under 100 words total. Focus only on technical programming concepts."""


def build_analysis_prompt(attempts: Sequence["Attempt"], context: "ProblemContext") -> str:
    parts = [
        "Analyze the coding attempts for this problem and provide a brief "
        "mistake analysis in markdown format.\n\n",
        f"Problem: {context.title}\n",
    ]
    if context.description:
        parts.append(f"Description: {context.description[:500]}...\n")
    parts.append("\nCoding Attempts (chronological order):\n")

    for index, attempt in enumerate(attempts, 1):
        parts.append(
            f"\n### Attempt {index}\n```{attempt.language}\n{attempt.code}\n```\n"
        )

    parts.append(ANALYSIS_INSTRUCTIONS.format(tags="\n".join(f"- {t}" for t in MISTAKE_TAGS)))
    return "".join(parts)


def parse_analysis(raw: str) -> AnalysisResult:
    match = _TAGS_LINE.search(raw)
    tags: list[str] = []
    if match:
        for tag in match.group(1).split(","):
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
    summary = _TAGS_LINE.sub("", raw, count=1).strip()
    return AnalysisResult(tags=tags, summary=summary)


class GeminiAnalysisService:
    """Calls Gemini ``generateContent`` with the attempt history."""

    def __init__(self, settings: "Settings") -> None:
        self._api_key = settings.gemini_api_key
        self._model = settings.gemini_model
        self._timeout = settings.request_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _generate(self, prompt: str) -> str:
        if not self._api_key:
            raise ConfigurationMissing("GEMINI_API_KEY is not configured.")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            resp = requests.post(
                GEMINI_URL.format(model=self._model),
                headers={
                    "x-goog-api-key": self._api_key,
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise NetworkFailure(f"Gemini request failed: {exc}") from exc

        if not resp.ok:
            logger.error("Gemini error %d: %s", resp.status_code, resp.text[:300])
            raise NetworkFailure(f"Gemini API responded with {resp.status_code}: {resp.text[:300]}")

        body = resp.json()
        if not isinstance(body, dict):
            raise NetworkFailure("Invalid response format from Gemini API")
        text_parts: list[str] = []
        try:
            for cand in body.get("candidates", []):
                for part in cand.get("content", {}).get("parts", []):
                    if "text" in part:
                        text_parts.append(str(part["text"]))
        except (AttributeError, TypeError) as exc:
            raise NetworkFailure(f"Invalid response format from Gemini API: {exc}") from exc
        if not text_parts:
            raise NetworkFailure("Invalid response format from Gemini API")
        return "".join(text_parts)

    async def analyze(
        self, attempts: Sequence["Attempt"], context: "ProblemContext"
    ) -> ServiceResult:
        if not self.configured:
            return ServiceResult.fail("Gemini API key not configured")
        if not attempts:
            return ServiceResult.fail("No attempts to analyze")

        prompt = build_analysis_prompt(attempts, context)
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self._generate, prompt)
        except (ConfigurationMissing, NetworkFailure, ValueError) as exc:
            return ServiceResult.fail(str(exc))

        result = parse_analysis(raw)
        logger.info("Gemini analysis complete: %d tags, %d chars", len(result.tags), len(result.summary))
        return ServiceResult.ok(tags=result.tags, summary=result.summary)
