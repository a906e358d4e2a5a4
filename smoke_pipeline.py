"""Smoke-test: drive one problem session through two failed runs and an
accepted submission, then print the pipeline transitions and the stored
record.  Backend and GitHub pushes are replaced with printing stand-ins
(no credentials needed); Gemini analysis runs only if GEMINI_API_KEY is set.
"""

import asyncio
import json
import os
import sys
import time

sys.path.insert(0, os.path.dirname(__file__))

from solvesync.config import get_settings
from solvesync.schemas.events import EventPayload, EventType, PageEvent, ProblemDetails
from solvesync.services.contracts import ServiceResult
from solvesync.services.github_push import commit_message, solution_path
from solvesync.services.runtime import build_runtime
from solvesync.services.store import MemoryStore, record_key

PROBLEM_URL = "https://takeuforward.org/plus/dsa/problems/two-sum?category=arrays"
BUGGY = "def two_sum(nums, target):\n    for i in range(len(nums)):\n        for j in range(i, len(nums)):\n            if nums[i] + nums[j] == target:\n                return [i, j]\n"
FIXED = BUGGY.replace("range(i, len(nums))", "range(i + 1, len(nums))")


class PrintingBackend:
    async def push(self, problem_url):
        print(f"  [backend] would POST record for {problem_url}")
        return ServiceResult.ok(message="Solution synced!")


class PrintingCodeHost:
    async def push(self, context, platform):
        path = solution_path(platform, context)
        print(f"  [github]  would commit {path!r}: {commit_message(platform, context)!r}")
        return ServiceResult.ok(path=path)


async def run() -> None:
    settings = get_settings().model_copy(update={"settle_seconds": 0})
    runtime = build_runtime(
        settings,
        MemoryStore(),
        backend=PrintingBackend(),
        code_host=PrintingCodeHost(),
    )
    problem = runtime.problem

    await problem.open(ProblemDetails(url=PROBLEM_URL, title="Two Sum", difficulty="Easy"))
    print(f"Opened {problem.url}")

    for code in (BUGGY, BUGGY + "# retry\n"):
        await problem.handle_event(PageEvent(
            type=EventType.RUN_SUBMITTED, payload=EventPayload(code=code, language="python"),
        ))
        await problem.handle_event(PageEvent(
            type=EventType.RUN_RESULT, payload=EventPayload(success=False, status="Wrong Answer"),
        ))
    print(f"Tracker after failed runs: {problem.tracker.snapshot()}")

    await problem.handle_event(PageEvent(
        type=EventType.SUBMIT_SUBMITTED,
        payload=EventPayload(code=FIXED, language="python", problem_id="two-sum"),
    ))
    t0 = time.time()
    result = await problem.handle_event(PageEvent(
        type=EventType.SUBMIT_RESULT,
        payload=EventPayload(status="Accepted", total_test_cases=42, passed_test_cases=42),
    ))
    elapsed = time.time() - t0

    print(f"\nPipeline finished in {elapsed:.2f}s -> {result.state.value}")
    print("Transitions: " + " -> ".join(s.value for s in result.transitions))
    for err in result.errors:
        print(f"  error: {err}")

    key = record_key(problem.url)
    record = (await runtime.store.get([key]))[key]
    print("\nStored record:")
    print(json.dumps(record, indent=2))


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
