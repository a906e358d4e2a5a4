"""Commits an accepted solution to a GitHub repository.

Uses the contents API: look up the existing blob sha (if any) for the
target path, then PUT the new base64 content.  Files land under
``<platform>/<difficulty>/<problem-name>/solution<ext>``.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import re
from typing import TYPE_CHECKING

import requests

from solvesync.services.contracts import ServiceResult
from solvesync.services.errors import ConfigurationMissing, NetworkFailure

if TYPE_CHECKING:
    from solvesync.config import Settings
    from solvesync.services.problem_record import ProblemContext

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

LANGUAGE_EXTENSIONS = {
    "c++": ".cpp",
    "cpp": ".cpp",
    "c": ".c",
    "java": ".java",
    "python": ".py",
    "python3": ".py",
    "go": ".go",
    "javascript": ".js",
}


def file_extension(language: str) -> str:
    return LANGUAGE_EXTENSIONS.get((language or "").lower(), ".txt")


def format_problem_name(name: str) -> str:
    name = re.sub(r"^\d+\.\s*", "", name).strip()
    name = re.sub(r"[^a-zA-Z0-9\s]", "", name)
    return re.sub(r"\s+", "-", name).lower()


def clean_title(title: str) -> str:
    title = re.sub(r"^\d+\.\s*", "", title)
    title = re.sub(r"\[(LEETCODE|GEEKSFORGEEKS|GFG|TAKEUFORWARD)\]", "", title, flags=re.IGNORECASE)
    title = re.sub(r"\s*\((Easy|Medium|Hard|School|Basic)\)\s*", " ", title, flags=re.IGNORECASE)
    title = re.sub(r"\[.*?\]", "", title)
    return re.sub(r"\s+", " ", title).strip()


def commit_message(platform: str, context: "ProblemContext") -> str:
    """``"<title> - <Platform> [<Difficulty>]"``"""
    message = f"{clean_title(context.title)} - {platform[:1].upper()}{platform[1:]}"
    if context.difficulty_name:
        message += f" [{context.difficulty_name}]"
    return message


def solution_path(platform: str, context: "ProblemContext") -> str:
    return "/".join([
        platform,
        context.difficulty_name.lower(),
        format_problem_name(context.title),
        f"solution{file_extension(context.language)}",
    ])


class GitHubCodeHost:
    def __init__(self, settings: "Settings") -> None:
        self._token = settings.github_token
        self._owner = settings.github_owner
        self._repo = settings.github_repo
        self._branch = settings.github_branch
        self._timeout = settings.request_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self._token and self._owner and self._repo)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
        }

    def _put_file(self, path: str, content: str, message: str) -> dict:
        if not self.configured:
            raise ConfigurationMissing("GitHub token, owner and repo must be configured.")

        url = f"{GITHUB_API}/repos/{self._owner}/{self._repo}/contents/{path}"
        try:
            existing = requests.get(
                url,
                headers=self._headers(),
                params={"ref": self._branch},
                timeout=self._timeout,
            )
            payload = {
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": self._branch,
            }
            if existing.status_code == 200:
                payload["sha"] = existing.json().get("sha")

            resp = requests.put(url, headers=self._headers(), json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise NetworkFailure(f"GitHub request failed: {exc}") from exc

        if resp.status_code not in (200, 201):
            raise NetworkFailure(f"GitHub responded with {resp.status_code}: {resp.text[:300]}")
        return resp.json()

    async def push(self, context: "ProblemContext", platform: str) -> ServiceResult:
        path = solution_path(platform, context)
        message = commit_message(platform, context)

        loop = asyncio.get_running_loop()
        try:
            body = await loop.run_in_executor(None, self._put_file, path, context.code, message)
        except (ConfigurationMissing, NetworkFailure) as exc:
            logger.error("GitHub push failed for %s: %s", path, exc)
            return ServiceResult.fail(str(exc))

        logger.info("Pushed %s to %s/%s", path, self._owner, self._repo)
        return ServiceResult.ok(path=path, commit=(body.get("commit") or {}).get("sha"))
