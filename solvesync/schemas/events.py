"""Wire contract for events posted by the page-observation layer."""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    RUN_SUBMITTED = "RUN_SUBMITTED"
    RUN_RESULT = "RUN_RESULT"
    SUBMIT_SUBMITTED = "SUBMIT_SUBMITTED"
    SUBMIT_RESULT = "SUBMIT_RESULT"


class EventPayload(BaseModel):
    # Accepts both ``problem_id`` and ``problemId`` style keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str | None = None
    language: str | None = None
    problem_id: str | None = None
    success: bool | None = None
    status: str | None = None
    total_test_cases: int | None = None
    passed_test_cases: int | None = None
    average_time: str | None = None
    average_memory: str | float | int | None = None

    @property
    def accepted(self) -> bool:
        return self.success is True or self.status == "Accepted"


class PageEvent(BaseModel):
    type: EventType
    payload: EventPayload = Field(default_factory=EventPayload)


class ProblemDetails(BaseModel):
    """Problem details scraped from the page; navigation to a new url resets state."""

    url: str
    title: str = ""
    description: str = ""
    difficulty: str = ""
