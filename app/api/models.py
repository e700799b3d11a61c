from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_serializer


class TryLessonRequest(BaseModel):
  """Start or resume the caller's attempt at one lesson instance."""

  user_id: StrictStr = Field(description="SSO user id of the learner.")
  lesson_id: StrictInt
  plan_id: StrictInt
  channel_id: StrictInt
  model_config = ConfigDict(extra="forbid")


class QuestionPageAttemptResponse(BaseModel):
  id: int
  page_id: int
  lesson_attempt_id: int
  is_correct: bool
  user_answer: str


class TryLessonResponse(BaseModel):
  question_page_attempts: list[QuestionPageAttemptResponse]


class SubmitAnswerRequest(BaseModel):
  """Record an answer for one question page attempt."""

  user_id: StrictStr = Field(description="Must own the lesson attempt.")
  lesson_attempt_id: StrictInt
  page_id: StrictInt
  question_page_attempt_id: StrictInt
  user_answer: StrictStr = Field(description="Submitted answer, compared verbatim with the canonical answer.", examples=["OPTION_B"])
  model_config = ConfigDict(extra="forbid")


class SuccessResponse(BaseModel):
  success: bool


class CompleteLessonRequest(BaseModel):
  user_id: StrictStr
  lesson_attempt_id: StrictInt
  model_config = ConfigDict(extra="forbid")


class CompleteLessonResponse(BaseModel):
  lesson_attempt_id: int
  is_successful: bool
  percentage_score: int


class LessonAttemptResponse(BaseModel):
  """One lesson attempt; timestamps are RFC 3339 in UTC."""

  id: int
  user_id: str
  lesson_id: int
  plan_id: int
  channel_id: int
  start_time: datetime.datetime
  end_time: datetime.datetime | None = None
  is_complete: bool
  is_successful: bool
  percentage_score: int

  @field_serializer("start_time", "end_time")
  def _serialize_time(self, value: datetime.datetime | None) -> str | None:
    if value is None:
      return None
    if value.tzinfo is None:
      value = value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC).isoformat().replace("+00:00", "Z")


class LessonAttemptsResponse(BaseModel):
  lesson_attempts: list[LessonAttemptResponse]


class HealthResponse(BaseModel):
  status: str
  version: str
