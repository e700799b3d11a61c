from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_attempt_coordinator
from app.api.models import (
  CompleteLessonRequest,
  CompleteLessonResponse,
  LessonAttemptResponse,
  LessonAttemptsResponse,
  QuestionPageAttemptResponse,
  SubmitAnswerRequest,
  SuccessResponse,
  TryLessonRequest,
  TryLessonResponse,
)
from app.services.attempts import LessonAttemptCoordinator
from app.services.request_validation import DEFAULT_PAGE_LIMIT

router = APIRouter()


@router.post("/try", response_model=TryLessonResponse)
async def try_lesson(request: TryLessonRequest, coordinator: LessonAttemptCoordinator = Depends(get_attempt_coordinator)) -> TryLessonResponse:  # noqa: B008
  """Resume the caller's open attempt or start a new one."""
  snapshots = await coordinator.try_lesson(request.user_id, request.lesson_id, request.plan_id, request.channel_id)
  return TryLessonResponse(question_page_attempts=[QuestionPageAttemptResponse(id=s.id, page_id=s.page_id, lesson_attempt_id=s.lesson_attempt_id, is_correct=s.is_correct, user_answer=s.user_answer) for s in snapshots])


@router.post("/answer", response_model=SuccessResponse)
async def submit_answer(request: SubmitAnswerRequest, coordinator: LessonAttemptCoordinator = Depends(get_attempt_coordinator)) -> SuccessResponse:  # noqa: B008
  """Grade and cache one answer; the attempt must belong to user_id."""
  await coordinator.submit_answer(request.lesson_attempt_id, request.page_id, request.question_page_attempt_id, request.user_answer, user_id=request.user_id)
  return SuccessResponse(success=True)


@router.post("/complete", response_model=CompleteLessonResponse)
async def complete_lesson(request: CompleteLessonRequest, coordinator: LessonAttemptCoordinator = Depends(get_attempt_coordinator)) -> CompleteLessonResponse:  # noqa: B008
  completion = await coordinator.complete_lesson(request.user_id, request.lesson_attempt_id)
  return CompleteLessonResponse(lesson_attempt_id=completion.lesson_attempt_id, is_successful=completion.is_successful, percentage_score=completion.percentage_score)


@router.get("", response_model=LessonAttemptsResponse)
async def list_lesson_attempts(
  user_id: str = Query(...),
  lesson_id: int | None = Query(default=None),
  limit: int = Query(default=DEFAULT_PAGE_LIMIT),
  offset: int = Query(default=0),
  coordinator: LessonAttemptCoordinator = Depends(get_attempt_coordinator),  # noqa: B008
) -> LessonAttemptsResponse:
  """List a user's attempts ordered by end time, open attempts last."""
  records = await coordinator.get_lesson_attempts(user_id, lesson_id, limit, offset)
  return LessonAttemptsResponse(
    lesson_attempts=[
      LessonAttemptResponse(
        id=record.id,
        user_id=record.user_id,
        lesson_id=record.lesson_id,
        plan_id=record.plan_id,
        channel_id=record.channel_id,
        start_time=record.start_time,
        end_time=record.end_time,
        is_complete=record.is_complete,
        is_successful=record.is_successful,
        percentage_score=record.percentage_score,
      )
      for record in records
    ]
  )


@router.get("/{lesson_attempt_id}/permission", response_model=SuccessResponse)
async def check_permission(lesson_attempt_id: int, user_id: str = Query(...), coordinator: LessonAttemptCoordinator = Depends(get_attempt_coordinator)) -> SuccessResponse:  # noqa: B008
  """Report whether user_id owns the attempt; foreign or missing attempts report false."""
  return SuccessResponse(success=await coordinator.check_permission_for_user(user_id, lesson_attempt_id))
