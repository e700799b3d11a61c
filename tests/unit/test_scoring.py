import pytest
from app.services.scoring import PASSING_SCORE, score_attempt


def test_no_gradable_pages_passes_with_full_score():
  score = score_attempt([])
  assert (score.total, score.percentage_score, score.is_successful) == (0, 100, True)


@pytest.mark.parametrize(
  "flags,expected_score,expected_success",
  [
    ([True, True, True, False], 75, True),
    ([True, True, False, False], 50, False),
    ([True, False, False], 33, False),
    ([True, True, False], 66, False),
    ([False, False], 0, False),
    ([True], 100, True),
  ],
)
def test_score_is_floored_and_passes_at_threshold(flags, expected_score, expected_success):
  score = score_attempt(flags)
  assert score.percentage_score == expected_score
  assert score.is_successful is expected_success
  assert score.correct == sum(flags)


def test_flooring_does_not_suffer_float_rounding():
  # 29/100*100 is 28.999... in binary floating point.
  score = score_attempt([True] * 29 + [False] * 71)
  assert score.percentage_score == 29


def test_just_below_threshold_fails():
  score = score_attempt([True] * 74 + [False] * 26)
  assert score.percentage_score == PASSING_SCORE - 1
  assert score.is_successful is False
