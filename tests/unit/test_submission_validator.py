from dataclasses import replace

import pytest

from ugc_validator.types import FixContext, SubmissionMode, ValidationConfig
from ugc_validator.errors import SubmissionValidationError
from ugc_validator.validators.submission_validator import collect_submission_errors, validate_submission

from conftest import make_candidates, make_request


def test_valid_normal_submission_has_no_errors():
    assert collect_submission_errors(make_request(make_candidates(3)), ValidationConfig()) == []


@pytest.mark.parametrize("count", [0, 2, 4])
def test_normal_mode_requires_exact_image_count(count):
    errors = collect_submission_errors(make_request(make_candidates(count)), ValidationConfig())
    assert any("Exactly 3 photos" in e for e in errors)


def test_review_text_length_bounds():
    config = ValidationConfig()
    request = make_request(make_candidates(3))

    assert collect_submission_errors(replace(request, review_text="x" * 20), config) == []
    assert collect_submission_errors(replace(request, review_text="x" * 500), config) == []
    assert collect_submission_errors(replace(request, review_text="x" * 19), config)
    assert collect_submission_errors(replace(request, review_text="x" * 501), config)


@pytest.mark.parametrize("rating", [0, 6, None, True, 4.5])
def test_star_rating_must_be_integer_in_range(rating):
    request = replace(make_request(make_candidates(3)), star_rating=rating)
    errors = collect_submission_errors(request, ValidationConfig())
    assert any("Star rating" in e for e in errors)


@pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a b@c.com"])
def test_email_shape(email):
    request = replace(make_request(make_candidates(3)), order_email=email)
    assert collect_submission_errors(request, ValidationConfig())


def test_order_number_characters():
    request = replace(make_request(make_candidates(3)), order_id="ORD 12/3")
    errors = collect_submission_errors(request, ValidationConfig())
    assert any("Order number" in e for e in errors)


def test_fix_mode_image_count_matches_previously_rejected():
    context = FixContext(previously_rejected=[{"filename": "a.jpg"}, {"filename": "b.jpg"}])
    ok = make_request(make_candidates(2), mode=SubmissionMode.FIX, fix_context=context)
    bad = make_request(make_candidates(3), mode=SubmissionMode.FIX, fix_context=context)

    assert collect_submission_errors(ok, ValidationConfig()) == []
    assert any("Fix mode expects exactly 2" in e for e in collect_submission_errors(bad, ValidationConfig()))


def test_fix_mode_without_context_is_invalid():
    request = make_request(make_candidates(1), mode=SubmissionMode.FIX)
    assert any("Fix mode" in e for e in collect_submission_errors(request, ValidationConfig()))


def test_validate_submission_raises_with_all_errors():
    request = replace(make_request(make_candidates(1)), review_text="short", star_rating=9)
    with pytest.raises(SubmissionValidationError) as exc_info:
        validate_submission(request, ValidationConfig())
    assert len(exc_info.value.errors) == 3
