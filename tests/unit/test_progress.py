from ugc_validator.utils.progress import estimate_progress


def test_progress_is_monotonic_and_never_completes():
    previous = 0
    for tenth in range(0, 200):
        percent, label = estimate_progress(tenth / 10)
        assert percent >= previous
        assert percent < 100
        assert label
        previous = percent


def test_progress_steps():
    assert estimate_progress(0) == (10, "Uploading photos...")
    assert estimate_progress(0.7)[0] == 40
    assert estimate_progress(1.2)[0] == 80
    assert estimate_progress(1.5)[0] == 80
    assert estimate_progress(1.8)[0] == 86
    assert estimate_progress(60)[0] == 95


def test_negative_elapsed_is_treated_as_start():
    assert estimate_progress(-3) == estimate_progress(0)
