"""Progress estimate shown to clients while a submission is being validated.

Pure function of elapsed time; it never looks at real pipeline state.
"""
from typing import List, Tuple

# (start offset in seconds, percent, label)
PROGRESS_STEPS: List[Tuple[float, int, str]] = [
    (0.0, 10, "Uploading photos..."),
    (0.3, 20, "Preparing photos..."),
    (0.6, 40, "Sending for analysis..."),
    (0.9, 60, "Analysing quality..."),
    (1.2, 80, "Checking for people..."),
]
FINALIZING_START = 1.5
FINALIZING_STEP_SECONDS = 0.15
FINALIZING_STEP_PERCENT = 3
FINALIZING_CAP = 95


def estimate_progress(elapsed_seconds: float) -> Tuple[int, str]:
    """Return (percent, label) for the given elapsed time. Never reaches 100."""
    if elapsed_seconds < 0:
        elapsed_seconds = 0.0

    if elapsed_seconds >= FINALIZING_START:
        steps = int((elapsed_seconds - FINALIZING_START) / FINALIZING_STEP_SECONDS)
        percent = min(FINALIZING_CAP, 80 + steps * FINALIZING_STEP_PERCENT)
        return percent, f"Finalizing results... ({percent}%)"

    percent, label = PROGRESS_STEPS[0][1], PROGRESS_STEPS[0][2]
    for start, step_percent, step_label in PROGRESS_STEPS:
        if elapsed_seconds >= start:
            percent, label = step_percent, step_label
    return percent, label
