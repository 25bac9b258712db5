"""
Render Retry Policy

Rendering is the flaky step of the pipeline. Every failure is retried up to a
fixed number of attempts; the failure's class only decides how long to wait.

Backoff for attempt n is base * 2**(n-1), clamped to the ceiling, with
symmetric random jitter. Rate-limited/unavailable failures use the longer
base.
"""

import random
import re
from dataclasses import dataclass
from typing import Callable, Final

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    stop_after_attempt,
    retry_if_exception_type,
)
from tenacity.wait import wait_base

from inspections.shared.config import Settings, get_settings

log = structlog.get_logger()

MAX_RENDER_ATTEMPTS: Final = 5
TRANSIENT_BASE_SECONDS: Final = 10.0
DEFAULT_BASE_SECONDS: Final = 3.0
MAX_BACKOFF_SECONDS: Final = 60.0
JITTER_RATIO: Final = 0.2

TRANSIENT_ERROR_PATTERN = re.compile(
    r"\b429\b|\b503\b|rate.?limit|too many requests|unavailable|capacity|browser limit",
    re.IGNORECASE,
)


def classify_failure(error: BaseException) -> bool:
    """
    Return True when a render failure looks transient.

    Transient means rate-limited or unavailable: HTTP 429/503, an explicit
    rate-limit message, or the renderer running out of browser capacity.

    Only the renderer's own message is matched when the error carries one;
    the report URL embeds site names that can contain any of the keywords.
    """
    status_code = getattr(error, "status_code", None)
    if status_code in (429, 503):
        return True
    message = getattr(error, "error_message", None) or str(error)
    return bool(TRANSIENT_ERROR_PATTERN.search(message))


def compute_backoff(
    attempt: int,
    *,
    transient: bool,
    transient_base: float = TRANSIENT_BASE_SECONDS,
    default_base: float = DEFAULT_BASE_SECONDS,
    ceiling: float = MAX_BACKOFF_SECONDS,
    jitter: float = JITTER_RATIO,
    rng: Callable[[float, float], float] = random.uniform,
) -> float:
    """
    Seconds to wait after a failed attempt.

    Args:
        attempt: 1-based number of the attempt that just failed
        transient: Whether the failure was classified transient
        rng: Source of the jitter factor, called as rng(low, high)

    Returns:
        Delay in seconds, never above the ceiling
    """
    base = transient_base if transient else default_base
    delay = min(base * 2 ** (attempt - 1), ceiling)
    factor = rng(1.0 - jitter, 1.0 + jitter)
    return max(0.0, min(delay * factor, ceiling))


class wait_classified_backoff(wait_base):
    """tenacity wait strategy applying compute_backoff to the last failure."""

    def __init__(
        self,
        *,
        transient_base: float = TRANSIENT_BASE_SECONDS,
        default_base: float = DEFAULT_BASE_SECONDS,
        ceiling: float = MAX_BACKOFF_SECONDS,
        jitter: float = JITTER_RATIO,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.transient_base = transient_base
        self.default_base = default_base
        self.ceiling = ceiling
        self.jitter = jitter
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return compute_backoff(
            retry_state.attempt_number,
            transient=error is not None and classify_failure(error),
            transient_base=self.transient_base,
            default_base=self.default_base,
            ceiling=self.ceiling,
            jitter=self.jitter,
            rng=self.rng,
        )


def _log_before_sleep(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "render_attempt_failed",
        attempt=retry_state.attempt_number,
        transient=error is not None and classify_failure(error),
        error=str(error),
        retry_in_seconds=round(retry_state.next_action.sleep, 2)
        if retry_state.next_action
        else None,
    )


def build_render_retrying(
    settings: Settings | None = None,
    *,
    sleep: Callable[[float], None] | None = None,
    rng: Callable[[float, float], float] = random.uniform,
) -> Retrying:
    """
    Build the tenacity controller for one render loop.

    The final error is re-raised unchanged once attempts run out.
    """
    settings = settings or get_settings()
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep

    return Retrying(
        stop=stop_after_attempt(settings.render_max_attempts),
        wait=wait_classified_backoff(
            transient_base=settings.render_transient_base_seconds,
            default_base=settings.render_default_base_seconds,
            ceiling=settings.render_max_backoff_seconds,
            jitter=settings.render_jitter_ratio,
            rng=rng,
        ),
        retry=retry_if_exception_type(Exception),
        before_sleep=_log_before_sleep,
        reraise=True,
        **kwargs,
    )


@dataclass
class RenderRetryState:
    """
    Progress of one render loop.

    Lives only as long as the loop; the pipeline reads it afterwards to
    report how many attempts were used and what failed last.
    """

    max_attempts: int
    attempt: int = 0
    last_error: BaseException | None = None


def render_with_retry(
    render: Callable[[str], bytes],
    url: str,
    *,
    retrying: Retrying | None = None,
    state: RenderRetryState | None = None,
) -> bytes:
    """
    Render a URL, retrying failures with classified backoff.

    Args:
        render: One-shot render capability
        url: Report URL
        retrying: Controller from build_render_retrying
        state: Optional RenderRetryState updated after every attempt

    Returns:
        PDF bytes

    Raises:
        Exception: The last render error once attempts are exhausted
    """
    controller = retrying or build_render_retrying()

    for attempt in controller:
        with attempt:
            if state is not None:
                state.attempt = attempt.retry_state.attempt_number
            try:
                pdf = render(url)
            except Exception as e:
                if state is not None:
                    state.last_error = e
                raise

    return pdf
