import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence

from app.platform.config import settings

logger = logging.getLogger(__name__)

# Titles that SPAs show while their real content is still being fetched.
LOADING_INDICATORS = (
    'carregando',
    'loading',
    'aguarde',
    'please wait',
    'cargando',
    'chargement',
    'laden',
    '読み込み中',
    '加载中',
)

NETWORK_IDLE_POLLS = 2
DOM_STABLE_POLLS = 3
DOM_ONLY_STABLE_POLLS = 6


@dataclass(frozen=True)
class PageState:
    elements: int
    content_length: int
    title: str
    links: int = 0

    def same_dom(self, other: "PageState") -> bool:
        return (
            self.elements == other.elements
            and self.content_length == other.content_length
            and self.title == other.title
        )


@dataclass
class StabilityResult:
    stable: bool
    timed_out: bool
    polls: int
    elapsed: float
    unmet_reasons: List[str] = field(default_factory=list)
    last_state: Optional[PageState] = None


class RequestTracker(Protocol):
    def pending(self) -> Sequence[str]:
        ...


def is_loading_title(title: Optional[str]) -> bool:
    lowered = (title or '').lower()
    return any(marker in lowered for marker in LOADING_INDICATORS)


def _describe_pending(pending: Sequence[str]) -> str:
    shown = ', '.join(pending[:3])
    if len(pending) > 3:
        shown = f"{shown} +{len(pending) - 3} more"
    return f"{len(pending)} pending request(s): {shown}"


def _unmet_reasons(
    state: Optional[PageState],
    previous: Optional[PageState],
    pending: Sequence[str],
    idle_count: int,
    stable_count: int,
    tracked: bool = True,
) -> List[str]:
    reasons = []
    if state is not None and is_loading_title(state.title):
        reasons.append(f"title still shows a loading marker: '{state.title}'")
    if pending:
        reasons.append(_describe_pending(pending))
    if stable_count < DOM_STABLE_POLLS:
        if state is not None and previous is not None:
            reasons.append(
                f"DOM unstable (stable polls {stable_count}/{DOM_STABLE_POLLS}, "
                f"last delta: elements {state.elements - previous.elements:+d}, "
                f"text {state.content_length - previous.content_length:+d})"
            )
        else:
            reasons.append(f"DOM unstable (stable polls {stable_count}/{DOM_STABLE_POLLS})")
    if tracked and idle_count < NETWORK_IDLE_POLLS and not pending:
        reasons.append(f"network not idle (idle polls {idle_count}/{NETWORK_IDLE_POLLS})")
    return reasons


def wait_for_page_stable(
    read_state: Callable[[], PageState],
    tracker: Optional[RequestTracker] = None,
    *,
    interval: float = None,
    max_wait: float = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    url: str = "",
) -> StabilityResult:
    """
    Poll until the page has stopped changing or the time budget runs out.

    Ready when the title carries no loading marker and either:
    - the network was idle for 2 consecutive polls and the DOM
      (element count, text length, title) was unchanged for 3, or
    - the DOM was unchanged for 6 polls, whatever the network does
      (long-polling and websocket pages never go idle).

    Without a tracker only the DOM-only rule applies.

    Never raises on timeout: the result says which conditions were unmet
    and the caller proceeds with whatever content is there.
    """
    interval = settings.STABILITY_POLL_INTERVAL_SECONDS if interval is None else interval
    max_wait = settings.STABILITY_MAX_WAIT_SECONDS if max_wait is None else max_wait

    start = clock()
    polls = 0
    idle_count = 0
    stable_count = 0
    reference: Optional[PageState] = None
    previous: Optional[PageState] = None
    state: Optional[PageState] = None
    pending: List[str] = []

    while True:
        polls += 1
        pending = list(tracker.pending()) if tracker is not None else []
        idle_count = idle_count + 1 if tracker is not None and not pending else 0

        previous = state
        state = read_state()
        if reference is not None and state.same_dom(reference):
            stable_count += 1
        else:
            stable_count = 0
            reference = state

        loading = is_loading_title(state.title)
        network_ready = idle_count >= NETWORK_IDLE_POLLS and stable_count >= DOM_STABLE_POLLS
        if not loading and (network_ready or stable_count >= DOM_ONLY_STABLE_POLLS):
            elapsed = clock() - start
            logger.debug(f"Page stable after {polls} polls ({elapsed:.1f}s) {url}")
            return StabilityResult(
                stable=True, timed_out=False, polls=polls, elapsed=elapsed, last_state=state
            )

        elapsed = clock() - start
        if elapsed + interval > max_wait:
            break
        sleep(interval)

    elapsed = clock() - start
    reasons = _unmet_reasons(state, previous, pending, idle_count, stable_count, tracker is not None)
    logger.warning(
        f"Stabilization timeout after {elapsed:.1f}s on {url or 'page'}: " + "; ".join(reasons)
    )
    return StabilityResult(
        stable=False,
        timed_out=True,
        polls=polls,
        elapsed=elapsed,
        unmet_reasons=reasons,
        last_state=state,
    )
