from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from bookmap.core.models import LookupItem, ProviderErrorInfo, ProviderReply
from bookmap.core.normalize import canonical_isbn13
from bookmap.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_ATTEMPTS = 3
DEFAULT_FALLBACK_ATTEMPTS = 2
DEFAULT_COOLDOWN_S = 0.25

EMPTY_SIGNAL = ProviderErrorInfo(code=None, message="no items returned")

Fetcher = Callable[[str], ProviderReply]


class LookupState(str, Enum):
    ATTEMPTING = "attempting"
    FALLBACK_ATTEMPTING = "fallback_attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED_EMPTY = "exhausted_empty"
    TRANSPORT_FAILED = "transport_failed"


TERMINAL_STATES = {
    LookupState.SUCCEEDED,
    LookupState.EXHAUSTED_EMPTY,
    LookupState.TRANSPORT_FAILED,
}


@dataclass
class LookupMachine:
    """
    Retry/fallback bookkeeping for one identifier lookup.

    Replies are fed in one at a time; the machine decides whether the next
    call is another direct lookup, a keyword-search fallback, or nothing.
    It never performs I/O or sleeps itself.
    """

    primary_attempts: int = DEFAULT_PRIMARY_ATTEMPTS
    fallback_attempts: int = DEFAULT_FALLBACK_ATTEMPTS
    state: LookupState = LookupState.ATTEMPTING
    attempt: int = 1
    items: List[LookupItem] = field(default_factory=list)
    primary_error: Optional[ProviderErrorInfo] = None
    fallback_error: Optional[ProviderErrorInfo] = None

    def __post_init__(self) -> None:
        if self.primary_attempts <= 0:
            self._enter_fallback()

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def error_hint(self) -> Optional[ProviderErrorInfo]:
        return self.fallback_error or self.primary_error

    def _enter_fallback(self) -> None:
        if self.fallback_attempts > 0:
            self.state = LookupState.FALLBACK_ATTEMPTING
            self.attempt = 1
        else:
            self.state = LookupState.EXHAUSTED_EMPTY

    def on_reply(self, reply: ProviderReply) -> LookupState:
        if self.done:
            raise RuntimeError(f"lookup already finished ({self.state.value})")
        if reply.ok:
            self.items = list(reply.items)
            self.state = LookupState.SUCCEEDED
            return self.state

        signal = reply.error or EMPTY_SIGNAL
        if self.state == LookupState.ATTEMPTING:
            self.primary_error = signal
            if self.attempt < self.primary_attempts:
                self.attempt += 1
            else:
                self._enter_fallback()
        else:
            self.fallback_error = signal
            if self.attempt < self.fallback_attempts:
                self.attempt += 1
            else:
                self.state = LookupState.EXHAUSTED_EMPTY
        return self.state

    def on_transport_failure(self) -> LookupState:
        self.state = LookupState.TRANSPORT_FAILED
        return self.state


@dataclass(frozen=True)
class LookupOutcome:
    isbn13: str
    state: LookupState
    items: List[LookupItem]
    error: Optional[ProviderErrorInfo]
    attempts: Tuple[Tuple[str, int], ...]

    @property
    def found(self) -> bool:
        return self.state == LookupState.SUCCEEDED

    def to_dict(self) -> dict:
        out = {"items": [it.to_dict() for it in self.items]}
        if not self.found and self.error is not None:
            out["error"] = self.error.to_dict()
        return out


def reconcile(
    raw: str,
    *,
    lookup: Fetcher,
    search: Fetcher,
    wait: Callable[[float], None] = time.sleep,
    primary_attempts: int = DEFAULT_PRIMARY_ATTEMPTS,
    fallback_attempts: int = DEFAULT_FALLBACK_ATTEMPTS,
    cooldown_s: float = DEFAULT_COOLDOWN_S,
) -> LookupOutcome:
    """
    Resolve a raw ISBN to bibliographic items.

    ``lookup`` is the direct identifier endpoint, ``search`` the keyword
    fallback (queried with the 13-digit ISBN). Empty replies and in-band
    provider errors are retried with ``cooldown_s`` between attempts of the
    same strategy. ProviderUnavailable from either fetcher propagates
    untouched and is not retried here.
    """
    isbn13 = canonical_isbn13(raw)
    machine = LookupMachine(primary_attempts=primary_attempts, fallback_attempts=fallback_attempts)
    attempts: List[Tuple[str, int]] = []

    while not machine.done:
        state = machine.state
        n = machine.attempt
        fetch = lookup if state == LookupState.ATTEMPTING else search
        attempts.append((state.value, n))
        logger.debug("lookup attempt | isbn13=%s | mode=%s | attempt=%s", isbn13, state.value, n)
        try:
            reply = fetch(isbn13)
        except ProviderUnavailable as e:
            machine.on_transport_failure()
            logger.error("lookup transport failure | isbn13=%s | mode=%s | err=%s", isbn13, state.value, e)
            raise

        nxt = machine.on_reply(reply)
        if nxt == state:
            err = reply.error or EMPTY_SIGNAL
            logger.warning(
                "lookup empty, retrying | isbn13=%s | mode=%s | attempt=%s | code=%s | msg=%s",
                isbn13,
                state.value,
                n,
                err.code,
                err.message,
            )
            wait(cooldown_s)
        elif nxt == LookupState.FALLBACK_ATTEMPTING:
            logger.warning("lookup falling back to keyword search | isbn13=%s", isbn13)

    if machine.state == LookupState.EXHAUSTED_EMPTY:
        hint = machine.error_hint
        logger.info(
            "lookup found nothing | isbn13=%s | attempts=%s | code=%s | msg=%s",
            isbn13,
            len(attempts),
            hint.code if hint else None,
            hint.message if hint else "",
        )
    return LookupOutcome(
        isbn13=isbn13,
        state=machine.state,
        items=list(machine.items),
        error=machine.error_hint,
        attempts=tuple(attempts),
    )
