"""Financing offer lifecycle as a tagged state type with guarded transitions.

    offered --activate--> active --settle--> repaid
                          active --record_cycle (3rd consecutive miss)--> defaulted

``repaid`` and ``defaulted`` are terminal. ``activate`` is driven by the
disbursement flow outside the engine.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, ClassVar, Union


class OfferStatus(str, Enum):
    OFFERED = "offered"
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"


class InvalidOfferTransition(ValueError):
    """Raised when a transition is not defined for the current state."""


@dataclass(frozen=True)
class Offered:
    status: ClassVar[OfferStatus] = OfferStatus.OFFERED


@dataclass(frozen=True)
class Active:
    activated_at: datetime
    missed_cycles: int = 0
    cycles_evaluated: int = 0
    status: ClassVar[OfferStatus] = OfferStatus.ACTIVE


@dataclass(frozen=True)
class Repaid:
    closed_at: datetime
    status: ClassVar[OfferStatus] = OfferStatus.REPAID


@dataclass(frozen=True)
class Defaulted:
    defaulted_at: datetime
    missed_cycles: int
    status: ClassVar[OfferStatus] = OfferStatus.DEFAULTED


OfferState = Union[Offered, Active, Repaid, Defaulted]


def _require(state: OfferState, expected: type, transition: str):
    if not isinstance(state, expected):
        raise InvalidOfferTransition(f"cannot {transition} an offer that is {state.status.value}")


def activate(state: OfferState, at: datetime) -> Active:
    """offered -> active, once funds are disbursed."""
    _require(state, Offered, "activate")
    return Active(activated_at=at)


def settle(state: OfferState, at: datetime) -> Repaid:
    """active -> repaid, once the balance is cleared."""
    _require(state, Active, "settle")
    return Repaid(closed_at=at)


def record_cycle(state: OfferState, repaid: bool, at: datetime, max_missed: int = 3) -> Union[Active, Defaulted]:
    """Account for one elapsed repayment cycle.

    A cycle with a repayment resets the miss counter; the ``max_missed``-th
    consecutive miss defaults the offer.
    """
    _require(state, Active, "record a cycle on")
    evaluated = state.cycles_evaluated + 1

    if repaid:
        return replace(state, missed_cycles=0, cycles_evaluated=evaluated)

    missed = state.missed_cycles + 1
    if missed >= max_missed:
        return Defaulted(defaulted_at=at, missed_cycles=missed)
    return replace(state, missed_cycles=missed, cycles_evaluated=evaluated)


def elapsed_cycles(activated_at: datetime, now: datetime, cycle_days: int = 30) -> int:
    """Number of complete cycles between activation and now."""
    if now <= activated_at:
        return 0
    return (now - activated_at) // timedelta(days=cycle_days)


def advance(
    state: Active,
    now: datetime,
    has_repayment: Callable[[datetime, datetime], bool],
    cycle_days: int = 30,
    max_missed: int = 3,
) -> Union[Active, Defaulted]:
    """Evaluate every complete cycle not yet accounted for.

    Cycles are fixed 30-day windows from activation, so running the check more
    or less often than once a cycle neither double-counts nor skips one.

    Args:
        state: Active offer state
        now: Evaluation time
        has_repayment: Callback telling whether a repayment landed in [start, end)
        cycle_days: Cycle length in days
        max_missed: Consecutive misses that default the offer

    Returns:
        Updated state
    """
    due = elapsed_cycles(state.activated_at, now, cycle_days)
    current: Union[Active, Defaulted] = state

    for index in range(state.cycles_evaluated, due):
        start = state.activated_at + timedelta(days=cycle_days * index)
        end = start + timedelta(days=cycle_days)
        current = record_cycle(current, has_repayment(start, end), at=now, max_missed=max_missed)
        if isinstance(current, Defaulted):
            break

    return current


def state_from_offer(offer) -> OfferState:
    """Rebuild the tagged state from a financing_offers row."""
    status = OfferStatus(offer.status)
    if status == OfferStatus.OFFERED:
        return Offered()
    if status == OfferStatus.ACTIVE:
        return Active(
            activated_at=offer.activated_at or offer.created_at,
            missed_cycles=offer.missed_cycles or 0,
            cycles_evaluated=offer.cycles_evaluated or 0,
        )
    if status == OfferStatus.REPAID:
        return Repaid(closed_at=offer.closed_at)
    return Defaulted(defaulted_at=offer.defaulted_at, missed_cycles=offer.missed_cycles or 0)
