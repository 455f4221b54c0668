from datetime import datetime, timedelta

import pytest

from marketplace_intel.scoring.offers import (
    Active,
    Defaulted,
    InvalidOfferTransition,
    Offered,
    OfferStatus,
    Repaid,
    activate,
    advance,
    elapsed_cycles,
    record_cycle,
    settle,
)

ACTIVATED = datetime(2025, 1, 1)


def _never_repaid(start, end):
    return False


def test_activate_and_settle():
    active = activate(Offered(), ACTIVATED)
    assert active.status == OfferStatus.ACTIVE
    assert active.activated_at == ACTIVATED

    repaid = settle(active, ACTIVATED + timedelta(days=40))
    assert isinstance(repaid, Repaid)
    assert repaid.status == OfferStatus.REPAID


def test_illegal_transitions_raise():
    with pytest.raises(InvalidOfferTransition):
        settle(Offered(), ACTIVATED)

    with pytest.raises(InvalidOfferTransition):
        activate(Active(activated_at=ACTIVATED), ACTIVATED)

    with pytest.raises(InvalidOfferTransition):
        record_cycle(Repaid(closed_at=ACTIVATED), repaid=False, at=ACTIVATED)

    with pytest.raises(ValueError):
        settle(Defaulted(defaulted_at=ACTIVATED, missed_cycles=3), ACTIVATED)


def test_default_only_on_third_consecutive_miss():
    state = Active(activated_at=ACTIVATED)

    state = record_cycle(state, repaid=False, at=ACTIVATED)
    assert isinstance(state, Active) and state.missed_cycles == 1

    state = record_cycle(state, repaid=False, at=ACTIVATED)
    assert isinstance(state, Active) and state.missed_cycles == 2

    state = record_cycle(state, repaid=False, at=ACTIVATED)
    assert isinstance(state, Defaulted)
    assert state.missed_cycles == 3


def test_repayment_resets_missed_cycles():
    state = Active(activated_at=ACTIVATED, missed_cycles=2, cycles_evaluated=2)

    state = record_cycle(state, repaid=True, at=ACTIVATED)

    assert isinstance(state, Active)
    assert state.missed_cycles == 0
    assert state.cycles_evaluated == 3


def test_elapsed_cycles():
    assert elapsed_cycles(ACTIVATED, ACTIVATED) == 0
    assert elapsed_cycles(ACTIVATED, ACTIVATED + timedelta(days=29, hours=23)) == 0
    assert elapsed_cycles(ACTIVATED, ACTIVATED + timedelta(days=30)) == 1
    assert elapsed_cycles(ACTIVATED, ACTIVATED + timedelta(days=95)) == 3
    assert elapsed_cycles(ACTIVATED, ACTIVATED - timedelta(days=5)) == 0


def test_frequent_runs_do_not_double_count_a_cycle():
    state = Active(activated_at=ACTIVATED)

    # Daily runs across the first 45 days see exactly one elapsed cycle
    for day in range(1, 46):
        state = advance(state, ACTIVATED + timedelta(days=day), _never_repaid)

    assert isinstance(state, Active)
    assert state.missed_cycles == 1
    assert state.cycles_evaluated == 1


def test_infrequent_run_catches_up_on_every_cycle():
    state = Active(activated_at=ACTIVATED)

    state = advance(state, ACTIVATED + timedelta(days=95), _never_repaid)

    assert isinstance(state, Defaulted)
    assert state.missed_cycles == 3


def test_repayment_window_is_checked_per_cycle():
    repaid_on = ACTIVATED + timedelta(days=40)

    def has_repayment(start, end):
        return start <= repaid_on < end

    state = advance(Active(activated_at=ACTIVATED), ACTIVATED + timedelta(days=95), has_repayment)

    # miss, repay, miss
    assert isinstance(state, Active)
    assert state.missed_cycles == 1
    assert state.cycles_evaluated == 3
