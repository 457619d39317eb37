"""Tests for debounced day selection on the timeline engine."""

from __future__ import annotations

import time
import uuid
from datetime import timedelta
from decimal import Decimal

from treasury.services.timeline import TimelineEngine

from conftest import BASE_DAY, txn


def memos(engine):
    return [tx.memo for tx in engine.visible_transactions()]


def test_selection_applies_after_debounce(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    everything = engine.visible_transactions()

    engine.select_day(0)

    assert engine.selected_offset is None
    assert engine.visible_transactions() == everything

    manual_scheduler.run_pending()

    assert engine.selected_offset == 0
    assert [tx.memo for tx in engine.visible_transactions()] == ["salary", "card"]


def test_drag_applies_only_last_day(engine, manual_scheduler, example_account):
    engine.set_account(example_account)

    for offset in (0, 1, 2):
        engine.select_day(offset)

    assert len(manual_scheduler.jobs) == 1
    manual_scheduler.run_pending()

    assert manual_scheduler.runs == 1
    assert engine.selected_offset == 2
    assert [tx.memo for tx in engine.visible_transactions()] == ["refund"]


def test_empty_day_selects_no_transactions(engine, manual_scheduler, example_account):
    engine.set_account(example_account)

    engine.select_day(1)
    manual_scheduler.run_pending()

    assert engine.selected_offset == 1
    assert engine.visible_transactions() == []


def test_reselecting_same_day_schedules_nothing(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.select_day(2)
    engine.select_day(2)
    assert manual_scheduler.added == 1

    manual_scheduler.run_pending()
    engine.select_day(2)

    assert manual_scheduler.added == 1
    assert not manual_scheduler.pending


def test_selection_never_rebuilds_series(engine, manual_scheduler, counting_builder, example_account):
    engine.set_account(example_account)
    series = engine.series()
    assert counting_builder.calls == 1

    engine.select_day(2)
    manual_scheduler.run_pending()
    assert engine.series() == series

    engine.clear_selection()
    manual_scheduler.run_pending()
    assert engine.series() == series

    assert counting_builder.calls == 1


def test_clear_restores_window_list(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    before = engine.visible_transactions()

    engine.select_day(0)
    manual_scheduler.run_pending()
    engine.clear_selection()
    assert engine.selected_offset == 0

    manual_scheduler.run_pending()

    assert engine.selected_offset is None
    assert engine.visible_transactions() == before


def test_clear_without_selection_is_noop(engine, manual_scheduler, example_account):
    engine.set_account(example_account)

    engine.clear_selection()

    assert manual_scheduler.added == 0


def test_day_outside_window_deselects(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.set_window(0, 1)
    engine.select_day(1)
    manual_scheduler.run_pending()

    engine.select_day(2)
    manual_scheduler.run_pending()

    assert engine.selected_offset is None
    assert [tx.memo for tx in engine.visible_transactions()] == ["salary", "card"]


def test_changing_window_clears_selection(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.select_day(0)
    manual_scheduler.run_pending()

    engine.set_window(0, 1)

    assert engine.selected_offset is None


def test_same_window_keeps_selection(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.select_day(0)
    manual_scheduler.run_pending()

    engine.set_window(0, 2)

    assert engine.selected_offset == 0


def test_account_switch_cancels_pending_selection(engine, manual_scheduler, fake_source, example_account):
    other = uuid.uuid4()
    fake_source.add(other, txn(0, 5), txn(1, 6))
    engine.set_account(example_account)
    engine.select_day(1)

    engine.set_account(other)

    assert not manual_scheduler.pending
    manual_scheduler.run_pending()
    assert engine.selected_offset is None
    assert len(engine.visible_transactions()) == 2


def test_offset_counts_from_window_start(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.set_window(2, 2)

    engine.select_day(0)
    manual_scheduler.run_pending()

    assert engine.selected_offset == 0
    assert engine.selected_day == BASE_DAY + timedelta(days=2)
    assert memos(engine) == ["refund"]


def test_offset_past_window_end_is_outside(engine, manual_scheduler, example_account):
    engine.set_account(example_account)
    engine.set_window(1, 2)

    engine.select_day(2)

    assert manual_scheduler.added == 0
    assert engine.selected_offset is None
    assert memos(engine) == ["refund"]


def test_series_available_when_first_read_happens_while_selected(
    engine, manual_scheduler, counting_builder, example_account
):
    engine.set_account(example_account)
    engine.select_day(0)
    manual_scheduler.run_pending()

    series = engine.series()

    assert [p.day_offset for p in series] == [0, 1, 2]
    assert engine.selected_offset == 0
    assert counting_builder.calls == 1


def test_unreported_write_while_selected_refreshes_series(
    engine, manual_scheduler, fake_source, example_account
):
    engine.set_account(example_account)
    engine.series()
    engine.select_day(0)
    manual_scheduler.run_pending()

    fake_source.add(example_account, txn(0, 900, memo="bonus"))

    assert engine.series()[0].executed_balance == Decimal("1000")
    assert engine.selected_offset is None
    assert "bonus" in memos(engine)


def test_unreported_write_while_selected_refreshes_list(
    engine, manual_scheduler, fake_source, example_account
):
    engine.set_account(example_account)
    engine.select_day(0)
    manual_scheduler.run_pending()

    fake_source.add(example_account, txn(1, 5, memo="late"))

    assert memos(engine) == ["salary", "card", "late", "refund"]
    assert engine.selected_offset is None


def test_real_scheduler_applies_selection(fake_source, example_account):
    engine = TimelineEngine(fake_source, selection_delay=0.01, deselection_delay=0.01)
    try:
        engine.set_account(example_account)
        engine.select_day(2)

        deadline = time.monotonic() + 5
        while engine.selected_offset is None and time.monotonic() < deadline:
            time.sleep(0.01)

        assert engine.selected_offset == 2
    finally:
        engine.close()
