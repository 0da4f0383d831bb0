"""
Unit tests for debounced inputs.
"""

import asyncio

import pytest

from service_explorer.app.query.debounce import Debouncer


class TestDebouncer:
    """Test cases for Debouncer."""

    @pytest.mark.asyncio
    async def test_settles_after_quiet_interval(self):
        """The settled value changes only after the interval elapses."""
        settled = []
        debouncer = Debouncer(0.05, initial="", on_settle=settled.append)

        debouncer.push("r")

        assert debouncer.value == ""
        assert debouncer.latest == "r"
        assert debouncer.pending

        await asyncio.sleep(0.08)

        assert debouncer.value == "r"
        assert not debouncer.pending
        assert settled == ["r"]

    @pytest.mark.asyncio
    async def test_rapid_changes_settle_once(self):
        """Keystrokes inside the window collapse to the final value."""
        settled = []
        debouncer = Debouncer(0.2, initial="", on_settle=settled.append)

        for value in ("r", "ri", "ric", "rick"):
            debouncer.push(value)
            await asyncio.sleep(0.01)

        assert settled == []

        await debouncer.wait_settled()

        assert settled == ["rick"]
        assert debouncer.value == "rick"

    @pytest.mark.asyncio
    async def test_each_push_restarts_window(self):
        """A push just before the deadline postpones settling."""
        debouncer = Debouncer(0.1, initial="")

        debouncer.push("a")
        await asyncio.sleep(0.06)
        debouncer.push("ab")
        await asyncio.sleep(0.06)

        assert debouncer.value == ""

        await asyncio.sleep(0.1)
        assert debouncer.value == "ab"

    @pytest.mark.asyncio
    async def test_unchanged_value_does_not_notify(self):
        """Settling back to the same value is not a change."""
        settled = []
        debouncer = Debouncer(0.01, initial="rick", on_settle=settled.append)

        debouncer.push("ric")
        debouncer.push("rick")
        await debouncer.wait_settled()

        assert settled == []
        assert debouncer.value == "rick"

    @pytest.mark.asyncio
    async def test_flush_settles_immediately(self):
        settled = []
        debouncer = Debouncer(10, initial="", on_settle=settled.append)

        debouncer.push("morty")
        debouncer.flush()

        assert debouncer.value == "morty"
        assert settled == ["morty"]
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_flush_without_pending_value(self):
        settled = []
        debouncer = Debouncer(0.01, initial="x", on_settle=settled.append)

        debouncer.flush()

        assert settled == []

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_value(self):
        """A cancelled timer never fires."""
        settled = []
        debouncer = Debouncer(0.02, initial="", on_settle=settled.append)

        debouncer.push("summer")
        debouncer.cancel()
        await asyncio.sleep(0.04)

        assert settled == []
        assert debouncer.value == ""
        assert debouncer.latest == ""

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self):
        seen = []
        debouncer = Debouncer(0, initial=0)
        unsubscribe = debouncer.subscribe(seen.append)

        debouncer.push(1)
        debouncer.flush()
        unsubscribe()
        debouncer.push(2)
        debouncer.flush()

        assert seen == [1]
        assert debouncer.value == 2
