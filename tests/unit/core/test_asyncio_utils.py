"""Unit tests for asyncio task helpers."""

import asyncio
from unittest.mock import MagicMock

import pytest

from nmea_relay.core.asyncio_utils import cancel_and_wait, create_logged_task
from nmea_relay.core.logging_utils import StructuredLogger


class TestCreateLoggedTask:
    @pytest.mark.asyncio
    async def test_exception_is_logged(self):
        logger = MagicMock(spec=StructuredLogger)

        async def boom():
            raise RuntimeError("read failed")

        task = create_logged_task(boom(), logger=logger, context="reader")
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)

        logger.error.assert_called_once()
        assert "reader" in logger.error.call_args.args

    @pytest.mark.asyncio
    async def test_pending_set_tracks_task(self):
        pending = set()
        gate = asyncio.Event()

        task = create_logged_task(gate.wait(), pending=pending, context="gate")
        assert task in pending
        assert task.get_name() == "gate"

        gate.set()
        await task
        await asyncio.sleep(0)
        assert task not in pending

    @pytest.mark.asyncio
    async def test_cancelled_task_is_not_logged(self):
        logger = MagicMock(spec=StructuredLogger)
        task = create_logged_task(asyncio.sleep(10), logger=logger)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)
        logger.error.assert_not_called()


class TestCancelAndWait:
    @pytest.mark.asyncio
    async def test_cancels_and_waits(self):
        task = asyncio.create_task(asyncio.sleep(10))
        assert await cancel_and_wait([task], timeout=1.0) == set()
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_returns_tasks_that_ignore_cancellation(self):
        release = asyncio.Event()

        async def stubborn():
            while not release.is_set():
                try:
                    await release.wait()
                except asyncio.CancelledError:
                    continue

        task = asyncio.create_task(stubborn())
        await asyncio.sleep(0)
        assert await cancel_and_wait([task], timeout=0.05) == {task}

        release.set()
        await task

    @pytest.mark.asyncio
    async def test_done_tasks_are_skipped(self):
        task = asyncio.create_task(asyncio.sleep(0))
        await task
        assert await cancel_and_wait([task], timeout=0.1) == set()
