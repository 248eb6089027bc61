"""Tests for CancellationHandle."""

import asyncio

import pytest

from uploader.cancellation import CancellationHandle, ensure_handle
from uploader.exceptions import UploadCancelledError


@pytest.mark.asyncio
async def test_guard_returns_result():
    async def work():
        return 42

    assert await CancellationHandle().guard(work()) == 42


@pytest.mark.asyncio
async def test_cancel_aborts_guarded_work():
    token = CancellationHandle('a.bin')
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(token.guard(hang()))
    await started.wait()
    assert token.in_flight == 1

    assert token.cancel() is True

    with pytest.raises(UploadCancelledError, match='a.bin'):
        await task
    assert token.in_flight == 0


@pytest.mark.asyncio
async def test_guard_after_cancel_never_starts_work():
    token = CancellationHandle()
    token.cancel()
    ran = []

    async def work():
        ran.append(True)

    with pytest.raises(UploadCancelledError):
        await token.guard(work())
    assert ran == []


def test_cancel_is_idempotent():
    token = CancellationHandle()

    assert token.cancel() is True
    assert token.cancel() is False
    assert token.cancelled is True


@pytest.mark.asyncio
async def test_handles_are_independent():
    first = CancellationHandle('first')
    second = CancellationHandle('second')
    release = asyncio.Event()

    async def wait_for_release():
        await release.wait()
        return 'done'

    first_task = asyncio.create_task(first.guard(wait_for_release()))
    second_task = asyncio.create_task(second.guard(wait_for_release()))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    first.cancel()
    release.set()

    with pytest.raises(UploadCancelledError):
        await first_task
    assert await second_task == 'done'
    assert second.cancelled is False


@pytest.mark.asyncio
async def test_outer_cancellation_is_not_converted():
    """Cancelling the caller's task is plain CancelledError, not UploadCancelledError."""
    token = CancellationHandle()
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(token.guard(hang()))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert token.cancelled is False


@pytest.mark.asyncio
async def test_outer_cancellation_wins_over_fired_handle():
    token = CancellationHandle('b.bin')
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(token.guard(hang()))
    await started.wait()
    token.cancel()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled() is True
    assert token.in_flight == 0


@pytest.mark.asyncio
async def test_sleep_ends_early_on_cancel():
    token = CancellationHandle()
    task = asyncio.create_task(token.sleep(30))
    await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(UploadCancelledError):
        await asyncio.wait_for(task, timeout=2)


def test_raise_if_cancelled():
    token = CancellationHandle()
    token.raise_if_cancelled()
    token.cancel()

    with pytest.raises(UploadCancelledError):
        token.raise_if_cancelled()


def test_ensure_handle():
    token = CancellationHandle()
    assert ensure_handle(token) is token
    assert ensure_handle(None).cancelled is False
