"""Tests for per-attempt browsing contexts and their event subscriptions."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from scenario_harness.errors import NoDownloadObservedError
from scenario_harness.executor.context import BrowsingContext, DialogSubscription, DownloadListener


def _download(name: str, failure=None) -> AsyncMock:
    download = AsyncMock()
    download.suggested_filename = name
    download.path.return_value = f"/tmp/downloads/{name}"
    download.failure.return_value = failure
    return download


class TestDialogSubscription:
    @pytest.mark.asyncio
    async def test_accepts(self, mock_page):
        sub = DialogSubscription(mock_page, "accept")
        dialog = AsyncMock()
        dialog.message = "Sign in?"
        await sub._handle(dialog)
        dialog.accept.assert_awaited_once()
        dialog.dismiss.assert_not_awaited()
        assert sub.messages == ["Sign in?"]

    @pytest.mark.asyncio
    async def test_dismisses(self, mock_page):
        sub = DialogSubscription(mock_page, "dismiss")
        dialog = AsyncMock()
        await sub._handle(dialog)
        dialog.dismiss.assert_awaited_once()

    def test_unknown_policy(self, mock_page):
        with pytest.raises(ValueError):
            DialogSubscription(mock_page, "maybe")

    def test_attach_detach_same_handler(self, mock_page):
        sub = DialogSubscription(mock_page)
        sub.attach()
        sub.detach()
        attached = mock_page.on.call_args[0]
        detached = mock_page.remove_listener.call_args[0]
        assert attached == detached
        assert attached[0] == "dialog"


class TestDownloadListener:
    @pytest.mark.asyncio
    async def test_latest_returns_most_recent(self, mock_page):
        listener = DownloadListener(mock_page)
        first, second = _download("a.csv"), _download("b.csv")
        listener._handle(first)
        listener._handle(second)
        assert await listener.latest(100) is second

    @pytest.mark.asyncio
    async def test_waits_for_late_download(self, mock_page):
        listener = DownloadListener(mock_page)
        download = _download("export.csv")
        asyncio.get_running_loop().call_later(0.05, listener._handle, download)
        assert await listener.latest(2000) is download

    @pytest.mark.asyncio
    async def test_no_download(self, mock_page):
        listener = DownloadListener(mock_page)
        with pytest.raises(NoDownloadObservedError) as exc_info:
            await listener.latest(50)
        assert exc_info.value.timeout_ms == 50

    @pytest.mark.asyncio
    async def test_waits_for_download_to_finish(self, mock_page):
        finished = []
        download = _download("gmail_storage_analysis.csv")

        async def _slow_path():
            await asyncio.sleep(0.05)
            finished.append(True)
            return "/tmp/downloads/gmail_storage_analysis.csv"

        download.path.side_effect = _slow_path
        listener = DownloadListener(mock_page)
        listener._handle(download)
        assert await listener.latest(2000) is download
        assert finished == [True]

    @pytest.mark.asyncio
    async def test_unfinished_download_times_out(self, mock_page):
        download = _download("big.csv")

        async def _never_done():
            await asyncio.sleep(10)

        download.path.side_effect = _never_done
        listener = DownloadListener(mock_page)
        listener._handle(download)
        with pytest.raises(NoDownloadObservedError, match="No completed download"):
            await listener.latest(50)

    @pytest.mark.asyncio
    async def test_failed_download(self, mock_page):
        listener = DownloadListener(mock_page)
        listener._handle(_download("export.csv", failure="canceled"))
        with pytest.raises(NoDownloadObservedError, match="canceled"):
            await listener.latest(100)

    @pytest.mark.asyncio
    async def test_download_path_error(self, mock_page):
        download = _download("export.csv")
        download.path.side_effect = PlaywrightError("Download was canceled")
        listener = DownloadListener(mock_page)
        listener._handle(download)
        with pytest.raises(NoDownloadObservedError, match="export.csv failed"):
            await listener.latest(100)


class TestBrowsingContext:
    @pytest.mark.asyncio
    async def test_open_configures_context(self, run_config, mock_page, mock_context, tmp_path: Path):
        mock_context.new_page.return_value = mock_page
        browser = AsyncMock()
        browser.new_context.return_value = mock_context

        ctx = await BrowsingContext.open(browser, run_config, tmp_path / "attempt-1", record_video=True)

        kwargs = browser.new_context.call_args[1]
        assert kwargs["accept_downloads"] is True
        assert kwargs["viewport"] == {"width": 1280, "height": 720}
        assert kwargs["record_video_dir"] == str(tmp_path / "attempt-1" / "video")
        mock_context.set_default_timeout.assert_called_once_with(30000)
        assert ctx.page is mock_page
        assert ctx.collector.evidence_dir == tmp_path / "attempt-1"
        events = [c[0][0] for c in mock_page.on.call_args_list]
        assert "console" in events

    @pytest.mark.asyncio
    async def test_open_without_video(self, run_config, mock_page, mock_context, tmp_path: Path):
        mock_context.new_page.return_value = mock_page
        browser = AsyncMock()
        browser.new_context.return_value = mock_context
        await BrowsingContext.open(browser, run_config, tmp_path)
        assert "record_video_dir" not in browser.new_context.call_args[1]

    @pytest.mark.asyncio
    async def test_close_detaches_and_is_idempotent(self, browsing_context, mock_page, mock_context):
        browsing_context.register_dialog_handler("accept")
        browsing_context.register_download_listener()
        await browsing_context.close()
        await browsing_context.close()
        removed = [c[0][0] for c in mock_page.remove_listener.call_args_list]
        assert sorted(removed) == ["dialog", "download"]
        mock_context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_save_downloads(self, browsing_context):
        download = AsyncMock()
        download.suggested_filename = "gmail.csv"
        browsing_context.register_download_listener()._handle(download)
        paths = await browsing_context.save_downloads()
        expected = browsing_context.collector.evidence_dir / "downloads" / "gmail.csv"
        assert paths == [str(expected)]
        download.save_as.assert_awaited_once_with(str(expected))

    @pytest.mark.asyncio
    async def test_save_downloads_without_listener(self, browsing_context):
        assert await browsing_context.save_downloads() == []

    @pytest.mark.asyncio
    async def test_video_path(self, browsing_context, mock_page):
        assert await browsing_context.video_path() is None
        mock_page.video = AsyncMock()
        mock_page.video.path.return_value = "/tmp/v.webm"
        assert await browsing_context.video_path() == "/tmp/v.webm"
