"""Browsing context — one isolated browser context and page per scenario attempt.

Event subscriptions (dialogs, downloads) live on the context object and die
with it, so nothing registered in one attempt can observe another.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Dialog, Download, Page
from playwright.async_api import Error as PlaywrightError

from scenario_harness.errors import NoDownloadObservedError
from scenario_harness.models.config import RunConfiguration

from .evidence_collector import EvidenceCollector

logger = logging.getLogger(__name__)


class DialogSubscription:
    """Answers every native dialog on a page with a fixed policy."""

    def __init__(self, page: Page, policy: str = "accept"):
        if policy not in ("accept", "dismiss"):
            raise ValueError(f"Unknown dialog policy: {policy}")
        self.page = page
        self.policy = policy
        self.messages: list[str] = []
        self._handler = self._handle

    def attach(self) -> None:
        self.page.on("dialog", self._handler)

    def detach(self) -> None:
        self.page.remove_listener("dialog", self._handler)

    async def _handle(self, dialog: Dialog) -> None:
        self.messages.append(dialog.message)
        logger.debug("Dialog (%s) %r -> %s", dialog.type, dialog.message, self.policy)
        if self.policy == "accept":
            await dialog.accept()
        else:
            await dialog.dismiss()


class DownloadListener:
    """Records download events so assertions can await the latest one."""

    def __init__(self, page: Page):
        self.page = page
        self.downloads: list[Download] = []
        self._arrived = asyncio.Event()
        self._handler = self._handle

    def attach(self) -> None:
        self.page.on("download", self._handler)

    def detach(self) -> None:
        self.page.remove_listener("download", self._handler)

    def _handle(self, download: Download) -> None:
        logger.debug("Download started: %s", download.suggested_filename)
        self.downloads.append(download)
        self._arrived.set()

    async def latest(self, timeout_ms: int) -> Download:
        """Return the most recent download once it has completed.

        Waits up to ``timeout_ms`` in total for a download to start and finish.

        Raises:
            NoDownloadObservedError: nothing was downloaded in time, or the
                download failed.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        try:
            if not self.downloads:
                await asyncio.wait_for(self._arrived.wait(), timeout=timeout_ms / 1000)
            download = self.downloads[-1]
            await asyncio.wait_for(download.path(), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            raise NoDownloadObservedError(
                f"No completed download within {timeout_ms}ms", timeout_ms=timeout_ms
            ) from None
        except PlaywrightError as e:
            raise NoDownloadObservedError(
                f"Download {download.suggested_filename} failed: {e.message}", timeout_ms=timeout_ms
            ) from e
        failure = await download.failure()
        if failure:
            raise NoDownloadObservedError(
                f"Download {download.suggested_filename} failed: {failure}", timeout_ms=timeout_ms
            )
        return download


class BrowsingContext:
    """Explicit per-attempt browser state passed to every step evaluator."""

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        collector: EvidenceCollector,
        config: RunConfiguration,
    ):
        self.context = context
        self.page = page
        self.collector = collector
        self.config = config
        self.dialog_subscriptions: list[DialogSubscription] = []
        self.download_listener: Optional[DownloadListener] = None
        self._closed = False

    @classmethod
    async def open(
        cls,
        browser: Browser,
        config: RunConfiguration,
        artifact_dir: Path,
        record_video: bool = False,
    ) -> "BrowsingContext":
        viewport = {"width": config.viewport.width, "height": config.viewport.height}
        context_kwargs: dict = {
            "viewport": viewport,
            "accept_downloads": True,
            "locale": "en-US",
        }
        if record_video:
            context_kwargs["record_video_dir"] = str(artifact_dir / "video")
            context_kwargs["record_video_size"] = viewport

        context = await browser.new_context(**context_kwargs)
        context.set_default_timeout(config.default_timeout_ms)
        page = await context.new_page()
        collector = EvidenceCollector(artifact_dir)
        collector.setup_listeners(page)
        return cls(context, page, collector, config)

    def register_dialog_handler(self, policy: str = "accept") -> DialogSubscription:
        sub = DialogSubscription(self.page, policy)
        sub.attach()
        self.dialog_subscriptions.append(sub)
        return sub

    def register_download_listener(self) -> DownloadListener:
        if self.download_listener is None:
            self.download_listener = DownloadListener(self.page)
            self.download_listener.attach()
        return self.download_listener

    async def save_downloads(self) -> list[str]:
        """Persist observed downloads into the artifact folder; returns saved paths."""
        if not self.download_listener:
            return []
        saved = []
        for download in self.download_listener.downloads:
            target = self.collector.evidence_dir / "downloads" / download.suggested_filename
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                await download.save_as(str(target))
                saved.append(str(target))
            except Exception as e:
                logger.warning("Could not save download %s: %s", download.suggested_filename, e)
        return saved

    async def video_path(self) -> Optional[str]:
        video = self.page.video
        if video is None:
            return None
        return str(await video.path())

    async def close(self) -> None:
        """Detach subscriptions and close the context. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for sub in self.dialog_subscriptions:
            sub.detach()
        if self.download_listener:
            self.download_listener.detach()
        await self.context.close()
