"""Evidence collector — captures console output, network data and failure screenshots."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from playwright.async_api import Page

logger = logging.getLogger(__name__)


class EvidenceCollector:
    """Collects evidence for one scenario attempt."""

    def __init__(self, evidence_dir: Path):
        self.evidence_dir = evidence_dir
        self.evidence_dir.mkdir(parents=True, exist_ok=True)
        self.console_logs: list[str] = []
        self.console_errors: list[str] = []
        self.network_log: list[dict] = []

    def setup_listeners(self, page: Page) -> None:
        """Attach console and network listeners to a page."""
        page.on("console", self._on_console)
        page.on("pageerror", lambda exc: self.console_logs.append(f"[pageerror] {exc}"))
        page.on("response", lambda resp: self.network_log.append({
            "url": resp.url,
            "method": resp.request.method,
            "status": resp.status,
        }))
        page.on("requestfailed", self._on_request_failed)

    def _on_request_failed(self, request) -> None:
        self.network_log.append({
            "url": request.url,
            "method": request.method,
            "status": None,
            "failure": request.failure,
        })

    def _on_console(self, msg) -> None:
        self.console_logs.append(f"[{msg.type}] {msg.text}")
        if msg.type == "error":
            self.console_errors.append(msg.text)

    async def take_screenshot(self, page: Page, name: str = "failure.png") -> str:
        """Capture a screenshot and return the file path, or "" if capture failed."""
        path = self.evidence_dir / name
        try:
            await page.screenshot(path=str(path), full_page=False)
            return str(path)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            return ""

    def save_logs(self) -> str:
        """Persist collected logs; returns the console log path."""
        console_path = self.evidence_dir / "console.log"
        with open(console_path, "w") as f:
            f.write("\n".join(self.console_logs))

        network_path = self.evidence_dir / "network.json"
        with open(network_path, "w") as f:
            json.dump(self.network_log, f, indent=2)
        return str(console_path)
