"""HTML report generator — a self-contained page with one card per (scenario, browser)."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from scenario_harness.models.result import AttemptRecord, ExecutionResult, RunResult, StepResult

logger = logging.getLogger(__name__)

_OUTCOME_COLORS = {"passed": "#22c55e", "failed": "#ef4444", "retried": "#eab308"}


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        data = base64.b64encode(p.read_bytes()).decode()
        return f"data:image/png;base64,{data}"
    except OSError:
        return ""


def _step_icon(status: str) -> str:
    if status == "pass":
        return '<span class="step-icon pass-icon">&#10003;</span>'
    return '<span class="step-icon fail-icon">&#10007;</span>'


def _build_step_row(sr: StepResult) -> str:
    selector_html = f"<code>{html.escape(sr.selector)}</code>" if sr.selector else ""
    value_html = f'<span class="step-value">"{html.escape(sr.value)}"</span>' if sr.value else ""
    error_html = ""
    if sr.error_message:
        error_html = f'<div class="step-error">{html.escape(sr.error_message[:300])}</div>'
    return f'''
    <div class="step-row step-{sr.status}">
      {_step_icon(sr.status)}
      <div class="step-content">
        <span class="step-action">{html.escape(sr.step_type)}</span>
        {selector_html} {value_html}
        <span class="step-desc">{html.escape(sr.description)}</span>
        {error_html}
      </div>
    </div>'''


def _build_attempt(record: AttemptRecord) -> str:
    status = "passed" if record.passed else "failed"
    out = f'<div class="section"><h4>Attempt {record.attempt} &middot; {status} &middot; {record.duration_seconds:.1f}s</h4>'
    if record.failure_reason:
        out += f'<div class="failure-banner"><strong>{html.escape(record.error_type or "Failure")}:</strong> {html.escape(record.failure_reason)}</div>'
    for sr in record.step_results + record.wait_results:
        out += _build_step_row(sr)
    for ar in record.assertion_results:
        detail = ""
        if ar.expected_value is not None:
            detail += f' <span class="assert-expected">expected: {html.escape(ar.expected_value)}</span>'
        if ar.actual_value is not None:
            detail += f' <span class="assert-expected">actual: {html.escape(ar.actual_value)}</span>'
        if ar.selector:
            detail += f' <code>{html.escape(ar.selector)}</code>'
        row_class = "assert-pass" if ar.passed else "assert-fail"
        out += f'''
        <div class="assert-row {row_class}">
          {_step_icon("pass" if ar.passed else "fail")}
          <div class="step-content">{html.escape(ar.description or ar.assertion_type)}{detail}
            {"<div class='step-error'>" + html.escape(ar.message) + "</div>" if ar.message and not ar.passed else ""}
          </div>
        </div>'''

    artifacts = record.artifacts
    if artifacts.screenshot_path:
        data_uri = _embed_image(artifacts.screenshot_path)
        if data_uri:
            out += f'<img class="shot" src="{data_uri}" alt="failure screenshot"/>'
    if artifacts.video_path:
        video_abs = html.escape(str(Path(artifacts.video_path).resolve()))
        out += f'<video controls preload="metadata"><source src="file://{video_abs}" type="video/webm"></video>'
    for path in artifacts.download_paths:
        out += f'<div class="artifact">download: <code>{html.escape(path)}</code></div>'
    out += "</div>"
    return out


def _build_result_card(r: ExecutionResult) -> str:
    color = _OUTCOME_COLORS.get(r.outcome, "#94a3b8")
    card = f'''
    <div class="test-card">
      <div class="test-header" style="border-left: 4px solid {color};" onclick="this.parentElement.classList.toggle('expanded')">
        <span class="badge {r.outcome}">{r.outcome.upper()}</span>
        <strong>{html.escape(r.scenario_name)}</strong>
        <span class="badge engine">{html.escape(r.target.name)}</span>
        <span class="test-meta">{r.attempts} attempt(s) &middot; {r.duration_seconds:.1f}s</span>
      </div>
      <div class="test-body">'''
    if r.failure_reason:
        card += f'<div class="failure-banner"><strong>Failure:</strong> {html.escape(r.failure_reason)}</div>'
    for record in r.attempt_records:
        card += _build_attempt(record)
    card += "</div></div>"
    return card


def generate_html_report(run_result: RunResult, output_path: Path) -> None:
    """Write a self-contained HTML report."""
    cards = "".join(_build_result_card(r) for r in run_result.results)
    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{html.escape(run_result.suite_name)} &mdash; {html.escape(run_result.run_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --retried: #eab308; --bg: #f8fafc; --border: #e2e8f0; --muted: #64748b; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: #1e293b; padding: 1.5rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(4, 1fr); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: white; border-radius: 8px; padding: 1rem; text-align: center; box-shadow: 0 1px 3px rgba(0,0,0,0.08); }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat.passed .value {{ color: var(--pass); }}
  .stat.failed .value {{ color: var(--fail); }}
  .stat.retried .value {{ color: var(--retried); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; }}
  .badge.passed {{ background: #dcfce7; color: #166534; }}
  .badge.failed {{ background: #fecaca; color: #991b1b; }}
  .badge.retried {{ background: #fef9c3; color: #854d0e; }}
  .badge.engine {{ background: #dbeafe; color: #1e40af; }}
  .test-card {{ background: white; border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); }}
  .test-header {{ padding: 0.7rem 1rem; cursor: pointer; display: flex; gap: 0.5rem; align-items: center; }}
  .test-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .test-body {{ display: none; padding: 0 1rem 1rem 1rem; }}
  .test-card.expanded .test-body {{ display: block; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem; margin: 0.5rem 0; font-size: 0.88rem; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); border-bottom: 1px solid var(--border); }}
  .step-row, .assert-row {{ display: flex; gap: 0.5rem; padding: 0.3rem 0; font-size: 0.85rem; }}
  .step-icon {{ width: 18px; height: 18px; border-radius: 50%; text-align: center; font-size: 0.7rem; }}
  .pass-icon {{ background: #dcfce7; color: #166534; }}
  .fail-icon {{ background: #fecaca; color: #991b1b; }}
  .step-action {{ background: #f1f5f9; padding: 0.1rem 0.4rem; font-family: monospace; }}
  .step-error {{ color: var(--fail); font-size: 0.82rem; }}
  .assert-expected, .step-desc {{ color: var(--muted); font-size: 0.8rem; }}
  .shot {{ max-width: 640px; border: 1px solid var(--border); border-radius: 6px; margin-top: 0.5rem; }}
  video {{ max-width: 640px; display: block; margin-top: 0.5rem; }}
</style>
</head>
<body>
  <h1>{html.escape(run_result.suite_name)}</h1>
  <p class="test-meta">Run: {html.escape(run_result.run_id)} &middot; {html.escape(run_result.base_url)} &middot; {html.escape(run_result.started_at)} &middot; {run_result.duration_seconds}s</p>
  <div class="summary">
    <div class="stat"><div class="value">{run_result.total}</div>Total</div>
    <div class="stat passed"><div class="value">{run_result.passed}</div>Passed</div>
    <div class="stat retried"><div class="value">{run_result.retried}</div>Flaky</div>
    <div class="stat failed"><div class="value">{run_result.failed}</div>Failed</div>
  </div>
  {cards}
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
