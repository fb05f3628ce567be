# report.py
import json
from pathlib import Path
from typing import Optional

from contract_analyzer import AnalysisRun

QUOTE_MAX = 420


def _quote(text: str) -> str:
    q = (text or "").replace("\r", " ").replace("\n", " ").strip()
    if len(q) > QUOTE_MAX:
        q = q[:QUOTE_MAX] + "…"
    return q


def render_markdown(run: AnalysisRun, document_name: str, template_id: Optional[str] = None) -> str:
    clauses = run.result.flagged_clauses
    lines = []
    lines.append(f"# Compliance Report — {document_name}")
    lines.append("")
    lines.append(f"**Overall:** {'✅ PASS' if not clauses else '❌ FAIL'}")
    if template_id:
        lines.append(f"**Policy template:** {template_id}")
    lines.append("")

    stats = run.stats
    lines.append(
        f"Checked {stats['checked']} policies: {stats['violations']} violation(s), "
        f"{stats['compliant']} compliant, {stats['errors']} not checked (verifier error)."
    )
    lines.append("")

    for c in clauses:
        lines.append(f"## {c.policy_number}")
        lines.append(f"- **Violation:** {c.violation}")
        lines.append(f"- **Clause:** \"{_quote(c.text)}\"")
        lines.append("")

    failed = [ch for ch in run.checks if ch.failed]
    if failed:
        lines.append("## Not checked")
        for ch in failed:
            lines.append(f"- {ch.policy.number}: {ch.error}")
        lines.append("")

    lines.append("---")
    lines.append("")
    lines.append(
        f"**Timing:** analyst {run.timings.get('analyst_s', 0):.2f}s, "
        f"verifier {run.timings.get('verifier_s', 0):.2f}s"
    )
    lines.append("")
    return "\n".join(lines)


def render_json(run: AnalysisRun, document_name: str, template_id: Optional[str] = None) -> dict:
    return {
        "documentName": document_name,
        "template": template_id,
        **run.result.model_dump(by_alias=True),
        "candidates": [c.model_dump(by_alias=True) for c in run.candidates],
        "checks": [
            {
                "policyNumber": ch.policy.number,
                "isViolation": ch.judgment.is_violation if ch.judgment else None,
                "grammar": ch.judgment.grammar if ch.judgment else None,
                "reasoning": ch.judgment.reasoning if ch.judgment else "",
                "elapsed": round(ch.elapsed, 3),
                "error": ch.error,
            }
            for ch in run.checks
        ],
        "stats": run.stats,
        "timings": run.timings,
    }


def save_markdown(run: AnalysisRun, out_dir: Path, document_name: str, template_id: Optional[str] = None):
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / "violations.md").write_text(render_markdown(run, document_name, template_id), encoding="utf-8")


def save_json(run: AnalysisRun, out_dir: Path, document_name: str, template_id: Optional[str] = None):
    out_dir.mkdir(parents=True, exist_ok=True)
    payload = render_json(run, document_name, template_id)
    (out_dir / "report.json").write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
