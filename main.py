# main.py: local runner, analyzes .txt contracts against a policy template and writes reports per contract
"""
Usage:
  python main.py samples/                        # the bundled sample contracts
  python main.py contracts/                      # every .txt in the folder
  python main.py contract.txt --template financial --out outputs
  python main.py contracts/ --templates-file my_templates.yaml --template vendor-lite
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Tuple

from telemetry import go_quiet

from contract_analyzer import run_analysis
from ingest import EmptyFileError, UnsupportedFileError, ingest, ingest_bytes_to_text
from llm_factory import analyst_model, load_provider, verifier_model
from policy_templates import DEFAULT_TEMPLATE, enabled_policies, get_template, load_templates_yaml
from report import save_json, save_markdown
from schemas import Policy

log = logging.getLogger("contractguard.cli")


def safe_out_dir(outputs_dir: Path, raw_name: str) -> Path:
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", raw_name)[:50] or "contract"
    return outputs_dir / stem


def collect_texts(path: Path) -> dict:
    if path.is_dir():
        return ingest(path)
    return {path.stem: ingest_bytes_to_text(path.read_bytes(), path.name)}


def process_document(
    name: str,
    text: str,
    policies: List[dict],
    template_id: str,
    outputs_dir_str: str,
    verifier_workers: Optional[int] = None,
    config_path: str = "llm.yaml",
) -> Tuple[str, int, str]:
    """
    Analyze one contract and write its artifacts. Safe to run in a worker process.

    Returns (name, violation_count, out_dir_str).
    """
    out_dir = safe_out_dir(Path(outputs_dir_str), name)
    provider = load_provider(config_path)
    run = run_analysis(
        text,
        [Policy.model_validate(p) for p in policies],
        analyst=provider,
        analyst_model_id=analyst_model(config_path),
        verifier_model_id=verifier_model(config_path),
        max_workers=verifier_workers,
    )
    save_json(run, out_dir, name, template_id)
    save_markdown(run, out_dir, name, template_id)
    return name, len(run.result.flagged_clauses), str(out_dir)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Check contracts against a policy template with a two-stage LLM review.")
    p.add_argument("path", help="A .txt contract or a folder of .txt contracts")
    p.add_argument("--template", default=DEFAULT_TEMPLATE, help=f"Policy template id (default: {DEFAULT_TEMPLATE})")
    p.add_argument("--templates-file", default=None, help="YAML file with custom policy templates")
    p.add_argument("--out", default="outputs", help="Output folder (default: outputs)")
    p.add_argument("--config", default="llm.yaml", help="LLM provider config (default: llm.yaml)")
    p.add_argument("--workers", type=int, default=int(os.getenv("CG_MAX_WORKERS", "1")),
                   help="Contracts analyzed in parallel (env CG_MAX_WORKERS)")
    p.add_argument("--verifier-workers", type=int, default=None,
                   help="Concurrent verifier calls per contract (env CG_VERIFIER_MAX_WORKERS)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    go_quiet()
    args = build_parser().parse_args(argv)

    extra = load_templates_yaml(args.templates_file) if args.templates_file else None
    template = get_template(args.template, extra)
    policies = [p.model_dump() for p in enabled_policies(template.policies)]
    if not policies:
        log.error("Template %s has no enabled policies", template.id)
        return 2

    try:
        texts = collect_texts(Path(args.path))
    except (UnsupportedFileError, EmptyFileError) as e:
        log.error("%s: %s", args.path, e)
        return 2
    if not texts:
        log.error("No .txt contracts found in %s", args.path)
        return 2

    outputs_dir = Path(args.out)
    outputs_dir.mkdir(parents=True, exist_ok=True)
    log.info("Analyzing %d contract(s) against template %s (%d policies)", len(texts), template.id, len(policies))

    summary = {}
    failures = 0
    if args.workers <= 1:
        for name, text in texts.items():
            try:
                name, count, out_dir = process_document(
                    name, text, policies, template.id, str(outputs_dir), args.verifier_workers, args.config
                )
            except Exception as e:
                failures += 1
                log.error("Failed for %s: %s", name, e)
                continue
            summary[name] = count
            log.info("Finished %s: %d violation(s) → %s", name, count, out_dir)
    else:
        with ProcessPoolExecutor(max_workers=args.workers) as ex:
            futures = {
                ex.submit(process_document, name, text, policies, template.id, str(outputs_dir),
                          args.verifier_workers, args.config): name
                for name, text in texts.items()
            }
            for fut in as_completed(futures):
                try:
                    name, count, out_dir = fut.result()
                except Exception as e:
                    failures += 1
                    log.error("Worker failed for %s: %s", futures[fut], e)
                    continue
                summary[name] = count
                log.info("Finished %s: %d violation(s) → %s", name, count, out_dir)

    print(json.dumps({"template": template.id, "violations": summary}, ensure_ascii=False, indent=2))
    return 1 if failures else 0


if __name__ == "__main__":
    # Force local provider by default
    os.environ.setdefault("LLM_PROVIDER", "ollama")
    sys.exit(main())
