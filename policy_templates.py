# policy_templates.py
"""Built-in policy templates plus loading of custom templates from YAML."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from schemas import Policy, PolicyTemplate

log = logging.getLogger("contractguard.templates")

DEFAULT_TEMPLATE = "saas-standard"


def _template(id: str, name: str, description: str, policies: List[tuple]) -> PolicyTemplate:
    return PolicyTemplate(
        id=id,
        name=name,
        description=description,
        policies=[Policy(number=n, description=d) for n, d in policies],
    )


BUILTIN_TEMPLATES: List[PolicyTemplate] = [
    _template("saas-standard", "SaaS Standard", "Standard compliance for software-as-a-service agreements", [
        ("POL-001", "Termination notice must be at least 90 days (90+ days required)"),
        ("POL-005", "All payments must be in USD"),
        ("POL-010", "Liability cap cannot exceed contract value"),
        ("POL-015", "Data processing only in approved US regions"),
        ("POL-020", "Contract must explicitly guarantee annual audit rights (not just 'upon request')"),
    ]),
    _template("financial", "Financial Services", "Enhanced compliance for financial institutions", [
        ("FIN-001", "Minimum 180 days termination notice required"),
        ("FIN-002", "All transactions must be in USD"),
        ("FIN-003", "Maximum liability limited to 1x annual fees"),
        ("FIN-004", "SOC 2 Type II certification required"),
        ("FIN-005", "Data must remain in US jurisdiction"),
        ("FIN-006", "Quarterly audit rights required"),
        ("FIN-007", "Encryption at rest and in transit mandatory"),
        ("FIN-008", "24/7 incident response required"),
        ("FIN-009", "Business continuity plan documentation required"),
        ("FIN-010", "Insurance coverage minimum $5M required"),
    ]),
    _template("healthcare", "Healthcare (HIPAA)", "HIPAA-compliant healthcare data processing", [
        ("HIP-001", "HIPAA Business Associate Agreement required"),
        ("HIP-002", "PHI encryption required (AES-256)"),
        ("HIP-003", "Minimum 120 days termination notice"),
        ("HIP-004", "Data processing restricted to HIPAA-compliant US facilities"),
        ("HIP-005", "Breach notification within 24 hours"),
        ("HIP-006", "Annual HIPAA compliance audit required"),
        ("HIP-007", "Access logs must be maintained for 7 years"),
        ("HIP-008", "Role-based access control (RBAC) required"),
        ("HIP-009", "Data backup and disaster recovery plan required"),
        ("HIP-010", "Staff HIPAA training documentation required"),
        ("HIP-011", "Subcontractor agreements must include HIPAA terms"),
        ("HIP-012", "Right to data deletion upon termination"),
    ]),
    _template("enterprise", "Enterprise", "Comprehensive enterprise-grade requirements", [
        ("ENT-001", "Minimum 90 days termination notice"),
        ("ENT-002", "Currency must be USD or specified alternative"),
        ("ENT-003", "Liability cap aligned with contract value"),
        ("ENT-004", "Service Level Agreement (SLA) 99.9% uptime"),
        ("ENT-005", "Data residency compliance required"),
        ("ENT-006", "Security audit rights (annual minimum)"),
        ("ENT-007", "Indemnification for IP infringement"),
        ("ENT-008", "Dedicated support channel required"),
    ]),
    _template("minimal", "Minimal", "Basic compliance for simple agreements", [
        ("MIN-001", "Termination notice required (30+ days)"),
        ("MIN-002", "Payment currency specified"),
        ("MIN-003", "Liability terms clearly defined"),
    ]),
]


class TemplateNotFoundError(KeyError):
    pass


def list_templates(extra: Optional[Iterable[PolicyTemplate]] = None) -> List[PolicyTemplate]:
    """Built-ins first; a custom template with the same id replaces the built-in in place."""
    by_id: Dict[str, PolicyTemplate] = {t.id: t for t in BUILTIN_TEMPLATES}
    for t in extra or ():
        by_id[t.id] = t
    return list(by_id.values())


def get_template(template_id: Optional[str] = None, extra: Optional[Iterable[PolicyTemplate]] = None) -> PolicyTemplate:
    template_id = template_id or DEFAULT_TEMPLATE
    for t in list_templates(extra):
        if t.id == template_id:
            return t
    raise TemplateNotFoundError(template_id)


def enabled_policies(policies: Iterable[Policy]) -> List[Policy]:
    return [p for p in policies if p.enabled]


def _parse_template(raw: dict, source: str) -> PolicyTemplate:
    if "id" not in raw:
        raise ValueError(f"{source}: template is missing 'id'")
    policies = []
    for i, p in enumerate(raw.get("policies", []) or []):
        if not isinstance(p, dict) or "number" not in p or "description" not in p:
            raise ValueError(f"{source}: policy #{i + 1} of '{raw['id']}' needs 'number' and 'description'")
        policies.append(Policy(
            number=str(p["number"]),
            description=str(p["description"]),
            enabled=bool(p.get("enabled", True)),
        ))
    return PolicyTemplate(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        description=str(raw.get("description") or ""),
        policies=policies,
    )


def load_templates_yaml(path: str | Path) -> List[PolicyTemplate]:
    """
    Read custom templates from a YAML file.

    The file holds either a single template mapping or a ``templates:`` list:

        templates:
          - id: vendor-lite
            name: Vendor Lite
            policies:
              - {number: VEN-001, description: "Net 30 payment terms"}

    Raises:
        ValueError: A template or policy entry is malformed
    """
    path = Path(path)
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if isinstance(raw, dict) and "templates" in raw:
        items = raw["templates"] or []
    elif isinstance(raw, list):
        items = raw
    else:
        items = [raw]

    templates = [_parse_template(item, path.name) for item in items if isinstance(item, dict)]
    log.info("Loaded %d custom template(s) from %s", len(templates), path)
    return templates
