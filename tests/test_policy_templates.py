import pytest

from policy_templates import (
    DEFAULT_TEMPLATE,
    TemplateNotFoundError,
    enabled_policies,
    get_template,
    list_templates,
    load_templates_yaml,
)
from schemas import Policy


def test_default_template_is_saas_standard():
    t = get_template()
    assert t.id == DEFAULT_TEMPLATE == "saas-standard"
    assert [p.number for p in t.policies] == ["POL-001", "POL-005", "POL-010", "POL-015", "POL-020"]


def test_builtin_sizes():
    sizes = {t.id: len(t.policies) for t in list_templates()}
    assert sizes == {"saas-standard": 5, "financial": 10, "healthcare": 12, "enterprise": 8, "minimal": 3}


def test_unknown_template():
    with pytest.raises(TemplateNotFoundError):
        get_template("does-not-exist")


def test_enabled_policies_filters():
    policies = [
        Policy(number="A", description="a"),
        Policy(number="B", description="b", enabled=False),
    ]
    assert [p.number for p in enabled_policies(policies)] == ["A"]


def test_load_templates_yaml(tmp_path):
    path = tmp_path / "templates.yaml"
    path.write_text(
        """
templates:
  - id: vendor-lite
    name: Vendor Lite
    policies:
      - {number: VEN-001, description: "Net 30 payment terms"}
      - {number: VEN-002, description: "Governing law is Delaware", enabled: false}
  - id: minimal
    name: Minimal (custom)
    policies:
      - {number: MIN-900, description: "Signed by both parties"}
""",
        encoding="utf-8",
    )
    custom = load_templates_yaml(path)
    assert [t.id for t in custom] == ["vendor-lite", "minimal"]
    assert custom[0].policies[1].enabled is False

    merged = list_templates(custom)
    assert [t.id for t in merged][-1] == "vendor-lite"
    assert get_template("minimal", custom).name == "Minimal (custom)"


def test_load_templates_yaml_single_mapping(tmp_path):
    path = tmp_path / "one.yaml"
    path.write_text("id: solo\npolicies:\n  - {number: S-1, description: one}\n", encoding="utf-8")
    [t] = load_templates_yaml(path)
    assert t.id == "solo" and t.name == "solo"


def test_load_templates_yaml_rejects_bad_policy(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("id: bad\npolicies:\n  - {number: B-1}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="number"):
        load_templates_yaml(path)
