import threading

import pytest
from sqlalchemy.orm import sessionmaker

from db import init_db, make_engine
from llm_provider import ChatProvider
from schemas import Policy

NON_COMPLIANT_CONTRACT = """SERVICE AGREEMENT

This Service Agreement is dated December 15, 2024, between GlobalTech Ltd. and Client Company Inc.

TERMINATION
Either party may terminate this agreement with thirty (30) days written notice.

PAYMENT
All payments shall be made in Euros (EUR). Invoices are due upon receipt.

AUDIT
The Client may request a review of services upon reasonable request, subject to availability.
"""

COMPLIANT_CONTRACT = """SOFTWARE LICENSE AGREEMENT

TERMINATION NOTICE
Either party may terminate this Agreement with one hundred twenty (120) days written notice to the other party.

PAYMENT TERMS
All fees under this Agreement shall be paid in United States Dollars (USD).

AUDIT RIGHTS
Licensee shall have the right to conduct annual audits of Licensor's compliance with this Agreement.
"""

TERMINATION = Policy(number="POL-001", description="Minimum 90 days termination notice required")
CURRENCY = Policy(number="POL-005", description="All payments must be in USD")
AUDIT = Policy(number="POL-020", description="Contract must explicitly guarantee annual audit rights")

COMPLIANT_REPLY = "<think>The contract satisfies the requirement.</think><score>no</score>"
VIOLATION_REPLY = "<think>The contract falls short of the requirement.</think><score>yes</score>"


class FakeChatProvider(ChatProvider):
    """
    Scripted backend. The analyst call gets ``analyst_reply``; each verifier call
    is answered from ``verdicts`` keyed by policy description. Exceptions in the
    script are raised instead of returned.
    """

    def __init__(self, analyst_reply="[]", verdicts=None, default_verdict=COMPLIANT_REPLY):
        self.analyst_reply = analyst_reply
        self.verdicts = dict(verdicts or {})
        self.default_verdict = default_verdict
        self.calls = []
        self._lock = threading.Lock()

    @staticmethod
    def _as_dict(m):
        return m.model_dump() if hasattr(m, "model_dump") else dict(m)

    def chat(self, *, model, messages, temperature):
        messages = [self._as_dict(m) for m in messages]
        with self._lock:
            self.calls.append({"model": model, "messages": messages, "temperature": temperature})

        system, user = messages[0]["content"], messages[-1]["content"]
        if system.startswith("You are a contract compliance analyst"):
            reply = self.analyst_reply
        else:
            first_line = user.splitlines()[0]
            description = first_line.replace("POLICY REQUIREMENT:", "", 1).strip()
            reply = self.verdicts.get(description, self.default_verdict)

        if isinstance(reply, BaseException):
            raise reply
        return reply

    def verifier_calls(self):
        return [c for c in self.calls if not c["messages"][0]["content"].startswith("You are a contract compliance analyst")]


@pytest.fixture
def fake_provider_cls():
    return FakeChatProvider


@pytest.fixture
def policies():
    return [TERMINATION, CURRENCY, AUDIT]


@pytest.fixture
def db_session():
    engine = make_engine("sqlite:///:memory:")
    init_db(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()
