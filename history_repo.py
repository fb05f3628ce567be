# history_repo.py
"""Append-bounded analysis history: newest first, capped at N entries."""
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from models_history import AnalysisRecord
from schemas import AnalysisResult, HistoryEntry, Policy, VerifiedClause
from settings import settings

EXCERPT_CHARS = 200


def _to_entry(r: AnalysisRecord) -> HistoryEntry:
    return HistoryEntry(
        id=r.id,
        created_at=r.created_at.isoformat() if r.created_at else "",
        contract_name=r.contract_name,
        contract_excerpt=r.contract_excerpt or "",
        policy_count=len(r.policies_json or []),
        flagged_clauses=[VerifiedClause.model_validate(c) for c in (r.flagged_clauses_json or [])],
    )


def record_analysis(
    db: Session,
    contract_text: str,
    policies: Sequence[Policy],
    result: AnalysisResult,
    *,
    contract_name: Optional[str] = None,
    timings: Optional[dict] = None,
    max_entries: Optional[int] = None,
) -> HistoryEntry:
    """Append one run, then drop everything older than the newest ``max_entries``."""
    cap = max_entries if max_entries is not None else settings.HISTORY_MAX_ENTRIES
    rec = AnalysisRecord(
        contract_name=contract_name,
        contract_excerpt=contract_text.strip()[:EXCERPT_CHARS],
        contract_length=len(contract_text),
        policies_json=[p.model_dump() for p in policies],
        flagged_clauses_json=[c.model_dump(by_alias=True) for c in result.flagged_clauses],
        timings_json=timings,
    )
    db.add(rec)
    db.flush()
    prune_history(db, max(1, cap))
    db.commit()
    db.refresh(rec)
    return _to_entry(rec)


def prune_history(db: Session, max_entries: int) -> int:
    keep = select(AnalysisRecord.id).order_by(AnalysisRecord.id.desc()).limit(max(0, max_entries))
    keep_ids = [row[0] for row in db.execute(keep).all()]
    stmt = delete(AnalysisRecord)
    if keep_ids:
        stmt = stmt.where(AnalysisRecord.id.not_in(keep_ids))
    res = db.execute(stmt)
    return res.rowcount or 0


def list_history(db: Session, limit: Optional[int] = None) -> List[HistoryEntry]:
    q = select(AnalysisRecord).order_by(AnalysisRecord.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return [_to_entry(r) for r in db.scalars(q).all()]


def count_history(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(AnalysisRecord)) or 0


def clear_history(db: Session) -> int:
    res = db.execute(delete(AnalysisRecord))
    db.commit()
    return res.rowcount or 0
