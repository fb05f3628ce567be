# models_history.py
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db import Base


class AnalysisRecord(Base):
    __tablename__ = "analysis_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    contract_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contract_excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contract_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    policies_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)          # list[Policy]
    flagged_clauses_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)   # list[VerifiedClause]
    timings_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
