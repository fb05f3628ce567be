# app.py
from __future__ import annotations
from typing import Callable, List, Optional
import logging
from fastapi import FastAPI, UploadFile, File, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telemetry import go_quiet
from settings import settings

# --- DB session dependency ---
from db import SessionLocal, init_db

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --- Domain imports ---
from contract_analyzer import AnalysisInputError, run_analysis, validate_request
from history_repo import clear_history, list_history, record_analysis
from ingest import EmptyFileError, UnsupportedFileError, ingest_bytes_to_text
from llm_factory import load_provider
from llm_provider import ChatProvider
from policy_templates import TemplateNotFoundError, enabled_policies, get_template, list_templates, load_templates_yaml
from schemas import AnalysisResult, AnalyzeRequest, HistoryEntry, ParsedFile, PolicyTemplate

log = logging.getLogger("contractguard.api")

app = FastAPI(title="ContractGuard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_provider_loader() -> Callable[[], ChatProvider]:
    # Called inside the route so config errors get the JSON error body
    return load_provider


def get_custom_templates() -> List[PolicyTemplate]:
    if not settings.POLICY_TEMPLATES_FILE:
        return []
    return load_templates_yaml(settings.POLICY_TEMPLATES_FILE)


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


# --------- Startup ---------
@app.on_event("startup")
def _startup():
    go_quiet()
    init_db()
    log.info("ContractGuard API ready (provider=%s, analyst=%s, guardian=%s)",
             settings.LLM_PROVIDER, settings.ANALYST_MODEL, settings.GUARDIAN_MODEL)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "provider": settings.LLM_PROVIDER,
        "analystModel": settings.ANALYST_MODEL,
        "guardianModel": settings.GUARDIAN_MODEL,
    }


# --------- Analysis ---------
@app.post("/analyze-contract", response_model=AnalysisResult)
def analyze_contract_route(
    req: AnalyzeRequest,
    provider_loader: Callable[[], ChatProvider] = Depends(get_provider_loader),
    db: Session = Depends(get_db),
):
    try:
        policies = req.policies
        if not policies and req.template_id:
            policies = get_template(req.template_id, get_custom_templates()).policies
        policies = enabled_policies(policies)
        validate_request(req.contract_text, policies)
        run = run_analysis(req.contract_text, policies, analyst=provider_loader())
    except TemplateNotFoundError:
        return _error(400, f"Unknown policy template: {req.template_id}")
    except AnalysisInputError as e:
        return _error(400, str(e))
    except Exception as e:
        log.exception("Error analyzing contract")
        return _error(500, str(e) or "Failed to analyze contract")

    if settings.get_history_enabled():
        try:
            record_analysis(
                db, req.contract_text, policies, run.result,
                contract_name=req.contract_name, timings=run.timings,
            )
        except SQLAlchemyError as e:
            db.rollback()
            log.warning("Could not record analysis history: %s", e)

    return run.result


# --------- File ingestion ---------
@app.post("/parse-file", response_model=ParsedFile)
async def parse_file(file: Optional[UploadFile] = File(None)):
    if file is None:
        return _error(400, "No file provided")
    data = await file.read()
    try:
        text = ingest_bytes_to_text(data, file.filename, file.content_type)
    except (UnsupportedFileError, EmptyFileError) as e:
        return _error(400, str(e))
    return ParsedFile(text=text)


# --------- Policy templates ---------
@app.get("/policy-templates", response_model=List[PolicyTemplate])
def get_policy_templates(custom_templates: List[PolicyTemplate] = Depends(get_custom_templates)):
    return list_templates(custom_templates)


@app.get("/policy-templates/{template_id}", response_model=PolicyTemplate)
def read_policy_template(template_id: str, custom_templates: List[PolicyTemplate] = Depends(get_custom_templates)):
    try:
        return get_template(template_id, custom_templates)
    except TemplateNotFoundError:
        raise HTTPException(404, f"Policy template {template_id} not found")


# --------- History ---------
@app.get("/history", response_model=List[HistoryEntry])
def get_history(limit: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    return list_history(db, limit=limit)


@app.delete("/history")
def delete_history(db: Session = Depends(get_db)):
    return {"deleted": clear_history(db)}
