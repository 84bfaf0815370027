"""Lightweight MCP-aligned server exposing the budget engine over FastAPI."""

import math
import threading
from typing import Dict, List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from config import load_settings
from engine import BudgetSession
from errors import InvalidImportPayload
from insights import filter_transactions, top_merchants
from logging_setup import configure_logging, get_logger
from report import build_report
from storage import get_store

logger = get_logger("budget_coach.mcp_server")

app = FastAPI(title="Budget Coach MCP Server", version="0.1.0")

_session: Optional[BudgetSession] = None
_session_lock = threading.Lock()


def get_session() -> BudgetSession:
    global _session
    with _session_lock:
        if _session is None:
            settings = load_settings()
            configure_logging(settings.log_level)
            _session = BudgetSession(get_store(settings))
        return _session


class CategorizeRequest(BaseModel):
    description: str


class CategorizeResponse(BaseModel):
    category: str


@app.post("/tools/categorize_transaction", response_model=CategorizeResponse)
async def categorize_transaction(req: CategorizeRequest, session: BudgetSession = Depends(get_session)):
    return CategorizeResponse(category=session.categorize_description(req.description))


class ImportRequest(BaseModel):
    content: Optional[str] = Field(None, description="CSV text or a JSON array as text")
    records: Optional[List[dict]] = Field(None, description="Already-decoded transaction objects")
    filename: Optional[str] = None
    format: Optional[str] = Field(None, pattern="^(csv|json)$")


class ImportResponse(BaseModel):
    imported: int
    dropped: int


@app.post("/tools/import_transactions", response_model=ImportResponse)
def import_transactions(req: ImportRequest, session: BudgetSession = Depends(get_session)):
    payload = req.records if req.records is not None else req.content
    if payload is None:
        raise HTTPException(status_code=400, detail="Provide either content or records.")
    try:
        result = session.import_payload(payload, filename=req.filename, fmt=req.format)
    except InvalidImportPayload as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ImportResponse(imported=len(result.transactions), dropped=result.dropped)


class SummaryResponse(BaseModel):
    categories: List[str]
    totals: Dict[str, float]
    simulated_totals: Dict[str, float]
    using_simulation: bool
    total_spend: float
    budget_rows: List[dict]
    burn: dict
    highlights: dict


@app.get("/tools/spending_summary", response_model=SummaryResponse)
def spending_summary(session: BudgetSession = Depends(get_session)):
    state = session.derived
    return SummaryResponse(
        categories=state.categories,
        totals=state.totals,
        simulated_totals=state.simulated_totals,
        using_simulation=state.using_simulation,
        total_spend=state.total_spend,
        budget_rows=state.budget_rows,
        burn=state.burn,
        highlights=state.highlights,
    )


class Suggestion(BaseModel):
    kind: str
    category: Optional[str]
    title: str
    detail: str


@app.get("/tools/suggestions", response_model=List[Suggestion])
def suggestions(session: BudgetSession = Depends(get_session)):
    return session.derived.suggestions


class SubscriptionOut(BaseModel):
    merchant: str
    est_monthly: float
    occurrences: int


@app.get("/tools/subscriptions", response_model=List[SubscriptionOut])
def subscriptions(session: BudgetSession = Depends(get_session)):
    return session.derived.subscriptions


class SimulateRequest(BaseModel):
    reductions: Dict[str, float] = Field(default_factory=dict)
    using_simulation: Optional[bool] = None


class SimulateResponse(BaseModel):
    simulated_totals: Dict[str, float]
    using_simulation: bool
    suggestions: List[Suggestion]


@app.post("/tools/simulate", response_model=SimulateResponse)
def simulate_cuts(req: SimulateRequest, session: BudgetSession = Depends(get_session)):
    for category, pct in req.reductions.items():
        if not math.isfinite(pct) or not 0 <= pct <= 100:
            raise HTTPException(status_code=422, detail=f"Reduction for {category} must be between 0 and 100.")
    for category, pct in req.reductions.items():
        session.set_what_if(category, pct)
    if req.using_simulation is not None:
        session.set_using_simulation(req.using_simulation)
    state = session.derived
    return SimulateResponse(
        simulated_totals=state.simulated_totals,
        using_simulation=state.using_simulation,
        suggestions=state.suggestions,
    )


class BudgetRequest(BaseModel):
    monthly_total: Optional[float] = None
    per_category: Dict[str, float] = Field(default_factory=dict)


class BudgetResponse(BaseModel):
    monthly_total: float
    per_category: Dict[str, float]
    dormant: List[str]


@app.put("/tools/budgets", response_model=BudgetResponse)
def update_budgets(req: BudgetRequest, session: BudgetSession = Depends(get_session)):
    amounts = [(f"category {c!r}", a) for c, a in req.per_category.items()]
    if req.monthly_total is not None:
        amounts.append(("the month", req.monthly_total))
    for name, amount in amounts:
        if not math.isfinite(amount) or amount < 0:
            raise HTTPException(status_code=422, detail=f"Budget for {name} must be a finite, non-negative number.")
    if req.monthly_total is not None:
        session.set_monthly_budget(req.monthly_total)
    for category, amount in req.per_category.items():
        session.set_category_budget(category, amount)
    return BudgetResponse(
        monthly_total=session.budget.monthly_total,
        per_category=session.budget.per_category,
        dormant=session.dormant_entries()["budgets"],
    )


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1)


class CategoryResponse(BaseModel):
    added: bool
    categories: List[str]


@app.post("/tools/categories", response_model=CategoryResponse)
def add_category(req: CategoryRequest, session: BudgetSession = Depends(get_session)):
    try:
        added = session.add_category(req.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return CategoryResponse(added=added, categories=session.categories)


class RulesRequest(BaseModel):
    category: str
    keywords: Union[str, List[str]]


@app.get("/tools/rules")
def get_rules(session: BudgetSession = Depends(get_session)):
    return {"rules": [[category, list(keywords)] for category, keywords in session.rules_snapshot()]}


@app.put("/tools/rules")
def set_rules(req: RulesRequest, session: BudgetSession = Depends(get_session)):
    try:
        session.set_rule_keywords(req.category, req.keywords)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"category": req.category, "keywords": list(session.rules_snapshot().keywords_for(req.category))}


@app.get("/tools/transactions")
def list_transactions(
    category: Optional[str] = None,
    query: str = "",
    session: BudgetSession = Depends(get_session),
):
    rows = filter_transactions(session.derived.categorized, category=category, query=query)
    return {"transactions": [t.model_dump() for t in rows]}


@app.get("/tools/merchants/{category}")
def merchants(category: str, limit: int = 5, session: BudgetSession = Depends(get_session)):
    return {"category": category, "merchants": top_merchants(session.derived.merchant_breakdown, category, limit)}


@app.get("/tools/report")
def report(month: Optional[str] = None, session: BudgetSession = Depends(get_session)):
    return build_report(session.derived, month=month)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mcp_server:app", host="0.0.0.0", port=8001, reload=True)
