"""FastAPI application for FinFlow statement imports."""

import logging

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from finflow.config import settings
from finflow.models import ImportResult, ParseTextRequest, StatementHints
from finflow.parsers.validation import ValidationError, validate_file_contents
from finflow.services.dedup import compute_file_hash
from finflow.services.importer import import_pdf, import_statement

logger = logging.getLogger(__name__)

app = FastAPI(
    title="FinFlow",
    description="Bank statement import with LLM structuring and output repair",
    version="0.1.0",
)

# CORS for Next.js frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    logging.basicConfig(level=settings.log_level.upper())
    settings.log_config()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "llm_provider": settings.llm_provider}


@app.post("/statements/import", response_model=ImportResult)
async def import_statement_file(
    file: UploadFile = File(...),
    password: str | None = Form(None),
    bank_name: str | None = Form(None),
    account_type: str | None = Form(None),
    expected_transactions: int | None = Form(None),
):
    """Import transactions from an uploaded PDF bank statement."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")
    if not file.filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF statements are supported")

    contents = await file.read()
    try:
        validate_file_contents(contents)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Importing {file.filename} ({compute_file_hash(contents)[:8]}...)")
    hints = StatementHints(
        bank_name=bank_name,
        account_type=account_type,
        expected_transactions=expected_transactions,
    )
    outcome = await import_pdf(contents, password=password, hints=hints)

    if outcome.result is None:
        if outcome.extraction.requires_password:
            raise HTTPException(status_code=401, detail=outcome.extraction.error)
        raise HTTPException(status_code=422, detail=outcome.extraction.error)

    return outcome.result


@app.post("/statements/parse", response_model=ImportResult)
async def parse_statement_text(request: ParseTextRequest):
    """Import transactions from already-extracted statement text."""
    return await import_statement(request.raw_text, request.user_hints)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "finflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )
