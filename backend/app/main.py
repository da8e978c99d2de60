import traceback

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.auditor import Auditor
from app.database import AuditRepository
from app.dependencies import get_audits, get_auditor, get_payments, get_pdf_service
from app.errors import (
    ApiError,
    AuditExpired,
    AuditNotFound,
    MissingParameter,
    client_id_from_headers,
    internal_error_body,
    validate_required,
)
from app.models import CamelModel
from app.payments import PaymentService

app = FastAPI(title="Profile Audit API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    print(f"[api] {request.url.path} → {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=MissingParameter("Invalid request body").to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    print(f"[api] Unhandled error on {request.url.path}: {type(exc).__name__}: {exc}")
    traceback.print_exception(exc)
    return JSONResponse(status_code=500, content=internal_error_body())


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class CreateAuditRequest(CamelModel):
    profile_url: str | None = None
    user_email: str | None = None
    referral_code: str | None = None


class GeneratePdfRequest(CamelModel):
    audit_id: str | None = None


class CreatePaymentRequest(CamelModel):
    audit_id: str | None = None
    user_email: str | None = None
    referral_credits: int | None = 0


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/")
def root():
    return {"message": "Backend is running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/create-audit")
async def create_audit_endpoint(
    body: CreateAuditRequest,
    request: Request,
    auditor: Auditor = Depends(get_auditor),
):
    """Scrape a profile, generate its audit and store it (or return the cached one)."""
    client_id = client_id_from_headers(request.headers, request.client.host if request.client else None)
    data = await auditor.create_audit(
        body.profile_url,
        body.user_email,
        client_id,
        referral_code=body.referral_code,
    )
    return {"success": True, "data": data}


@app.get("/api/get-audit")
async def get_audit_endpoint(id: str | None = None, audits: AuditRepository = Depends(get_audits)):
    if not id:
        raise MissingParameter("Audit ID is required")

    audit = await audits.get(id)
    if not audit:
        raise AuditNotFound()
    # The store may still hold the record briefly after expiresAt
    if not audits.is_live(audit):
        raise AuditExpired()

    data = audit.to_json()
    if audits.pdf_expired(audit):
        data["pdfExpired"] = True
        data["pdfUrl"] = None
    return {"success": True, "data": data}


@app.post("/api/generate-pdf")
async def generate_pdf_endpoint(
    body: GeneratePdfRequest,
    audits: AuditRepository = Depends(get_audits),
    pdfs=Depends(get_pdf_service),
):
    validate_required({"auditId": body.audit_id}, ["auditId"])
    audit = await audits.get(body.audit_id)
    if not audit:
        raise AuditNotFound()

    pdf_url, size = await pdfs.generate(audit)
    return {"success": True, "pdfUrl": pdf_url, "size": size}


@app.post("/api/create-payment")
async def create_payment_endpoint(
    body: CreatePaymentRequest,
    payments: PaymentService = Depends(get_payments),
):
    return await payments.create_payment(body.audit_id, body.user_email, body.referral_credits)


@app.post("/api/webhook")
async def webhook_endpoint(request: Request, payments: PaymentService = Depends(get_payments)):
    """Lemon Squeezy webhook. The signature covers the raw body, so read it unparsed."""
    raw_body = await request.body()
    return await payments.handle_webhook(raw_body, request.headers.get("x-signature"))
