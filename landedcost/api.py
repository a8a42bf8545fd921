from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal
import io
import logging
import pandas as pd

from landedcost.database import get_db, ping
from landedcost.date_range import DateWindow
from landedcost.engine import LandedCostEngine, LandedCostRequest
from landedcost.errors import (
    EngineError,
    MissingRequiredField,
    RequestValidationError,
    UnresolvableCountry,
    InvalidHsCodeLength,
)
from landedcost.normalizer import normalize_code, normalize_hs_code, parse_flexible_date
from landedcost.rate_lookup import Lane, RateLookupEngine
from landedcost.rate_store import SqlRateStore
from landedcost.schemas import (
    LandedCostRequestSchema, LandedCostResponse, ErrorResponse,
    CountrySchema, HsCodeSchema, AgreementSchema,
    TariffListItem, TariffLookupResponse, HealthResponse,
)
from landedcost.settings import EngineSettings, load_settings
from landedcost.tariff_utils import HS_CODE_LENGTH, is_blank

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Read once at startup; an invalid policy value stops the app here
SETTINGS = load_settings()

app = FastAPI(
    title="Landed Cost API",
    description="Duty, tax and landed cost quotes from versioned tariff tables",
    version=API_VERSION
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Dependencies
def get_settings() -> EngineSettings:
    return SETTINGS

def get_today() -> date:
    return date.today()

def get_store(db: Session = Depends(get_db)) -> SqlRateStore:
    return SqlRateStore(db)

def get_engine(
    store: SqlRateStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
    today: date = Depends(get_today),
) -> LandedCostEngine:
    return LandedCostEngine(store, settings=settings, today=lambda: today)

# Error handling
@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Unexpected server error.", "kind": "InternalError", "errors": []},
    )

# Health check
@app.get("/")
async def root():
    return {"message": "Landed Cost API is running"}

@app.get("/api/v1/health/ping", response_model=HealthResponse)
def health_ping(db: Session = Depends(get_db)):
    return HealthResponse(ok=ping(db), database="up", version=API_VERSION)

# Reference data endpoints
@app.get("/api/v1/countries", response_model=List[CountrySchema])
def get_countries(store: SqlRateStore = Depends(get_store)):
    return store.list_countries()

@app.get("/api/v1/countries/{code}", response_model=CountrySchema)
def get_country(code: str, store: SqlRateStore = Depends(get_store)):
    country = store.get_country(code)
    if country is None:
        raise HTTPException(status_code=404, detail=f"Country '{code}' not found")
    return country

@app.get("/api/v1/hscodes", response_model=List[HsCodeSchema])
def get_hs_codes(store: SqlRateStore = Depends(get_store)):
    return store.list_hs_codes()

@app.get("/api/v1/agreements", response_model=List[AgreementSchema])
def get_agreements(store: SqlRateStore = Depends(get_store)):
    return store.list_agreements()

# Tariff endpoints
def _tariff_fields(row) -> dict:
    return {
        "id": row.id,
        "hs_code": row.hs_code,
        "hs_description": row.hs_description,
        "exporter_code": row.exporter_code,
        "exporter_name": row.exporter_name,
        "importer_code": row.importer_code,
        "importer_name": row.importer_name,
        "agreement_code": row.agreement_code,
        "agreement_name": row.agreement_name,
        "rate_percent": float(row.rate_percent),
        "valid_from": row.valid_from,
        "valid_to": row.valid_to,
    }

@app.get("/api/v1/tariffs/lookup", response_model=TariffLookupResponse, responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}})
def lookup_tariff(
    exporter: Optional[str] = None,
    importer: Optional[str] = None,
    hsCode: Optional[str] = None,
    agreement: Optional[str] = None,
    on_date: Optional[str] = Query(None, alias="date"),
    store: SqlRateStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
    today=Depends(get_today),
):
    """Single tariff row in force for a lane on one day (default today)."""
    missing = [
        MissingRequiredField(name).as_issue()
        for name, value in (("exporter", exporter), ("importer", importer), ("hsCode", hsCode), ("agreement", agreement))
        if is_blank(value)
    ]
    if missing:
        raise RequestValidationError(missing)

    hs_code = normalize_hs_code(hsCode)
    if len(hs_code) != HS_CODE_LENGTH:
        raise InvalidHsCodeLength(hs_code, HS_CODE_LENGTH)
    exporter_country = store.resolve_country(exporter.strip())
    if exporter_country is None:
        raise UnresolvableCountry(exporter.strip(), "exporter")
    importer_country = store.resolve_country(importer.strip())
    if importer_country is None:
        raise UnresolvableCountry(importer.strip(), "importer")

    on = parse_flexible_date(on_date, "date") or today
    window = DateWindow.single_day(on)
    lane = Lane(exporter_country.code, importer_country.code, hs_code, normalize_code(agreement))
    rates = RateLookupEngine(
        store,
        open_end_policy=settings.open_end_policy,
        tie_break=settings.tariff_tie_break,
        today=lambda: today,
    )
    tariff = rates.find_tariff(lane, window)
    return TariffLookupResponse(
        **_tariff_fields(tariff),
        customs_basis=importer_country.customs_basis,
        window_start=window.start,
        window_end=window.end,
    )

@app.get("/api/v1/tariffs/list", response_model=List[TariffListItem])
def list_tariffs(
    importer: Optional[str] = None,
    exporter: Optional[str] = None,
    agreement: Optional[str] = None,
    store: SqlRateStore = Depends(get_store),
    today=Depends(get_today),
):
    """Tariff rows still in force today, ordered by HS code then agreement."""
    rows = store.list_tariffs(today, importer=importer, exporter=exporter, agreement=agreement)
    return [TariffListItem(**_tariff_fields(row)) for row in rows]

# Data export endpoints
@app.get("/api/v1/tariffs/export")
def export_tariffs_csv(
    importer: Optional[str] = None,
    exporter: Optional[str] = None,
    agreement: Optional[str] = None,
    store: SqlRateStore = Depends(get_store),
    today=Depends(get_today),
):
    """Export the current tariff list to CSV"""
    rows = store.list_tariffs(today, importer=importer, exporter=exporter, agreement=agreement)

    # Convert to DataFrame
    data = []
    for row in rows:
        data.append({
            'hs_code': row.hs_code,
            'hs_description': row.hs_description,
            'exporter_code': row.exporter_code,
            'importer_code': row.importer_code,
            'agreement_code': row.agreement_code,
            'rate_percent': float(row.rate_percent),
            'valid_from': row.valid_from.strftime('%Y-%m-%d'),
            'valid_to': row.valid_to.strftime('%Y-%m-%d') if row.valid_to else None,
        })

    df = pd.DataFrame(data, columns=[
        'hs_code', 'hs_description', 'exporter_code', 'importer_code',
        'agreement_code', 'rate_percent', 'valid_from', 'valid_to',
    ])

    # Create CSV output
    output = io.StringIO()
    df.to_csv(output, index=False)
    output.seek(0)

    # Return as downloadable file
    return StreamingResponse(
        io.BytesIO(output.getvalue().encode('utf-8')),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=tariff_rates.csv"}
    )

# Landed cost endpoint
@app.post("/api/v1/calculate/landed-cost", response_model=LandedCostResponse, responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}})
def calculate_landed_cost(payload: LandedCostRequestSchema, engine: LandedCostEngine = Depends(get_engine)):
    """Quote duty, tax and total landed cost for one shipment."""
    request = LandedCostRequest(
        exporter=payload.exporter,
        importer=payload.importer,
        hs_code=payload.hs_code,
        product_description=payload.product_description,
        agreement=payload.agreement,
        goods_value=payload.goods_value,
        quantity=payload.quantity,
        freight=payload.freight,
        insurance=payload.insurance,
        start_date=payload.start_date,
        end_date=payload.end_date,
        effective_date=payload.effective_date,
    )
    result = engine.compute_landed_cost(request)

    # Amounts stay Decimal inside the engine; JSON gets plain numbers
    body = {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in result.to_dict().items()
    }
    return LandedCostResponse(ok=True, **body)
