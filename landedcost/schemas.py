from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union
from datetime import date

Number = Union[int, float, str]

# Landed cost calculation
class LandedCostRequestSchema(BaseModel):
    """Request body. Numbers may arrive as JSON numbers or numeric strings; parsing is done by the engine."""

    model_config = ConfigDict(populate_by_name=True)

    exporter: Optional[str] = Field(None, description="Exporter ISO alpha-2 code or exact country name")
    importer: Optional[str] = Field(None, description="Importer ISO alpha-2 code or exact country name")
    hs_code: Optional[str] = Field(None, alias="hsCode", description="6-digit HS code")
    product_description: Optional[str] = Field(
        None, alias="productDescription", description="Used to find the HS code when hsCode is absent"
    )
    agreement: Optional[str] = Field(None, description="Trade agreement code (e.g., MFN, CPTPP)")
    goods_value: Optional[Number] = Field(None, description="Declared value per unit")
    quantity: Optional[Number] = Field(None, description="Units shipped, default 1")
    freight: Optional[Number] = Field(None, description="Freight cost, default 0")
    insurance: Optional[Number] = Field(None, description="Insurance cost, default 0")
    start_date: Optional[str] = Field(None, alias="startDate", description="YYYY-MM-DD or DD/MM/YYYY")
    end_date: Optional[str] = Field(None, alias="endDate", description="YYYY-MM-DD or DD/MM/YYYY")
    effective_date: Optional[str] = Field(None, alias="effectiveDate", description="YYYY-MM-DD or DD/MM/YYYY")

class LandedCostResponse(BaseModel):
    ok: bool = True

    # Inputs echoed back with their resolved codes
    exporter_input: str
    importer_input: str
    exporter_code: str
    importer_code: str
    hs_code: str
    agreement: str

    # Valuation
    customs_basis: str
    rate_percent: float
    customs_value: float
    duty: float
    tax_type: str
    tax_rate_percent: float
    tax: float
    quantity: int
    total_landed_cost: float

    # Resolved date window
    window_start: date
    window_end: date

class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    kind: str
    errors: List[str] = Field(default_factory=list)

# Reference data
class CountrySchema(BaseModel):
    code: str
    name: str
    customs_basis: str

    model_config = ConfigDict(from_attributes=True)

class HsCodeSchema(BaseModel):
    code: str
    description: str

    model_config = ConfigDict(from_attributes=True)

class AgreementSchema(BaseModel):
    code: str
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class TariffListItem(BaseModel):
    id: int
    hs_code: str
    hs_description: Optional[str] = None
    exporter_code: str
    exporter_name: Optional[str] = None
    importer_code: str
    importer_name: Optional[str] = None
    agreement_code: str
    agreement_name: Optional[str] = None
    rate_percent: float
    valid_from: date
    valid_to: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)

class TariffLookupResponse(TariffListItem):
    ok: bool = True
    customs_basis: Optional[str] = None
    window_start: date
    window_end: date

class HealthResponse(BaseModel):
    ok: bool
    database: str
    version: str
