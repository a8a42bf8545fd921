from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()

class Country(Base):
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    country_code = Column(String(2), nullable=False, unique=True, index=True)  # ISO alpha-2, canonical
    country_name = Column(String(200), nullable=False, unique=True)  # Matched case-insensitively
    customs_basis = Column(String(3), nullable=False, default="CIF")  # CIF or FOB, applies when importing
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class HsCode(Base):
    __tablename__ = "hs_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hs_code = Column(String(6), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)  # Free text, used to resolve product descriptions
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class Agreement(Base):
    __tablename__ = "agreements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agreement_code = Column(String(20), nullable=False, unique=True, index=True)  # e.g. MFN, CPTPP
    agreement_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class TariffRate(Base):
    __tablename__ = "tariff_rates"
    __table_args__ = (
        # One version per lane and start date; windows of different versions may still overlap
        UniqueConstraint("hs_code_id", "exporter_id", "importer_id", "agreement_id", "valid_from",
                         name="uniq_tariff_version"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    exporter_id = Column(Integer, ForeignKey("countries.id"), nullable=False, index=True)
    importer_id = Column(Integer, ForeignKey("countries.id"), nullable=False, index=True)
    hs_code_id = Column(Integer, ForeignKey("hs_codes.id"), nullable=False, index=True)
    agreement_id = Column(Integer, ForeignKey("agreements.id"), nullable=False, index=True)
    rate_percent = Column(Numeric(9, 4), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)  # NULL = open-ended
    source_ref = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    exporter = relationship("Country", foreign_keys=[exporter_id])
    importer = relationship("Country", foreign_keys=[importer_id])
    hs_code = relationship("HsCode")
    agreement = relationship("Agreement")

class TaxRule(Base):
    __tablename__ = "tax_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    country_id = Column(Integer, ForeignKey("countries.id"), nullable=False, index=True)  # Importer
    tax_type = Column(String(20), nullable=False)  # VAT, GST, ...
    rate_percent = Column(Numeric(9, 4), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)  # NULL = open-ended
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    country = relationship("Country")
