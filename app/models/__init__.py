"""Database and schema models for Report Forge."""
from app.models.database_models import (
    Customer,
    Product,
    Sale,
    SaleItem,
)
from app.models.schemas import (
    ParameterCreate,
    ParameterUpdate,
    ParameterResponse,
    ReportParameter,
    GenerateReportRequest,
    GenerateReportResponse,
    SessionReportRequest,
    TemplateUploadResponse,
    SuggestSqlRequest,
    SuggestSqlResponse,
    VerifySqlRequest,
    VerifySqlResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "Customer",
    "Product",
    "Sale",
    "SaleItem",
    # Pydantic schemas
    "ParameterCreate",
    "ParameterUpdate",
    "ParameterResponse",
    "ReportParameter",
    "GenerateReportRequest",
    "GenerateReportResponse",
    "SessionReportRequest",
    "TemplateUploadResponse",
    "SuggestSqlRequest",
    "SuggestSqlResponse",
    "VerifySqlRequest",
    "VerifySqlResponse",
    "HealthCheckResponse",
]
