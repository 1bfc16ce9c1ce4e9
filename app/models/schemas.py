"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List
from datetime import datetime

from app.utils.helpers import PARAMETER_NAME_PATTERN, REPORT_DATE_PATTERN


# Parameter Schemas
class ParameterBase(BaseModel):
    """Fields shared by every parameter payload."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        pattern=PARAMETER_NAME_PATTERN,
        description="Placeholder key; letters, numbers and underscores only.",
    )
    description: str = Field(..., min_length=1)
    sql: str = Field(..., min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class ParameterCreate(ParameterBase):
    """Schema for adding a parameter to the session."""


class ParameterUpdate(ParameterBase):
    """Schema for editing a parameter (full replacement of its fields)."""


class ParameterResponse(ParameterBase):
    """Schema for parameter responses."""

    id: str

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)


# Report Schemas
class ReportParameter(ParameterBase):
    """A parameter as sent with a stateless generation request."""

    id: str = ""


class GenerateReportRequest(BaseModel):
    """Stateless generation: template, parameters and report date in one payload."""

    file_content: str = Field(..., description="Base64 encoded content of the .docx file.")
    parameters: List[ReportParameter] = Field(default_factory=list)
    report_date: str = Field(..., pattern=REPORT_DATE_PATTERN, description="Report month, YYYY-MM.")

    @field_validator("parameters")
    @classmethod
    def _unique_names(cls, parameters: List[ReportParameter]) -> List[ReportParameter]:
        seen = set()
        duplicates = set()
        for parameter in parameters:
            if parameter.name in seen:
                duplicates.add(parameter.name)
            seen.add(parameter.name)
        if duplicates:
            duplicates = sorted(duplicates)
            raise ValueError(f"Duplicate parameter names: {', '.join(duplicates)}")
        return parameters


class GenerateReportResponse(BaseModel):
    """Schema for stateless generation response."""

    file_content: str = Field(..., description="Base64 encoded content of the generated .docx file.")


class SessionReportRequest(BaseModel):
    """Generate from the session's template and parameters."""

    report_date: str = Field(..., pattern=REPORT_DATE_PATTERN)


# Template Schemas
class TemplateUploadResponse(BaseModel):
    """Schema for template upload / inspection responses."""

    filename: str
    size: int
    placeholders: List[str] = Field(default_factory=list)
    message: str = "Template uploaded successfully"


# AI Schemas
class SuggestSqlRequest(BaseModel):
    """Ask the AI service for a candidate query."""

    parameter_name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class SuggestSqlResponse(BaseModel):
    sql_query: str


class VerifySqlRequest(BaseModel):
    """Ask the AI service whether a query fits a description."""

    sql_query: str = Field(..., min_length=1)
    expected_data_description: str = Field(..., min_length=1)


class VerifySqlResponse(BaseModel):
    is_suitable: bool
    reason: str


# Health Schemas
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    ollama: str
    timestamp: datetime
    version: str = "0.1.0"
