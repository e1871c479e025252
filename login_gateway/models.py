"""
Data Models Module

Pydantic models for request/response validation throughout the gateway.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Profile Models
# ============================================================================

class ProfileImageRequest(BaseModel):
    """Body of POST /api/profile/set. The image reference is stored as given."""
    clientId: str = Field(..., description="Id of the user row to update")
    image: Optional[str] = Field(None, description="Profile image reference")

    @field_validator("clientId", mode="before")
    @classmethod
    def coerce_numeric_client_id(cls, v: Any) -> Any:
        # numeric ids are stored as their decimal text
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    providers: List[str] = Field(default_factory=list, description="Enabled login providers")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
