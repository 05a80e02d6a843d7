from typing import List

from pydantic import BaseModel, Field


class ButtonPressRequest(BaseModel):
    """Press a profile button through the REST surface"""

    profile: str
    button: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Health check response"""

    status: str
    controller: bool
    clients: int = 0
    integrations: List[str] = Field(default_factory=list)
