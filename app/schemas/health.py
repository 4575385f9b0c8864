"""Schema for the health check response."""

from typing import Literal

from pydantic import BaseModel

DatabaseState = Literal["connected", "disconnected"]


class HealthResponse(BaseModel):
    """Service status for load balancers; the database is probed on every call."""

    status: Literal["ok"] = "ok"
    environment: Literal["dev", "prod"]
    database: DatabaseState
