"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of toolrelay-server.
        ollama_connected: Whether the Ollama server answered.
        ollama_host: The Ollama host URL.
        providers_connected: Number of connected tool providers.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of toolrelay-server")
    ollama_connected: bool | None = Field(default=None, description="Whether Ollama is connected")
    ollama_host: str | None = Field(default=None, description="Ollama host URL")
    providers_connected: int = Field(default=0, description="Connected tool providers")
