"""Pydantic models for the /api/v1/models endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class ModelDetail(BaseModel):
    """Information about one installed model."""

    name: str = Field(..., description="Full model name")
    size_mb: float = Field(..., description="Model size in megabytes")
    family: str = Field(..., description="Model family name")
    parameter_size: str = Field(..., description="Human-readable parameter count")
    quantization_level: str = Field(..., description="Quantization level")
    capabilities: list[str] = Field(..., description="Model capabilities (e.g., ['completion', 'tools'])")
    context_length: int = Field(..., description="Maximum context window size in tokens")
    supports_tools: bool = Field(False, description="Whether the model supports native tool calling")

    model_config = ConfigDict(from_attributes=True)


class ModelListResponse(BaseModel):
    models: list[ModelDetail] = Field(..., description="List of available models")
