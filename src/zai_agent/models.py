"""Catalog of the Z.ai GLM models the agent can drive."""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class ModelDefinition:
    id: str
    name: str
    description: str
    context_window: int
    max_output_tokens: int
    supports_vision: bool = True
    supports_tools: bool = True
    has_reasoning: bool = False
    tier: str = "standard"
    default: bool = False


ZAI_MODELS: List[ModelDefinition] = [
    ModelDefinition(
        id="glm-4.7",
        name="GLM 4.7",
        description="Latest Z.ai GLM model with advanced reasoning and tool calling capabilities",
        context_window=128000,
        max_output_tokens=8192,
        has_reasoning=True,
        tier="premium",
        default=True,
    ),
    ModelDefinition(
        id="glm-4-plus",
        name="GLM 4 Plus",
        description="High-performance GLM model for complex tasks",
        context_window=128000,
        max_output_tokens=8192,
        has_reasoning=True,
    ),
    ModelDefinition(
        id="glm-4-flash",
        name="GLM 4 Flash",
        description="Fast GLM model for quick responses",
        context_window=128000,
        max_output_tokens=4096,
        tier="basic",
    ),
]


def get_model(model_id: str) -> Optional[ModelDefinition]:
    """Look up a model by id (None if unknown)."""
    for model in ZAI_MODELS:
        if model.id == model_id:
            return model
    return None


def default_model() -> ModelDefinition:
    return next(model for model in ZAI_MODELS if model.default)
