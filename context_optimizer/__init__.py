"""context-optimizer: deduplicate, prioritize and trim LLM context to a token budget."""

from .config import load_config
from .engine import ContextOptimizer
from .types import (
    ChatMessage,
    ChatOptimizeResult,
    DimensionMismatch,
    EmbeddingProviderRequired,
    EmbeddingUnavailable,
    EmptyQuery,
    InvalidBudget,
    InvalidInput,
    OptimizeResult,
    OptimizerConfig,
    OptimizerError,
    ProviderError,
    TokenAnalysis,
)

__version__ = "0.1.0"

__all__ = [
    "ContextOptimizer",
    "load_config",
    "ChatMessage",
    "ChatOptimizeResult",
    "DimensionMismatch",
    "EmbeddingProviderRequired",
    "EmbeddingUnavailable",
    "EmptyQuery",
    "InvalidBudget",
    "InvalidInput",
    "OptimizeResult",
    "OptimizerConfig",
    "OptimizerError",
    "ProviderError",
    "TokenAnalysis",
]
