"""LLM-backed analyzer adapters."""

from vulnlens.analysis.llm.analyzer import (
    Analyzer,
    AnalyzerError,
    ChunkCallback,
    LiteLLMAnalyzer,
)

__all__ = [
    "Analyzer",
    "AnalyzerError",
    "ChunkCallback",
    "LiteLLMAnalyzer",
]
