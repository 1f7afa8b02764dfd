"""vulnlens — streaming LLM security review for source code."""

__version__ = "0.1.0"
