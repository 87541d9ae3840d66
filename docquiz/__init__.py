"""Generate quizzes from documents with an LLM and grade the answers."""

__version__ = "0.1.0"
