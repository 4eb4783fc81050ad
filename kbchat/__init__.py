"""kbchat - LLM chat assistant with local knowledge-base retrieval."""

__version__ = "0.3.0"
