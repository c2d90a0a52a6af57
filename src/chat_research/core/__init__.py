"""Core services for chat-research: errors, observability, credits, LLM and research."""
