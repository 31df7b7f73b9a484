"""AI productivity tips backed by OpenAI-compatible LLM providers."""
