"""LLM provider adapters.

Three concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o-mini (also any OpenAI-compatible API)
    - AnthropicLLMProvider -- Claude Sonnet
    - OllamaLLMProvider    -- local models via an Ollama server (llama3.1)

At startup, main.py creates the provider matching the available API key
(ANTHROPIC_API_KEY, then OPENAI_API_KEY) or falls back to Ollama, and the
subject labeler is the only consumer.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
