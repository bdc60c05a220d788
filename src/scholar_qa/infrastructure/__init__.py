"""
Infrastructure layer: external systems.

- sources: academic search adapters (httpx)
- cache: query result cache (cachetools)
- llm: text-generation providers (openai)
"""
