"""
Application layer: use cases built from domain entities and infrastructure.

- search: expansion, aggregation, relevance filtering
- answer: citation keys and the research pipeline
- prompts: language-model prompt templates
"""
