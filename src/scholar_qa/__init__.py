"""
Scholar QA - Research questions answered from scholarly literature.

Searches Semantic Scholar, arXiv, PubMed and CORE, ranks and deduplicates the
results, and streams a cited answer built by a language model.
"""

__version__ = "0.1.0"
