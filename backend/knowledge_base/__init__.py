"""Document knowledge base: ingestion, semantic retrieval and cited chat."""
__version__ = "0.1.0"
