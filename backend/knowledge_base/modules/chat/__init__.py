"""Chat over the knowledge base with cited answers."""
