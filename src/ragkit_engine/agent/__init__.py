"""Chat backends and the retrieval-augmented generation pipeline."""
