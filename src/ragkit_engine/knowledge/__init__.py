"""Knowledge base: chunking, embeddings, vector store and ingestion."""
