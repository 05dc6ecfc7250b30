"""Business-logic services: extraction, embedding, ingestion and retrieval."""
