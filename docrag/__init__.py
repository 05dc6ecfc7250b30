"""docrag: document ingestion and retrieval-augmented context for chat.

Uploaded files are extracted, chunked and embedded in the background;
at chat time the chunks most similar to the user's message are assembled
into a context block for the model.
"""

__version__ = "0.1.0"
