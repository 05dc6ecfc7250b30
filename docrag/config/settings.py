"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (priority order):
#
#   1. **Environment variables** — e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** — key=value lines in the working directory
#
# Field `chunk_size` maps to env var `CHUNK_SIZE`, and so on.  Defaults are
# used when neither source sets a value.
#
# Every threshold the pipeline uses lives here rather than inside the
# services: the 100 KB large-document cut-off, the 1000-chunk manual-scan
# cut-off, the 30 eagerly embedded chunks.  They are tuned values, not
# derived ones, so operators can move them without touching code.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docrag settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Remote embedding provider ===
    # Empty key = "not configured" → the embedder starts on the local model.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-large"
    # Azure OpenAI takes precedence over plain OpenAI when an endpoint is set.
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_deployment: str = ""
    azure_openai_api_version: str = "2023-12-01-preview"
    embedding_expected_dimension: int = 3072
    embedding_max_input_chars: int = 8191
    embedding_batch_size: int = 16
    # On a failed batch, embed at most this many items one by one; the rest
    # get empty sentinel vectors.
    embedding_batch_fallback_items: int = 5
    embedding_fallback_concurrency: int = 4

    # === Local embedding fallback ===
    local_embedding_model: str = "sentence-transformers/paraphrase-MiniLM-L3-v2"
    local_embedding_device: str = "cpu"

    # === Embedding cache ===
    embedding_cache_size: int = 10_000
    embedding_cache_ttl: int = 86_400

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    large_document_threshold: int = 100_000
    large_chunk_size: int = 500
    large_chunk_overlap: int = 100
    large_max_section_size: int = 2000
    min_structural_boundaries: int = 3
    sample_window_size: int = 10_000
    sample_interior_windows: int = 5

    # === Job queue & worker ===
    job_db_path: str = "data/jobs.db"
    job_max_attempts: int = 3
    job_backoff_base_seconds: float = 1.0
    job_max_failed_retained: int = 50
    worker_concurrency: int = 2
    worker_poll_interval: float = 1.0
    eager_embedding_chunks: int = 30
    max_chunks_per_job: int = 100
    inline_embedding_max_chunks: int = 5
    eager_job_priority: int = 0
    follow_up_job_priority: int = 10
    error_message_max_length: int = 500

    # === Vector search ===
    # Capability flag: only query the native index when the deployment is
    # known to have one.  Never probed at runtime.
    native_vector_search: bool = False
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "document_chunks"
    vector_index_name: str = "vector_index"
    native_candidate_multiplier: int = 20
    manual_scan_threshold: int = 1000
    stratified_sample_size: int = 500
    stratified_min_per_document: int = 10

    # === Retrieval / context assembly ===
    retrieval_default_limit: int = 5
    retrieval_timeout_seconds: float = 10.0
    media_match_limit: int = 3
    media_min_similarity: float = 0.3
    context_max_chars: int = 12_000

    # === Persistence ===
    document_db_path: str = "data/documents.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def has_remote_embedding(self) -> bool:
        """Return ``True`` when an OpenAI or Azure OpenAI key is configured."""
        if self.azure_openai_endpoint:
            return bool(self.azure_openai_api_key)
        return bool(self.openai_api_key)
