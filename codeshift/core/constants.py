"""Shared constants for codeshift.

Defaults used across retrieval, embedding, the store and the recovery
policy. Configuration (config/codeshift.yaml, environment) overrides the
tunable ones at startup.
"""

# =============================================================================
# Embeddings
# =============================================================================

DEFAULT_EMBEDDING_DIMENSIONS = 768
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

# Provider input cap, applied after collapsing whitespace runs
MAX_EMBEDDING_INPUT_CHARS = 8000

DEFAULT_BATCH_SIZE = 5
DEFAULT_DELAY_BETWEEN_BATCHES_MS = 500

# =============================================================================
# Retrieval
# =============================================================================

DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_RESULT_LIMIT = 20

# Vector search over-fetches this multiple of `limit` before re-ranking
CANDIDATE_MULTIPLIER = 2

MAX_RELATED_CHUNKS = 10

# Top-K similar chunks kept per chunk
MAX_SIMILAR_CHUNKS = 10

# =============================================================================
# Chunk model
# =============================================================================

FILE_EXTENSIONS = (
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp",
    ".c", ".cs", ".php", ".rb", ".go", ".rs",
)

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10

# =============================================================================
# Recovery policy
# =============================================================================

RATE_LIMIT_DELAY_SECONDS = 60
NETWORK_BACKOFF_BASE_SECONDS = 5
RECONNECT_DELAY_SECONDS = 10
MAX_RETRIES = 3

# Resource recovery keeps this many candidate chunks
REDUCED_CHUNK_COUNT = 10

# =============================================================================
# Failure report steps
# =============================================================================

STEP_VALIDATION = "validation"
STEP_ANALYSIS = "analysis"
STEP_CHUNK_DISCOVERY = "chunk_discovery"
STEP_PLAN_GENERATION = "plan_generation"
STEP_EXECUTION = "execution"
