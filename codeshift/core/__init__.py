# Lazy imports to avoid triggering the full dependency chain.
# This allows targeted imports like `from codeshift.core.db.models import Base`
# without pulling in llama_index, numpy, etc.

__all__ = [
    "MigrationOrchestrator",
    "MigrationServices",
    "build_services",
    "RetrievalEngine",
    "PlanSynthesizer",
    "RewriteEngine",
    "ChunkIndexer",
    "create_chunk_store",
]

_IMPORT_MAP = {
    "MigrationOrchestrator": ".migration.orchestrator",
    "MigrationServices": ".services",
    "build_services": ".services",
    "RetrievalEngine": ".retrieval.engine",
    "PlanSynthesizer": ".migration.planner",
    "RewriteEngine": ".migration.rewriter",
    "ChunkIndexer": ".ingestion.indexer",
    "create_chunk_store": ".store.factory",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'codeshift.core' has no attribute {name}")
