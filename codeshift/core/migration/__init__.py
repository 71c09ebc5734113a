# Codeshift migration pipeline - plan synthesis and per-chunk rewrites
# Orchestrator stages: validate, analyze, retrieve, plan, rewrite, validate results
#
# The orchestrator and rewrite engine depend on codeshift.core.validation,
# which itself imports migration.models; import them from their modules:
#   from codeshift.core.migration.orchestrator import MigrationOrchestrator

from .models import ChunkRewrite, ChunkValidation, FileResult, MigrationPlan, MigrationResult
from .planner import PlanSynthesizer
from .technology import TargetTechnology, get_profile

__all__ = [
    "ChunkRewrite",
    "ChunkValidation",
    "FileResult",
    "MigrationPlan",
    "MigrationResult",
    "PlanSynthesizer",
    "TargetTechnology",
    "get_profile",
]
