"""Static checks on rewritten code and the post-migration validation report."""

from .results import ValidationReport, validate_migration_results
from .static_checks import check_rewrite

__all__ = ["ValidationReport", "check_rewrite", "validate_migration_results"]
