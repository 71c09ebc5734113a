"""LLM prompt templates for plan synthesis and per-chunk rewrites."""

import json
from typing import Any, Dict, List, Optional

from ..chunks.models import CodeChunk
from .models import FileContext, MigrationPlan
from .technology import format_patterns, get_profile, migration_patterns

CODE_PREVIEW_CHARS = 200


def _format_chunk_summary(retrieved: List[Any]) -> str:
    lines = []
    for index, item in enumerate(retrieved, start=1):
        chunk = item.chunk
        lines.append(
            f"{index}. {chunk.name} ({chunk.kind.value})\n"
            f"   File: {chunk.file_path}\n"
            f"   Language: {chunk.language}\n"
            f"   Complexity: {chunk.complexity}\n"
            f"   Code Preview: {chunk.code[:CODE_PREVIEW_CHARS]}...\n"
            f"   Relevance: {item.migration_relevance:.2f}"
        )
    return "\n\n".join(lines)


def migration_plan_prompt(
    command: str,
    target_technology: str,
    retrieved: List[Any],
    options: Optional[Dict[str, Any]] = None,
) -> str:
    """Prompt asking for an eight-section JSON migration plan."""
    profile = get_profile(target_technology)
    patterns = format_patterns(migration_patterns(command))

    return f"""You are an expert code migration agent specializing in {target_technology} migrations. Analyze the following migration request and create a comprehensive, actionable migration plan.

MIGRATION REQUEST:
Command: "{command}"
Target Technology: {target_technology}
Migration Options: {json.dumps(options or {}, indent=2, default=str)}

TARGET TECHNOLOGY CONTEXT:
{profile.context}

MIGRATION PATTERNS TO CONSIDER:
{patterns}

RELEVANT CODE CHUNKS TO MIGRATE:
{_format_chunk_summary(retrieved)}

Please create a detailed migration plan that includes:

1. ANALYSIS:
   - What specific code patterns need to be migrated
   - Why these changes are necessary
   - Impact assessment on the codebase

2. STRATEGY:
   - Step-by-step migration approach
   - Order of operations (dependencies first)
   - Risk mitigation strategies

3. CODE TRANSFORMATIONS:
   - Specific code changes needed
   - Before/after examples
   - Import/export modifications

4. DEPENDENCIES:
   - New packages to install
   - Package manifest modifications
   - Version compatibility requirements

5. CONFIGURATION:
   - Configuration file changes
   - Environment variable updates
   - Build system modifications

6. TESTING:
   - Test cases to update
   - Validation steps
   - Rollback procedures

7. RISKS & MITIGATION:
   - Potential breaking changes
   - Data migration considerations
   - Performance implications

8. IMPLEMENTATION ORDER:
   - Priority order for changes
   - Parallel vs sequential operations
   - Validation checkpoints

Format your response as a single JSON object with exactly these keys:
"analysis", "strategy", "codeTransformations", "dependencies",
"configuration", "testing", "risks", "implementationOrder".
Be specific and actionable."""


def chunk_rewrite_prompt(
    chunk: CodeChunk,
    plan: MigrationPlan,
    file_context: FileContext,
    target_technology: str,
    command: str = "",
) -> str:
    """Prompt asking the LLM to return only the migrated code for one chunk."""
    profile = get_profile(target_technology)
    patterns = format_patterns(migration_patterns(command))
    plan_json = json.dumps(plan.to_dict(), indent=2, default=str)

    return f"""You are an expert code migration specialist. Migrate the following code chunk to use {target_technology}.

TARGET TECHNOLOGY CONTEXT:
{profile.context}

MIGRATION PATTERNS:
{patterns}

ORIGINAL CODE CHUNK:
File: {chunk.file_path}
Type: {chunk.kind.value}
Name: {chunk.name}
Language: {chunk.language}
Complexity: {chunk.complexity}
Code:
```{chunk.language}
{chunk.code}
```

FILE CONTEXT:
- Language: {file_context.language}
- File Type: {file_context.file_extension}
- Current Imports: {', '.join(file_context.imports)}
- Current Exports: {', '.join(file_context.exports)}
- Dependencies: {', '.join(file_context.dependencies)}

MIGRATION PLAN:
{plan_json}

REQUIREMENTS:
1. Maintain the exact same functionality
2. Use {target_technology} best practices
3. Include proper imports/exports
4. Ensure type safety where applicable
5. Follow the migration plan strategy
6. Add appropriate error handling
7. Include comments explaining changes

Return ONLY the migrated code without explanations or markdown formatting."""
