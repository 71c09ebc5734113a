"""Target-technology profiles and migration pattern tables.

Everything technology-specific lives here as data: prompt context,
required imports, import statements for assembled files, the markers the
static checks look for, and the keyword sets used for query expansion.
Unknown technology tags resolve to the generic profile.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class TargetTechnology(str, Enum):
    PRISMA = "prisma"
    REACT = "react"
    TYPESCRIPT = "typescript"
    EXPRESS = "express"
    MONGODB = "mongodb"
    JEST = "jest"
    GENERIC = "generic"

    @classmethod
    def parse(cls, tag: Optional[str]) -> "TargetTechnology":
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            return cls.GENERIC


@dataclass(frozen=True)
class TechnologyProfile:
    context: str
    required_imports: Tuple[str, ...] = ()
    import_statements: Tuple[str, ...] = ()
    pattern_markers: Tuple[str, ...] = ()


PROFILES: Dict[TargetTechnology, TechnologyProfile] = {
    TargetTechnology.PRISMA: TechnologyProfile(
        context=(
            "Prisma is a modern ORM for Node.js and TypeScript. Key concepts:\n"
            "- Schema definition in prisma/schema.prisma\n"
            "- Client generation with prisma generate\n"
            "- Database migrations with prisma migrate\n"
            "- Query API with type safety\n"
            "- Common patterns: models, relations, enums, generators"
        ),
        required_imports=("@prisma/client", "prisma"),
        import_statements=('{ PrismaClient } from "@prisma/client"',),
        pattern_markers=("prisma", "Prisma"),
    ),
    TargetTechnology.REACT: TechnologyProfile(
        context=(
            "React is a JavaScript library for building user interfaces. Key concepts:\n"
            "- Components (functional and class-based)\n"
            "- JSX syntax\n"
            "- Hooks (useState, useEffect, etc.)\n"
            "- Props and state management\n"
            "- Lifecycle methods"
        ),
        required_imports=("react",),
        import_statements=('React from "react"',),
        pattern_markers=("React", "useState", "useEffect"),
    ),
    TargetTechnology.TYPESCRIPT: TechnologyProfile(
        context=(
            "TypeScript adds static typing to JavaScript. Key concepts:\n"
            "- Type annotations and interfaces\n"
            "- Generics and utility types\n"
            "- Module system (import/export)\n"
            "- Compilation to JavaScript\n"
            "- Type checking and inference"
        ),
        required_imports=("typescript",),
        import_statements=(),
        pattern_markers=(":", "interface", "type"),
    ),
    TargetTechnology.EXPRESS: TechnologyProfile(
        context=(
            "Express.js is a web framework for Node.js. Key concepts:\n"
            "- Middleware functions\n"
            "- Route handlers\n"
            "- Request/response objects\n"
            "- Error handling\n"
            "- Static file serving"
        ),
        required_imports=("express",),
        import_statements=('express from "express"',),
        pattern_markers=("express", "app.", "router."),
    ),
    TargetTechnology.MONGODB: TechnologyProfile(
        context=(
            "MongoDB is a NoSQL document database. Key concepts:\n"
            "- Collections and documents\n"
            "- BSON data format\n"
            "- Query operators\n"
            "- Aggregation pipeline\n"
            "- Indexes and performance"
        ),
        required_imports=("mongodb",),
        import_statements=('{ MongoClient } from "mongodb"',),
        pattern_markers=("mongodb", "collection", "db."),
    ),
    TargetTechnology.JEST: TechnologyProfile(
        context=(
            "Jest is a JavaScript testing framework. Key concepts:\n"
            "- Test suites and test cases\n"
            "- Matchers and assertions\n"
            "- Mocking and spies\n"
            "- Setup and teardown\n"
            "- Coverage reporting"
        ),
        required_imports=("jest",),
        import_statements=('{ describe, test, expect } from "@jest/globals"',),
        pattern_markers=("test", "describe", "expect"),
    ),
}

_GENERIC_CONTEXT = (
    "{tech} is a technology that requires specific migration patterns.\n"
    "Consider common migration approaches for this technology stack."
)


def get_profile(tag: Optional[str]) -> TechnologyProfile:
    """Profile for a technology tag; the generic profile for unknown tags."""
    tech = TargetTechnology.parse(tag)
    if tech in PROFILES:
        return PROFILES[tech]
    return TechnologyProfile(context=_GENERIC_CONTEXT.format(tech=tag or "The target technology"))


# ── Migration patterns (selected by words in the command) ─────────────

COMMAND_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "database": (
        "Convert raw SQL queries to ORM methods",
        "Update connection configurations",
        "Migrate data models and schemas",
        "Update query syntax and methods",
    ),
    "api": (
        "Update endpoint definitions",
        "Modify request/response handling",
        "Update middleware configurations",
        "Change routing patterns",
    ),
    "component": (
        "Convert class components to functional components",
        "Update lifecycle methods to hooks",
        "Modify prop handling",
        "Update state management",
    ),
    "test": (
        "Update test framework syntax",
        "Modify assertion methods",
        "Update mocking patterns",
        "Change test structure",
    ),
}

GENERIC_PATTERNS: Tuple[str, ...] = (
    "Follow best practices for the target technology",
    "Maintain existing functionality",
    "Ensure type safety where applicable",
)


def migration_patterns(command: str) -> List[str]:
    """Pattern bullets for every pattern key mentioned in the command."""
    lowered = (command or "").lower()
    selected: List[str] = []
    for key, patterns in COMMAND_PATTERNS.items():
        if key in lowered:
            selected.extend(patterns)
    return selected or list(GENERIC_PATTERNS)


def format_patterns(patterns: List[str]) -> str:
    return "\n".join(f"- {p}" for p in patterns)


# ── Query expansion keywords ──────────────────────────────────────────

TECHNOLOGY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "prisma": ("orm", "database", "schema"),
    "react": ("component", "jsx", "hooks"),
    "vue": ("component", "template"),
    "angular": ("component", "service"),
    "express": ("api", "server", "route"),
    "mongodb": ("collection", "document"),
    "postgresql": ("sql", "table"),
    "typescript": ("type", "interface"),
    "jest": ("test", "testing", "spec"),
    "webpack": ("bundle", "build"),
    "docker": ("container", "image"),
    "aws": ("cloud", "lambda"),
    "firebase": ("firestore", "auth"),
}

MIGRATION_LEXICON: Tuple[str, ...] = (
    "migrate", "convert", "transform", "refactor", "update", "upgrade",
    "database", "api", "framework", "library", "dependency", "import",
    "export", "function", "class", "component", "service", "model",
)


def default_plan_sections(target_technology: str) -> Dict[str, str]:
    """Default text for each plan section, naming the target technology."""
    tech = target_technology
    return {
        "analysis": f"Analyze the codebase to identify {tech} migration requirements.",
        "strategy": f"Develop a step-by-step approach for migrating to {tech}.",
        "code_transformations": f"Transform existing code to use {tech} patterns.",
        "dependencies": f"Add required {tech} dependencies.",
        "configuration": f"Update configuration files for {tech}.",
        "testing": f"Update tests to work with {tech}.",
        "risks": "Identify potential risks and mitigation strategies.",
        "implementation_order": "Define the order of implementation steps.",
    }
