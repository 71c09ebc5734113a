"""Plan synthesis: prompt the LLM, normalize its answer, attach a timeline.

The LLM is asked for a JSON object with the eight plan sections. Responses
are handled in three passes:

1. The first balanced ``{...}`` in the text is parsed as JSON.
2. If there is none (or it does not parse), labelled sections such as
   ``ANALYSIS:`` or ``## Code Transformations`` are scraped from the text.
3. Every section still missing gets a default naming the target technology.

An empty response is the only malformed outcome; everything else yields
a complete plan.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..chunks.models import utcnow
from ..errors import Outcome, ProviderMalformedResponseError
from ..gateway import LLMGateway
from ..utils.text import parse_json_object
from .models import (
    SECTION_NAMES,
    MigrationPlan,
    PlanMetadata,
    RiskLevel,
    Timeline,
    TimelinePhase,
)
from .prompts import migration_plan_prompt
from .technology import default_plan_sections

logger = logging.getLogger(__name__)

# ── Section keys ──────────────────────────────────────────────────────

_KEY_ALIASES = {
    "code_transformation": "code_transformations",
    "transformations": "code_transformations",
    "risks_mitigation": "risks",
    "risks_and_mitigation": "risks",
    "risk": "risks",
    "implementation": "implementation_order",
    "order": "implementation_order",
}

# Longest labels first so "RISKS & MITIGATION" wins over "RISKS".
_SECTION_LABELS = [
    ("code transformations", "code_transformations"),
    ("code transformation", "code_transformations"),
    ("implementation order", "implementation_order"),
    ("risks & mitigation", "risks"),
    ("risks and mitigation", "risks"),
    ("configuration", "configuration"),
    ("dependencies", "dependencies"),
    ("analysis", "analysis"),
    ("strategy", "strategy"),
    ("testing", "testing"),
    ("risks", "risks"),
]

_HEADING_RE = re.compile(
    r"^\s*(?:#{1,6}\s*|\d+[.)]\s*)?\**\s*("
    + "|".join(re.escape(label) for label, _ in _SECTION_LABELS)
    + r")\s*\**\s*(?::\s*\**\s*(?P<rest>.*)|\s*$)",
    re.IGNORECASE,
)
_LABEL_TO_SECTION = dict(_SECTION_LABELS)


def normalize_section_key(key: str) -> Optional[str]:
    """Map an LLM-chosen key ("codeTransformations", "RISKS") to a section name."""
    if not key.isupper():
        key = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", key)
    normalized = re.sub(r"[^a-z0-9]+", "_", key.lower()).strip("_")
    normalized = _KEY_ALIASES.get(normalized, normalized)
    return normalized if normalized in SECTION_NAMES else None


def extract_labelled_sections(text: str) -> Dict[str, str]:
    """Scrape ``LABEL:`` style sections out of free text."""
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None

    for line in text.splitlines():
        match = _HEADING_RE.match(line)
        if match:
            current = _LABEL_TO_SECTION[match.group(1).lower()]
            sections.setdefault(current, [])
            rest = (match.group("rest") or "").strip().strip("*").strip()
            if rest:
                sections[current].append(rest)
        elif current is not None:
            sections[current].append(line)

    return {
        name: "\n".join(lines).strip()
        for name, lines in sections.items()
        if "\n".join(lines).strip()
    }


def parse_plan_response(raw: str) -> Dict[str, Any]:
    """Turn raw LLM output into a dict keyed by section name (may be partial)."""
    parsed = parse_json_object(raw)
    if parsed is not None:
        sections: Dict[str, Any] = {}
        for key, value in parsed.items():
            name = normalize_section_key(str(key))
            if name and name not in sections:
                sections[name] = value
        if sections:
            return sections
        logger.debug("Plan JSON had no recognizable sections, scanning for labels")

    return extract_labelled_sections(raw)


# ── Timeline & risk ───────────────────────────────────────────────────

_PHASES = [
    ("Preparation", "1-2 hours", ["Setup dependencies", "Backup codebase"]),
    ("Core Migration", "2-4 hours", ["Transform core components", "Update configurations"]),
    ("Testing & Validation", "1-2 hours", ["Run tests", "Validate functionality"]),
    ("Cleanup", "30 minutes", ["Remove old code", "Update documentation"]),
]
ESTIMATED_TOTAL_TIME = "4-8 hours"


def _section_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def assess_risk(plan: MigrationPlan) -> RiskLevel:
    score = 0
    transformations = plan.code_transformations
    if transformations is not None and len(transformations) > 10:
        score += 2
    if "database" in _section_text(plan.dependencies).lower():
        score += 3
    if "breaking" in _section_text(plan.risks).lower():
        score += 2

    if score >= 5:
        return "High"
    if score >= 3:
        return "Medium"
    return "Low"


def build_timeline(plan: MigrationPlan) -> Timeline:
    return Timeline(
        phases=[TimelinePhase(phase=p, duration=d, tasks=list(t)) for p, d, t in _PHASES],
        estimated_total_time=ESTIMATED_TOTAL_TIME,
        risk_level=assess_risk(plan),
    )


# ── Synthesizer ───────────────────────────────────────────────────────

class PlanSynthesizer:
    """Builds migration plans through the LLM gateway.

    Args:
        llm: LLMGateway used for the plan call.
        now: Clock returning the plan's generated-at timestamp.
    """

    def __init__(self, llm: LLMGateway, now: Callable[[], datetime] = utcnow):
        self._llm = llm
        self._now = now

    async def synthesize(
        self,
        command: str,
        target_technology: str,
        retrieved: List[Any],
        options: Optional[Dict[str, Any]] = None,
        plan_defaults: Optional[Dict[str, Any]] = None,
    ) -> Outcome[MigrationPlan]:
        prompt = migration_plan_prompt(command, target_technology, retrieved, options)
        outcome = await self._llm.generate(prompt, purpose="plan")
        if not outcome.ok:
            return outcome

        sections = parse_plan_response(outcome.value)
        if not sections:
            logger.warning("Plan response had no JSON or labelled sections; using defaults")

        try:
            plan = self.normalize(sections, command, target_technology, len(retrieved), plan_defaults)
        except ValidationError as e:
            return Outcome.failure(ProviderMalformedResponseError(f"Plan response could not be parsed: {e}"))

        logger.info(
            f"Plan for {target_technology} built from {len(retrieved)} chunks "
            f"(risk={plan.timeline.risk_level})"
        )
        return Outcome.success(plan)

    def normalize(
        self,
        sections: Dict[str, Any],
        command: str,
        target_technology: str,
        chunks_analyzed: int,
        plan_defaults: Optional[Dict[str, Any]] = None,
    ) -> MigrationPlan:
        """Validate parsed sections into a plan, filling gaps field by field."""
        plan = MigrationPlan.model_validate({k: v for k, v in sections.items() if k in SECTION_NAMES})

        defaults = default_plan_sections(target_technology)
        if plan_defaults:
            defaults.update(plan_defaults)
        missing = plan.missing_sections()
        for name in missing:
            setattr(plan, name, defaults[name])
        if missing:
            logger.debug(f"Filled default plan sections: {missing}")

        plan.metadata = PlanMetadata(
            generated_at=self._now(),
            chunks_analyzed=chunks_analyzed,
            target_technology=target_technology,
            command=command,
            model=self._llm.model,
        )
        plan.timeline = build_timeline(plan)
        return plan
