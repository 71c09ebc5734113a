"""Tests for plan parsing, defaulting, timeline and risk assessment."""

import pytest

from codeshift.core.errors import ProviderMalformedResponseError, ProviderRateLimitedError
from codeshift.core.gateway import LLMGateway
from codeshift.core.migration.models import SECTION_NAMES, MigrationPlan
from codeshift.core.migration.planner import (
    PlanSynthesizer,
    assess_risk,
    build_timeline,
    extract_labelled_sections,
    normalize_section_key,
    parse_plan_response,
)
from codeshift.core.migration.technology import default_plan_sections
from codeshift.core.retrieval.models import RetrievedChunk

from conftest import PLAN_JSON, FakeLLM, FakeTokenCounter

COMMAND = "convert database connection to Prisma"

LABELLED_PLAN = """Here is what I suggest.

ANALYSIS: The repository issues raw SQL through pg.
STRATEGY:
Introduce Prisma next to the existing pool.
## Code Transformations
- Replace pool.query with prisma calls
**Risks & Mitigation**: breaking changes to transaction handling
"""


def _retrieved(chunks):
    return [RetrievedChunk(chunk=c, similarity=0.9, score=0.9, migration_relevance=0.5) for c in chunks]


def _synthesizer(responder, clock):
    llm = FakeLLM(responder=responder)
    return PlanSynthesizer(LLMGateway(llm, token_counter=FakeTokenCounter()), now=clock.now), llm


# ── Tests: Section keys & parsing ─────────────────────────────────────────


class TestParsing:

    def test_normalize_section_key(self):
        assert normalize_section_key("codeTransformations") == "code_transformations"
        assert normalize_section_key("implementationOrder") == "implementation_order"
        assert normalize_section_key("RISKS") == "risks"
        assert normalize_section_key("Risks & Mitigation") == "risks"
        assert normalize_section_key("code_transformation") == "code_transformations"
        assert normalize_section_key("summary") is None

    def test_json_response(self):
        sections = parse_plan_response(PLAN_JSON)
        assert set(sections) == set(SECTION_NAMES)
        assert sections["implementation_order"] == ["schema", "client", "repositories", "tests"]

    def test_json_inside_prose_and_fences(self):
        raw = "Here is the plan:\n```json\n{\"analysis\": \"uses {braces} in text\", \"risks\": \"none\"}\n```\nGood luck!"
        sections = parse_plan_response(raw)
        assert sections == {"analysis": "uses {braces} in text", "risks": "none"}

    def test_json_without_known_keys_falls_back_to_labels(self):
        raw = '{"summary": "nothing useful"}\nANALYSIS: found it'
        assert parse_plan_response(raw) == {"analysis": "found it"}

    def test_labelled_sections(self):
        sections = extract_labelled_sections(LABELLED_PLAN)
        assert sections == {
            "analysis": "The repository issues raw SQL through pg.",
            "strategy": "Introduce Prisma next to the existing pool.",
            "code_transformations": "- Replace pool.query with prisma calls",
            "risks": "breaking changes to transaction handling",
        }

    def test_plain_text_has_no_sections(self):
        assert parse_plan_response("Sure, migrating to Prisma is a good idea.") == {}


# ── Tests: Risk & timeline ────────────────────────────────────────────────


class TestRiskAndTimeline:

    def test_low_risk(self):
        plan = MigrationPlan(code_transformations=["a", "b"], dependencies="prisma", risks="minor")
        assert assess_risk(plan) == "Low"

    def test_database_dependency_is_medium(self):
        plan = MigrationPlan(code_transformations=["a"], dependencies="Drop the Database driver")
        assert assess_risk(plan) == "Medium"

    def test_all_signals_are_high(self):
        plan = MigrationPlan(
            code_transformations=[f"step {i}" for i in range(11)],
            dependencies={"remove": "database driver"},
            risks="Breaking API changes",
        )
        assert assess_risk(plan) == "High"

    def test_long_transformations_and_breaking_risks_are_medium(self):
        plan = MigrationPlan(code_transformations=list(range(12)), risks="breaking")
        assert assess_risk(plan) == "Medium"

    def test_timeline_phases(self):
        timeline = build_timeline(MigrationPlan())
        assert [p.phase for p in timeline.phases] == [
            "Preparation", "Core Migration", "Testing & Validation", "Cleanup",
        ]
        assert [p.duration for p in timeline.phases] == ["1-2 hours", "2-4 hours", "1-2 hours", "30 minutes"]
        assert timeline.estimated_total_time == "4-8 hours"
        assert timeline.risk_level == "Low"


# ── Tests: Synthesizer ────────────────────────────────────────────────────


class TestPlanSynthesizer:

    @pytest.mark.asyncio
    async def test_json_plan(self, clock, project_chunks):
        synthesizer, llm = _synthesizer(lambda p: PLAN_JSON, clock)
        outcome = await synthesizer.synthesize(COMMAND, "prisma", _retrieved(project_chunks[:3]))

        assert outcome.ok
        plan = outcome.value
        assert plan.missing_sections() == []
        assert plan.code_transformations == [
            "Replace pool.query calls with prisma model calls", "Export a shared client",
        ]
        assert plan.timeline.risk_level == "Medium"
        assert plan.metadata.chunks_analyzed == 3
        assert plan.metadata.target_technology == "prisma"
        assert plan.metadata.command == COMMAND
        assert plan.metadata.model == "fake-model"
        assert plan.metadata.generated_at == clock.now()

        prompt = llm.prompts[0]
        assert 'Command: "convert database connection to Prisma"' in prompt
        assert "Prisma is a modern ORM" in prompt
        assert "Convert raw SQL queries to ORM methods" in prompt
        assert "1. getUser (function)" in prompt

    @pytest.mark.asyncio
    async def test_plain_text_uses_defaults(self, clock):
        synthesizer, _ = _synthesizer(lambda p: "I would migrate this carefully.", clock)
        plan = (await synthesizer.synthesize(COMMAND, "prisma", [])).value

        defaults = default_plan_sections("prisma")
        assert plan.sections() == defaults
        assert plan.timeline is not None
        assert plan.timeline.risk_level in ("Low", "Medium", "High")

    @pytest.mark.asyncio
    async def test_labelled_plan_fills_gaps(self, clock):
        synthesizer, _ = _synthesizer(lambda p: LABELLED_PLAN, clock)
        plan = (await synthesizer.synthesize(COMMAND, "prisma", [])).value

        assert plan.analysis == "The repository issues raw SQL through pg."
        assert plan.testing == default_plan_sections("prisma")["testing"]
        assert plan.missing_sections() == []

    @pytest.mark.asyncio
    async def test_unknown_keys_are_dropped(self, clock):
        synthesizer, _ = _synthesizer(lambda p: '{"analysis": "x", "confidence": 0.9, "strategy": "  "}', clock)
        plan = (await synthesizer.synthesize(COMMAND, "prisma", [])).value

        data = plan.to_dict()
        assert "confidence" not in data
        assert data["analysis"] == "x"
        assert data["strategy"] == default_plan_sections("prisma")["strategy"]

    @pytest.mark.asyncio
    async def test_empty_response_is_malformed(self, clock):
        synthesizer, _ = _synthesizer(lambda p: "   ", clock)
        outcome = await synthesizer.synthesize(COMMAND, "prisma", [])
        assert isinstance(outcome.error, ProviderMalformedResponseError)

    @pytest.mark.asyncio
    async def test_provider_error_is_returned(self, clock):
        synthesizer, llm = _synthesizer(lambda p: PLAN_JSON, clock)
        llm.failures.append(RuntimeError("429 Too Many Requests: rate limit"))
        outcome = await synthesizer.synthesize(COMMAND, "prisma", [])
        assert isinstance(outcome.error, ProviderRateLimitedError)

    def test_plan_defaults_override(self, gateway, clock):
        synthesizer = PlanSynthesizer(gateway, now=clock.now)
        plan = synthesizer.normalize({}, COMMAND, "prisma", 0, plan_defaults={"risks": "Review manually."})
        assert plan.risks == "Review manually."
        assert plan.analysis == default_plan_sections("prisma")["analysis"]
