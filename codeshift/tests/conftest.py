"""Shared fixtures: deterministic providers over an in-memory SQLite store."""

import re
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from codeshift.core.chunks.models import (
    ChunkDependency,
    ChunkKind,
    CodeChunk,
    EmbeddingRecord,
    build_search_text,
    generate_chunk_id,
)
from codeshift.core.db.db import DatabaseManager
from codeshift.core.embedding.provider import EmbeddingProvider
from codeshift.core.gateway import LLMGateway
from codeshift.core.services import MigrationServices, PipelineSettings
from codeshift.core.store.local_store import LocalCosineChunkStore

DIMS = 4

DB_VECTOR = [1.0, 0.0, 0.0, 0.0]
UI_VECTOR = [0.0, 1.0, 0.0, 0.0]
OTHER_VECTOR = [0.0, 0.0, 1.0, 0.0]

_DB_WORDS = ("database", "query", "sql", "prisma", "connection")
_UI_WORDS = ("render", "component", "jsx")


def vector_for(text: str):
    lowered = (text or "").lower()
    if any(w in lowered for w in _DB_WORDS):
        return list(DB_VECTOR)
    if any(w in lowered for w in _UI_WORDS):
        return list(UI_VECTOR)
    return list(OTHER_VECTOR)


# ── Fakes ─────────────────────────────────────────────────────────────────


class FakeEmbedModel:
    """Keyword-bucketed embeddings; queued exceptions are raised first."""

    model_name = "fake-embed"

    def __init__(self):
        self.calls = []
        self.failures = []

    async def aget_text_embedding(self, text):
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return vector_for(text)


PLAN_JSON = """{
  "analysis": "Raw SQL queries in db/ are issued through a hand-rolled connection pool.",
  "strategy": "Introduce PrismaClient, then replace queries module by module.",
  "codeTransformations": ["Replace pool.query calls with prisma model calls", "Export a shared client"],
  "dependencies": "Add @prisma/client and prisma; drop the pg database driver.",
  "configuration": "Set DATABASE_URL in .env and add prisma/schema.prisma.",
  "testing": "Update repository tests to mock PrismaClient.",
  "risks": "Transaction semantics differ from the raw driver.",
  "implementationOrder": ["schema", "client", "repositories", "tests"]
}"""

_NAME_RE = re.compile(r"^Name: (.+)$", re.MULTILINE)
_TYPE_RE = re.compile(r"^Type: (.+)$", re.MULTILINE)


def rewrite_for(name: str, kind: str = "function") -> str:
    if kind == "class":
        return (
            "```typescript\n"
            "import { PrismaClient } from \"@prisma/client\";\n"
            f"export class {name} {{\n"
            "  constructor(private prisma = new PrismaClient()) {}\n"
            "  async find(id: string) {\n"
            "    try {\n"
            "      return await this.prisma.user.findUnique({ where: { id } });\n"
            "    } catch (error) {\n"
            "      throw error;\n"
            "    }\n"
            "  }\n"
            "}\n"
            "```"
        )
    return (
        "```typescript\n"
        "import { PrismaClient } from \"@prisma/client\";\n"
        "const prisma = new PrismaClient();\n"
        f"export async function {name}(id: string) {{\n"
        "  try {\n"
        "    return await prisma.user.findUnique({ where: { id } });\n"
        "  } catch (error) {\n"
        "    throw error;\n"
        "  }\n"
        "}\n"
        "```"
    )


def default_responder(prompt: str) -> str:
    if "ORIGINAL CODE CHUNK:" in prompt:
        name = _NAME_RE.search(prompt)
        kind = _TYPE_RE.search(prompt)
        return rewrite_for(name.group(1) if name else "migrated", kind.group(1) if kind else "function")
    return PLAN_JSON


class FakeLLM:
    """LlamaIndex-shaped LLM: ``acomplete`` returns an object with ``.text``."""

    model = "fake-model"

    def __init__(self, responder=default_responder):
        self.responder = responder
        self.prompts = []
        self.failures = []

    async def acomplete(self, prompt):
        self.prompts.append(prompt)
        if self.failures:
            raise self.failures.pop(0)
        return SimpleNamespace(text=self.responder(prompt))

    def plan_prompts(self):
        return [p for p in self.prompts if "ORIGINAL CODE CHUNK:" not in p]

    def rewrite_prompts(self):
        return [p for p in self.prompts if "ORIGINAL CODE CHUNK:" in p]


class FakeTokenCounter:
    def count(self, text):
        return len((text or "").split())


class FakeClock:
    def __init__(self):
        self.sleeps = []
        self._tick = 0.0

    def now(self):
        return datetime(2024, 1, 1, tzinfo=timezone.utc)

    def monotonic(self):
        self._tick += 0.01
        return self._tick

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


# ── Chunk factory ─────────────────────────────────────────────────────────


def build_chunk(
    name,
    file_path="src/db/users.js",
    code=None,
    kind=ChunkKind.FUNCTION,
    complexity=3,
    session_id="s1",
    user_id="u1",
    language="javascript",
    start_line=1,
    dependencies=(),
    **extra,
):
    ext = "." + file_path.rsplit(".", 1)[-1]
    return CodeChunk(
        chunk_id=extra.pop("chunk_id", None) or generate_chunk_id(session_id, file_path, start_line, start_line + 5, name),
        session_id=session_id,
        user_id=user_id,
        file_path=file_path,
        file_name=file_path.rsplit("/", 1)[-1],
        file_extension=ext,
        code=code if code is not None else f"function {name}() {{ return db.query('SELECT 1'); }}",
        kind=kind,
        name=name,
        start_line=start_line,
        end_line=start_line + 5,
        language=language,
        complexity=complexity,
        dependencies=[ChunkDependency(kind="import", source=s) for s in dependencies],
        **extra,
    )


def sample_project():
    """Twelve chunks: eight touching the database, four UI/utility ones."""
    return [
        build_chunk("getUser", start_line=1),
        build_chunk("listUsers", start_line=10),
        build_chunk("createUser", start_line=20, complexity=4),
        build_chunk("UserRepository", kind=ChunkKind.CLASS, start_line=30,
                    code="class UserRepository { find(id) { return this.pool.query('SELECT * FROM users', [id]); } }"),
        build_chunk("connect", file_path="src/db/connection.js", start_line=1,
                    code="const pool = new Pool({ connectionString: process.env.DATABASE_URL });"),
        build_chunk("closeConnection", file_path="src/db/connection.js", start_line=10,
                    code="async function closeConnection() { await pool.end(); } // database connection"),
        build_chunk("getOrders", file_path="src/db/orders.js", start_line=1,
                    dependencies=["./connection"],
                    code="function getOrders() { return connect().query('SELECT * FROM orders'); }"),
        build_chunk("OrderRow", file_path="src/db/orders.js", kind=ChunkKind.INTERFACE, start_line=10,
                    complexity=1, code="interface OrderRow { id: number } // sql row"),
        build_chunk("UserCard", file_path="src/ui/UserCard.jsx", kind=ChunkKind.FUNCTION, start_line=1,
                    code="function UserCard(props) { return render(<div>{props.name}</div>); }"),
        build_chunk("Header", file_path="src/ui/Header.jsx", start_line=1,
                    code="const Header = () => <h1>component</h1>;"),
        build_chunk("formatDate", file_path="src/util/date.js", start_line=1, complexity=1,
                    code="function formatDate(d) { return d.toISOString(); }"),
        build_chunk("slugify", file_path="src/util/text.js", start_line=1, complexity=1,
                    code="function slugify(s) { return s.toLowerCase().replace(/ /g, '-'); }"),
    ]


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def db_manager():
    db = DatabaseManager("sqlite://")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def store(db_manager):
    return LocalCosineChunkStore(db_manager)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def embed_model():
    return FakeEmbedModel()


@pytest.fixture
def embedder(embed_model, clock):
    return EmbeddingProvider(embed_model, dimensions=DIMS, model_name="fake-embed", sleep=clock.sleep)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def gateway(fake_llm):
    return LLMGateway(fake_llm, token_counter=FakeTokenCounter())


@pytest.fixture
def services(embedder, gateway, store, clock, db_manager):
    return MigrationServices(
        embedder=embedder,
        llm=gateway,
        store=store,
        clock=clock,
        settings=PipelineSettings(threshold=0.7, limit=20, call_timeout=5.0),
        db_manager=db_manager,
    )


@pytest.fixture
def make_chunk():
    return build_chunk


@pytest.fixture
def project_chunks():
    return sample_project()


def with_embedding(chunk):
    """Attach the fake embedding of the chunk's code, as the indexer would."""
    chunk.search_text = chunk.search_text or build_search_text(chunk)
    chunk.embedding = EmbeddingRecord(
        vector=vector_for(chunk.code),
        dimensions=DIMS,
        model="fake-embed",
        chunk_id=chunk.chunk_id,
        name=chunk.name,
        file_path=chunk.file_path,
        kind=chunk.kind.value,
        language=chunk.language,
        complexity=chunk.complexity,
        search_text=chunk.search_text,
    )
    return chunk


@pytest.fixture
def indexed_store(store, project_chunks):
    """The twelve-chunk sample project stored under session s1."""
    store.insert_many([with_embedding(c) for c in project_chunks])
    return store


@pytest.fixture
def embed_chunk():
    return with_embedding
