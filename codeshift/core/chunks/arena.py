"""Chunk arena: a flat collection of chunks plus index maps.

Parent/child links and cross-chunk references are stored as ids and
resolved through the arena's lookup tables, so there are no owning
references between chunks.
"""

import posixpath
import re
from collections import OrderedDict, defaultdict
from typing import Dict, Iterable, List, Optional

from .models import CodeChunk

# identifier followed by an opening paren, e.g. ``connect(`` or ``db.query(``
_CALL_RE = re.compile(r"\b([A-Za-z_$][\w$]*)\s*\(")

_CALL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "function", "return", "typeof",
    "new", "await", "async", "super", "import", "require", "def", "print",
})


def _file_stem(path: str) -> str:
    base = posixpath.basename(path.replace("\\", "/"))
    stem, _ = posixpath.splitext(base)
    return stem


class ChunkArena:
    """Index over one session's chunks."""

    def __init__(self, chunks: Iterable[CodeChunk] = ()):
        self._chunks: "OrderedDict[str, CodeChunk]" = OrderedDict()
        self._by_file: Dict[str, List[str]] = defaultdict(list)
        self._by_name: Dict[str, List[str]] = defaultdict(list)
        self._by_stem: Dict[str, List[str]] = defaultdict(list)
        for chunk in chunks:
            self.add(chunk)

    def add(self, chunk: CodeChunk) -> None:
        if chunk.chunk_id in self._chunks:
            return
        self._chunks[chunk.chunk_id] = chunk
        self._by_file[chunk.file_path].append(chunk.chunk_id)
        if chunk.name:
            self._by_name[chunk.name].append(chunk.chunk_id)
        self._by_stem[_file_stem(chunk.file_path)].append(chunk.chunk_id)

    def __len__(self) -> int:
        return len(self._chunks)

    def __contains__(self, chunk_id: str) -> bool:
        return chunk_id in self._chunks

    def __iter__(self):
        return iter(self._chunks.values())

    def get(self, chunk_id: str) -> Optional[CodeChunk]:
        return self._chunks.get(chunk_id)

    def parent(self, chunk_id: str) -> Optional[CodeChunk]:
        chunk = self.get(chunk_id)
        if chunk is None or not chunk.parent_chunk_id:
            return None
        return self.get(chunk.parent_chunk_id)

    def children(self, chunk_id: str) -> List[CodeChunk]:
        chunk = self.get(chunk_id)
        if chunk is None:
            return []
        return [self._chunks[cid] for cid in chunk.child_chunk_ids if cid in self._chunks]

    def files(self) -> List[str]:
        return list(self._by_file.keys())

    # ── References ────────────────────────────────────────────────────

    def import_targets(self, chunk: CodeChunk) -> List[CodeChunk]:
        """Chunks living in files that this chunk imports from."""
        targets: List[CodeChunk] = []
        for dep in chunk.dependencies:
            if dep.external or not dep.source:
                continue
            stem = _file_stem(dep.source)
            for cid in self._by_stem.get(stem, []):
                candidate = self._chunks[cid]
                if candidate.file_path != chunk.file_path:
                    targets.append(candidate)
        return targets

    def callees(self, chunk: CodeChunk) -> List[CodeChunk]:
        """Chunks whose name is invoked from this chunk's code."""
        found: List[CodeChunk] = []
        seen = set()
        for match in _CALL_RE.finditer(chunk.code or ""):
            name = match.group(1)
            if name in _CALL_KEYWORDS or name == chunk.name or name in seen:
                continue
            seen.add(name)
            for cid in self._by_name.get(name, []):
                found.append(self._chunks[cid])
        return found

    def references(self, chunk: CodeChunk) -> List[CodeChunk]:
        """Import targets first, then callees, without duplicates."""
        out: List[CodeChunk] = []
        seen = {chunk.chunk_id}
        for ref in self.import_targets(chunk) + self.callees(chunk):
            if ref.chunk_id not in seen:
                seen.add(ref.chunk_id)
                out.append(ref)
        return out

    def related(self, selected: Iterable[CodeChunk], limit: int) -> List[CodeChunk]:
        """Chunks referenced by the selection that are not already part of it.

        Order follows the selection order, then reference order.
        """
        selected = list(selected)
        present = {c.chunk_id for c in selected}
        out: List[CodeChunk] = []
        for chunk in selected:
            for ref in self.references(chunk):
                if len(out) >= limit:
                    return out
                if ref.chunk_id in present:
                    continue
                present.add(ref.chunk_id)
                out.append(ref)
        return out
