"""Heuristic component extraction.

Splits extracted file text into sections and scores each one for reuse.
Everything here is pure string processing; no I/O.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..domain.compost_models import ComponentChunk, ProcessedFile

SECTION_MARKERS = (
    re.compile(r"\n#{1,6}\s+"),
    re.compile(r"\n\n[A-Z][A-Z\s]{10,}\n"),
    re.compile(r"\n\d+\.\s+"),
    re.compile(r"\n[-=]{3,}\n"),
    re.compile(r"\n\n(?=[A-Z])"),
)

MIN_SECTION_LENGTH = 100
MAX_TITLE_LENGTH = 100

CODE_KEYWORDS = ("function", "class", "import", "const ", "def ", "public ")
CONFIG_KEYWORDS = ("config", "setting", ".json", ".yaml", "environment")
DESIGN_KEYWORDS = ("design", "ui", "interface", "mockup", "wireframe")
DOC_KEYWORDS = ("how to", "guide", "documentation", "readme", "install")

TECH_TAGS = ("react", "node", "python", "javascript", "typescript", "api", "database", "frontend", "backend")
FUNCTIONAL_TAGS = ("authentication", "validation", "testing", "deployment", "security", "performance")

# (needles, delta); matched case-sensitively
SCORE_RULES = (
    (("function", "class"), 20),
    (("export", "module"), 15),
    (("interface", "type"), 10),
    (("/**", "//"), 10),
    (("README", "guide"), 15),
    (("localhost", "127.0.0.1"), -10),
    (("TODO", "FIXME"), -5),
)
BASE_SCORE = 50

_IMPORT_RE = re.compile(r"import\s+.*?from\s+['\"]([^'\"]+)['\"]")
_REQUIRE_RE = re.compile(r"require\(['\"]([^'\"]+)['\"]\)")


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def split_into_sections(content: str) -> List[str]:
    sections = [content]
    for marker in SECTION_MARKERS:
        sections = [part for section in sections for part in marker.split(section)]
    return [s for s in sections if s.strip()]


def extract_section_title(section: str) -> Optional[str]:
    for line in section.split("\n")[:3]:
        trimmed = line.strip()
        if 0 < len(trimmed) < MAX_TITLE_LENGTH:
            return re.sub(r"[*_`]", "", re.sub(r"^#+\s*", "", trimmed))
    return None


def infer_content_type(section: str) -> str:
    lower = section.lower()
    for kind, words in (
        ("code", CODE_KEYWORDS),
        ("configuration", CONFIG_KEYWORDS),
        ("design", DESIGN_KEYWORDS),
        ("documentation", DOC_KEYWORDS),
    ):
        if any(w in lower for w in words):
            return kind
    return "other"


def extract_tags(section: str, project_description: str = "") -> List[str]:
    lower = section.lower()
    desc = (project_description or "").lower()
    tags = [t for t in TECH_TAGS if t in lower or t in desc]
    tags += [t for t in FUNCTIONAL_TAGS if t in lower]
    return _unique(tags)


def calculate_reusability_score(section: str) -> int:
    score = BASE_SCORE
    for needles, delta in SCORE_RULES:
        if any(n in section for n in needles):
            score += delta
    return max(0, min(100, score))


def extract_dependencies(section: str) -> List[str]:
    deps = [m.group(1) for m in _IMPORT_RE.finditer(section)]
    deps += [m.group(1) for m in _REQUIRE_RE.finditer(section)]
    return _unique(d for d in deps if not d.startswith("."))


def chunk_file(file: ProcessedFile, project_description: str = "") -> List[ComponentChunk]:
    chunks: List[ComponentChunk] = []
    for index, section in enumerate(split_into_sections(file.content)):
        body = section.strip()
        if len(body) <= MIN_SECTION_LENGTH:
            continue
        chunks.append(
            ComponentChunk(
                id=f"{file.id}_chunk_{index}",
                title=extract_section_title(section) or f"Section {index + 1} from {file.original_name}",
                content=body,
                type=infer_content_type(section),
                tags=extract_tags(section, project_description),
                reusability_score=calculate_reusability_score(section),
                dependencies=extract_dependencies(section),
            )
        )
    return chunks


def chunk_files(files: Iterable[ProcessedFile], project_description: str = "") -> List[ComponentChunk]:
    out: List[ComponentChunk] = []
    for f in files:
        out.extend(chunk_file(f, project_description))
    return out
