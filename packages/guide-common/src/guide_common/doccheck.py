"""
Documentation checker for the stack guide.

The guide is mostly Markdown, so its correctness properties are
copy-editing ones: every Python snippet parses, every shell snippet has
balanced quoting, and every relative link points at a file that exists.
External links are optionally checked over HTTP.

Usage::

    python scripts/check_docs.py --root .
"""

from __future__ import annotations

import ast
import re
import shlex
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import httpx
import structlog

logger = structlog.get_logger()

PYTHON_LANGUAGES = {"python", "py", "python3"}
SHELL_LANGUAGES = {"bash", "sh", "shell", "console", "zsh"}

_FENCE_RE = re.compile(r"^(?P<indent>\s*)(?P<fence>`{3,}|~{3,})(?P<info>[^`]*)$")
# [text](target "optional title"), images included; reference-style links are not used.
_LINK_RE = re.compile(r"!?\[[^\]]*\]\(\s*(?P<target><[^>]+>|[^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_URL_RE = re.compile(r"https?://[^\s<>\"'\])}]+")

_USER_AGENT = "stack-guide-doccheck/0.1"
_PARSE_FLAGS = ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block.

    Attributes:
        language: Lower-cased info-string language (``""`` if absent).
        code: Block contents without the fences.
        line: 1-based line number of the first content line.
    """

    language: str
    code: str
    line: int


@dataclass(frozen=True)
class DocIssue:
    """A single documentation problem."""

    path: str
    line: int
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line}: [{self.kind}] {self.message}"


# ── extraction ──


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """Return every fenced code block in *text*.

    An unterminated fence swallows the rest of the document, matching
    how CommonMark renders it.
    """
    blocks: list[CodeBlock] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        match = _FENCE_RE.match(lines[i])
        if match is None:
            i += 1
            continue
        fence = match.group("fence")
        indent = len(match.group("indent"))
        info = match.group("info").strip()
        language = info.split()[0].lower() if info else ""
        body: list[str] = []
        start = i + 1
        i += 1
        while i < len(lines):
            stripped = lines[i].strip()
            if stripped.startswith(fence[0] * len(fence)) and set(stripped) == {fence[0]}:
                break
            line = lines[i]
            # Drop up to the fence's own indentation, as CommonMark does.
            body.append(line[min(indent, len(line) - len(line.lstrip())):])
            i += 1
        blocks.append(CodeBlock(language=language, code="\n".join(body), line=start + 1))
        i += 1
    return blocks


def _strip_code(text: str) -> str:
    """Blank out fenced blocks and inline code so links inside them are ignored."""
    out: list[str] = []
    in_fence: str | None = None
    for line in text.splitlines():
        match = _FENCE_RE.match(line)
        if in_fence is None and match is not None:
            in_fence = match.group("fence")[0]
            out.append("")
            continue
        if in_fence is not None:
            stripped = line.strip()
            if stripped and set(stripped) == {in_fence} and len(stripped) >= 3:
                in_fence = None
            out.append("")
            continue
        out.append(re.sub(r"`[^`]*`", "", line))
    return "\n".join(out)


def extract_links(text: str) -> list[tuple[str, int]]:
    """Return ``(target, line)`` pairs for Markdown links outside code."""
    links: list[tuple[str, int]] = []
    for lineno, line in enumerate(_strip_code(text).splitlines(), start=1):
        for match in _LINK_RE.finditer(line):
            target = match.group("target").strip("<>")
            links.append((target, lineno))
    return links


# ── checks ──


def check_python_blocks(path: str, blocks: Iterable[CodeBlock]) -> list[DocIssue]:
    """Parse every Python block and report syntax errors.

    Top-level ``await`` is accepted: snippets are written as if typed into
    an async REPL.
    """
    issues: list[DocIssue] = []
    for block in blocks:
        if block.language not in PYTHON_LANGUAGES:
            continue
        try:
            compile(block.code, path, "exec", flags=_PARSE_FLAGS, dont_inherit=True)
        except SyntaxError as exc:
            offset = (exc.lineno or 1) - 1
            issues.append(
                DocIssue(path, block.line + offset, "python-syntax", exc.msg),
            )
    return issues


def _shell_commands(code: str) -> list[tuple[str, int]]:
    """Split a shell block into logical commands with their 0-based line offsets."""
    commands: list[tuple[str, int]] = []
    pending: list[str] = []
    pending_start = 0
    for offset, raw in enumerate(code.splitlines()):
        line = raw.strip()
        if not pending:
            if not line or line.startswith("#"):
                continue
            if line.startswith("$ "):
                line = line[2:]
            pending_start = offset
        if line.endswith("\\"):
            pending.append(line[:-1])
            continue
        pending.append(line)
        commands.append((" ".join(pending), pending_start))
        pending = []
    if pending:
        commands.append((" ".join(pending), pending_start))
    return commands


def check_shell_blocks(path: str, blocks: Iterable[CodeBlock]) -> list[DocIssue]:
    """Tokenise every shell command and report unbalanced quoting."""
    issues: list[DocIssue] = []
    for block in blocks:
        if block.language not in SHELL_LANGUAGES:
            continue
        for command, offset in _shell_commands(block.code):
            try:
                shlex.split(command, comments=True)
            except ValueError as exc:
                issues.append(DocIssue(path, block.line + offset, "shell-syntax", str(exc)))
    return issues


def _is_external(target: str) -> bool:
    return bool(re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", target))


def check_links(path: Path, text: str, root: Path) -> list[DocIssue]:
    """Report relative links in *path* that do not resolve to an existing file.

    Links are resolved against the document's directory; a leading ``/``
    resolves against *root*.
    """
    issues: list[DocIssue] = []
    for target, line in extract_links(text):
        if _is_external(target) or target.startswith("#"):
            continue
        relative = target.split("#", 1)[0].split("?", 1)[0]
        if not relative:
            continue
        base = root if relative.startswith("/") else path.parent
        resolved = (base / relative.lstrip("/")).resolve()
        if not resolved.exists():
            issues.append(
                DocIssue(_display(path, root), line, "broken-link", f"{target} does not exist"),
            )
    return issues


def _check_url(url: str, timeout: float) -> tuple[str, int | str]:
    headers = {"User-Agent": _USER_AGENT}
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True, headers=headers) as client:
            response = client.head(url)
            if response.status_code >= 400:
                # Some hosts reject HEAD; retry with GET before calling it broken.
                response = client.get(url)
            return url, response.status_code
    except httpx.HTTPError as exc:
        return url, str(exc)


def check_external_links(
    urls: Iterable[tuple[str, str, int]],
    *,
    timeout: float = 10.0,
    workers: int = 8,
) -> list[DocIssue]:
    """Probe ``(url, path, line)`` triples over HTTP and report failures."""
    triples = list(urls)
    unique = sorted({url for url, _, _ in triples})
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = dict(executor.map(lambda u: _check_url(u, timeout), unique))
    issues: list[DocIssue] = []
    for url, path, line in triples:
        status = results[url]
        if isinstance(status, str) or status >= 400:
            issues.append(DocIssue(path, line, "external-link", f"{url} -> {status}"))
    return issues


def _display(path: Path, root: Path) -> str:
    try:
        return str(path.resolve().relative_to(root.resolve()))
    except ValueError:
        return str(path)


def iter_documents(root: Path) -> list[Path]:
    """Return the README plus every Markdown file under ``docs/``."""
    docs: list[Path] = []
    readme = root / "README.md"
    if readme.exists():
        docs.append(readme)
    docs_dir = root / "docs"
    if docs_dir.is_dir():
        docs.extend(sorted(docs_dir.rglob("*.md")))
    return docs


def check_document(path: Path, root: Path) -> list[DocIssue]:
    """Run every offline check against a single Markdown file."""
    text = path.read_text(encoding="utf-8")
    display = _display(path, root)
    blocks = extract_code_blocks(text)
    issues = check_python_blocks(display, blocks)
    issues.extend(check_shell_blocks(display, blocks))
    issues.extend(check_links(path, text, root))
    return issues


def check_tree(root: Path, *, external: bool = False) -> list[DocIssue]:
    """Check every guide document under *root*.

    Args:
        root: Repository root.
        external: Also request ``http(s)`` links found outside code blocks.
    """
    issues: list[DocIssue] = []
    urls: list[tuple[str, str, int]] = []
    documents = iter_documents(root)
    for path in documents:
        issues.extend(check_document(path, root))
        if external:
            text = _strip_code(path.read_text(encoding="utf-8"))
            for lineno, line in enumerate(text.splitlines(), start=1):
                for url in _URL_RE.findall(line):
                    urls.append((url.rstrip(".,"), _display(path, root), lineno))
    if urls:
        issues.extend(check_external_links(urls))
    logger.info("docs_checked", documents=len(documents), issues=len(issues))
    return issues
