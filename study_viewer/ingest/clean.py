import re
from typing import Iterable, List, Optional, Tuple

FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*)$")

_INLINE_SUBS = [
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),              # images -> alt
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),               # links -> text
    (re.compile(r"`([^`]*)`"), r"\1"),                           # inline code
    (re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1"), r"\2"),       # strong
    (re.compile(r"(?<!\w)([*_])(?=\S)(.+?)(?<=\S)\1(?!\w)"), r"\2"),  # emphasis
    (re.compile(r"~~(.+?)~~"), r"\1"),
    (re.compile(r"<[^>\n]+>"), ""),                              # html tags
]
_BLOCK_SUBS = [
    (re.compile(r"^ {0,3}#{1,6}[ \t]+"), ""),
    (re.compile(r"[ \t]+#+[ \t]*$"), ""),
    (re.compile(r"^\s*(>\s?)+"), ""),
    (re.compile(r"^\s*([-*+]|\d+[.)])\s+(\[[ xX]\]\s+)?"), ""),
]
_RULE_RE = re.compile(r"^ {0,3}([-*_])([ \t]*\1){2,}[ \t]*$")


def normalize_newlines(s: str) -> str:
    if not s:
        return s
    # Normalize Windows / old Mac line endings
    return s.replace("\r\n", "\n").replace("\r", "\n")


def heading_text(raw: str) -> str:
    """Heading text without the optional closing '#' run."""
    txt = re.sub(r"(^|[ \t]+)#+[ \t]*$", "", raw.strip())
    return txt.strip()


def fence_open(line: str) -> Optional[Tuple[str, int]]:
    m = FENCE_RE.match(line)
    if not m:
        return None
    run = m.group(1)
    # backtick fences may not carry backticks in their info string
    if run[0] == "`" and "`" in line[m.end():]:
        return None
    return run[0], len(run)


def fence_closes(line: str, fence: Tuple[str, int]) -> bool:
    ch, length = fence
    s = line.strip()
    return len(s) >= length and s == ch * len(s) and len(line) - len(line.lstrip(" ")) <= 3


def strip_inline(line: str) -> str:
    if _RULE_RE.match(line):
        return ""
    for rx, repl in _BLOCK_SUBS:
        line = rx.sub(repl, line)
    for rx, repl in _INLINE_SUBS:
        line = rx.sub(repl, line)
    return line.replace("|", " ").rstrip()


def strip_markdown(lines: Iterable[str]) -> str:
    """
    Markdown -> plain text for searching.

    Code fence bodies are kept verbatim so code stays searchable; the fence
    delimiter lines themselves are dropped.
    """
    out: List[str] = []
    fence: Optional[Tuple[str, int]] = None
    for ln in lines:
        ln = ln.rstrip("\n")
        if fence is not None:
            if fence_closes(ln, fence):
                fence = None
            else:
                out.append(ln)
            continue
        opened = fence_open(ln)
        if opened:
            fence = opened
            continue
        out.append(strip_inline(ln))
    text = "\n".join(out)
    # Trim excessive blank lines
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
