# assetfinish/media/sourcemap.py
"""
Version 3 source maps for comment/whitespace-stripping minifiers.

rjsmin only drops comments and whitespace, so every other character of its
output appears in the source, in order. align() walks both texts once and
records where each output token came from.
"""
import bisect
from typing import Dict, Iterable, Iterator, List, Tuple

B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

Segment = Tuple[int, int, int, int]  # out_line, out_col, src_line, src_col


def vlq(value: int) -> str:
    v = ((-value) << 1) | 1 if value < 0 else value << 1
    out = ""
    while True:
        digit = v & 31
        v >>= 5
        if v:
            digit |= 32
        out += B64[digit]
        if not v:
            return out


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _skip_comment(source: str, i: int) -> int:
    if source.startswith("//", i):
        j = source.find("\n", i)
        return len(source) if j < 0 else j
    j = source.find("*/", i + 2)
    return len(source) if j < 0 else j + 2


def align(source: str, minified: str) -> Iterator[Segment]:
    """Yield one segment per token start in `minified` (0-based positions)."""
    line_starts = [0] + [n + 1 for n, c in enumerate(source) if c == "\n"]
    size = len(source)
    i = 0
    out_line = out_col = 0
    prev = "\n"

    for k, ch in enumerate(minified):
        if ch == "\n":
            out_line, out_col, prev = out_line + 1, 0, ch
            continue
        if ch.isspace():
            out_col, prev = out_col + 1, ch
            continue

        while i < size:
            pair = source[i:i + 2]
            # Comments are gone from the output; "//" kept there is string or regex text.
            if pair in ("//", "/*") and not minified.startswith(pair, k):
                i = _skip_comment(source, i)
            elif source[i] == ch:
                break
            else:
                i += 1
        if i >= size:
            return

        if not (_is_word(ch) and _is_word(prev)):
            src_line = bisect.bisect_right(line_starts, i) - 1
            yield out_line, out_col, src_line, i - line_starts[src_line]
        i += 1
        out_col += 1
        prev = ch


def encode_mappings(segments: Iterable[Segment]) -> str:
    lines: List[List[str]] = [[]]
    prev_out_col = prev_src_line = prev_src_col = 0
    for out_line, out_col, src_line, src_col in segments:
        while len(lines) <= out_line:
            lines.append([])
            prev_out_col = 0
        lines[-1].append(
            vlq(out_col - prev_out_col)
            + vlq(0)
            + vlq(src_line - prev_src_line)
            + vlq(src_col - prev_src_col)
        )
        prev_out_col, prev_src_line, prev_src_col = out_col, src_line, src_col
    return ";".join(",".join(line) for line in lines)


def build(source: str, minified: str, file: str, source_name: str, source_root: str) -> Dict:
    return {
        "version": 3,
        "file": file,
        "sourceRoot": source_root,
        "sources": [source_name],
        "sourcesContent": [source],
        "names": [],
        "mappings": encode_mappings(align(source, minified)),
    }
