from __future__ import annotations
from typing import Iterator, List, Tuple

# How far (in characters) a cut may move to land on a line start.
SNAP_WINDOW = 2000

def compute_chunk_boundaries(text: str, target_size: int, window: int = SNAP_WINDOW) -> List[int]:
    """Offsets [0, ..., len(text)] cutting `text` into ~target_size pieces.

    Each interior cut sits right after a "\\n" when one is found within
    `window` characters forward (preferred) or backward of the raw offset;
    otherwise the raw offset is used and the chunk splits a line.
    """
    if target_size <= 0:
        raise ValueError(f"target_size must be positive, got {target_size}")
    n = len(text)
    if n <= target_size:
        return [0, n]

    idx: List[int] = [0]
    pos = 0
    while pos < n:
        raw = pos + target_size
        if raw >= n:
            idx.append(n)
            break
        nxt = raw
        # forward: first newline at or after the raw offset
        nl = text.find("\n", raw, min(n, raw + window))
        if nl != -1:
            nxt = nl + 1
        else:
            # backward, never crossing the previous boundary
            nl = text.rfind("\n", max(pos + 1, raw - window + 1), raw)
            if nl != -1:
                nxt = nl + 1
        idx.append(nxt)
        pos = nxt
    return idx

def iter_chunks(text: str, boundaries: List[int]) -> Iterator[Tuple[int, int, int, str]]:
    for i in range(len(boundaries) - 1):
        a, b = boundaries[i], boundaries[i + 1]
        yield i, a, b, text[a:b]
