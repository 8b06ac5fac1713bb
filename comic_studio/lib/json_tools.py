# comic_studio/lib/json_tools.py
import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", flags=re.IGNORECASE | re.DOTALL)

def extract_json_block(text: str) -> str:
    """
    Best-effort isolation of a JSON literal from model output:
    fenced block first, then the whole text, then the outermost [...] or {...}.
    """
    s = (text or "").strip()
    m = _FENCE_RE.search(s)
    if m:
        s = m.group(1).strip()
    try:
        json.loads(s)
        return s
    except ValueError:
        pass
    starts = [i for i in (s.find("["), s.find("{")) if i != -1]
    if not starts:
        return s
    start = min(starts)
    closer = "]" if s[start] == "[" else "}"
    end = s.rfind(closer)
    if end > start:
        return s[start:end + 1]
    return s

def loads_lenient(text: str) -> Optional[Any]:
    """Extract then strictly decode; None when nothing decodes."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(extract_json_block(text))
    except ValueError:
        return None
