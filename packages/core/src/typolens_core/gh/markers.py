"""Hidden HTML-comment markers carrying machine-readable state in GitHub comments.

GitHub has no property bag on review threads or pull requests, so the state
travels inside the comment body as ``<!-- typolens:<kind> <payload> -->``.
The payload is base64-encoded JSON: line texts can contain ``-->`` (the
placeholder text does), which would otherwise end the HTML comment early.
"""

from __future__ import annotations

import base64
import binascii
import json
import re

THREAD_MARKER = "thread"
PR_PROPERTY_MARKER = "pr-property"

_MARKER_RE = re.compile(r"\n*<!-- typolens:(?P<kind>[a-z-]+) (?P<payload>[A-Za-z0-9_=-]*) -->")


def encode_payload(payload: dict) -> str:
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_payload(encoded: str) -> dict | None:
    try:
        data = json.loads(base64.urlsafe_b64decode(encoded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def render_marker(kind: str, payload: dict) -> str:
    return f"<!-- typolens:{kind} {encode_payload(payload)} -->"


def find_marker(body: str | None, kind: str) -> dict | None:
    """Return the payload of the last ``kind`` marker in ``body``, or None."""
    found = None
    for match in _MARKER_RE.finditer(body or ""):
        if match.group("kind") == kind:
            payload = decode_payload(match.group("payload"))
            if payload is not None:
                found = payload
    return found


def strip_markers(body: str | None) -> str:
    return _MARKER_RE.sub("", body or "").strip()


def with_marker(body: str, kind: str, payload: dict) -> str:
    """Return ``body`` with its ``kind`` marker replaced (or appended)."""
    cleaned = _MARKER_RE.sub(lambda m: "" if m.group("kind") == kind else m.group(0), body or "")
    return cleaned.rstrip() + "\n\n" + render_marker(kind, payload)
