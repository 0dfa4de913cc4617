"""Content hashing and diffing used to detect hand edits to generated files."""

from __future__ import annotations

import difflib
import hashlib


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"


def diff_trees(
    expected: dict[str, bytes],
    actual: dict[str, bytes],
) -> list[str]:
    """Generate unified diffs between the generated and the on-disk files.

    Returns a list of diff strings (one per changed file).
    """
    all_paths = sorted(set(expected) | set(actual))
    diffs = []

    for path in all_paths:
        if expected.get(path) == actual.get(path):
            continue

        if path not in actual:
            diffs.append(f"  - {path} (missing on disk)")
            continue

        if path not in expected:
            diffs.append(f"  + {path} (not generated by skillet)")
            continue

        diff_lines = difflib.unified_diff(
            _decode(expected[path]).splitlines(keepends=True),
            _decode(actual[path]).splitlines(keepends=True),
            fromfile=f"generated/{path}",
            tofile=f"disk/{path}",
        )
        diff_text = "".join(diff_lines)
        if diff_text:
            diffs.append(diff_text)

    return diffs
