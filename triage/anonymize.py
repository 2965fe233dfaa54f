"""Masking of sensitive failure fragments before text leaves the process.

Substitution is single-pass with a longest-first alternation, so a replacement is never rescanned.
A short value (e.g. "5") that happens to occur inside another value's mask cannot corrupt it.
"""

from __future__ import annotations

import hashlib
import re
from typing import Dict, Iterable, List

from triage.core.models import Failure, Sensitive


def mask_string(value: str) -> str:
    # Deterministic so the same value masks identically across failures and runs.
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return digest[: max(8, min(len(value), 32))]


def sensitive(*values: str) -> List[Sensitive]:
    return [Sensitive(unmasked=v, masked=mask_string(v)) for v in values if v]


def _replace_all(text: str, mapping: Dict[str, str]) -> str:
    if not text or not mapping:
        return text
    pattern = re.compile("|".join(re.escape(k) for k in sorted(mapping, key=len, reverse=True)))
    return pattern.sub(lambda m: mapping[m.group(0)], text)


def _fields(failures: Iterable[Failure]) -> List[Sensitive]:
    return [s for f in failures for s in f.sensitive if s.unmasked]


def mask_text(text: str, failures: Iterable[Failure]) -> str:
    """Mask every sensitive value declared by `failures` wherever it occurs in `text`."""
    return _replace_all(text, {s.unmasked: s.masked for s in _fields(failures)})


def mask_failure_text(failure: Failure) -> str:
    return mask_text(failure.text, [failure])


def unmask_text(text: str, failures: Iterable[Failure]) -> str:
    return _replace_all(text, {s.masked: s.unmasked for s in _fields(failures)})
