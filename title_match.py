#!/usr/bin/env python3
"""
Title normalization and token-set similarity for issue titles.

Titles are model-generated prose, so two runs can describe the same problem
with different wording. Normalization removes the noise that does not change
meaning (severity prefixes, filler adverbs, common synonyms) before the
Jaccard comparison.
"""

from __future__ import annotations

import re


SEVERITY_PREFIX_RE = re.compile(
	r"^\s*[\[{(]?\s*p[0-2]\b\s*[\]})]?\s*[:–—-]?\s?",
	re.IGNORECASE,
)

FILLER_WORDS = {
	"consistently",
	"constantly",
	"extremely",
	"significantly",
	"very",
	"really",
	"quite",
	"highly",
	"severely",
	"completely",
	"totally",
	"entirely",
	"somewhat",
	"slightly",
	"noticeably",
	"frequently",
	"repeatedly",
	"occasionally",
	"sometimes",
	"particularly",
	"especially",
	"overly",
	"still",
}

SYNONYMS = {
	"latency": "performance",
	"lag": "performance",
	"laggy": "performance",
	"sluggish": "performance",
	"frozen": "block",
	"freeze": "block",
	"freezes": "block",
	"freezing": "block",
	"stuck": "block",
	"blocked": "block",
	"blocks": "block",
	"blocking": "block",
	"hang": "block",
	"hangs": "block",
	"navigation": "nav",
	"navigate": "nav",
	"navigating": "nav",
	"progress": "step",
	"steps": "step",
	"btn": "button",
	"modal": "dialog",
	"popup": "dialog",
	"pop-up": "dialog",
	"errors": "error",
	"missing": "absent",
	"unclear": "confusing",
}


def normalize_title(title: str) -> str:
	t = SEVERITY_PREFIX_RE.sub("", title, count=1).lower()
	out = []
	for tok in t.split():
		if tok in FILLER_WORDS:
			continue
		out.append(SYNONYMS.get(tok, tok))
	return " ".join(out)


def title_tokens(title: str) -> set[str]:
	return set(normalize_title(title).split())


def jaccard(a: set[str], b: set[str]) -> float:
	if not a and not b:
		return 1.0
	if not a or not b:
		return 0.0
	return len(a & b) / len(a | b)


def jaccard_similarity(a: str, b: str) -> float:
	"""Jaccard similarity of the normalized token sets of two titles, in [0, 1]."""
	return jaccard(title_tokens(a), title_tokens(b))
