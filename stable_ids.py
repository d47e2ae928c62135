#!/usr/bin/env python3
"""
Content-derived issue identities.

Issue ids produced by the synthesis model are ordinals ("ISSUE-003") with no
meaning across runs. A stable id is a short SHA-256 prefix of the issue's
title and a discriminator, so the same issue keeps the same id in every run
that describes it with the same title.
"""

from __future__ import annotations

import dataclasses
import hashlib

from synthesis import Issue, Synthesis


STABLE_ID_PREFIX = "QUX-"
STABLE_ID_HEX_LEN = 8

VIDEO_DISCRIMINATOR = "video"
MODEL_UNIQUE_DISCRIMINATOR = "model-unique"
CONSENSUS_DISCRIMINATOR = "consensus"


def generate_stable_id(title: str, discriminator: str) -> str:
	normalized = f"{title.lower().strip()}:{discriminator.lower().strip()}"
	digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
	return f"{STABLE_ID_PREFIX}{digest[:STABLE_ID_HEX_LEN]}"


def is_stable_id(issue_id: str) -> bool:
	"""True for namespace-tagged ids; legacy ordinal ids are not stable."""
	return issue_id.startswith(STABLE_ID_PREFIX)


def _discriminator(issue: Issue) -> str:
	if issue.type == "video-only":
		return VIDEO_DISCRIMINATOR
	if issue.type == "model-unique":
		return MODEL_UNIQUE_DISCRIMINATOR
	return issue.category or CONSENSUS_DISCRIMINATOR


def stabilize_ids(synthesis: Synthesis) -> Synthesis:
	"""
	Replace model-generated ordinal ids with stable ids.

	The ordinal position is kept as ``index`` (1-based, running across the
	three issue lists). Returns a new Synthesis; the input is left untouched.
	"""
	idx = 0

	def restamp(issues: tuple[Issue, ...]) -> tuple[Issue, ...]:
		nonlocal idx
		out = []
		for issue in issues:
			idx += 1
			out.append(
				dataclasses.replace(
					issue,
					index=idx,
					id=generate_stable_id(issue.title, _discriminator(issue)),
				)
			)
		return tuple(out)

	return dataclasses.replace(
		synthesis,
		consensus_issues=restamp(synthesis.consensus_issues),
		video_only_issues=restamp(synthesis.video_only_issues),
		model_unique_issues=restamp(synthesis.model_unique_issues),
	)
