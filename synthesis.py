#!/usr/bin/env python3
"""
Synthesis snapshot model and loader.

A synthesis document is the output of one analysis run: three issue lists
(consensus, video-only, model-unique) plus an overall assessment carrying a
numeric score and a launch-readiness label. The comparison code only reads
these objects; nothing here mutates an Issue after it is built.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SEVERITIES = ("P0", "P1", "P2")
ISSUE_TYPES = ("consensus", "video-only", "model-unique")

# Document key -> issue type, in flattening order.
ISSUE_LISTS = (
	("consensusIssues", "consensus"),
	("videoOnlyIssues", "video-only"),
	("modelUniqueIssues", "model-unique"),
)

KNOWN_ISSUE_KEYS = {"id", "title", "severity", "category", "source", "index"}


class SynthesisLoadError(ValueError):
	"""Raised when a synthesis document cannot be read or is not an object."""


@dataclass(frozen=True)
class Issue:
	id: str
	title: str
	severity: str  # P0 | P1 | P2
	type: str = "consensus"  # consensus | video-only | model-unique
	category: str | None = None
	source: str = "app"  # app | test-infra
	index: int | None = None
	extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"id": self.id,
			"title": self.title,
			"severity": self.severity,
			"type": self.type,
		}
		if self.category is not None:
			out["category"] = self.category
		out["source"] = self.source
		if self.index is not None:
			out["index"] = self.index
		return out


@dataclass(frozen=True)
class OverallAssessment:
	score: float
	readiness_label: str = ""
	extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Synthesis:
	consensus_issues: tuple[Issue, ...] = ()
	video_only_issues: tuple[Issue, ...] = ()
	model_unique_issues: tuple[Issue, ...] = ()
	overall_assessment: OverallAssessment = field(
		default_factory=lambda: OverallAssessment(score=0)
	)


def flatten_issues(synthesis: Synthesis) -> list[Issue]:
	"""All issues in a stable order: consensus, then video-only, then model-unique."""
	return [
		*synthesis.consensus_issues,
		*synthesis.video_only_issues,
		*synthesis.model_unique_issues,
	]


def issue_from_dict(item: dict[str, Any], issue_type: str, position: int) -> Issue:
	category = item.get("category")
	source = str(item.get("source") or "app").strip().lower()
	index = item.get("index")
	return Issue(
		id=str(item.get("id") or f"ISSUE-{position:03d}"),
		title=str(item.get("title", "")).strip(),
		# Not coerced; anything but P0/P1/P2 fails where severity is looked up.
		severity=item["severity"],
		type=issue_type,
		category=str(category) if category else None,
		source=source,
		index=int(index) if isinstance(index, int) else None,
		extra={k: v for k, v in item.items() if k not in KNOWN_ISSUE_KEYS},
	)


def synthesis_from_dict(raw: dict[str, Any]) -> Synthesis:
	lists: dict[str, tuple[Issue, ...]] = {}
	position = 0
	for key, issue_type in ISSUE_LISTS:
		items = []
		for item in raw.get(key) or []:
			if not isinstance(item, dict):
				continue
			position += 1
			items.append(issue_from_dict(item, issue_type, position))
		lists[key] = tuple(items)

	assessment = raw.get("overallAssessment") or {}
	if not isinstance(assessment, dict):
		raise SynthesisLoadError("overallAssessment must be a JSON object")
	score = assessment.get("score", assessment.get("uxScore", 0))
	readiness = assessment.get("readinessLabel", assessment.get("launchReadiness", ""))
	return Synthesis(
		consensus_issues=lists["consensusIssues"],
		video_only_issues=lists["videoOnlyIssues"],
		model_unique_issues=lists["modelUniqueIssues"],
		overall_assessment=OverallAssessment(
			score=float(score),
			readiness_label=str(readiness or ""),
			extra={
				k: v
				for k, v in assessment.items()
				if k not in {"score", "uxScore", "readinessLabel", "launchReadiness"}
			},
		),
	)


def find_synthesis_path(run_dir: Path) -> Path:
	return Path(run_dir).resolve() / "reports" / "synthesis.json"


def load_synthesis(path: Path) -> Synthesis:
	path = Path(path)
	if not path.is_file():
		raise SynthesisLoadError(f"Synthesis not found: {path}")
	try:
		raw = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as exc:
		raise SynthesisLoadError(f"Invalid JSON in {path}: {exc}") from exc
	if not isinstance(raw, dict):
		raise SynthesisLoadError(f"Synthesis document must be a JSON object: {path}")

	try:
		synthesis = synthesis_from_dict(raw)
	except SynthesisLoadError as exc:
		raise SynthesisLoadError(f"{exc}: {path}") from exc
	except (KeyError, TypeError, ValueError) as exc:
		raise SynthesisLoadError(f"Malformed synthesis {path}: {exc!r}") from exc
	logger.debug("Loaded %d issue(s) from %s", len(flatten_issues(synthesis)), path)
	return synthesis
