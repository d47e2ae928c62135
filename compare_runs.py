#!/usr/bin/env python3
"""
Compare two synthesis runs and reconcile their issues.

Issues are matched across runs in two passes (exact stable id, then fuzzy
title similarity). Leftovers are searched once more for reworded variants so
a rewording does not show up as one resolved issue plus one new issue.

Outputs:
  - console summary
  - optional JSON CompareResult
  - optional Markdown report
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from scoring import calculate_adjusted_score, normalize_score, round_half_up
from stable_ids import is_stable_id
from synthesis import (
	SEVERITIES,
	Issue,
	Synthesis,
	SynthesisLoadError,
	find_synthesis_path,
	flatten_issues,
	load_synthesis,
)
from title_match import jaccard, title_tokens

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEV_ORDER = {"P0": 0, "P1": 1, "P2": 2}

MATCH_THRESHOLD = 0.6
# Applies only when category and severity agree.
RELAXED_MATCH_THRESHOLD = 0.4
DEFAULT_VARIANT_THRESHOLD = 0.35

METHOD_EXACT = "exact-id"
METHOD_FUZZY = "fuzzy"

NO_CHANGES_CONTEXT = "No meaningful changes between runs"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueMatch:
	baseline: Issue
	current: Issue
	method: str  # exact-id | fuzzy
	confidence: int | None = None  # fuzzy only, 0-100


@dataclass
class MatchResult:
	matched: list[IssueMatch]
	unmatched_baseline: list[Issue]
	unmatched_current: list[Issue]


@dataclass(frozen=True)
class PersistingIssue:
	baseline_id: str
	current_id: str
	title: str
	baseline_severity: str
	current_severity: str
	severity_change: str  # improved | regressed | unchanged
	match_method: str
	match_confidence: int | None = None

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"baselineId": self.baseline_id,
			"currentId": self.current_id,
			"title": self.title,
			"baselineSeverity": self.baseline_severity,
			"currentSeverity": self.current_severity,
			"severityChange": self.severity_change,
			"matchMethod": self.match_method,
		}
		if self.match_confidence is not None:
			out["matchConfidence"] = self.match_confidence
		return out


@dataclass(frozen=True)
class PersistingVariant:
	issue: Issue  # current run
	similar_to: Issue  # baseline run
	similarity_score: int  # 0-100

	def to_dict(self) -> dict[str, Any]:
		return {
			"issue": self.issue.to_dict(),
			"similarTo": self.similar_to.to_dict(),
			"similarityScore": self.similarity_score,
		}


@dataclass
class CompareResult:
	baseline_label: str
	current_label: str
	score_delta: float
	baseline_score: float
	current_score: float
	baseline_readiness: str
	current_readiness: str
	baseline_adjusted_score: float | None = None
	current_adjusted_score: float | None = None
	adjusted_delta: float | None = None
	resolved_issues: list[Issue] = field(default_factory=list)
	new_issues: list[Issue] = field(default_factory=list)
	persisting_issues: list[PersistingIssue] = field(default_factory=list)
	persisting_variants: list[PersistingVariant] = field(default_factory=list)
	regressions: list[PersistingIssue] = field(default_factory=list)
	severity_distribution: dict[str, dict[str, int]] = field(
		default_factory=lambda: {"baseline": empty_severity_counts(), "current": empty_severity_counts()}
	)
	score_context: str = ""

	def to_dict(self) -> dict[str, Any]:
		return {
			"baselineLabel": self.baseline_label,
			"currentLabel": self.current_label,
			"scoreDelta": clean_number(self.score_delta),
			"baselineScore": clean_number(self.baseline_score),
			"currentScore": clean_number(self.current_score),
			"baselineReadiness": self.baseline_readiness,
			"currentReadiness": self.current_readiness,
			"baselineAdjustedScore": clean_number(self.baseline_adjusted_score),
			"currentAdjustedScore": clean_number(self.current_adjusted_score),
			"adjustedDelta": clean_number(self.adjusted_delta),
			"resolvedIssues": [i.to_dict() for i in self.resolved_issues],
			"newIssues": [i.to_dict() for i in self.new_issues],
			"persistingIssues": [p.to_dict() for p in self.persisting_issues],
			"persistingVariants": [v.to_dict() for v in self.persisting_variants],
			"regressions": [p.to_dict() for p in self.regressions],
			"severityDistribution": self.severity_distribution,
			"scoreContext": self.score_context,
		}


def clean_number(value: float | None) -> float | int | None:
	if isinstance(value, float) and value.is_integer():
		return int(value)
	return value


def empty_severity_counts() -> dict[str, int]:
	return {sev: 0 for sev in SEVERITIES}


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def greedy_match(candidates: list[tuple[float, int, int]]) -> list[tuple[float, int, int]]:
	"""
	One-to-one assignment from (similarity, baseline_idx, current_idx) candidates.

	Highest similarity wins; ties go to the lowest baseline index, then the
	lowest current index. Indices refer to the caller's lists and are never
	reused once claimed.
	"""
	claimed_baseline: set[int] = set()
	claimed_current: set[int] = set()
	assignments = []
	for sim, bi, ci in sorted(candidates, key=lambda c: (-c[0], c[1], c[2])):
		if bi in claimed_baseline or ci in claimed_current:
			continue
		claimed_baseline.add(bi)
		claimed_current.add(ci)
		assignments.append((sim, bi, ci))
	return assignments


def is_fuzzy_candidate(baseline: Issue, current: Issue, similarity: float) -> bool:
	if similarity > MATCH_THRESHOLD:
		return True
	return (
		baseline.category is not None
		and baseline.category == current.category
		and baseline.severity == current.severity
		and similarity > RELAXED_MATCH_THRESHOLD
	)


def match_issues(baseline_issues: list[Issue], current_issues: list[Issue]) -> MatchResult:
	used_baseline: set[int] = set()
	used_current: set[int] = set()
	matched: list[IssueMatch] = []

	# 1) Exact stable-id match. Legacy ordinal ids carry no cross-run meaning.
	for bi, b in enumerate(baseline_issues):
		if not is_stable_id(b.id):
			continue
		for ci, c in enumerate(current_issues):
			if ci in used_current or c.id != b.id:
				continue
			used_baseline.add(bi)
			used_current.add(ci)
			matched.append(IssueMatch(baseline=b, current=c, method=METHOD_EXACT))
			break
	exact_count = len(matched)

	# 2) Fuzzy title match over what is left.
	b_tokens = [title_tokens(b.title) for b in baseline_issues]
	c_tokens = [title_tokens(c.title) for c in current_issues]
	candidates = []
	for bi, b in enumerate(baseline_issues):
		if bi in used_baseline:
			continue
		for ci, c in enumerate(current_issues):
			if ci in used_current:
				continue
			sim = jaccard(b_tokens[bi], c_tokens[ci])
			if is_fuzzy_candidate(b, c, sim):
				candidates.append((sim, bi, ci))

	for sim, bi, ci in greedy_match(candidates):
		used_baseline.add(bi)
		used_current.add(ci)
		matched.append(
			IssueMatch(
				baseline=baseline_issues[bi],
				current=current_issues[ci],
				method=METHOD_FUZZY,
				confidence=round_half_up(sim * 100),
			)
		)

	logger.debug(
		"Matched %d exact-id and %d fuzzy of %d baseline / %d current issue(s)",
		exact_count,
		len(matched) - exact_count,
		len(baseline_issues),
		len(current_issues),
	)
	return MatchResult(
		matched=matched,
		unmatched_baseline=[b for bi, b in enumerate(baseline_issues) if bi not in used_baseline],
		unmatched_current=[c for ci, c in enumerate(current_issues) if ci not in used_current],
	)


def detect_variants(
	unmatched_baseline: list[Issue],
	unmatched_current: list[Issue],
	threshold: float = DEFAULT_VARIANT_THRESHOLD,
) -> tuple[list[PersistingVariant], list[Issue], list[Issue]]:
	"""
	Pair reworded issues among the matcher's leftovers.

	Returns (variants, resolved, new): baseline leftovers that found no variant
	are resolved, current leftovers that found no variant are new.
	"""
	b_tokens = [title_tokens(b.title) for b in unmatched_baseline]
	c_tokens = [title_tokens(c.title) for c in unmatched_current]
	candidates = []
	for bi in range(len(unmatched_baseline)):
		for ci in range(len(unmatched_current)):
			sim = jaccard(b_tokens[bi], c_tokens[ci])
			if sim >= threshold:
				candidates.append((sim, bi, ci))

	variants = []
	used_baseline: set[int] = set()
	used_current: set[int] = set()
	for sim, bi, ci in greedy_match(candidates):
		used_baseline.add(bi)
		used_current.add(ci)
		variants.append(
			PersistingVariant(
				issue=unmatched_current[ci],
				similar_to=unmatched_baseline[bi],
				similarity_score=round_half_up(sim * 100),
			)
		)

	resolved = [b for bi, b in enumerate(unmatched_baseline) if bi not in used_baseline]
	new = [c for ci, c in enumerate(unmatched_current) if ci not in used_current]
	logger.debug(
		"Variant pass: %d variant(s), %d resolved, %d new (threshold %.2f)",
		len(variants),
		len(resolved),
		len(new),
		threshold,
	)
	return variants, resolved, new


def classify_severity_change(baseline_severity: str, current_severity: str) -> str:
	before = SEV_ORDER[baseline_severity]
	after = SEV_ORDER[current_severity]
	if after > before:
		return "improved"
	if after < before:
		return "regressed"
	return "unchanged"


def to_persisting(match: IssueMatch) -> PersistingIssue:
	return PersistingIssue(
		baseline_id=match.baseline.id,
		current_id=match.current.id,
		title=match.current.title,
		baseline_severity=match.baseline.severity,
		current_severity=match.current.severity,
		severity_change=classify_severity_change(match.baseline.severity, match.current.severity),
		match_method=match.method,
		match_confidence=match.confidence,
	)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------

def count_severities(synthesis: Synthesis) -> dict[str, int]:
	counts = empty_severity_counts()
	for issue in flatten_issues(synthesis):
		counts[issue.severity] += 1
	return counts


def compare_syntheses(
	baseline: Synthesis,
	current: Synthesis,
	baseline_label: str,
	current_label: str,
	variant_threshold: float = DEFAULT_VARIANT_THRESHOLD,
) -> CompareResult:
	"""
	Reconcile two synthesis snapshots.

	``variant_threshold`` must already be validated to [0, 1] by the caller.
	"""
	match = match_issues(flatten_issues(baseline), flatten_issues(current))
	variants, resolved, new = detect_variants(
		match.unmatched_baseline, match.unmatched_current, variant_threshold
	)
	persisting = [to_persisting(m) for m in match.matched]

	baseline_score = normalize_score(baseline.overall_assessment.score)
	current_score = normalize_score(current.overall_assessment.score)
	baseline_adjusted = calculate_adjusted_score(baseline)
	current_adjusted = calculate_adjusted_score(current)
	adjusted_delta = None
	if baseline_adjusted is not None and current_adjusted is not None:
		adjusted_delta = current_adjusted - baseline_adjusted

	result = CompareResult(
		baseline_label=baseline_label,
		current_label=current_label,
		score_delta=current_score - baseline_score,
		baseline_score=baseline_score,
		current_score=current_score,
		baseline_readiness=baseline.overall_assessment.readiness_label,
		current_readiness=current.overall_assessment.readiness_label,
		baseline_adjusted_score=baseline_adjusted,
		current_adjusted_score=current_adjusted,
		adjusted_delta=adjusted_delta,
		resolved_issues=resolved,
		new_issues=new,
		persisting_issues=persisting,
		persisting_variants=variants,
		regressions=[p for p in persisting if p.severity_change == "regressed"],
		severity_distribution={
			"baseline": count_severities(baseline),
			"current": count_severities(current),
		},
	)
	result.score_context = generate_score_context(result)
	return result


def _plural(n: int, word: str) -> str:
	return f"{n} {word}" if n == 1 else f"{n} {word}s"


def generate_score_context(result: CompareResult) -> str:
	if not (
		result.resolved_issues
		or result.new_issues
		or result.persisting_variants
		or result.regressions
	):
		return NO_CHANGES_CONTEXT

	parts = []
	if result.score_delta > 0:
		resolved_p0 = sum(1 for i in result.resolved_issues if i.severity == "P0")
		if resolved_p0:
			parts.append(f"{_plural(resolved_p0, 'P0 issue')} resolved")
	if result.score_delta < 0:
		new_p0 = sum(1 for i in result.new_issues if i.severity == "P0")
		if new_p0:
			parts.append(f"{_plural(new_p0, 'new P0 issue')} introduced")
		if result.regressions:
			parts.append(_plural(len(result.regressions), "regression"))
	if result.persisting_variants:
		parts.append(f"{_plural(len(result.persisting_variants), 'issue')} reworded but not resolved")
	return "; ".join(parts)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def signed(value: float | None) -> str:
	v = clean_number(value)
	if v is None:
		return "n/a"
	if isinstance(v, float):
		v = round(v, 1)
	return f"+{v}" if v >= 0 else str(v)


def format_text(result: CompareResult) -> str:
	lines = []
	lines.append("Run Comparison")
	lines.append(f"Baseline: {result.baseline_label}")
	lines.append(f"Current:  {result.current_label}")
	lines.append("")
	lines.append("Score")
	lines.append(f"  Baseline: {clean_number(result.baseline_score)}/100 ({result.baseline_readiness})")
	lines.append(f"  Current:  {clean_number(result.current_score)}/100 ({result.current_readiness})")
	lines.append(f"  Delta:    {signed(result.score_delta)}")
	if result.adjusted_delta is not None:
		lines.append(
			f"  Adjusted: {result.baseline_adjusted_score} -> {result.current_adjusted_score} "
			f"({signed(result.adjusted_delta)}, test-infra discounted)"
		)
	lines.append(f"  Context:  {result.score_context}")
	lines.append("")
	lines.append("Severity Distribution")
	for sev in SEVERITIES:
		b = result.severity_distribution["baseline"].get(sev, 0)
		c = result.severity_distribution["current"].get(sev, 0)
		lines.append(f"  {sev}: {b} -> {c} ({signed(c - b)})")

	if result.resolved_issues:
		lines.append("")
		lines.append(f"Resolved Issues ({len(result.resolved_issues)})")
		for issue in result.resolved_issues:
			lines.append(f"  - [{issue.severity}] {issue.id} {issue.title}")
	if result.new_issues:
		lines.append("")
		lines.append(f"New Issues ({len(result.new_issues)})")
		for issue in result.new_issues:
			lines.append(f"  + [{issue.severity}] {issue.id} {issue.title}")
	if result.persisting_issues:
		lines.append("")
		lines.append(f"Persisting Issues ({len(result.persisting_issues)})")
		for p in result.persisting_issues:
			how = p.match_method
			if p.match_confidence is not None:
				how += f" {p.match_confidence}%"
			lines.append(
				f"    [{p.baseline_severity}->{p.current_severity}] {p.current_id} {p.title} ({how}, {p.severity_change})"
			)
	if result.persisting_variants:
		lines.append("")
		lines.append(f"Reworded Variants ({len(result.persisting_variants)})")
		for v in result.persisting_variants:
			lines.append(f"  ~ {v.issue.title} (was: {v.similar_to.title}, {v.similarity_score}% similar)")
	if result.regressions:
		lines.append("")
		lines.append(f"Regressions ({len(result.regressions)})")
		for p in result.regressions:
			lines.append(f"  ! {p.title}: {p.baseline_severity} -> {p.current_severity}")
	return "\n".join(lines) + "\n"


def escape_md_cell(text: str) -> str:
	return text.replace("|", "\\|").replace("\n", " ")


def format_markdown(result: CompareResult) -> str:
	lines = []
	lines.append(f"# Run Comparison: {result.baseline_label} -> {result.current_label}")
	lines.append("")
	lines.append("## Score")
	lines.append("")
	lines.append("| | Baseline | Current | Delta |")
	lines.append("|---|---:|---:|---:|")
	lines.append(
		f"| Score | {clean_number(result.baseline_score)} | {clean_number(result.current_score)} | "
		f"{signed(result.score_delta)} |"
	)
	if result.adjusted_delta is not None:
		lines.append(
			f"| Adjusted | {result.baseline_adjusted_score} | {result.current_adjusted_score} | "
			f"{signed(result.adjusted_delta)} |"
		)
	lines.append(f"| Readiness | {result.baseline_readiness} | {result.current_readiness} | |")
	lines.append("")
	lines.append(f"_{result.score_context}_")
	lines.append("")
	lines.append("## Severity Distribution")
	lines.append("")
	lines.append("| Severity | Baseline | Current | Delta |")
	lines.append("|---|---:|---:|---:|")
	for sev in SEVERITIES:
		b = result.severity_distribution["baseline"].get(sev, 0)
		c = result.severity_distribution["current"].get(sev, 0)
		lines.append(f"| {sev} | {b} | {c} | {signed(c - b)} |")
	lines.append("")

	def issue_table(title: str, issues: list[Issue]) -> None:
		lines.append(f"## {title} ({len(issues)})")
		lines.append("")
		if not issues:
			lines.append("None.")
			lines.append("")
			return
		lines.append("| ID | Severity | Source | Title |")
		lines.append("|---|---|---|---|")
		for issue in issues:
			lines.append(f"| {issue.id} | {issue.severity} | {issue.source} | {escape_md_cell(issue.title)} |")
		lines.append("")

	issue_table("Resolved Issues", result.resolved_issues)
	issue_table("New Issues", result.new_issues)

	lines.append(f"## Persisting Issues ({len(result.persisting_issues)})")
	lines.append("")
	if result.persisting_issues:
		lines.append("| Baseline ID | Current ID | Severity | Change | Match | Title |")
		lines.append("|---|---|---|---|---|---|")
		for p in result.persisting_issues:
			match = p.match_method
			if p.match_confidence is not None:
				match += f" ({p.match_confidence}%)"
			lines.append(
				f"| {p.baseline_id} | {p.current_id} | {p.baseline_severity} -> {p.current_severity} | "
				f"{p.severity_change} | {match} | {escape_md_cell(p.title)} |"
			)
	else:
		lines.append("None.")
	lines.append("")

	lines.append(f"## Reworded Variants ({len(result.persisting_variants)})")
	lines.append("")
	if result.persisting_variants:
		lines.append("| Current | Baseline | Similarity |")
		lines.append("|---|---|---:|")
		for v in result.persisting_variants:
			lines.append(
				f"| {escape_md_cell(v.issue.title)} | {escape_md_cell(v.similar_to.title)} | "
				f"{v.similarity_score}% |"
			)
	else:
		lines.append("None.")
	lines.append("")
	return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def threshold_arg(value: str) -> float:
	try:
		t = float(value)
	except ValueError:
		raise argparse.ArgumentTypeError(f"not a number: {value!r}")
	if not 0.0 <= t <= 1.0:
		raise argparse.ArgumentTypeError(f"must be between 0 and 1, got {t}")
	return t


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Compare the syntheses of two analysis runs.")
	parser.add_argument("baseline_dir", help="Baseline run directory (contains reports/synthesis.json)")
	parser.add_argument("current_dir", help="Current run directory (contains reports/synthesis.json)")
	parser.add_argument(
		"--variant-threshold",
		type=threshold_arg,
		default=DEFAULT_VARIANT_THRESHOLD,
		help="Minimum title similarity (0-1) for a reworded variant",
	)
	parser.add_argument("--out-json", help="Write the CompareResult as JSON to this path")
	parser.add_argument("--out-md", help="Write a Markdown report to this path")
	parser.add_argument("--verbose", action="store_true", help="Log matching details")
	return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
	args = parse_args(argv)
	if args.verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

	try:
		baseline = load_synthesis(find_synthesis_path(Path(args.baseline_dir)))
		current = load_synthesis(find_synthesis_path(Path(args.current_dir)))
	except SynthesisLoadError as exc:
		print(f"Error: {exc}", file=sys.stderr)
		return 1

	result = compare_syntheses(
		baseline,
		current,
		Path(args.baseline_dir).resolve().name,
		Path(args.current_dir).resolve().name,
		variant_threshold=args.variant_threshold,
	)
	print(format_text(result), end="")

	if args.out_json:
		out_json = Path(args.out_json)
		out_json.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
		print(f"JSON: {out_json}")
	if args.out_md:
		out_md = Path(args.out_md)
		out_md.write_text(format_markdown(result), encoding="utf-8")
		print(f"Markdown: {out_md}")
	return 0


if __name__ == "__main__":
	sys.exit(main())
