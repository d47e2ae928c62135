#!/usr/bin/env python3
"""
Score normalization and test-infra discounting.
"""

from __future__ import annotations

import math

from synthesis import Synthesis, flatten_issues


SEVERITY_WEIGHT = {"P0": 10, "P1": 5, "P2": 2}

# Test-infra issues keep this fraction of their severity weight.
TEST_INFRA_DISCOUNT = 0.25

LEGACY_SCALE_MAX = 10


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def normalize_score(score: float) -> float:
	"""
	Bring a score onto the 0-100 scale.

	Scores at or below 10 are taken as the legacy 0-10 scale. A genuine
	0-100 score of 10 or less cannot be told apart from a legacy one and is
	scaled as well.
	"""
	if score <= LEGACY_SCALE_MAX:
		return score * 10
	return score


def calculate_adjusted_score(synthesis: Synthesis) -> int | float | None:
	"""
	Score with test-infra issues weighted at TEST_INFRA_DISCOUNT.

	Returns None when the snapshot has no test-infra issues (the raw score
	stands). Otherwise the points lost from 100 are scaled by the share of
	severity weight that remains after the discount.
	"""
	issues = flatten_issues(synthesis)
	if not any(i.source == "test-infra" for i in issues):
		return None

	raw_score = normalize_score(synthesis.overall_assessment.score)
	points_lost = 100 - raw_score
	if points_lost <= 0:
		return raw_score

	total_weight = 0
	test_infra_weight = 0
	for issue in issues:
		w = SEVERITY_WEIGHT[issue.severity]
		total_weight += w
		if issue.source == "test-infra":
			test_infra_weight += w

	if total_weight == 0:
		return raw_score

	adjusted_total = (total_weight - test_infra_weight) + test_infra_weight * TEST_INFRA_DISCOUNT
	adjusted_points_lost = points_lost * (adjusted_total / total_weight)
	return round_half_up(100 - adjusted_points_lost)
