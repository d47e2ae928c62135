import pytest

from synthesis import Issue, OverallAssessment, Synthesis


def make_issue(
    id: str,
    title: str,
    severity: str = "P1",
    category: str | None = None,
    source: str = "app",
    type: str = "consensus",
) -> Issue:
    return Issue(
        id=id,
        title=title,
        severity=severity,
        type=type,
        category=category,
        source=source,
    )


def make_synthesis(
    consensus=(),
    video_only=(),
    model_unique=(),
    score: float = 75,
    readiness: str = "ready-with-caveats",
) -> Synthesis:
    return Synthesis(
        consensus_issues=tuple(consensus),
        video_only_issues=tuple(video_only),
        model_unique_issues=tuple(model_unique),
        overall_assessment=OverallAssessment(score=score, readiness_label=readiness),
    )


@pytest.fixture
def synthesis_doc() -> dict:
    """Raw synthesis document as written by the synthesis stage."""
    return {
        "synthesisDate": "2026-02-22",
        "projectName": "Test",
        "consensusIssues": [
            {
                "id": "ISSUE-001",
                "title": "Login button broken on mobile",
                "severity": "P0",
                "category": "functional",
                "source": "app",
                "description": "Tapping login does nothing",
                "recommendation": "Fix the handler",
            },
        ],
        "videoOnlyIssues": [
            {
                "id": "ISSUE-002",
                "title": "Spinner hangs after submit",
                "severity": "P1",
                "timestamp": "0:05",
                "persona": "happy-path",
            },
        ],
        "modelUniqueIssues": [
            {
                "id": "ISSUE-003",
                "title": "Localhost URL visible in footer",
                "severity": "P2",
                "source": "test-infra",
                "reportedBy": "gemini",
            },
        ],
        "overallAssessment": {
            "uxScore": 7.2,
            "launchReadiness": "not-ready",
            "topStrengths": ["Clear copy"],
        },
    }
