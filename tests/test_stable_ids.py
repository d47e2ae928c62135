import hashlib
import re

from stable_ids import generate_stable_id, is_stable_id, stabilize_ids
from synthesis import flatten_issues

from conftest import make_issue, make_synthesis


def test_format():
    assert re.fullmatch(r"QUX-[0-9a-f]{8}", generate_stable_id("Slow loading", "performance"))


def test_matches_sha256_prefix():
    expected = "QUX-" + hashlib.sha256(b"slow loading:performance").hexdigest()[:8]
    assert generate_stable_id("Slow loading", "performance") == expected


def test_deterministic():
    assert generate_stable_id("Slow loading", "performance") == generate_stable_id(
        "Slow loading", "performance"
    )


def test_case_and_whitespace_insensitive():
    assert generate_stable_id("  SLOW Loading ", "Performance ") == generate_stable_id(
        "slow loading", "performance"
    )


def test_discriminator_changes_id():
    assert generate_stable_id("Slow loading", "performance") != generate_stable_id(
        "Slow loading", "video"
    )


def test_empty_inputs():
    assert is_stable_id(generate_stable_id("", ""))


def test_is_stable_id():
    assert is_stable_id("QUX-aabbccdd")
    assert not is_stable_id("ISSUE-001")
    assert not is_stable_id("qux-aabbccdd")


def test_stabilize_ids_assigns_ids_and_index():
    synthesis = make_synthesis(
        consensus=[
            make_issue("ISSUE-001", "Login broken", "P0", category="functional"),
            make_issue("ISSUE-002", "Copy unclear", "P2"),
        ],
        video_only=[make_issue("ISSUE-003", "Spinner hangs", "P1", type="video-only")],
        model_unique=[make_issue("ISSUE-004", "Low contrast", "P2", type="model-unique")],
    )

    stable = stabilize_ids(synthesis)
    issues = flatten_issues(stable)

    assert [i.index for i in issues] == [1, 2, 3, 4]
    assert issues[0].id == generate_stable_id("Login broken", "functional")
    assert issues[1].id == generate_stable_id("Copy unclear", "consensus")
    assert issues[2].id == generate_stable_id("Spinner hangs", "video")
    assert issues[3].id == generate_stable_id("Low contrast", "model-unique")


def test_stabilize_ids_leaves_input_untouched():
    synthesis = make_synthesis(consensus=[make_issue("ISSUE-001", "Login broken", "P0")])
    stabilize_ids(synthesis)
    assert synthesis.consensus_issues[0].id == "ISSUE-001"
    assert synthesis.consensus_issues[0].index is None


def test_same_title_across_runs_gets_same_id():
    run_a = stabilize_ids(make_synthesis(consensus=[make_issue("ISSUE-001", "Login broken", "P0")]))
    run_b = stabilize_ids(make_synthesis(consensus=[
        make_issue("ISSUE-007", "Footer misaligned", "P2"),
        make_issue("ISSUE-008", "login broken ", "P1"),
    ]))
    assert run_a.consensus_issues[0].id == run_b.consensus_issues[1].id
