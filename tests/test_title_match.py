import pytest

from title_match import jaccard_similarity, normalize_title


# =============================================================================
# normalize_title
# =============================================================================

@pytest.mark.parametrize(
    "title, expected",
    [
        ("[P0] Login broken", "login broken"),
        ("P1: Navigation fails", "nav fails"),
        ("{p2} - Footer misaligned", "footer misaligned"),
        ("consistently slow response", "slow response"),
        ("extremely significantly slow", "slow"),
        ("Login latency issue", "login performance issue"),
        ("Screen frozen on load", "screen block on load"),
        ("Navigation menu broken", "nav menu broken"),
        ("Onboarding progress bar hidden", "onboarding step bar hidden"),
        ("  too   much    space  ", "too much space"),
        ("", ""),
        ("Login button fails on click", "login button fails on click"),
    ],
)
def test_normalize_title(title, expected):
    assert normalize_title(title) == expected


def test_severity_marker_only_stripped_at_start():
    assert normalize_title("Checkout P0 blocker") == "checkout p0 blocker"


def test_word_starting_with_marker_is_kept():
    assert normalize_title("P2P sync broken") == "p2p sync broken"


# =============================================================================
# jaccard_similarity
# =============================================================================

def test_identical_titles():
    assert jaccard_similarity("Login button broken", "Login button broken") == 1.0


def test_unrelated_titles():
    assert jaccard_similarity("Login button broken", "Alpha beta gamma") == 0.0


def test_partial_overlap():
    sim = jaccard_similarity("Login button broken on mobile", "Login button not working")
    assert 0.0 < sim < 1.0


def test_case_insensitive():
    assert jaccard_similarity("LOGIN BUTTON", "login button") == 1.0


def test_empty_titles():
    assert jaccard_similarity("", "") == 1.0
    assert jaccard_similarity("x", "") == 0.0
    assert jaccard_similarity("", "x") == 0.0


def test_filler_adverbs_ignored():
    assert jaccard_similarity("Login consistently slow response", "Login slow response") == 1.0


def test_synonyms_count_as_overlap():
    # latency -> performance
    assert jaccard_similarity("Login latency", "Login performance") == 1.0


@pytest.mark.parametrize(
    "a, b",
    [
        ("Login performance exceeds 6 seconds", "Login latency consistently 6-7 seconds"),
        ("Mobile goal creation flow", "Goal creation blocked on mobile"),
        ("[P0] Checkout freezes", "checkout stuck on payment"),
    ],
)
def test_bounded_and_symmetric(a, b):
    ab = jaccard_similarity(a, b)
    assert 0.0 <= ab <= 1.0
    assert ab == jaccard_similarity(b, a)
    assert jaccard_similarity(a, a) == 1.0


def test_known_overlap_value():
    # {login, performance, exceeds, 6, seconds} vs {login, performance, 6-7, seconds}
    sim = jaccard_similarity(
        "Login performance exceeds 6 seconds",
        "Login latency consistently 6-7 seconds",
    )
    assert sim == pytest.approx(0.5)
