import pytest

from services.commentator_service import CommentatorResolver


@pytest.fixture
def resolver(theologians):
    return CommentatorResolver(theologians)


@pytest.mark.parametrize("candidate", ["charles spurgeon ", "Charles Spurgeon", "  CHARLES SPURGEON"])
def test_match_ignores_case_and_whitespace(resolver, candidate):
    resolution = resolver.resolve(candidate)
    assert resolution.outcome == "matched"
    assert resolution.name == "Charles Spurgeon"
    assert resolution.status_message == "Generating commentary in the style of Charles Spurgeon..."


@pytest.mark.parametrize("candidate", ["", "   ", None])
def test_empty_candidate_is_absent(resolver, candidate):
    resolution = resolver.resolve(candidate)
    assert resolution.outcome == "absent"
    assert resolution.name == ""
    assert resolution.status_message == "Generating general theological commentary..."


def test_unknown_name_is_rejected_and_echoed(resolver):
    resolution = resolver.resolve("  John Calvin ")
    assert resolution.outcome == "rejected"
    assert resolution.name == "John Calvin"
    assert not resolution.is_matched
    assert resolution.status_message == (
        '"John Calvin" is not an allowed theologian. '
        "Generating a general theological commentary instead."
    )


def test_near_miss_is_not_corrected(resolver):
    assert resolver.resolve("Charles Spurgen").outcome == "rejected"


def test_allow_list_is_injected():
    resolver = CommentatorResolver(("John Calvin",))
    assert resolver.names == ("John Calvin",)
    assert resolver.resolve("john calvin").name == "John Calvin"
    assert resolver.resolve("Charles Spurgeon").outcome == "rejected"
