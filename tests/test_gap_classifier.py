import pytest
from conftest import FakeEmbedder

from processors.gap_classifier import GapClassifier, chunk_text, coverage_status
from schemas.fact import CoverageStatus, Fact, FactType

PAGE_LINE = "Earn 1 point per dollar spent with Circle"


def test_chunk_text_splits_on_newline_runs_and_drops_short_fragments() -> None:
    text = "# Coupons\n\n\nThis line is definitely longer than twenty\nshort one\n  padded line that is long enough  \n"
    assert chunk_text(text) == [
        "This line is definitely longer than twenty",
        "padded line that is long enough",
    ]


def test_chunk_text_keeps_only_strictly_longer_than_min() -> None:
    exactly_twenty = "x" * 20
    assert chunk_text(exactly_twenty + "\n" + "y" * 21) == ["y" * 21]


def test_chunk_text_of_empty_page() -> None:
    assert chunk_text("") == []


@pytest.mark.parametrize(
    "similarity, expected",
    [
        (0.95, CoverageStatus.COVERED),
        (0.86, CoverageStatus.COVERED),
        (0.85, CoverageStatus.PARTIAL),
        (0.71, CoverageStatus.PARTIAL),
        (0.70, CoverageStatus.MISSING),
        (0.0, CoverageStatus.MISSING),
    ],
)
def test_thresholds_are_exclusive(similarity, expected) -> None:
    assert coverage_status(similarity) == expected


def test_no_chunks_short_circuits_to_missing() -> None:
    embedder = FakeEmbedder(default=[1.0, 0.0])
    facts = [Fact(type=FactType.SHIPPING, content="Free shipping"), Fact(content="Outlet")]
    result = GapClassifier(embedder).classify(facts, "tiny\n\nalso tiny")
    assert [r.status for r in result.results] == [CoverageStatus.MISSING] * 2
    assert all(r.similarity == 0 for r in result.results)
    assert embedder.calls == []


def test_every_fact_gets_exactly_one_result() -> None:
    embedder = FakeEmbedder({
        PAGE_LINE: [0.0, 0.0, 1.0],
        "Earn 1 point per dollar": [0.0, 0.0, 1.0],
        "Free shipping on orders above $50": [1.0, 0.0, 0.0],
    })
    facts = [
        Fact(type=FactType.LOYALTY, content="Earn 1 point per dollar"),
        Fact(type=FactType.SHIPPING, content="Free shipping on orders above $50"),
        Fact(type=FactType.OTHER, content="cannot be embedded"),
    ]
    result = GapClassifier(embedder).classify(facts, f"# Target\n\n{PAGE_LINE}\n")
    assert [(r.content, r.status) for r in result.results] == [
        ("Earn 1 point per dollar", CoverageStatus.COVERED),
        ("Free shipping on orders above $50", CoverageStatus.MISSING),
        ("cannot be embedded", CoverageStatus.MISSING),
    ]
    covered = result.results[0]
    assert covered.similarity == pytest.approx(1.0)
    assert covered.best_match == PAGE_LINE
    assert result.results[2].similarity == 0.0


def test_partial_match() -> None:
    embedder = FakeEmbedder({PAGE_LINE: [1.0, 0.0], "Members earn points": [0.8, 0.6]})
    result = GapClassifier(embedder).classify(
        [Fact(type=FactType.LOYALTY, content="Members earn points")], PAGE_LINE
    )
    assert result.results[0].status == CoverageStatus.PARTIAL
    assert result.results[0].similarity == pytest.approx(0.8)


def test_best_match_is_truncated_for_reporting() -> None:
    long_line = "Save " + "big " * 60
    embedder = FakeEmbedder({long_line.strip(): [1.0, 0.0], "fact": [1.0, 0.0]})
    result = GapClassifier(embedder).classify([Fact(content="fact")], long_line)
    assert len(result.results[0].best_match) == 100


def test_unembeddable_page_degrades_to_missing() -> None:
    embedder = FakeEmbedder({"fact": [1.0, 0.0]})
    result = GapClassifier(embedder).classify([Fact(content="fact")], PAGE_LINE)
    assert result.results[0].status == CoverageStatus.MISSING
    assert result.results[0].similarity == 0.0
