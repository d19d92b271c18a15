from conftest import FakeEmbedder

from processors.deduplicator import FactDeduplicator
from schemas.fact import Fact, FactType

SHORT = "Free shipping over $50"
LONG = "Free shipping on orders above $50 site-wide"
LOYALTY = "Earn 1 point per dollar"


def _facts(*pairs):
    return [Fact(type=t, content=c) for t, c in pairs]


def test_empty_input() -> None:
    embedder = FakeEmbedder()
    result = FactDeduplicator(embedder).deduplicate([])
    assert result.facts == []
    assert result.original == 0
    assert embedder.calls == []


def test_single_fact_passes_through() -> None:
    embedder = FakeEmbedder({LOYALTY: [0.0, 0.0, 1.0]})
    result = FactDeduplicator(embedder).deduplicate(_facts((FactType.LOYALTY, LOYALTY)))
    assert [f.content for f in result.facts] == [LOYALTY]
    assert result.original == 1
    assert result.deduped == 1


def test_exact_duplicates_collapse() -> None:
    embedder = FakeEmbedder({SHORT: [1.0, 0.0]})
    facts = _facts((FactType.SHIPPING, SHORT), (FactType.SHIPPING, SHORT), (FactType.SHIPPING, SHORT))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert len(result.facts) == 1
    assert result.facts[0].content == SHORT


def test_longer_duplicate_wins_and_brings_its_type() -> None:
    embedder = FakeEmbedder({SHORT: [1.0, 0.0, 0.0], LONG: [0.93, 0.36756, 0.0]})
    facts = _facts((FactType.SHIPPING, SHORT), (FactType.PROGRAM, LONG))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert len(result.facts) == 1
    assert result.facts[0].content == LONG
    assert result.facts[0].type == FactType.PROGRAM


def test_shorter_duplicate_does_not_replace() -> None:
    embedder = FakeEmbedder({LONG: [1.0, 0.0, 0.0], SHORT: [0.93, 0.36756, 0.0]})
    facts = _facts((FactType.SHIPPING, LONG), (FactType.OTHER, SHORT))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert [(f.type, f.content) for f in result.facts] == [(FactType.SHIPPING, LONG)]


def test_similarity_at_or_below_threshold_keeps_both() -> None:
    embedder = FakeEmbedder({SHORT: [1.0, 0.0], LOYALTY: [0.8, 0.6]})
    facts = _facts((FactType.SHIPPING, SHORT), (FactType.LOYALTY, LOYALTY))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert [f.content for f in result.facts] == [SHORT, LOYALTY]


def test_merge_goes_to_first_matching_representative() -> None:
    # c is within threshold of both a and b; a and b are not duplicates of each other.
    a, b, c = "Alpha offer", "Beta offer", "Alpha and beta combined offer"
    embedder = FakeEmbedder({
        a: [1.0, 0.0],
        b: [0.82, 0.5724],
        c: [0.9540, 0.2999],
    })
    facts = _facts((FactType.DISCOUNT, a), (FactType.LOYALTY, b), (FactType.PROGRAM, c))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert [(f.type, f.content) for f in result.facts] == [
        (FactType.PROGRAM, c),
        (FactType.LOYALTY, b),
    ]


def test_unembeddable_facts_are_dropped() -> None:
    embedder = FakeEmbedder({SHORT: [1.0, 0.0]})
    facts = _facts((FactType.SHIPPING, SHORT), (FactType.OTHER, "no vector for this one"))
    result = FactDeduplicator(embedder).deduplicate(facts)
    assert [f.content for f in result.facts] == [SHORT]
    assert result.unembedded == 1


def test_output_never_carries_embeddings() -> None:
    embedder = FakeEmbedder({SHORT: [1.0, 0.0], LOYALTY: [0.0, 1.0]})
    result = FactDeduplicator(embedder).deduplicate(
        _facts((FactType.SHIPPING, SHORT), (FactType.LOYALTY, LOYALTY))
    )
    assert all(f.embedding is None for f in result.facts)


def test_deduplication_is_idempotent() -> None:
    embedder = FakeEmbedder({
        SHORT: [1.0, 0.0, 0.0],
        LONG: [0.93, 0.36756, 0.0],
        LOYALTY: [0.0, 0.0, 1.0],
    })
    dedup = FactDeduplicator(embedder)
    once = dedup.deduplicate(_facts(
        (FactType.SHIPPING, SHORT), (FactType.SHIPPING, LONG), (FactType.LOYALTY, LOYALTY),
    )).facts
    twice = dedup.deduplicate(once).facts
    assert twice == once


def test_chained_merge_settles_on_second_pass() -> None:
    # C is near B but not A; the representative keeps A's vector after B's text wins.
    a, b, c = "Ships free $50+", "Free standard shipping on $50+ orders", "Free shipping $50"
    embedder = FakeEmbedder({
        a: [1.0, 0.0],
        b: [0.95, 0.3122],
        c: [0.8, 0.6],
    })
    dedup = FactDeduplicator(embedder)
    once = dedup.deduplicate(_facts(
        (FactType.SHIPPING, a), (FactType.SHIPPING, b), (FactType.SHIPPING, c),
    )).facts
    assert [f.content for f in once] == [b, c]

    twice = dedup.deduplicate(once).facts
    assert [f.content for f in twice] == [b]
