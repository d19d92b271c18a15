import pytest
from conftest import FakeEmbedder, ScriptedLLM, StubResearch, StubScraper

from generators.fact_extractor import FactExtractor
from orchestration.retailer_pipeline import RetailerPipeline
from processors.deduplicator import FactDeduplicator
from processors.gap_classifier import GapClassifier
from processors.verifier import FactVerifier
from schemas.fact import FactType

SHORT = "Free shipping over $50"
LONG = "Free shipping on orders above $50 site-wide"
LOYALTY = "Earn 1 point per dollar"
EXISTING_URL = "https://www.coupons.com/coupon-codes/target"
EXISTING_PAGE = f"# Target Coupons\n\n{LOYALTY}\n\nSee all deals below"

EXTRACTION_REPLY = (
    '{"facts": ['
    f'{{"type": "shipping", "content": "{SHORT}"}},'
    f'{{"type": "shipping", "content": "{LONG}"}},'
    f'{{"type": "loyalty", "content": "{LOYALTY}"}}'
    "]}"
)


def _pipeline(llm, pages=None, research_text="Target research text"):
    embedder = FakeEmbedder({
        SHORT: [1.0, 0.0, 0.0],
        LONG: [0.93, 0.36756, 0.0],
        LOYALTY: [0.0, 0.0, 1.0],
    })
    scraper = StubScraper({EXISTING_URL: EXISTING_PAGE} if pages is None else pages)
    researcher = StubResearch(research_text)
    return RetailerPipeline(
        scraper=scraper,
        researcher=researcher,
        extractor=FactExtractor(llm),
        deduplicator=FactDeduplicator(embedder),
        classifier=GapClassifier(embedder),
        verifier=FactVerifier(llm, scraper, researcher),
    )


def test_end_to_end_gap_report() -> None:
    llm = ScriptedLLM(generations=[EXTRACTION_REPLY])
    result = _pipeline(llm).run("Target", "coupons.com")

    assert result.status == "success"
    assert result.existing_url == EXISTING_URL
    assert result.existing_content_length == len(EXISTING_PAGE)
    assert result.facts_extracted == 3
    assert result.facts_deduped == 2
    assert [(m.type, m.content) for m in result.gaps.missing] == [(FactType.SHIPPING, LONG)]
    assert result.gaps.partial == []
    assert result.gaps.covered == 1
    assert result.verification == []
    assert result.total_cost == pytest.approx(0.01)
    assert [entry.step for entry in result.log] == [
        "fetch", "research", "extract", "dedupe", "compare", "verify", "done",
    ]


def test_high_risk_gaps_are_verified() -> None:
    reply = '{"facts": [{"type": "return_policy", "content": "Returns accepted for 90 days"}]}'
    llm = ScriptedLLM(generations=[
        reply,
        '{"verdict": "OUTDATED", "explanation": "Now 30 days", "corrected_fact": "Returns accepted for 30 days"}',
    ])
    pipeline = _pipeline(llm)
    pipeline.deduplicator.embedder.vectors["Returns accepted for 90 days"] = [0.0, 1.0, 0.0]

    result = pipeline.run("Target", "coupons.com")

    assert [v.verdict for v in result.verification] == ["OUTDATED"]
    assert result.verification[0].corrected == "Returns accepted for 30 days"
    assert result.total_cost == pytest.approx(0.01 + 0.015)


def test_no_facts_is_a_distinguishable_failure() -> None:
    llm = ScriptedLLM(generations=["Sorry, nothing found."])
    result = _pipeline(llm).run("Target", "coupons.com")

    assert result.status == "failed"
    assert result.reason == "no_facts"
    assert result.succeeded is False
    assert result.log[-1].step == "ABORT"
    assert result.facts_extracted == 0


def test_missing_existing_page_marks_everything_missing() -> None:
    llm = ScriptedLLM(generations=[EXTRACTION_REPLY])
    result = _pipeline(llm, pages={}).run("Target", "coupons.com")

    assert result.status == "success"
    assert result.existing_error == "Could not fetch existing page"
    assert result.existing_content_length == 0
    assert result.gaps.covered == 0
    assert len(result.gaps.missing) == 2


def test_existing_page_alternate_url() -> None:
    alt_url = "https://www.coupons.com/coupons/target"
    llm = ScriptedLLM(generations=[EXTRACTION_REPLY])
    result = _pipeline(llm, pages={alt_url: EXISTING_PAGE}).run("Target", "coupons.com")
    assert result.existing_url == alt_url
    assert result.gaps.covered == 1
