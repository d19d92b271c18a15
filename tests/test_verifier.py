import pytest
from conftest import ScriptedLLM, StubResearch, StubScraper

from processors.verifier import FactVerifier, official_help_url, select_for_verification
from schemas.fact import CoverageStatus, FactType, GapResult


def _gap(fact_type, status, content):
    return GapResult(type=fact_type, content=content, status=status, similarity=0.1)


def test_selection_filters_gap_status_and_risk_type() -> None:
    results = [
        _gap(FactType.RETURN_POLICY, CoverageStatus.COVERED, "covered policy"),
        _gap(FactType.LOYALTY, CoverageStatus.MISSING, "missing loyalty"),
        _gap(FactType.DISCOUNT, CoverageStatus.PARTIAL, "partial discount"),
        _gap(FactType.PAYMENT, CoverageStatus.MISSING, "missing payment"),
    ]
    selected = select_for_verification(results)
    assert [r.content for r in selected] == ["partial discount", "missing payment"]


def test_selection_keeps_input_order_and_caps() -> None:
    results = [_gap(FactType.PRICE_MATCH, CoverageStatus.MISSING, f"fact {i}") for i in range(8)]
    selected = select_for_verification(results, cap=5)
    assert [r.content for r in selected] == [f"fact {i}" for i in range(5)]


def test_official_help_url() -> None:
    assert (
        official_help_url("Dick's Sporting Goods", FactType.RETURN_POLICY)
        == "https://www.dick-s-sporting-goods.com/help/return-policy"
    )


def test_verify_uses_help_page_when_usable() -> None:
    page = "Returns accepted within 90 days with receipt. " * 10
    scraper = StubScraper({"https://www.target.com/help/return-policy": page})
    researcher = StubResearch("should not be used")
    llm = ScriptedLLM(generations=[
        '{"verdict": "VERIFIED", "explanation": "Matches the help page", "corrected_fact": null}'
    ])
    verifier = FactVerifier(llm, scraper, researcher)

    run = verifier.verify("Target", [
        _gap(FactType.RETURN_POLICY, CoverageStatus.MISSING, "90-day returns"),
    ])

    assert run.verdicts == ["VERIFIED"]
    assert run.verified[0].verification.explanation == "Matches the help page"
    assert run.verified[0].verification.corrected_fact is None
    assert run.cost == pytest.approx(0.015)
    assert researcher.verify_calls == []
    assert "90-day returns" in llm.prompts[0][1]


def test_verify_falls_back_to_research_when_page_unusable() -> None:
    scraper = StubScraper({"https://www.target.com/help/price-match": "Sorry, error page " * 20})
    researcher = StubResearch("Target matches Amazon prices.")
    llm = ScriptedLLM(generations=['{"verdict": "OUTDATED", "corrected_fact": "No Amazon matching"}'])

    run = FactVerifier(llm, scraper, researcher).verify("Target", [
        _gap(FactType.PRICE_MATCH, CoverageStatus.PARTIAL, "Matches Amazon"),
    ])

    assert researcher.verify_calls == [("Target", "price_match")]
    assert run.verified[0].verification.verdict == "OUTDATED"
    assert run.verified[0].verification.corrected_fact == "No Amazon matching"
    assert "Target matches Amazon prices." in llm.prompts[0][1]


def test_unparseable_verdict_is_unverified() -> None:
    llm = ScriptedLLM(generations=["I could not decide."])
    run = FactVerifier(llm, StubScraper(), StubResearch("text")).verify("Target", [
        _gap(FactType.PAYMENT, CoverageStatus.MISSING, "0% APR for 12 months"),
    ])
    assert run.verdicts == ["UNVERIFIED"]


def test_nothing_to_verify_costs_nothing() -> None:
    llm = ScriptedLLM()
    run = FactVerifier(llm, StubScraper(), StubResearch()).verify("Target", [
        _gap(FactType.SHIPPING, CoverageStatus.MISSING, "Free shipping"),
    ])
    assert run.verified == []
    assert run.cost == 0.0
    assert llm.prompts == []
