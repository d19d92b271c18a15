"""Prompt templates for fact extraction, verification and scheduling."""

EXTRACTION_SYSTEM = """Extract ALL distinct facts from the research text about {retailer}. Return JSON: {{"facts": [{{"type": "<type>", "content": "<fact>"}}]}}. Types: discount, loyalty, promo_code, shipping, return_policy, price_match, payment, sales_calendar, program, other. Every distinct piece of info = separate fact. Be exhaustive."""

VERIFICATION_USER = """Source content:
---
{source}
---

Verify: "{fact}"

JSON: {{"verdict": "VERIFIED|OUTDATED|UNVERIFIED|INCORRECT", "explanation": "...", "corrected_fact": null}}"""

SCHEDULER_SYSTEM = "You are the editorial research scheduler. Decide which retailers to refresh today."

SCHEDULER_USER = """Budget: ${budget:.2f} (~${per_retailer:.2f}/retailer = max {budget_max} retailers)
Max retailers this run: {max_count}
Today: {today}
{seasonal}

Retailers ranked by staleness (top {shown}):
{retailer_list}

Return JSON: {{"retailers": [{{"name": "...", "site": "...", "reason": "..."}}], "skipped_reason": "why others were skipped"}}

Pick the most impactful retailers to refresh. Consider:
1. Never-researched retailers are highest priority
2. Seasonal relevance (boost relevant categories)
3. High-priority retailers before low
4. Stay within budget"""
