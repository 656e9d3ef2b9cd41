from cartwhisper.domain.models.product import RecommendationRecord

MAX_PROMPT_CANDIDATES = 5

def system_prompt() -> str:
    return (
        "You write short merchandising copy for an online store. "
        "Answer in English with 1-2 sentences and no preamble."
    )

def _fmt_price(value: float) -> str:
    return f"${value:.2f}"

def reasoning_prompt(record: RecommendationRecord) -> str:
    candidates = "\n".join(
        f"{i}. {c.title} (Price: {_fmt_price(c.price)}, Category: {c.category or 'n/a'}, "
        f"Similarity: {c.similarity * 100:.1f}%)"
        for i, c in enumerate(record.candidates[:MAX_PROMPT_CANDIDATES], start=1)
    )
    return (
        "Analyze the following product and recommendations, then provide a brief "
        "recommendation reason (1-2 sentences) in English.\n\n"
        f"Main Product: {record.source_product_title}\n"
        f"Price: {_fmt_price(record.source_product_price)}\n"
        f"Category: {record.source_product_category or 'n/a'}\n\n"
        "Recommended Candidates:\n"
        f"{candidates}\n\n"
        "Explain why these products work well together with the main product.\n"
        "Response format: Provide only the reasoning, no prefix or explanation needed."
    )

def template_reasoning(record: RecommendationRecord) -> str:
    """Locally generated reasoning used when the LLM is disabled or fails."""
    titles = [c.title for c in record.candidates[:3] if c.title]
    categories = sorted({c.category for c in record.candidates if c.category})
    if not titles:
        return f"Customers who buy {record.source_product_title or 'this item'} often add a small extra to their order."
    picks = ", ".join(titles)
    if categories:
        return (
            f"Pairs well with {record.source_product_title}: {picks} "
            f"from {', '.join(categories)} complete the purchase at a lower price."
        )
    return f"Pairs well with {record.source_product_title}: {picks} complete the purchase at a lower price."
