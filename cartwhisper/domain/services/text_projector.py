from cartwhisper.domain.models.product import Product


def project_to_text(product: Product) -> str:
    """
    Text used for the embedding: title, product type, tags, vendor and
    collection names, in that order. Empty fields are skipped.
    """
    parts = [
        product.title,
        product.product_type,
        " ".join(t for t in product.tags if t),
        product.vendor,
        " ".join(c for c in product.collections if c),
    ]
    return " ".join(p.strip() for p in parts if p and p.strip()).strip()
