# Constants for the recommendation sync pipeline.
SIMILARITY_TOP_N = 10  # Neighbours kept per product after ranking
SIMILARITY_DECIMALS = 4  # Rounding applied to cosine scores

# Candidate filter
MAX_CANDIDATES = 5  # Candidates kept per source product
MIN_CANDIDATES_WARN = 3  # Fewer survivors are logged for monitoring
PRICE_CEILING_RATIO = 1.10  # Candidate may cost at most 110% of the source

# Embedding progress logging
EMBED_PROGRESS_EVERY = 10

# Storefront read API
DEFAULT_READ_LIMIT = 3
SHOPIFY_PRODUCT_GID_PREFIX = "gid://shopify/Product/"

# Shop domains accepted in routes and used as export directory names
SHOP_DOMAIN_PATTERN = r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$"

# Reasoning
REASONING_TEMPERATURE = 0.0
FALLBACK_NO_CANDIDATES = "No suitable complementary products were found for this item."
