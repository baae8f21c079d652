"""
Knowledge Retrieval Constants

Signal weights for hybrid chunk scoring and default result limits.
The three weights form a convex combination (they sum to 1.0).
"""

# Hybrid score weights
VECTOR_WEIGHT = 0.6
LEXICAL_WEIGHT = 0.3
FUZZY_WEIGHT = 0.1

# Result limits
DEFAULT_SEARCH_LIMIT = 10
CONTEXT_SEARCH_LIMIT = 5

# Characters of item text used to build a context-enrichment query
CONTEXT_QUERY_MAX_CHARS = 500
