"""Progressive literature ranking: lexical recall, semantic rerank, purpose-aware quality and diversity sampling."""

__version__ = "1.0.0"
