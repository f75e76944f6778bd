from .data_source import (
    DataSourceFilter,
    apply_post_filter,
    parse_data_source,
    rewrite_query,
)
from .pipeline import QueryPipeline
from .schema_cache import CacheStore, MemoryCacheStore, SchemaCache

__all__ = [
    "DataSourceFilter",
    "apply_post_filter",
    "parse_data_source",
    "rewrite_query",
    "QueryPipeline",
    "CacheStore",
    "MemoryCacheStore",
    "SchemaCache",
]
