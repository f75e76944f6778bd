import re

READ_ONLY_PREFIXES = ("SELECT", "WITH", "SHOW", "DESCRIBE", "DESC", "EXPLAIN")

BLOCKED_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "EXECUTE",
    "MERGE",
    "COPY",
    "CALL",
    "VACUUM",
    "BACKUP",
    "RESTORE",
)

_LINE_COMMENT = re.compile(r"--.*?$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_BLOCKED = re.compile(r"\b(" + "|".join(BLOCKED_KEYWORDS) + r")\b")


def normalize_sql(query: str) -> str:
    """Strip comments and string literals, upper-case the rest."""
    text = _BLOCK_COMMENT.sub(" ", query or "")
    text = _LINE_COMMENT.sub(" ", text)
    text = _STRING_LITERAL.sub("''", text)
    return text.strip().upper()


def is_read_only_query(query: str) -> bool:
    """True when ``query`` is a single read-only statement.

    Keywords inside string literals are ignored, so
    ``SELECT * FROM t WHERE note = 'drop me'`` is still read-only.
    """
    normalized = normalize_sql(query)
    if not normalized.startswith(READ_ONLY_PREFIXES):
        return False
    if ";" in normalized.rstrip(";"):
        return False
    return _BLOCKED.search(normalized) is None
