from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce postgres URLs onto the async psycopg driver and fold ``ssl=`` into ``sslmode``."""
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme

    if scheme in {"postgres", "postgresql", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    ssl_key = next((key for key in query if key.lower() == "ssl"), None)
    ssl_val = query.pop(ssl_key, None) if ssl_key else None
    if ssl_val is not None and "sslmode" not in query:
        normalized = ssl_val.lower().strip()
        if normalized in {"0", "false", "no", "off", "disable"}:
            query["sslmode"] = "disable"
        elif normalized in {"require", "verify-ca", "verify-full"}:
            query["sslmode"] = normalized
        else:
            query["sslmode"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
