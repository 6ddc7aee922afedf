"""Evidence normalization — URL canonicalisation, cross-item dedup, per-domain cap.

Runs before aggregation on raw research output. An item whose source URL
was already used by an earlier item is dropped outright; origin_id is
re-derived from the first URL's host so clustering sees one family per
publisher. Returns new records; input is never mutated.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from forecast_fusion.contracts import Evidence

DEFAULT_DOMAIN_CAP = 5

_TRACKING_PARAMS = {"fbclid", "gclid", "mc_cid", "mc_eid", "ref", "ref_src"}


def normalize_url(url: str) -> str | None:
    """Canonical form of a URL, or None when it is not an http(s) URL."""
    raw = (url or "").strip()
    if not raw:
        return None
    try:
        parsed = urlparse(raw)
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    if scheme not in ("http", "https") or not parsed.hostname:
        return None

    host = parsed.hostname.lower()
    if host.startswith("www."):
        host = host[4:]
    netloc = f"{host}:{port}" if port else host

    query = [
        (k, v)
        for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if not k.lower().startswith("utm_") and k.lower() not in _TRACKING_PARAMS
    ]
    path = parsed.path.rstrip("/")
    return urlunparse((scheme, netloc, path, "", urlencode(query), ""))


def host_from_url(url: str) -> str | None:
    """Hostname without www., or None when unparseable."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    hostname = hostname.lower()
    return hostname[4:] if hostname.startswith("www.") else hostname


def normalize_evidence(
    items: list[Evidence],
    *,
    domain_cap: int = DEFAULT_DOMAIN_CAP,
) -> list[Evidence]:
    """Dedupe evidence by source URL and cap items per publisher host."""
    seen_urls: set[str] = set()
    host_counts: dict[str, int] = {}
    result: list[Evidence] = []

    for item in items:
        unique_urls: list[str] = []
        for url in item.get("urls") or []:
            norm = normalize_url(url)
            if norm and norm not in unique_urls:
                unique_urls.append(norm)

        if any(u in seen_urls for u in unique_urls):
            continue

        origin_host = host_from_url(unique_urls[0]) if unique_urls else None
        if origin_host:
            count = host_counts.get(origin_host, 0)
            if count >= domain_cap:
                continue
            host_counts[origin_host] = count + 1

        seen_urls.update(unique_urls)
        new_item = dict(item)
        new_item["urls"] = unique_urls
        new_item["origin_id"] = origin_host or item.get("origin_id") or "unknown"
        result.append(new_item)  # type: ignore[arg-type]

    return result
