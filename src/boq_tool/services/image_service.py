"""
Image Service - resolves remote item images to data URIs for PDF export.
"""
import logging
from typing import Iterable, Optional

import requests

from ..engine.models import PricedLineItem
from .data_uri import encode_data_uri

logger = logging.getLogger("boq-tool.export")


def fetch_image_as_data_uri(url: str, timeout: float = 10.0) -> Optional[str]:
    """Download an image and return it as a data URI, or None on failure."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Could not fetch image {url}: {e}")
        return None

    mime_type = response.headers.get('Content-Type', '').split(';')[0].strip()
    if not mime_type.startswith('image/'):
        logger.warning(f"Skipping {url}: content type {mime_type or 'unknown'} is not an image")
        return None
    return encode_data_uri(response.content, mime_type)


def resolve_image_refs(items: Iterable[PricedLineItem], timeout: float = 10.0) -> dict[str, str]:
    """
    Fetch every distinct http(s) image reference once.

    Returns {url: data_uri} for the images that could be fetched; inline
    data URIs need no resolving and are skipped.
    """
    resolved = {}
    seen = set()
    for item in items:
        url = item.image_ref
        if not url or not url.startswith('http') or url in seen:
            continue
        seen.add(url)
        data_uri = fetch_image_as_data_uri(url, timeout=timeout)
        if data_uri:
            resolved[url] = data_uri
    return resolved
