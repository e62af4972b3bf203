"""Dataset loading for the contact-tracing graph.

Both input files are fetched concurrently and the graph is built only once
both have resolved, so nothing downstream ever sees a partial dataset.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import asyncio
import json
import logging

import aiohttp

from ..config import CONFIG
from ..errors import DataLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dataset:
    nodes: Tuple[Dict[str, Any], ...]
    links: Tuple[Dict[str, Any], ...]


def _is_url(source: str) -> bool:
    return source.startswith(('http://', 'https://'))


def normalize_links(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Map ``infector``/``infectee`` onto the ``source``/``target`` link shape.

    Records are copied; the loaded payload is left untouched.
    """
    out: List[Dict[str, Any]] = []
    for r in records:
        if not isinstance(r, dict):
            raise DataLoadError('links', f"expected an object per relationship, got {type(r).__name__}")
        link = dict(r)
        if 'infector' in r or 'source' not in r:
            link['source'] = r.get('infector')
        if 'infectee' in r or 'target' not in r:
            link['target'] = r.get('infectee')
        out.append(link)
    return out


async def fetch_json(source: str, session: Optional[aiohttp.ClientSession] = None) -> Any:
    """Fetch and decode one JSON document from a local path or an http(s) URL."""
    try:
        if _is_url(source):
            if session is None:
                raise DataLoadError(source, "no HTTP session available")
            async with session.get(source) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)
        text = await asyncio.to_thread(Path(source).read_text, encoding='utf-8')
        return json.loads(text)
    except DataLoadError:
        raise
    except (OSError, ValueError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise DataLoadError(source, str(e) or type(e).__name__) from e


def _as_records(source: str, payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, list):
        raise DataLoadError(source, f"expected a JSON array, got {type(payload).__name__}")
    return payload


async def load_dataset_async(
    cases_source: Optional[str] = None,
    links_source: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dataset:
    cases_source = cases_source or CONFIG.data.cases
    links_source = links_source or CONFIG.data.links
    timeout = CONFIG.data.timeout if timeout is None else timeout

    async def _gather(session):
        return await asyncio.wait_for(
            asyncio.gather(fetch_json(links_source, session), fetch_json(cases_source, session)),
            timeout,
        )

    try:
        if _is_url(cases_source) or _is_url(links_source):
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                links_raw, cases_raw = await _gather(session)
        else:
            links_raw, cases_raw = await _gather(None)
    except asyncio.TimeoutError as e:
        raise DataLoadError(f"{links_source}, {cases_source}", f"timed out after {timeout}s") from e

    links = normalize_links(_as_records(links_source, links_raw))
    cases = _as_records(cases_source, cases_raw)
    for c in cases:
        if not isinstance(c, dict):
            raise DataLoadError(cases_source, f"expected an object per case, got {type(c).__name__}")
    logger.info(f"Loaded {len(cases)} cases from {cases_source} and {len(links)} links from {links_source}")
    return Dataset(nodes=tuple(cases), links=tuple(links))


def load_dataset(
    cases_source: Optional[str] = None,
    links_source: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dataset:
    """Blocking wrapper around :func:`load_dataset_async`."""
    return asyncio.run(load_dataset_async(cases_source, links_source, timeout))
