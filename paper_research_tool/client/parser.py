"""Parser for WebDAV multi-status (PROPFIND) responses.

Servers disagree on how they spell DAV element names. Each lookup tries, in
order, the namespace-qualified form (``{DAV:}href``), the common short-prefix
form (``d:href``), and the bare name (``href``); the first match wins.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional, Sequence, Union
from urllib.parse import unquote, urlsplit
from xml.parsers import expat

from paper_research_tool.models.webdav import APP_SUBDIRECTORY, FileEntry

logger = logging.getLogger(__name__)

DAV_NAMESPACE = "DAV:"
SHORT_PREFIXES = ("d", "D")

Extractor = Callable[[ET.Element, str], Optional[ET.Element]]


def _first_descendant(node: ET.Element, tag: str) -> Optional[ET.Element]:
    for element in node.iter(tag):
        if element is not node:
            return element
    return None


def _namespace_qualified(node: ET.Element, name: str) -> Optional[ET.Element]:
    return _first_descendant(node, f"{{{DAV_NAMESPACE}}}{name}")


def _short_prefixed(node: ET.Element, name: str) -> Optional[ET.Element]:
    for prefix in SHORT_PREFIXES:
        found = _first_descendant(node, f"{prefix}:{name}")
        if found is not None:
            return found
    return None


def _unprefixed(node: ET.Element, name: str) -> Optional[ET.Element]:
    return _first_descendant(node, name)


EXTRACTORS: Sequence[Extractor] = (_namespace_qualified, _short_prefixed, _unprefixed)


def find_element(node: ET.Element, name: str) -> Optional[ET.Element]:
    """Return the first descendant called ``name`` under any naming convention."""
    for extractor in EXTRACTORS:
        found = extractor(node, name)
        if found is not None:
            return found
    return None


def find_responses(root: ET.Element) -> list[ET.Element]:
    """Return every ``response`` node using the first convention that matches."""
    candidates = [f"{{{DAV_NAMESPACE}}}response"]
    candidates += [f"{prefix}:response" for prefix in SHORT_PREFIXES]
    candidates.append("response")

    for tag in candidates:
        responses = list(root.iter(tag))
        if responses:
            return responses
    return []


def _parse_without_namespaces(body: bytes) -> ET.Element:
    """Build a tree keeping literal ``prefix:name`` tags.

    Used for documents that use a prefix without declaring it, which a
    namespace-aware parser rejects as an unbound prefix.
    """
    builder = ET.TreeBuilder()
    parser = expat.ParserCreate()
    parser.StartElementHandler = builder.start
    parser.EndElementHandler = builder.end
    parser.CharacterDataHandler = builder.data
    parser.Parse(body, True)
    return builder.close()


def _parse_tree(body: bytes) -> ET.Element:
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        logger.debug(f"Namespace-aware parse failed ({e}), retrying literally")
        return _parse_without_namespaces(body)


def _text(element: Optional[ET.Element]) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _parse_size(text: str) -> int:
    try:
        size = int(text)
    except ValueError:
        return 0
    return size if size >= 0 else 0


def _parse_last_modified(text: str, now: datetime) -> datetime:
    if not text:
        return now

    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return now

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _collection_path(href: str) -> str:
    return unquote(urlsplit(href).path).rstrip("/")


def _is_self_reference(href: str, app_dir: str, app_path: Optional[str]) -> bool:
    path = _collection_path(href)
    if app_path is not None:
        return path == _collection_path(app_path)

    # Without the listed path, the entry is the app directory itself unless
    # its parent carries the same name.
    app_dir = app_dir.strip("/")
    segments = path.split("/")
    return segments[-1] == app_dir and (len(segments) < 2 or segments[-2] != app_dir)


def parse_multistatus(
    body: Union[str, bytes],
    *,
    app_dir: str = APP_SUBDIRECTORY,
    app_path: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[FileEntry]:
    """Parse a PROPFIND multi-status body into the plain files it lists.

    Args:
        body: Raw response body
        app_dir: App subdirectory whose own collection entry is skipped
        app_path: URL or path of the listed collection; when given, only the
            entry for exactly this path is treated as the collection itself
        now: Fallback timestamp for entries without a usable last-modified date

    Returns:
        File entries in document order, directories excluded
    """
    if not body:
        return []
    if isinstance(body, str):
        body = body.encode("utf-8")
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        root = _parse_tree(body)
    except (ET.ParseError, expat.ExpatError) as e:
        logger.warning(f"Error parsing WebDAV multi-status response: {e}")
        return []

    entries = []
    for response in find_responses(root):
        href = _text(find_element(response, "href"))
        if not href:
            continue

        name = unquote(href.split("/")[-1])
        if not name or _is_self_reference(href, app_dir, app_path):
            continue

        resourcetype = find_element(response, "resourcetype")
        is_directory = (
            resourcetype is not None
            and find_element(resourcetype, "collection") is not None
        )

        entries.append(
            FileEntry(
                name=name,
                path=href,
                size_bytes=_parse_size(_text(find_element(response, "getcontentlength"))),
                last_modified=_parse_last_modified(
                    _text(find_element(response, "getlastmodified")), now
                ),
                is_directory=is_directory,
            )
        )

    files = [entry for entry in entries if not entry.is_directory]
    logger.debug(f"Parsed {len(files)} files from multi-status response")
    return files
