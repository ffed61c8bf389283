"""
Diagram identifiers - naming conventions for diagrams and statute references.

Conventions:
- Diagram id: ``A<article>[_P<paragraph>][_I<item>]`` (e.g. ``A20_3_P2_I1``),
  optionally suffixed with ``_kijo`` or ``_flow`` to name one variant
- Diagram key: ``<law_id>/<article id>`` addressing one diagram
- Related article: ``<abbrev>::A<article>[:P<n>][:I<n>]`` (e.g. ``法::A43:P1``)

Multi-part article numbers ("第二十条の三") are stored with ``_`` as the
separator and displayed with the connective ``条の``.
"""

import re
from enum import Enum
from typing import Optional


class DiagramKind(str, Enum):
    """The two diagram variants sharing the node/edge vocabulary."""
    MECHANISM = "kijo"  # argument/evidence structure, must be loop-free
    FLOW = "flow"       # procedural decision tree, loops permitted


ARTICLE_CONNECTIVE = "条の"

_LAW_ID_RE = re.compile(r"^[A-Z0-9]{3,20}$", re.IGNORECASE)
_ARTICLE_ID_RE = re.compile(r"^A\d+(?:_\d+)*(?:_P\d+)?(?:_I\d+)?(?:_kijo|_flow)?$")
_VARIANT_SUFFIX_RE = re.compile(r"_(kijo|flow)$")
_RELATED_ARTICLE_RE = re.compile(r"^([^:]+)::A([^:]+)(?::P(\d+))?(?::I(\d+))?$")
_ARTICLE_REF_RE = re.compile(r"^(法|令|[^\d]+?)(\d+(?:の\d+)*)条(?:(\d+)項)?(?:(\d+)号)?$")


def normalize_article_number(article: str) -> str:
    """Convert "20の3" style numbers to the "20_3" form used in identifiers."""
    return article.replace("の", "_")


def make_diagram_id(
    article: str,
    paragraph: Optional[str] = None,
    item: Optional[str] = None
) -> str:
    """
    Derive the diagram id for an article, paragraph or item.

    An item id is produced whenever ``item`` is not None, even when it is
    empty, so unnumbered items still get an id distinct from their paragraph.

    >>> make_diagram_id("20_3", "2")
    'A20_3_P2'
    >>> make_diagram_id("20_3", "2", "1")
    'A20_3_P2_I1'
    """
    result = f"A{normalize_article_number(article)}"
    if paragraph is not None:
        result += f"_P{paragraph}"
    if item is not None:
        result += f"_I{item}"
    return result


def make_diagram_key(law_id: str, article_id: str) -> str:
    """Build the ``{lawId}/{articleId}`` key for a diagram."""
    return f"{law_id}/{get_base_article_id(article_id)}"


def is_valid_law_id(law_id: str) -> bool:
    """Check the e-Gov law id format (e.g. 325AC0000000201)."""
    return bool(_LAW_ID_RE.match(law_id or ""))


def is_valid_article_id(article_id: str) -> bool:
    """Check the diagram id format (e.g. A43_P1_kijo, A112_P1_I2)."""
    return bool(_ARTICLE_ID_RE.match(article_id or ""))


def get_diagram_kind(article_id: str) -> Optional[DiagramKind]:
    """Return the variant named by a ``_kijo``/``_flow`` suffix, if any."""
    match = _VARIANT_SUFFIX_RE.search(article_id or "")
    if not match:
        return None
    return DiagramKind(match.group(1))


def get_base_article_id(article_id: str) -> str:
    """Strip the ``_kijo``/``_flow`` suffix from a diagram id."""
    return _VARIANT_SUFFIX_RE.sub("", article_id or "")


def format_article_number(article: str) -> str:
    """
    Render an article number for humans.

    >>> format_article_number("43")
    '43条'
    >>> format_article_number("20_3")
    '20条の3'
    """
    article = normalize_article_number(article)
    if "_" in article:
        return article.replace("_", ARTICLE_CONNECTIVE)
    return f"{article}条"


def format_related_article(reference: str) -> str:
    """
    Render a related-article reference such as ``法::A43:P1`` as ``法43条1項``.

    Strings that do not follow the convention are returned unchanged.
    """
    match = _RELATED_ARTICLE_RE.match(reference or "")
    if not match:
        return reference

    abbrev, article, paragraph, item = match.groups()
    display = f"{abbrev}{format_article_number(article)}"
    if paragraph:
        display += f"{paragraph}項"
    if item:
        display += f"{item}号"
    return display


def parse_article_ref(text: str) -> dict:
    """
    Parse a human article reference like ``法43条1項`` or ``令112条1項2号``.

    Returns a dict with ``law_prefix``, ``article``, ``paragraph`` and
    ``item`` (the last two may be None).

    Raises:
        ValueError: if the text does not look like an article reference
    """
    match = _ARTICLE_REF_RE.match((text or "").strip())
    if not match:
        raise ValueError(f"Malformed article reference: {text!r}")

    law_prefix, article, paragraph, item = match.groups()
    return {
        "law_prefix": law_prefix,
        "article": normalize_article_number(article),
        "paragraph": paragraph,
        "item": item,
    }


def make_related_article_id(
    law_abbrev: str,
    article: str,
    paragraph: Optional[str] = None,
    item: Optional[str] = None
) -> str:
    """Build a related-article reference such as ``法::A43:P1``."""
    result = f"{law_abbrev}::A{normalize_article_number(article)}"
    if paragraph:
        result += f":P{paragraph}"
    if item:
        result += f":I{item}"
    return result
