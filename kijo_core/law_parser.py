"""
Statute tree parser - Turn e-Gov statute markup (as JSON) into a LawNode tree.

The input is the generic tag tree produced by converting statute XML to JSON::

    {"tag": "Law", "attr": {...}, "children": [<node or text>, ...]}

Only the main provision is parsed. Containers (Part, Chapter, Section,
Subsection, Division, Article) become LawNodes; each Article is expanded into
its Paragraphs and each Paragraph into its Items. Paragraphs and Items are
classified as regulation sentences and given a diagram id.

Article numbers are stored in identifier form: an article with ``Num="20の3"``
has ``article_num == "20_3"`` on itself and on its paragraphs and items.

Nothing here raises on malformed input: unexpected shapes produce empty
results and missing numbers fall back to defaults.
"""

import logging
import re
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict

from .identifiers import make_diagram_id, normalize_article_number
from .settings import ParserSettings

logger = logging.getLogger(__name__)


CONTAINER_TAGS = ("Part", "Chapter", "Section", "Subsection", "Division", "Article")

# Sentence endings that impose an obligation or prohibition:
# "must", "must not", "cannot", "shall be deemed to"
REGULATION_PATTERNS = (
    re.compile(r"しなければならない[。]?$"),
    re.compile(r"してはならない[。]?$"),
    re.compile(r"することができない[。]?$"),
    re.compile(r"ものとする[。]?$"),
)

DEFAULT_MAX_DEPTH = ParserSettings().max_depth

_REFERENCE_RE = re.compile(r"((?:[^\s「]+法)|同法)?\s*第([一二三四五六七八九十百千]+)条")


class LawNode(BaseModel):
    """One level of the statutory hierarchy."""
    model_config = ConfigDict(frozen=True)

    type: str
    title: str = ""
    caption: Optional[str] = None
    article_num: Optional[str] = None  # normalized, "20の3" -> "20_3"
    paragraph_num: Optional[str] = None
    item_num: Optional[str] = None
    text: Optional[str] = None  # leaf sentence text; containers have none
    is_regulation: Optional[bool] = None  # Paragraph/Item only
    diagram_id: Optional[str] = None  # Paragraph/Item only
    children: tuple["LawNode", ...] = ()


LawNode.model_rebuild()


class Reference(BaseModel):
    """A cross-reference to an article found in statute text."""
    model_config = ConfigDict(frozen=True)

    law_name: Optional[str] = None
    article: str
    full_text: str


# --- Tag tree helpers ---

def _is_element(node: Any) -> bool:
    return isinstance(node, dict) and isinstance(node.get("tag"), str)


def _children(node: Any) -> list:
    if not _is_element(node):
        return []
    children = node.get("children")
    return children if isinstance(children, list) else []


def _attr(node: dict, name: str) -> Optional[str]:
    attrs = node.get("attr")
    if not isinstance(attrs, dict):
        return None
    value = attrs.get(name)
    return str(value) if value is not None else None


def find_child(node: Any, tag: str) -> Optional[dict]:
    """Return the first direct child element with the given tag."""
    for child in _children(node):
        if _is_element(child) and child["tag"] == tag:
            return child
    return None


def find_children(node: Any, tag: str) -> list[dict]:
    """Return all direct child elements with the given tag."""
    return [c for c in _children(node) if _is_element(c) and c["tag"] == tag]


def get_text(node: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Concatenate all descendant text leaves in document order."""
    parts: list[str] = []
    _collect_text(node, parts, 0, max_depth)
    return "".join(parts)


def _collect_text(node: Any, parts: list[str], depth: int, max_depth: int):
    if isinstance(node, str):
        parts.append(node)
        return
    if depth >= max_depth:
        logger.warning("Text extraction depth limit (%d) reached; subtree skipped", max_depth)
        return
    for child in _children(node):
        _collect_text(child, parts, depth + 1, max_depth)


# --- Classification ---

def is_regulation_text(text: str) -> bool:
    """Check whether a sentence ends in one of the obligation phrases."""
    if not isinstance(text, str):
        return False
    stripped = text.strip()
    return any(p.search(stripped) for p in REGULATION_PATTERNS)


def extract_sentence_text(container: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """
    Extract the text of a ParagraphSentence/ItemSentence element.

    Sentence children come first, then Column children (used by definition
    tables); a container with neither contributes its whole text.
    """
    sentences = [get_text(s, max_depth) for s in find_children(container, "Sentence")]
    sentences += [get_text(c, max_depth) for c in find_children(container, "Column")]
    if not sentences:
        sentences.append(get_text(container, max_depth))
    return "".join(sentences)


# --- Parsing ---

def parse_law_data(law_data: Any, settings: Optional[ParserSettings] = None) -> list[LawNode]:
    """
    Parse a statute tag tree into its top-level LawNodes.

    Returns an empty list when the tree is not a ``Law`` element or lacks the
    ``LawBody``/``MainProvision`` containers.
    """
    settings = settings or ParserSettings()

    if not _is_element(law_data):
        return []
    if law_data["tag"] != "Law":
        logger.warning("Root node is not Law: %r", law_data["tag"])
        return []

    law_body = find_child(law_data, "LawBody")
    if law_body is None:
        return []
    main_provision = find_child(law_body, "MainProvision")
    if main_provision is None:
        return []

    return _traverse(main_provision, 0, settings.max_depth)


def _traverse(node: dict, depth: int, max_depth: int) -> list[LawNode]:
    if depth >= max_depth:
        logger.warning("Statute nesting depth limit (%d) reached; subtree skipped", max_depth)
        return []

    nodes: list[LawNode] = []
    for child in _children(node):
        if not _is_element(child) or child["tag"] not in CONTAINER_TAGS:
            continue

        tag = child["tag"]
        title_node = find_child(child, f"{tag}Title")
        title = get_text(title_node, max_depth) if title_node else ""

        if tag == "Article":
            nodes.append(_parse_article(child, title, max_depth))
        else:
            nodes.append(LawNode(
                type=tag,
                title=title,
                children=tuple(_traverse(child, depth + 1, max_depth)),
            ))
    return nodes


def _parse_article(article: dict, title: str, max_depth: int) -> LawNode:
    article_num = normalize_article_number(_attr(article, "Num") or "")
    caption_node = find_child(article, "ArticleCaption")
    return LawNode(
        type="Article",
        title=title,
        caption=get_text(caption_node, max_depth) if caption_node else None,
        article_num=article_num,
        children=tuple(_extract_paragraphs(article, article_num, max_depth)),
    )


def _extract_paragraphs(article: dict, article_num: str, max_depth: int) -> list[LawNode]:
    nodes: list[LawNode] = []
    for paragraph in find_children(article, "Paragraph"):
        paragraph_num = _attr(paragraph, "Num") or "1"
        num_node = find_child(paragraph, "ParagraphNum")
        num_text = get_text(num_node, max_depth) if num_node else ""

        sentence = find_child(paragraph, "ParagraphSentence")
        text = extract_sentence_text(sentence, max_depth) if sentence else ""

        nodes.append(LawNode(
            type="Paragraph",
            title=f"第{num_text}項" if num_text else "第1項",
            article_num=article_num,
            paragraph_num=paragraph_num,
            text=text,
            is_regulation=is_regulation_text(text),
            diagram_id=make_diagram_id(article_num, paragraph_num),
            children=tuple(_extract_items(paragraph, article_num, paragraph_num, max_depth)),
        ))
    return nodes


def _extract_items(
    paragraph: dict,
    article_num: str,
    paragraph_num: str,
    max_depth: int
) -> list[LawNode]:
    nodes: list[LawNode] = []
    for item in find_children(paragraph, "Item"):
        item_num = _attr(item, "Num") or ""
        title_node = find_child(item, "ItemTitle")

        sentence = find_child(item, "ItemSentence")
        text = extract_sentence_text(sentence, max_depth) if sentence else ""

        # Subitems are not expanded
        nodes.append(LawNode(
            type="Item",
            title=get_text(title_node, max_depth) if title_node else "",
            article_num=article_num,
            paragraph_num=paragraph_num,
            item_num=item_num,
            text=text,
            is_regulation=is_regulation_text(text),
            diagram_id=make_diagram_id(article_num, paragraph_num, item_num),
        ))
    return nodes


# --- Queries over parsed and raw trees ---

def iter_law_nodes(nodes: list[LawNode]) -> Iterator[LawNode]:
    """Yield every node of a parsed hierarchy in pre-order."""
    for node in nodes:
        yield node
        yield from iter_law_nodes(list(node.children))


def collect_regulations(nodes: list[LawNode]) -> list[LawNode]:
    """Return every Paragraph/Item flagged as a regulation sentence."""
    return [n for n in iter_law_nodes(nodes) if n.is_regulation]


def extract_article_content(article: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """
    Render an Article element as display text.

    The caption (if any) comes first in 【】, then one line per paragraph:
    its number followed by its sentences.
    """
    content = ""
    caption = find_child(article, "ArticleCaption")
    if caption:
        content += f"【{get_text(caption, max_depth)}】\n"

    for paragraph in find_children(article, "Paragraph"):
        num_node = find_child(paragraph, "ParagraphNum")
        num = get_text(num_node, max_depth) if num_node else ""
        sentence = find_child(paragraph, "ParagraphSentence")
        sentences = [get_text(s, max_depth) for s in find_children(sentence, "Sentence")] if sentence else []
        content += f"{num} {''.join(sentences)}\n"

    return content


def find_article_content(
    law_data: Any,
    article_title: str,
    settings: Optional[ParserSettings] = None
) -> Optional[str]:
    """
    Search a raw statute tree for an Article by its title (e.g. "第四十三条").

    Returns the rendered article text, or None if no article matches.
    """
    settings = settings or ParserSettings()

    def search(node: Any, depth: int) -> Optional[str]:
        if not _is_element(node) or depth >= settings.max_depth:
            return None
        if node["tag"] == "Article":
            title_node = find_child(node, "ArticleTitle")
            if title_node and get_text(title_node, settings.max_depth) == article_title:
                return extract_article_content(node, settings.max_depth)
        for child in _children(node):
            result = search(child, depth + 1)
            if result is not None:
                return result
        return None

    return search(law_data, 0)


def find_references(text: str) -> list[Reference]:
    """
    Find article cross-references (e.g. "建築基準法第六条", "同法第二条").

    "同法" ("the same law") refers back to an earlier law and carries no name.
    """
    if not isinstance(text, str):
        return []

    references: list[Reference] = []
    for match in _REFERENCE_RE.finditer(text):
        law_name = match.group(1)
        if law_name == "同法":
            law_name = None
        references.append(Reference(
            law_name=law_name,
            article=f"第{match.group(2)}条",
            full_text=match.group(0),
        ))
    return references
