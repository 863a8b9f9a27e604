"""
Node-sequence helpers for structured-text values.

A structured-text value is a list of nodes (paragraphs, headings, lists, ...)
with text leaves (``{"text": ..., "marks": [...]}``) and embedded block nodes
(``{"type": "block", "blockModelId": ..., <block fields>}``). Generation and
translation both work by pulling every text leaf out into a flat array,
sending that array to the oracle, and splicing the answer back into the same
skeleton.
"""

import copy
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from ..errors import MalformedResponseError
from ..models.values import BLOCK_NODE_TYPE, is_block_node

ORIGINAL_INDEX_KEY = "originalIndex"

_WHITESPACE = re.compile(r"\s+")

HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}

INLINE_MARKS = {
    "strong": "strong",
    "b": "strong",
    "em": "emphasis",
    "i": "emphasis",
    "u": "underline",
    "s": "strikethrough",
    "del": "strikethrough",
    "strike": "strikethrough",
    "code": "code",
    "mark": "highlight",
}

CONTAINER_TAGS = {"html", "body", "div", "section", "article", "main", "header", "footer", "aside", "nav", "figure"}


# Key stripping

def remove_keys(value: Any, keys: frozenset) -> Any:
    """Deep copy of ``value`` without any dict entry whose key is in ``keys``."""
    if isinstance(value, list):
        return [remove_keys(item, keys) for item in value]
    if isinstance(value, dict):
        return {key: remove_keys(item, keys) for key, item in value.items() if key not in keys}
    return value


def remove_ids(value: Any) -> Any:
    """Strip node and block identities (``id``) so they are never sent or duplicated."""
    return remove_keys(value, frozenset({"id"}))


def remove_item_ids(value: Any) -> Any:
    """Strip block instance identities (``itemId``)."""
    return remove_keys(value, frozenset({"itemId"}))


# Text leaves

def extract_text_values(value: Any) -> List[str]:
    """Every text leaf of ``value`` in document order."""
    texts: List[str] = []

    def traverse(node: Any) -> None:
        if isinstance(node, list):
            for item in node:
                traverse(item)
        elif isinstance(node, dict):
            if "text" in node:
                texts.append(node["text"])
            for key, item in node.items():
                if key != "text":
                    traverse(item)

    traverse(value)
    return texts


def reconstruct(value: Any, texts: List[str]) -> Any:
    """
    Copy of ``value`` with its text leaves replaced, in order, by ``texts``.

    Raises:
        MalformedResponseError: If ``texts`` does not have one entry per text leaf
    """
    expected = len(extract_text_values(value))
    if not isinstance(texts, list) or len(texts) != expected:
        got = len(texts) if isinstance(texts, list) else type(texts).__name__
        raise MalformedResponseError(f"Expected an array of {expected} strings, got {got}")

    position = 0

    def traverse(node: Any) -> Any:
        nonlocal position
        if isinstance(node, list):
            return [traverse(item) for item in node]
        if isinstance(node, dict):
            rebuilt: Dict[str, Any] = {}
            if "text" in node:
                rebuilt["text"] = texts[position]
                position += 1
            for key, item in node.items():
                if key != "text":
                    rebuilt[key] = traverse(item)
            return rebuilt
        return node

    return traverse(value)


# Block nodes

def split_blocks(nodes: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Separate block nodes from the inline skeleton.

    Returns:
        (skeleton without block nodes, block nodes each tagged with its original index)
    """
    skeleton = []
    blocks = []
    for index, node in enumerate(nodes):
        if is_block_node(node):
            block = copy.deepcopy(node)
            block[ORIGINAL_INDEX_KEY] = index
            blocks.append(block)
        else:
            skeleton.append(node)
    return skeleton, blocks


def insert_at_index(nodes: List[Any], node: Any, index: int) -> List[Any]:
    return nodes[:index] + [node] + nodes[index:]


def splice_blocks(skeleton: List[Dict[str, Any]], blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Put block nodes back at their original indices and drop the index bookkeeping.

    Blocks must be inserted in ascending original index for every block to
    land exactly where it was.
    """
    result = list(skeleton)
    for block in sorted(blocks, key=lambda b: b[ORIGINAL_INDEX_KEY]):
        result = insert_at_index(result, block, block[ORIGINAL_INDEX_KEY])
    return [strip_original_index(node) for node in result]


def strip_original_index(node: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in node.items() if key != ORIGINAL_INDEX_KEY}


def to_block_node(block: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a generated block instance (``itemTypeId`` + fields) into a block node."""
    fields = {key: value for key, value in block.items() if key not in ("itemTypeId", "blockModelId")}
    node = {
        "blockModelId": block.get("itemTypeId") or block.get("blockModelId"),
        "children": [{"text": ""}],
        "type": BLOCK_NODE_TYPE,
    }
    node.update(fields)
    return node


# HTML conversion

def html_to_structured_text(html: str) -> List[Dict[str, Any]]:
    """
    Convert an HTML document into a list of structured-text nodes.

    Text leaves are ``{"text": ...}`` with an optional ``marks`` list.

    Args:
        html: HTML markup (fragments are fine)

    Returns:
        Top-level nodes (paragraph, heading, list, blockquote, code, thematicBreak)
    """
    soup = BeautifulSoup(html or "", "html.parser")
    return _block_nodes(soup)


def _block_nodes(parent: Tag) -> List[Dict[str, Any]]:
    nodes: List[Dict[str, Any]] = []
    pending: List[Any] = []

    def flush() -> None:
        if pending:
            paragraph = _paragraph(_inline_leaves(pending))
            if paragraph:
                nodes.append(paragraph)
            pending.clear()

    for child in parent.children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, Tag) and _is_block_tag(child):
            flush()
            nodes.extend(_block_node(child))
        else:
            pending.append(child)
    flush()
    return nodes


def _is_block_tag(tag: Tag) -> bool:
    return (
        tag.name in ("p", "ul", "ol", "blockquote", "pre", "hr", "table")
        or tag.name in HEADING_LEVELS
        or tag.name in CONTAINER_TAGS
    )


def _block_node(tag: Tag) -> List[Dict[str, Any]]:
    name = tag.name
    if name == "p":
        paragraph = _paragraph(_inline_leaves(tag.children))
        return [paragraph] if paragraph else []
    if name in HEADING_LEVELS:
        children = _trim(_inline_leaves(tag.children))
        if not children:
            return []
        return [{"type": "heading", "level": HEADING_LEVELS[name], "children": children}]
    if name in ("ul", "ol"):
        items = []
        for li in tag.find_all("li", recursive=False):
            content = _block_nodes(li)
            items.append({"type": "listItem", "children": content or [_empty_paragraph()]})
        if not items:
            return []
        return [{"type": "list", "style": "numbered" if name == "ol" else "bulleted", "children": items}]
    if name == "blockquote":
        paragraphs = [node for node in _block_nodes(tag) if node["type"] == "paragraph"]
        return [{"type": "blockquote", "children": paragraphs or [_empty_paragraph()]}]
    if name == "pre":
        node: Dict[str, Any] = {"type": "code", "code": tag.get_text()}
        code = tag.find("code")
        language = _code_language(code) if code else None
        if language:
            node["language"] = language
        return [node]
    if name == "hr":
        return [{"type": "thematicBreak"}]
    if name == "table":
        # Tables have no structured-text equivalent; keep their text one row per paragraph.
        rows = []
        for tr in tag.find_all("tr"):
            text = " | ".join(_collapse(cell.get_text()).strip() for cell in tr.find_all(["td", "th"]))
            if text:
                rows.append({"type": "paragraph", "children": [{"text": text}]})
        return rows
    return _block_nodes(tag)


def _code_language(code: Tag) -> Optional[str]:
    for css_class in code.get("class") or []:
        if css_class.startswith("language-"):
            return css_class[len("language-"):]
    return None


def _inline_leaves(children, marks: Tuple[str, ...] = ()) -> List[Dict[str, Any]]:
    leaves: List[Dict[str, Any]] = []
    for child in children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            text = _collapse(str(child))
            if text:
                leaves.append(_leaf(text, marks))
            continue
        if not isinstance(child, Tag):
            continue
        if child.name == "br":
            leaves.append(_leaf("\n", marks))
        elif child.name == "a":
            link_children = _inline_leaves(child.children, marks)
            if link_children:
                leaves.append({"type": "link", "url": child.get("href", ""), "children": link_children})
        elif child.name in INLINE_MARKS:
            mark = INLINE_MARKS[child.name]
            child_marks = marks if mark in marks else marks + (mark,)
            leaves.extend(_inline_leaves(child.children, child_marks))
        else:
            leaves.extend(_inline_leaves(child.children, marks))
    return leaves


def _leaf(text: str, marks: Tuple[str, ...]) -> Dict[str, Any]:
    leaf: Dict[str, Any] = {"text": text}
    if marks:
        leaf["marks"] = list(marks)
    return leaf


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text)


def _trim(leaves: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop whitespace at the edges of a run of inline leaves."""
    if leaves and "text" in leaves[0]:
        leaves[0]["text"] = leaves[0]["text"].lstrip(" ")
    if leaves and "text" in leaves[-1]:
        leaves[-1]["text"] = leaves[-1]["text"].rstrip(" ")
    return [leaf for leaf in leaves if leaf.get("type") == "link" or leaf.get("text")]


def _paragraph(leaves: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    children = _trim(leaves)
    if not children:
        return None
    return {"type": "paragraph", "children": children}


def _empty_paragraph() -> Dict[str, Any]:
    return {"type": "paragraph", "children": [{"text": ""}]}
