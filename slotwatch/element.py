"""
@file element.py
@brief Read-only UI element snapshot model and tree helpers.

A snapshot is a rooted tree of UIElement values captured at one point in
time. Elements are immutable; the tree is only valid for the tick that
pulled it, so nothing here caches or releases nodes.
"""

from __future__ import annotations

import json
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import yaml

from .exceptions import SnapshotError

_BOUNDS_RE = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")
_XML_DECL_RE = re.compile(r"<\?xml[^>]*\?>")

ElementPredicate = Callable[["UIElement"], bool]


@dataclass(frozen=True)
class Bounds:
    """Screen rectangle of an element (left, top, right, bottom)."""
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @property
    def center(self) -> Tuple[int, int]:
        return (self.left + self.right) // 2, (self.top + self.bottom) // 2

    @property
    def is_empty(self) -> bool:
        return self.right <= self.left or self.bottom <= self.top

    def to_list(self) -> List[int]:
        return [self.left, self.top, self.right, self.bottom]

    @classmethod
    def parse(cls, value: Any) -> Bounds:
        """
        Accept "[l,t][r,b]" strings, 4-item sequences, or {left, top, right, bottom} mappings.
        """
        if value is None:
            return cls()
        if isinstance(value, Bounds):
            return value
        if isinstance(value, str):
            m = _BOUNDS_RE.search(value)
            if not m:
                raise SnapshotError(f"Invalid bounds string: {value!r}")
            return cls(*(int(g) for g in m.groups()))
        if isinstance(value, dict):
            return cls(
                left=int(value.get("left", 0)),
                top=int(value.get("top", 0)),
                right=int(value.get("right", 0)),
                bottom=int(value.get("bottom", 0)),
            )
        if isinstance(value, (list, tuple)) and len(value) == 4:
            return cls(*(int(v) for v in value))
        raise SnapshotError(f"Invalid bounds value: {value!r}")


@dataclass(frozen=True)
class UIElement:
    """One node of a UI snapshot."""
    resource_id: Optional[str] = None
    text: Optional[str] = None
    description: Optional[str] = None
    bounds: Bounds = field(default_factory=Bounds)
    clickable: bool = False
    editable: bool = False
    scrollable: bool = False
    focused: bool = False
    class_name: Optional[str] = None
    children: Tuple["UIElement", ...] = ()

    def label(self) -> str:
        """Short human-readable description for logs."""
        parts = []
        if self.text:
            parts.append(f"text='{self.text}'")
        if self.description:
            parts.append(f"desc='{self.description}'")
        if self.resource_id:
            parts.append(f"id='{self.resource_id}'")
        if not parts:
            parts.append(f"bounds={self.bounds.to_list()}")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.resource_id:
            data["id"] = self.resource_id
        if self.text:
            data["text"] = self.text
        if self.description:
            data["desc"] = self.description
        if self.class_name:
            data["class"] = self.class_name
        if not self.bounds.is_empty:
            data["bounds"] = self.bounds.to_list()
        for flag in ("clickable", "editable", "scrollable", "focused"):
            if getattr(self, flag):
                data[flag] = True
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UIElement:
        if not isinstance(data, dict):
            raise SnapshotError(f"Element must be a mapping, got: {type(data).__name__}")
        children = data.get("children") or []
        if not isinstance(children, list):
            raise SnapshotError("'children' must be a list")
        return cls(
            resource_id=data.get("id", data.get("resource_id")),
            text=_opt_str(data.get("text")),
            description=_opt_str(data.get("desc", data.get("content_desc"))),
            bounds=Bounds.parse(data.get("bounds")),
            clickable=bool(data.get("clickable", False)),
            editable=bool(data.get("editable", False)),
            scrollable=bool(data.get("scrollable", False)),
            focused=bool(data.get("focused", False)),
            class_name=data.get("class"),
            children=tuple(cls.from_dict(c) for c in children),
        )


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# =========================================================
# Traversal
# =========================================================

def iter_tree(root: Optional[UIElement]) -> Iterator[UIElement]:
    """Pre-order walk of the snapshot."""
    if root is None:
        return
    stack: List[UIElement] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def iter_with_ancestors(root: Optional[UIElement]) -> Iterator[Tuple[UIElement, Tuple[UIElement, ...]]]:
    """Pre-order walk yielding (element, ancestors from root to parent)."""
    if root is None:
        return
    stack: List[Tuple[UIElement, Tuple[UIElement, ...]]] = [(root, ())]
    while stack:
        node, ancestors = stack.pop()
        yield node, ancestors
        path = ancestors + (node,)
        for child in reversed(node.children):
            stack.append((child, path))


def find_first(root: Optional[UIElement], predicate: ElementPredicate) -> Optional[UIElement]:
    for node in iter_tree(root):
        if predicate(node):
            return node
    return None


def find_all(root: Optional[UIElement], predicate: ElementPredicate) -> List[UIElement]:
    return [node for node in iter_tree(root) if predicate(node)]


def collect_texts(root: Optional[UIElement]) -> List[str]:
    """All non-blank text and description strings in document order."""
    texts: List[str] = []
    for node in iter_tree(root):
        if node.text and node.text.strip():
            texts.append(node.text)
        if node.description and node.description.strip():
            texts.append(node.description)
    return texts


def find_focused_editable(root: Optional[UIElement]) -> Optional[UIElement]:
    return find_first(root, lambda n: n.focused and n.editable)


def find_scrollable(root: Optional[UIElement]) -> Optional[UIElement]:
    return find_first(root, lambda n: n.scrollable)


def clickable_target(root: Optional[UIElement], element: UIElement) -> Optional[UIElement]:
    """
    Nearest clickable element among element and its ancestors.

    @return None when neither the element nor any ancestor is clickable
    """
    for node, ancestors in iter_with_ancestors(root):
        if node is element:
            for candidate in (node,) + tuple(reversed(ancestors)):
                if candidate.clickable:
                    return candidate
            return None
    return element if element.clickable else None


def text_contains(node: UIElement, needle: str) -> bool:
    """Case-insensitive containment over text and description."""
    low = needle.lower()
    return bool(
        (node.text and low in node.text.lower())
        or (node.description and low in node.description.lower())
    )


# =========================================================
# Loading
# =========================================================

def parse_uiautomator_xml(xml_text: str) -> UIElement:
    """
    Parse an Android `uiautomator dump` hierarchy into a UIElement tree.

    The synthetic <hierarchy> root becomes a plain container element.
    """
    body = _XML_DECL_RE.sub("", xml_text, count=1)
    start = body.find("<")
    if start < 0:
        raise SnapshotError("uiautomator dump contains no XML")
    end = body.rfind(">")
    try:
        doc = ET.fromstring(body[start:end + 1])
    except ET.ParseError as e:
        raise SnapshotError(f"Invalid uiautomator XML: {e}") from e

    def convert(node: ET.Element) -> UIElement:
        cls_name = node.get("class") or None
        bounds_str = node.get("bounds")
        return UIElement(
            resource_id=node.get("resource-id") or None,
            text=node.get("text") or None,
            description=node.get("content-desc") or None,
            bounds=Bounds.parse(bounds_str) if bounds_str else Bounds(),
            clickable=node.get("clickable") == "true",
            editable=bool(cls_name and cls_name.endswith("EditText")),
            scrollable=node.get("scrollable") == "true",
            focused=node.get("focused") == "true",
            class_name=cls_name,
            children=tuple(convert(c) for c in node if c.tag == "node"),
        )

    return convert(doc)


def load_snapshot(path: str) -> UIElement:
    """
    Load a snapshot from a YAML/JSON element mapping or a uiautomator XML dump.
    """
    path = os.path.abspath(path)
    if not os.path.exists(path):
        raise SnapshotError(f"Snapshot file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    if path.lower().endswith(".xml"):
        return parse_uiautomator_xml(raw)
    try:
        if path.lower().endswith(".json"):
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except (ValueError, yaml.YAMLError) as e:
        raise SnapshotError(f"Invalid snapshot file {path}: {e}") from e
    if isinstance(data, dict) and "root" in data:
        data = data["root"]
    return UIElement.from_dict(data)
