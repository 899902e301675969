# tests/test_element.py
"""
Tests for the snapshot model, tree helpers and loaders.
"""

import pytest

from slotwatch.element import (
    Bounds,
    UIElement,
    clickable_target,
    collect_texts,
    find_focused_editable,
    find_scrollable,
    iter_tree,
    load_snapshot,
    parse_uiautomator_xml,
)
from slotwatch.exceptions import SnapshotError


DUMP = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" resource-id="" class="android.widget.FrameLayout" package="ru.ozon.hire"
        content-desc="" clickable="false" focused="false" scrollable="false" bounds="[0,0][1080,2400]">
    <node index="0" text="Склады" resource-id="ru.ozon.hire:id/warehouseTab" class="android.widget.TextView"
          content-desc="" clickable="true" focused="false" scrollable="false" bounds="[0,2280][360,2400]" />
    <node index="1" text="" resource-id="ru.ozon.hire:id/search_src_text" class="android.widget.EditText"
          content-desc="Поиск" clickable="true" focused="true" scrollable="false" bounds="[10,100][1070,200]" />
  </node>
</hierarchy>"""


class TestBounds:
    """Tests for Bounds parsing."""

    def test_parse_uiautomator_string(self):
        """Should parse the [l,t][r,b] form."""
        b = Bounds.parse("[312,2306][434,2428]")
        assert b.to_list() == [312, 2306, 434, 2428]
        assert b.center == (373, 2367)

    def test_parse_list_and_mapping(self):
        """Should accept sequences and mappings."""
        assert Bounds.parse([1, 2, 3, 4]) == Bounds(1, 2, 3, 4)
        assert Bounds.parse({"left": 1, "top": 2, "right": 3, "bottom": 4}) == Bounds(1, 2, 3, 4)

    def test_none_is_empty(self):
        """Missing bounds should be an empty rectangle."""
        assert Bounds.parse(None).is_empty

    def test_invalid_raises(self):
        """Malformed bounds should raise SnapshotError."""
        with pytest.raises(SnapshotError):
            Bounds.parse("not bounds")
        with pytest.raises(SnapshotError):
            Bounds.parse([1, 2, 3])


class TestTreeHelpers:
    """Tests for traversal helpers."""

    def _tree(self):
        label = UIElement(text="Петровское")
        row = UIElement(clickable=True, bounds=Bounds(0, 0, 100, 50), children=(label,))
        scroller = UIElement(scrollable=True, children=(row,))
        edit = UIElement(editable=True, focused=True, text="query")
        root = UIElement(children=(edit, scroller))
        return root, label, row, scroller, edit

    def test_pre_order(self):
        """iter_tree should visit parents before children, left to right."""
        root, label, row, scroller, edit = self._tree()
        assert list(iter_tree(root)) == [root, edit, scroller, row, label]

    def test_clickable_target_climbs_to_ancestor(self):
        """Should return the nearest clickable ancestor."""
        root, label, row, _, _ = self._tree()
        assert clickable_target(root, label) is row

    def test_clickable_target_none_without_clickable_ancestor(self):
        """Should return None when nothing up the path is clickable."""
        root, _, _, _, edit = self._tree()
        assert clickable_target(root, edit) is None

    def test_find_helpers(self):
        """Focused editable and scrollable lookups."""
        root, _, _, scroller, edit = self._tree()
        assert find_focused_editable(root) is edit
        assert find_scrollable(root) is scroller

    def test_collect_texts_includes_descriptions(self):
        """Should include descriptions and skip blanks."""
        root = UIElement(children=(UIElement(text="a"), UIElement(text="  "), UIElement(description="b")))
        assert collect_texts(root) == ["a", "b"]


class TestLoading:
    """Tests for snapshot loaders."""

    def test_from_dict(self):
        """Should map short keys and nested children."""
        el = UIElement.from_dict({
            "id": "x:id/tab",
            "text": "Склады",
            "bounds": "[0,0][10,10]",
            "clickable": True,
            "children": [{"desc": "icon"}],
        })
        assert el.resource_id == "x:id/tab"
        assert el.clickable
        assert el.children[0].description == "icon"

    def test_from_dict_rejects_non_mapping(self):
        """Should raise SnapshotError for invalid element data."""
        with pytest.raises(SnapshotError):
            UIElement.from_dict(["not", "a", "mapping"])

    def test_parse_uiautomator_xml(self):
        """Should convert a dump, inferring editable from EditText."""
        root = parse_uiautomator_xml(DUMP)
        tab, search = root.children[0].children
        assert tab.text == "Склады"
        assert tab.clickable
        assert tab.bounds == Bounds(0, 2280, 360, 2400)
        assert search.editable and search.focused
        assert search.description == "Поиск"

    def test_parse_invalid_xml(self):
        """Broken XML should raise SnapshotError."""
        with pytest.raises(SnapshotError):
            parse_uiautomator_xml("<hierarchy><node></hierarchy>")

    def test_load_snapshot_yaml_with_root(self, tmp_path):
        """Should load YAML with an optional root key."""
        path = tmp_path / "snap.yaml"
        path.write_text("root:\n  children:\n    - text: Карта\n", encoding="utf-8")
        root = load_snapshot(str(path))
        assert collect_texts(root) == ["Карта"]

    def test_load_snapshot_xml(self, tmp_path):
        """Should dispatch .xml files to the uiautomator parser."""
        path = tmp_path / "dump.xml"
        path.write_text(DUMP, encoding="utf-8")
        assert "Склады" in collect_texts(load_snapshot(str(path)))

    def test_load_snapshot_missing(self, tmp_path):
        """Missing file should raise SnapshotError."""
        with pytest.raises(SnapshotError):
            load_snapshot(str(tmp_path / "missing.yaml"))
