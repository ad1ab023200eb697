"""
Тесты вспомогательных операций над деревом разметки.
"""

import pytest

from ftl.template.dom import (
    NodeCursor,
    NodeFilter,
    add_classes,
    clone_fragment,
    clone_node,
    expand_nodes,
    fragment_from_nodes,
    get_property,
    insert_after,
    insert_before,
    is_element,
    is_text_node,
    node_path,
    parse_markup,
    set_property,
    shallow_html,
    to_html,
)


def names(nodes):
    return [n.name if is_element(n) else str(n) for n in nodes]


class TestMarkupHelpers:

    def test_parse_and_serialize(self):
        fragment = parse_markup('<p class="a">x &amp; y</p>tail')
        assert to_html(fragment) == '<p class="a">x &amp; y</p>tail'

    def test_node_kinds(self):
        fragment = parse_markup("<b>x</b><!-- note -->")
        tag, comment = fragment.contents
        assert is_element(tag)
        assert not is_element(fragment)
        assert is_text_node(tag.contents[0])
        assert not is_text_node(comment)

    def test_clone_fragment_is_independent(self):
        fragment = parse_markup("<ul><li>1</li></ul>")
        clone = clone_fragment(fragment)
        clone.find("li").string = "2"
        assert to_html(fragment) == "<ul><li>1</li></ul>"
        assert to_html(clone) == "<ul><li>2</li></ul>"

    def test_clone_keeps_properties(self):
        tag = parse_markup("<input>").find("input")
        set_property(tag, "value", 42)
        clone = clone_node(tag)
        assert get_property(clone, "value") == 42

        set_property(clone, "value", 1)
        assert get_property(tag, "value") == 42

    def test_get_property_default(self):
        tag = parse_markup("<input>").find("input")
        assert get_property(tag, "value") is None
        assert get_property(tag, "value", "x") == "x"

    def test_expand_nodes(self):
        fragment = parse_markup("<i>a</i><b>b</b>")
        nodes = expand_nodes([fragment, None, "text", [parse_markup("<u></u>")]])
        assert names(nodes) == ["i", "b", "text", "u"]

    def test_expand_nodes_rejects_values(self):
        with pytest.raises(TypeError, match="Cannot insert int"):
            expand_nodes([1])

    def test_fragment_from_nodes_moves_by_default(self):
        source = parse_markup("<i></i><b></b>")
        fragment = fragment_from_nodes(list(source.contents))
        assert to_html(fragment) == "<i></i><b></b>"
        assert source.contents == []

    def test_insertions_keep_order(self):
        fragment = parse_markup("<p></p>")
        p = fragment.find("p")
        insert_before(p, ["a", "b"])
        insert_after(p, ["c", "d"])
        assert to_html(fragment) == "ab<p></p>cd"

    def test_shallow_html(self):
        fragment = parse_markup('<div id="x"><span>deep</span></div>')
        assert shallow_html(fragment.find("div")) == '<div id="x"></div>'
        assert shallow_html(fragment) == '<div id="x"></div>'
        assert shallow_html(parse_markup("  {{a}} ")) == "{{a}}"

    def test_node_path(self):
        fragment = parse_markup('<div id="main"><ul><li>x</li></ul></div>')
        li = fragment.find("li")
        assert node_path(li) == "div#main > ul > li"
        assert node_path(li.contents[0]) == "div#main > ul > li"

    def test_add_classes(self):
        fragment = parse_markup('<p class="a b">x</p>')
        p = fragment.find("p")
        add_classes(p, ["b", "c d"])
        assert p["class"] == ["a", "b", "c", "d"]

    def test_add_classes_does_not_touch_clones(self):
        """Список классов клона не разделяется с оригиналом"""
        p = parse_markup('<p class="a">x</p>').find("p")
        clone = clone_node(p)
        add_classes(clone, ["z"])
        assert p["class"] == ["a"]


class TestNodeCursor:

    def collect(self, root, accept=lambda node: NodeFilter.ACCEPT):
        cursor = NodeCursor(root, accept)
        visited = []
        while True:
            node = cursor.next_node()
            if node is None:
                return visited
            visited.append(node)

    def test_pre_order(self):
        fragment = parse_markup("<a><b>1</b><c></c></a><d>2</d>")
        assert names(self.collect(fragment)) == ["a", "b", "1", "c", "d", "2"]

    def test_empty_root(self):
        assert self.collect(parse_markup("")) == []

    def test_skip_visits_children(self):
        fragment = parse_markup("<a><b>1</b></a>")

        def accept(node):
            return NodeFilter.SKIP if is_element(node) else NodeFilter.ACCEPT

        assert names(self.collect(fragment, accept)) == ["1"]

    def test_reject_skips_subtree(self):
        fragment = parse_markup("<a><b>1</b></a><c>2</c>")

        def accept(node):
            if is_element(node) and node.name == "a":
                return NodeFilter.REJECT
            return NodeFilter.ACCEPT

        assert names(self.collect(fragment, accept)) == ["c", "2"]

    def test_insertions_relative_to_reference(self):
        """Узлы перед текущим не посещаются, узлы после него посещаются"""
        fragment = parse_markup("<a></a><z></z>")
        cursor = NodeCursor(fragment, lambda node: NodeFilter.ACCEPT)

        a = cursor.next_node()
        assert a.name == "a"
        insert_before(a, [parse_markup("<before></before>")])
        insert_after(a, [parse_markup("<after></after>")])

        assert cursor.reference is a
        assert cursor.next_node().name == "after"
        assert cursor.next_node().name == "z"
        assert cursor.next_node() is None
