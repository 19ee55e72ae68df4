from __future__ import annotations

from readahead.ingestion.tree import NodeKind, TreeBoundary, build_tree


def test_nodes_follow_document_order(alpha_beta):
    tags = [n.tag for n in alpha_beta.nodes if n.is_element]
    assert tags == ["html", "head", "title", "body", "div", "p", "p"]
    texts = [n.text for n in alpha_beta.nodes if n.is_text]
    assert texts == ["t", "Alpha text.", "Beta text."]
    assert alpha_beta.nodes[0].kind is NodeKind.DOCUMENT
    for n in alpha_beta.nodes:
        for child in n.children:
            assert alpha_beta.nodes[child].parent == n.index
            assert child > n.index


def test_subtree_is_contiguous(alpha_beta):
    div = alpha_beta.find_first("div")
    assert [alpha_beta.nodes[i].tag or alpha_beta.nodes[i].text for i in alpha_beta.subtree(div)] == [
        "div", "p", "Alpha text.", "p", "Beta text.",
    ]
    assert alpha_beta.text_content(div) == "Alpha text.Beta text."


def test_comments_dropped_and_text_merged():
    tree = build_tree("<html><body><p>one<!-- note -->two</p></body></html>")
    p = tree.find_first("p")
    assert len(tree.nodes[p].children) == 1
    assert tree.nodes[tree.nodes[p].children[0]].text == "onetwo"


def test_fragment_gets_synthetic_root():
    tree = build_tree("Just text <b>bold</b>")
    root = tree.root_element
    assert tree.nodes[root].tag == "html"
    assert tree.text_content(root) == "Just text bold"
    assert tree.body == root


def test_xml_declaration_is_not_text():
    tree = build_tree("<?xml version='1.0'?>\n<html><body><p>x</p></body></html>")
    assert tree.nodes[tree.root_element].tag == "html"
    assert [tree.nodes[i].text for i in tree.text_nodes()] == ["x"]


def test_common_ancestor(alpha_beta):
    alpha, beta = [i for i in alpha_beta.text_nodes() if alpha_beta.nodes[i].text != "t"]
    assert alpha_beta.nodes[alpha_beta.common_ancestor(alpha, beta)].tag == "div"
    assert alpha_beta.common_ancestor(alpha, alpha) == alpha


def test_steps_and_paths(alpha_beta):
    alpha, beta = [i for i in alpha_beta.text_nodes() if alpha_beta.nodes[i].text != "t"]
    assert alpha_beta.path_of(alpha) == (4, 2, 2, 1)
    assert alpha_beta.path_of(beta) == (4, 2, 4, 1)
    assert alpha_beta.child_at_step(alpha_beta.root_element, 4) == alpha_beta.body
    assert alpha_beta.child_at_step(alpha_beta.root_element, 6) is None


def test_text_steps_count_element_slots():
    tree = build_tree("<html><body>lead<b>x</b>tail</body></html>")
    body = tree.body
    lead, b, tail = tree.nodes[body].children
    assert tree.step_of(lead) == 1
    assert tree.step_of(b) == 2
    assert tree.step_of(tail) == 3


def test_position_keys_order_boundaries(alpha_beta):
    div = alpha_beta.find_first("div")
    alpha = alpha_beta.nodes[alpha_beta.nodes[div].children[0]].children[0]
    keys = [
        alpha_beta.position_key(TreeBoundary(div, 0)),
        alpha_beta.position_key(TreeBoundary(alpha, 0)),
        alpha_beta.position_key(TreeBoundary(alpha, 5)),
        alpha_beta.position_key(TreeBoundary(div, 1)),
        alpha_beta.position_key(TreeBoundary(div, 2)),
    ]
    assert keys == sorted(keys)
