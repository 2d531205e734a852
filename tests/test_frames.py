"""Tests for the aggregated frame tree and text ingestion."""


def _child(tree, frame, name):
    for h in frame.children:
        if tree[h].name == name:
            return tree[h]
    raise KeyError(name)


def _assert_aggregated(tree):
    for frame, _ in tree.walk():
        if frame.children:
            assert frame.count == sum(tree[c].count for c in frame.children)


def test_scenario_a():
    """Two stacks sharing a prefix merge into one branch."""
    from chtimeline_tui.frames import FrameTree
    tree = FrameTree()
    tree.add_stack(["a", "b"], 10)
    tree.add_stack(["a", "c"], 5)
    tree.finalize()

    assert tree.root.count == 15
    a = _child(tree, tree.root, "a")
    assert a.count == 15
    assert [tree[h].name for h in a.children] == ["b", "c"]
    assert _child(tree, a, "b").count == 10
    assert _child(tree, a, "c").count == 5
    assert tree.max_depth == 2
    assert tree.max_count == 15


def test_root_count_is_total_weight():
    """Root count equals the sum of every ingested weight."""
    from chtimeline_tui.frames import FrameTree
    stacks = [(["m", "q", "r"], 7), (["m", "q"], 3), (["x"], 11),
              (["m", "w", "r"], 2), (["x", "y", "z", "w"], 4)]
    tree = FrameTree()
    for stack, w in stacks:
        tree.add_stack(stack, w)
    tree.finalize()
    assert tree.root.count == sum(w for _, w in stacks)
    assert tree.max_depth == 4


def test_aggregation_invariant_on_leaf_stacks():
    """Internal frames equal the sum of their children when samples end at leaves."""
    from chtimeline_tui.frames import FrameTree
    tree = FrameTree()
    for stack, w in [(["a", "b", "c"], 1), (["a", "b", "d"], 2),
                     (["a", "e"], 3), (["f", "g"], 4), (["a", "b", "c"], 5)]:
        tree.add_stack(stack, w)
    tree.finalize()
    _assert_aggregated(tree)
    assert tree.root.count == sum(tree[h].count for h in tree.root.children)


def test_children_keep_first_appearance_order():
    """Children are ordered by first appearance, not by weight."""
    from chtimeline_tui.frames import FrameTree
    tree = FrameTree()
    tree.add_stack(["small"], 1)
    tree.add_stack(["big"], 1000)
    tree.add_stack(["medium"], 50)
    tree.add_stack(["small"], 1)
    tree.finalize()
    assert [tree[h].name for h in tree.root.children] == ["small", "big", "medium"]


def test_same_name_at_different_levels_is_distinct():
    """Names are unique among siblings only."""
    from chtimeline_tui.frames import FrameTree
    tree = FrameTree()
    tree.add_stack(["f", "f", "f"], 2)
    tree.finalize()
    assert len(tree) == 4  # root + three "f" frames
    assert tree.stack_of(3) == ["f", "f", "f"]
    assert tree.depth_of(3) == 2
    assert tree[3].parent == 2


def test_empty_stack_is_noop():
    """An empty stack adds nothing."""
    from chtimeline_tui.frames import FrameTree
    tree = FrameTree()
    tree.add_stack([], 10)
    tree.finalize()
    assert len(tree) == 1
    assert tree.empty
    assert tree.max_count == 0


def test_negative_weight_rejected():
    import pytest
    from chtimeline_tui.frames import FrameTree
    with pytest.raises(ValueError):
        FrameTree().add_stack(["a"], -1)


def test_parse_folded_skips_bad_lines():
    """Malformed lines are skipped, the rest of the batch is kept."""
    from chtimeline_tui.ingest import parse_folded
    lines = [
        "root;func1;func2 30",
        "no-count-here",
        "root;func1;func4 70",
        "root;func3 abc",
        "",
        "root;func3;func5;func 10;func 100 50",
        "root;func3;func6 20",
        "root;neg -5",
    ]
    tree = parse_folded(lines)
    assert tree.root.count == 170
    root = tree[tree.root.children[0]]
    assert root.name == "root"
    func3 = _child(tree, root, "func3")
    assert func3.count == 70
    # labels may contain spaces; only the last field is the count
    func5 = _child(tree, func3, "func5")
    assert [tree[h].name for h in func5.children] == ["func 10"]
    assert tree.max_depth == 5


def test_parse_folded_line():
    from chtimeline_tui.ingest import parse_folded_line
    assert parse_folded_line("a;b 3\n") == (["a", "b"], 3)
    assert parse_folded_line("a;b") is None
    assert parse_folded_line("a;b 3.5") is None
    assert parse_folded_line("   ") is None
