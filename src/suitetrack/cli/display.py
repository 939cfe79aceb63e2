# src/suitetrack/cli/display.py

"""
Rich rendering of a test tree for command output.
"""

from rich.markup import escape
from rich.tree import Tree

from suitetrack.state import STATE_EMOJI_MAP, NodeState
from suitetrack.tree import SuiteNode, TestTree
from suitetrack.tree.nodes import Node, StateMap

_PROBLEM_STATES = (NodeState.FAIL, NodeState.TERMINATED)


def summary_line(state_map: StateMap, total: int) -> str:
    return (
        f"{state_map.success} passed, {state_map.fail} failed, "
        f"{state_map.pending} pending, {state_map.terminated} terminated "
        f"({state_map.finished}/{total} finished)"
    )


def node_label(node: Node) -> str:
    label = f"{STATE_EMOJI_MAP[node.state]} {escape(node.title)}"
    message = (node.error or {}).get("message")
    if message:
        label += f" [red]- {escape(message.splitlines()[0])}[/red]"
    return label


def build_rich_tree(tree: TestTree, failures_only: bool = False) -> Tree:
    root = tree.root
    rich_root = Tree(f"{STATE_EMOJI_MAP[root.state]} [bold]{summary_line(root.state_map, tree.total)}[/bold]")

    def add(suite: SuiteNode, branch: Tree) -> None:
        for child in suite.children():
            if failures_only and child.state not in _PROBLEM_STATES:
                continue
            child_branch = branch.add(node_label(child))
            if isinstance(child, SuiteNode):
                add(child, child_branch)

    add(root, rich_root)
    return rich_root

# 🖥️⚙️
