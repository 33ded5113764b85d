"""Accessibility snapshot of the page, serialized with addressable refs.

The agent never sees raw selectors. Each capture walks the accessibility tree,
tags interactive and landmark nodes with a ref and keeps a ref → node map on the
AgentContext so tool handlers can resolve the ref back to a Playwright locator.

Refs carry the capture generation (``s3e12`` = element 12 of capture 3), so a
ref held over from an earlier capture is rejected instead of silently hitting
whatever element got the same number in the new tree.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from dapp_agent.agent.types import AgentContext, SnapshotNode
from dapp_agent.utils.logger import setup_logger

logger = setup_logger(__name__)

INTERACTIVE_ROLES = frozenset(
    {
        "button", "link", "textbox", "checkbox", "radio", "combobox",
        "menuitem", "tab", "switch", "slider", "spinbutton", "searchbox",
        "option", "menuitemcheckbox", "menuitemradio", "treeitem",
    }
)

LANDMARK_ROLES = frozenset(
    {
        "heading", "dialog", "alert", "alertdialog", "banner", "navigation",
        "main", "complementary", "contentinfo", "form", "region", "status",
        "img", "figure", "table", "row", "cell", "list", "listitem", "WebArea",
    }
)

SKIPPED_ROLES = frozenset({"none", "generic", "GenericContainer", "ignored"})

# CDP reports Chrome-internal role names; map the ones that differ from ARIA
CDP_ROLE_MAP = {
    "RootWebArea": "WebArea",
    "GenericContainer": "generic",
    "TextField": "textbox",
    "CheckBox": "checkbox",
    "RadioButton": "radio",
    "ComboBoxGrouping": "combobox",
    "ComboBoxMenuButton": "combobox",
    "PopUpButton": "combobox",
    "ListBoxOption": "option",
    "MenuListOption": "option",
    "MenuButton": "button",
    "ToggleButton": "button",
    "DisclosureTriangle": "button",
    "Image": "img",
    "Header": "banner",
    "Footer": "contentinfo",
    "Section": "region",
    "Iframe": "region",
    "LineBreak": "none",
    "ListMarker": "none",
    "IframePresentational": "none",
}


class StaleRefError(LookupError):
    """A ref that does not belong to the current snapshot."""


@dataclass
class PageSnapshot:
    text: str
    nodes: list[SnapshotNode] = field(default_factory=list)
    refs: dict[str, SnapshotNode] = field(default_factory=dict)


async def capture_snapshot(page: Any, generation: int = 1) -> PageSnapshot:
    """
    Capture and serialize the accessibility tree of ``page``.

    Tries Playwright's accessibility API first, then CDP. An inaccessible page
    yields an empty snapshot rather than an error.
    """
    tree = await _accessibility_tree(page)
    if not tree:
        return PageSnapshot(text="[page] (empty or inaccessible)")

    serializer = _Serializer(generation)
    body = serializer.serialize(tree, 0)

    title = ""
    try:
        title = await page.title()
    except Exception as e:
        logger.debug(f"Could not read page title: {e}")

    header = f'[page] "{title}" ({page.url})'
    text = f"{header}\n{body}" if body else header
    return PageSnapshot(text=text, nodes=serializer.nodes, refs=serializer.refs)


async def refresh_snapshot(ctx: AgentContext) -> PageSnapshot:
    """Capture a new snapshot and replace every ref held by the context."""
    ctx.snapshot_generation += 1
    snapshot = await capture_snapshot(ctx.page, ctx.snapshot_generation)
    ctx.snapshot_refs = dict(snapshot.refs)
    logger.debug(
        f"Snapshot #{ctx.snapshot_generation}: {len(snapshot.refs)} refs"
    )
    return snapshot


def resolve_ref(ctx: AgentContext, ref: str) -> SnapshotNode:
    node = ctx.snapshot_refs.get(ref)
    if node is None:
        raise StaleRefError(
            f'Element ref "{ref}" not found in current snapshot '
            f"(current refs start with s{ctx.snapshot_generation}e). "
            "Use a ref from the latest snapshot."
        )
    return node


def locator_for(page: Any, node: SnapshotNode):
    """Turn a snapshot node back into a Playwright locator."""
    if node.name:
        locator = page.get_by_role(node.role, name=node.name, exact=True)
    else:
        locator = page.get_by_role(node.role)
    return locator.nth(node.nth)


# ============================================================================
# Serialization
# ============================================================================


class _Serializer:
    def __init__(self, generation: int):
        self.generation = generation
        self.nodes: list[SnapshotNode] = []
        self.refs: dict[str, SnapshotNode] = {}
        self._counter = 0
        self._by_name: dict[tuple[str, str], int] = {}
        self._by_role: dict[str, int] = {}

    def _register(self, role: str, name: str) -> str:
        self._counter += 1
        ref = f"s{self.generation}e{self._counter}"

        # nth counts the earlier nodes the emitted locator also matches: an exact
        # role+name match for named nodes, every node of the role otherwise
        key = (role, name)
        nth = self._by_name.get(key, 0) if name else self._by_role.get(role, 0)
        self._by_name[key] = self._by_name.get(key, 0) + 1
        self._by_role[role] = self._by_role.get(role, 0) + 1

        if name:
            strategy = f"get_by_role({role!r}, name={name!r}, exact=True)"
        else:
            strategy = f"get_by_role({role!r})"
        if nth:
            strategy += f".nth({nth})"

        node = SnapshotNode(role=role, name=name, ref=ref, locator_strategy=strategy, nth=nth)
        self.nodes.append(node)
        self.refs[ref] = node
        return ref

    def serialize(self, node: dict, depth: int) -> str:
        role = node.get("role") or "none"
        name = node.get("name") or ""
        children = node.get("children") or []

        if role in SKIPPED_ROLES:
            parts = (self.serialize(child, depth) for child in children)
            return "\n".join(p for p in parts if p)

        ref = ""
        if role in INTERACTIVE_ROLES or role in LANDMARK_ROLES:
            ref = self._register(role, name)

        line = "  " * depth
        if ref:
            line += f"[{ref}] "
        line += role
        if name:
            line += f' "{name}"'

        states = _state_annotations(node)
        if states:
            line += f" ({', '.join(states)})"

        lines = [line]
        for child in children:
            child_text = self.serialize(child, depth + 1)
            if child_text:
                lines.append(child_text)
        return "\n".join(lines)


def _state_annotations(node: dict) -> list[str]:
    states = []
    checked = node.get("checked")
    if checked is True:
        states.append("checked")
    elif checked == "mixed":
        states.append("mixed")
    if node.get("disabled"):
        states.append("disabled")
    if node.get("expanded") is True:
        states.append("expanded")
    elif node.get("expanded") is False:
        states.append("collapsed")
    if node.get("pressed") is True:
        states.append("pressed")
    if node.get("selected"):
        states.append("selected")
    value = node.get("value")
    if value not in (None, ""):
        states.append(f'value="{value}"')
    return states


# ============================================================================
# Tree sources
# ============================================================================


async def _accessibility_tree(page: Any) -> Optional[dict]:
    accessibility = getattr(page, "accessibility", None)
    if accessibility is not None:
        try:
            tree = await accessibility.snapshot(interesting_only=True)
            if isinstance(tree, dict):
                return tree
        except Exception as e:
            logger.debug(f"Playwright accessibility snapshot unavailable: {e}")

    try:
        return await _accessibility_tree_via_cdp(page)
    except Exception as e:
        logger.warning(f"CDP accessibility fallback failed: {e}")
        return None


async def _accessibility_tree_via_cdp(page: Any) -> Optional[dict]:
    client = await page.context.new_cdp_session(page)
    try:
        response = await client.send("Accessibility.getFullAXTree")
    finally:
        try:
            await client.detach()
        except Exception:
            pass  # already detached

    cdp_nodes = response.get("nodes") or []
    if not cdp_nodes:
        return None

    by_id = {n["nodeId"]: n for n in cdp_nodes}
    root = next(
        (n for n in cdp_nodes if not n.get("ignored") and _cdp_value(n, "role") in ("WebArea", "RootWebArea")),
        None,
    ) or next((n for n in cdp_nodes if not n.get("ignored")), None)
    if root is None:
        return None

    return _convert_cdp_node(root, by_id)


def _cdp_value(node: dict, key: str):
    return (node.get(key) or {}).get("value")


def _convert_cdp_children(node: dict, by_id: dict) -> list[dict]:
    children = []
    for child_id in node.get("childIds") or []:
        child = by_id.get(child_id)
        if child is None:
            continue
        converted = _convert_cdp_node(child, by_id)
        if converted:
            children.append(converted)
    return children


def _convert_cdp_node(node: dict, by_id: dict) -> Optional[dict]:
    if node.get("ignored"):
        children = _convert_cdp_children(node, by_id)
        if len(children) == 1:
            return children[0]
        if children:
            return {"role": "none", "children": children}
        return None

    raw_role = _cdp_value(node, "role") or "none"
    if raw_role in ("StaticText", "InlineTextBox"):
        return None

    result: dict = {"role": CDP_ROLE_MAP.get(raw_role, raw_role if raw_role == "WebArea" else raw_role.lower())}
    name = _cdp_value(node, "name")
    if name:
        result["name"] = name
    value = _cdp_value(node, "value")
    if value not in (None, ""):
        result["value"] = str(value)

    for prop in node.get("properties") or []:
        prop_name = prop.get("name")
        prop_value = (prop.get("value") or {}).get("value")
        if prop_name in ("checked", "pressed"):
            result[prop_name] = "mixed" if prop_value == "mixed" else prop_value in (True, "true")
        elif prop_name in ("disabled", "expanded", "selected"):
            result[prop_name] = prop_value is True

    children = _convert_cdp_children(node, by_id)
    if children:
        result["children"] = children
    return result
