"""Tests for accessibility snapshot serialization and refs."""

import pytest

from dapp_agent.agent.snapshot import StaleRefError, capture_snapshot, locator_for, refresh_snapshot, resolve_ref
from dapp_agent.agent.types import SnapshotNode
from tests.conftest import make_page


class TestCaptureSnapshot:
    """Tests for capture_snapshot."""

    @pytest.mark.asyncio
    async def test_serializes_roles_names_and_refs(self, page):
        snapshot = await capture_snapshot(page, generation=1)

        lines = snapshot.text.splitlines()
        assert lines[0] == '[page] "Example App" (https://example.com/app)'
        assert '[s1e3] button "Connect Wallet"' in snapshot.text
        assert 'textbox "Amount" (value="5")' in snapshot.text
        # Generic containers are flattened away
        assert "generic" not in snapshot.text

    @pytest.mark.asyncio
    async def test_duplicate_role_and_name_get_nth(self, page):
        snapshot = await capture_snapshot(page, generation=1)

        buttons = [n for n in snapshot.nodes if n.role == "button"]
        assert [b.nth for b in buttons] == [0, 1]
        assert buttons[1].locator_strategy == "get_by_role('button', name='Connect Wallet', exact=True).nth(1)"

    @pytest.mark.asyncio
    async def test_unnamed_node_counts_every_node_of_its_role(self):
        tree = {
            "role": "WebArea",
            "name": "App",
            "children": [
                {"role": "button", "name": "Connect Wallet"},
                {"role": "button", "name": ""},
            ],
        }
        snapshot = await capture_snapshot(make_page(tree=tree))

        unnamed = next(n for n in snapshot.nodes if n.role == "button" and not n.name)
        # get_by_role('button') also matches the named button before it
        assert unnamed.nth == 1
        assert unnamed.locator_strategy == "get_by_role('button').nth(1)"

    @pytest.mark.asyncio
    async def test_name_prefix_does_not_shift_nth(self):
        tree = {
            "role": "WebArea",
            "name": "App",
            "children": [
                {"role": "button", "name": "Swap tokens"},
                {"role": "button", "name": "Swap"},
            ],
        }
        page = make_page(tree=tree)
        snapshot = await capture_snapshot(page)

        swap = next(n for n in snapshot.nodes if n.name == "Swap")
        assert swap.nth == 0
        assert swap.locator_strategy == "get_by_role('button', name='Swap', exact=True)"

        locator_for(page, swap)
        page.get_by_role.assert_called_once_with("button", name="Swap", exact=True)
        page.get_by_role.return_value.nth.assert_called_once_with(0)

    @pytest.mark.asyncio
    async def test_refs_carry_generation(self, page):
        snapshot = await capture_snapshot(page, generation=7)
        assert all(ref.startswith("s7e") for ref in snapshot.refs)

    @pytest.mark.asyncio
    async def test_inaccessible_page_yields_empty_snapshot(self):
        snapshot = await capture_snapshot(make_page(tree=None))

        assert snapshot.text == "[page] (empty or inaccessible)"
        assert snapshot.refs == {}

    @pytest.mark.asyncio
    async def test_state_annotations(self):
        tree = {
            "role": "WebArea",
            "name": "Form",
            "children": [
                {"role": "checkbox", "name": "I agree", "checked": True},
                {"role": "button", "name": "Submit", "disabled": True},
                {"role": "combobox", "name": "Network", "expanded": False},
            ],
        }
        snapshot = await capture_snapshot(make_page(tree=tree))

        assert 'checkbox "I agree" (checked)' in snapshot.text
        assert 'button "Submit" (disabled)' in snapshot.text
        assert 'combobox "Network" (collapsed)' in snapshot.text


class TestRefs:
    """Tests for ref resolution across captures."""

    @pytest.mark.asyncio
    async def test_resolve_current_ref(self, ctx):
        await refresh_snapshot(ctx)

        node = resolve_ref(ctx, "s1e3")
        assert node.role == "button"
        assert node.name == "Connect Wallet"

    @pytest.mark.asyncio
    async def test_ref_from_previous_capture_is_rejected(self, ctx):
        await refresh_snapshot(ctx)
        old = resolve_ref(ctx, "s1e3")
        assert old.name == "Connect Wallet"

        await refresh_snapshot(ctx)

        with pytest.raises(StaleRefError, match="s1e3"):
            resolve_ref(ctx, "s1e3")
        assert resolve_ref(ctx, "s2e3").name == "Connect Wallet"

    @pytest.mark.asyncio
    async def test_refresh_replaces_all_refs(self, ctx):
        await refresh_snapshot(ctx)
        first = set(ctx.snapshot_refs)
        await refresh_snapshot(ctx)

        assert first.isdisjoint(ctx.snapshot_refs)
        assert ctx.snapshot_generation == 2

    def test_locator_for_uses_role_name_and_nth(self, page):
        node = SnapshotNode(role="button", name="Connect Wallet", ref="s1e5", locator_strategy="", nth=1)
        locator_for(page, node)

        page.get_by_role.assert_called_once_with("button", name="Connect Wallet", exact=True)
        page.get_by_role.return_value.nth.assert_called_once_with(1)

    def test_locator_for_unnamed_node_uses_role_only(self, page):
        node = SnapshotNode(role="button", name="", ref="s1e4", locator_strategy="", nth=1)
        locator_for(page, node)

        page.get_by_role.assert_called_once_with("button")
        page.get_by_role.return_value.nth.assert_called_once_with(1)
