"""Tests for the take_change_snapshot baseline flow."""

import pytest

from browsy_cli.errors import ValidationError
from browsy_cli.tools.snapshot import format_diff_value
from fakes import sample_page


def text_of(content):
    return content[0]["text"]


class TestChangeSnapshot:
    """Test baseline creation, diff reporting and baseline replacement."""

    @pytest.mark.asyncio
    async def test_first_call_creates_baseline(self, call_tool, context):
        text = text_of(await call_tool("take_change_snapshot"))
        assert text.splitlines() == [
            "# take_change_snapshot response",
            'No baseline found for key "default". Created a baseline with the current snapshot.',
        ]
        assert context.get_accessibility_baseline("default") is not None

    @pytest.mark.asyncio
    async def test_unchanged_page_reports_no_changes(self, call_tool):
        await call_tool("take_change_snapshot")
        text = text_of(await call_tool("take_change_snapshot"))
        assert 'No accessibility changes compared to baseline "default".' in text

    @pytest.mark.asyncio
    async def test_added_node(self, call_tool, page):
        await call_tool("take_change_snapshot")
        page.ax_nodes = sample_page(extra_item=True)

        lines = text_of(await call_tool("take_change_snapshot")).splitlines()
        assert lines[1] == 'Accessibility changes compared to baseline "default":'
        assert lines[2] == "Added nodes: 1, Removed nodes: 0, Changed nodes: 0"
        assert lines[3:] == ["## Added", '- [listitem] "New message" at path 0.3.1']

    @pytest.mark.asyncio
    async def test_removed_node(self, call_tool, page):
        page.ax_nodes = sample_page(extra_item=True)
        await call_tool("take_change_snapshot")
        page.ax_nodes = sample_page()

        lines = text_of(await call_tool("take_change_snapshot")).splitlines()
        assert "Added nodes: 0, Removed nodes: 1, Changed nodes: 0" in lines
        assert lines[-2:] == ["## Removed", '- [listitem] "New message" at path 0.3.1']

    @pytest.mark.asyncio
    async def test_changed_node_details(self, call_tool, page):
        await call_tool("take_change_snapshot")
        page.ax_nodes = sample_page(button_name="Send", expanded=True)

        lines = text_of(await call_tool("take_change_snapshot")).splitlines()
        assert "Added nodes: 0, Removed nodes: 0, Changed nodes: 1" in lines
        assert lines[-4:] == [
            "## Changed",
            '- [button] "Send" at path 0.1',
            "  - name: \"Submit\" -> \"Send\"",
            "  - expanded: null -> true",
        ]

    @pytest.mark.asyncio
    async def test_baseline_rolls_forward(self, call_tool, page):
        await call_tool("take_change_snapshot")
        page.ax_nodes = sample_page(extra_item=True)
        await call_tool("take_change_snapshot")

        text = text_of(await call_tool("take_change_snapshot"))
        assert "No accessibility changes" in text

    @pytest.mark.asyncio
    async def test_keep_baseline(self, call_tool, page):
        await call_tool("take_change_snapshot")
        page.ax_nodes = sample_page(extra_item=True)

        first = text_of(await call_tool("take_change_snapshot", replaceBaseline=False))
        second = text_of(await call_tool("take_change_snapshot", replaceBaseline=False))
        assert "Added nodes: 1" in first
        assert first == second

    @pytest.mark.asyncio
    async def test_compare_to_missing_key_seeds_baseline_key(self, call_tool, context):
        text = text_of(await call_tool("take_change_snapshot", baselineKey="after", compareTo="before"))
        assert (
            'No baseline found for key "before". Created a baseline under "after" with the current snapshot.'
            in text
        )
        assert context.get_accessibility_baseline("after") is not None
        assert context.get_accessibility_baseline("before") is None

    @pytest.mark.asyncio
    async def test_compare_to_other_key(self, call_tool, context, page):
        await call_tool("take_change_snapshot", baselineKey="start")
        page.ax_nodes = sample_page(extra_item=True)

        text = text_of(await call_tool("take_change_snapshot", baselineKey="latest", compareTo="start"))
        assert 'Accessibility changes compared to baseline "start":' in text
        # the comparison key is left alone, the result is stored under baselineKey
        assert len(context.get_accessibility_baseline("start")) == 6
        assert len(context.get_accessibility_baseline("latest")) == 7

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, call_tool, page):
        await call_tool("take_change_snapshot", baselineKey="a")
        page.ax_nodes = sample_page(extra_item=True)
        await call_tool("take_change_snapshot", baselineKey="b")

        text = text_of(await call_tool("take_change_snapshot", baselineKey="a"))
        assert "Added nodes: 1" in text

    @pytest.mark.asyncio
    async def test_blank_key_rejected(self, call_tool):
        with pytest.raises(ValidationError):
            await call_tool("take_change_snapshot", baselineKey="  ")

    @pytest.mark.asyncio
    async def test_empty_capture(self, call_tool, page, context):
        page.ax_nodes = []
        text = text_of(await call_tool("take_change_snapshot"))
        assert "Unable to capture accessibility snapshot" in text
        assert context.get_accessibility_baseline("default") is None


class TestFormatDiffValue:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Send", '"Send"'),
            (True, "true"),
            (None, "null"),
            (2, "2"),
            (1.0, "1"),
            (0.5, "0.5"),
            (["a", 1], '["a", 1]'),
        ],
    )
    def test_renders(self, value, expected):
        assert format_diff_value(value) == expected
