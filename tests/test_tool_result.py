"""Tests for output bounding: wrap_output truncation and ToolResult helpers."""

import json

from ig_mcp_server.tools.tool_result import (
    ELLIPSIS,
    MAX_RESULT_BYTES,
    TRUNCATION_HINT,
    ToolResult,
    wrap_output,
)


class TestWrapOutput:
    def test_small_output_not_truncated(self):
        wrapped = json.loads(wrap_output('{"comm":"nginx"}\n'))
        assert wrapped["truncated"] is False
        assert wrapped["data"] == '{"comm":"nginx"}\n'
        assert "hint" not in wrapped

    def test_empty_output(self):
        wrapped = json.loads(wrap_output(""))
        assert wrapped == {"truncated": False, "data": ""}

    def test_exactly_at_ceiling_not_truncated(self):
        raw = "a" * MAX_RESULT_BYTES
        wrapped = json.loads(wrap_output(raw))
        assert wrapped["truncated"] is False
        assert len(wrapped["data"]) == MAX_RESULT_BYTES

    def test_one_over_ceiling_truncated(self):
        raw = "a" * (MAX_RESULT_BYTES + 1)
        wrapped = json.loads(wrap_output(raw))
        assert wrapped["truncated"] is True
        assert wrapped["data"] == "a" * MAX_RESULT_BYTES + ELLIPSIS
        assert wrapped["hint"] == TRUNCATION_HINT

    def test_large_output_keeps_head(self):
        raw = "".join(f"line {i}\n" for i in range(20000))
        wrapped = json.loads(wrap_output(raw))
        assert wrapped["truncated"] is True
        assert wrapped["data"].startswith("line 0\nline 1\n")
        assert len(wrapped["data"]) == MAX_RESULT_BYTES + len(ELLIPSIS)

    def test_multibyte_cut_does_not_split_code_point(self):
        # 'é' is two bytes; an odd ceiling boundary falls inside one
        raw = "x" + "é" * MAX_RESULT_BYTES
        wrapped = json.loads(wrap_output(raw))
        assert wrapped["truncated"] is True
        data = wrapped["data"]
        assert data.endswith(ELLIPSIS)
        assert len(data[:-1].encode("utf-8")) <= MAX_RESULT_BYTES
        assert "�" not in data

    def test_flag_iff_over_ceiling(self):
        for size in (0, 1, MAX_RESULT_BYTES - 1, MAX_RESULT_BYTES, MAX_RESULT_BYTES + 1, 3 * MAX_RESULT_BYTES):
            wrapped = json.loads(wrap_output("b" * size))
            assert wrapped["truncated"] is (size > MAX_RESULT_BYTES)
            expected = min(size, MAX_RESULT_BYTES) + (len(ELLIPSIS) if size > MAX_RESULT_BYTES else 0)
            assert len(wrapped["data"]) == expected


class TestToolResult:
    def test_ok(self):
        result = ToolResult.ok("done")
        assert result.text == "done"
        assert result.is_error is False

    def test_error(self):
        result = ToolResult.error("boom")
        assert result.text == "boom"
        assert result.is_error is True
