from __future__ import annotations

from pysentinel._redact import summarize_for_log


def test_summarize_for_log_truncates_long_strings() -> None:
    summary = summarize_for_log({"value": "x" * 600}, max_string=10)
    assert summary["value"].startswith("x" * 10)
    assert "<truncated>" in summary["value"]


def test_summarize_for_log_caps_lists() -> None:
    payload = {"type": "target_update", "targets": [{"id": i, "x": 0.0, "y": 0.0} for i in range(30)]}

    summary = summarize_for_log(payload, max_items=2)

    assert summary["type"] == "target_update"
    assert len(summary["targets"]) == 3
    assert summary["targets"][-1] == "<+28 more>"
    assert summary["targets"][0] == {"id": 0, "x": 0.0, "y": 0.0}
