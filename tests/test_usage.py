"""Tests for UsageCollector."""

from tandem.llm.contracts import Usage
from tandem.pipeline.usage import UsageCollector


def test_sums_within_and_across_phases():
    collector = UsageCollector()
    collector.add("reasoning", Usage(prompt_tokens=10, completion_tokens=5, reasoning_tokens=4), provider="deepseek")
    collector.add("reasoning", Usage(completion_tokens=2))
    collector.add("generation", Usage(prompt_tokens=30, completion_tokens=8), provider="anthropic")

    assert collector.by_phase() == {
        "reasoning": Usage(10, 7, 4),
        "generation": Usage(30, 8, 0),
    }
    assert collector.finalize() == Usage(40, 15, 4)


def test_empty_collector_totals_zero():
    assert UsageCollector().finalize() == Usage()


def test_none_usage_only_records_provider():
    collector = UsageCollector()
    collector.add("generation", None, provider="anthropic")

    assert collector.by_phase() == {}
    assert collector.summary()["phases"]["generation"] == {
        "provider": "anthropic",
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "reasoning_tokens": 0,
        "total_tokens": 0,
    }


def test_summary_shape():
    collector = UsageCollector()
    collector.add("reasoning", Usage(prompt_tokens=1, completion_tokens=2), provider="deepseek")
    collector.add("generation", Usage(prompt_tokens=3, completion_tokens=4), provider="qwen")

    summary = collector.summary()

    assert summary["total"]["total_tokens"] == 10
    assert list(summary["phases"]) == ["reasoning", "generation"]
    assert summary["phases"]["generation"]["provider"] == "qwen"
    assert summary["phases"]["reasoning"]["total_tokens"] == 3
