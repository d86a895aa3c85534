import pytest

from nexus.features.triage.services import cost_ledger as ledger_module
from nexus.features.triage.services.cost_ledger import CostLedger
from nexus.services.llm.base import LLMUsage


def test_lifetime_tokens_grow_by_exact_usage():
    ledger = CostLedger()
    usages = [LLMUsage(120, 0.00012), LLMUsage(0, 0.0), LLMUsage(450, 0.0005), LLMUsage(7, 0.0)]

    previous = 0
    for usage in usages:
        snapshot = ledger.record(usage)
        assert snapshot.tokens == previous + usage.tokens
        assert snapshot.tokens >= previous
        previous = snapshot.tokens

    final = ledger.snapshot()
    assert final.tokens == 577
    assert final.total_cost == pytest.approx(0.00062)
    assert final.today_cost == pytest.approx(0.00062)


def test_negative_usage_is_rejected():
    ledger = CostLedger()
    with pytest.raises(ValueError):
        ledger.record(LLMUsage(-1, 0.0))
    assert ledger.snapshot().tokens == 0


def test_today_counter_rolls_over(monkeypatch):
    ledger = CostLedger()
    ledger.record(LLMUsage(100, 0.5))

    monkeypatch.setattr(ledger_module, "_today_key", lambda: "29990101")
    snapshot = ledger.record(LLMUsage(10, 0.25))

    assert snapshot.day == "29990101"
    assert snapshot.today_cost == pytest.approx(0.25)
    assert snapshot.total_cost == pytest.approx(0.75)
    assert snapshot.tokens == 110


def test_reset_clears_every_counter():
    ledger = CostLedger()
    ledger.record(LLMUsage(100, 0.5))

    ledger.reset()

    snapshot = ledger.snapshot()
    assert (snapshot.tokens, snapshot.total_cost, snapshot.today_cost) == (0, 0.0, 0.0)
