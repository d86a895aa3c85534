import pytest

from conftest import make_contact, make_message
from nexus.features.triage.domain import EnrichmentRecord, EnrichmentState, ResearchLogEntry

ENRICHMENT = {
    "role": "Founder",
    "industry": "Renewable energy",
    "summary": "Runs a utility-scale solar EPC.",
    "score": 88,
}


def _seed(pipeline, contact_id="c1@s.whatsapp.net", messages=1, **contact_kw):
    pipeline.identities.upsert_contact(make_contact(contact_id, **contact_kw))
    pipeline.messages.add_messages(
        make_message(f"{contact_id}-{i}", body=f"message {i}", sender_id=contact_id)
        for i in range(messages)
    )


@pytest.mark.asyncio
async def test_inactive_contact_never_reaches_backend(pipeline, fake_backend):
    _seed(pipeline, messages=0)

    result = await pipeline.enrichment.enrich("c1@s.whatsapp.net")

    assert result is None
    assert fake_backend.calls == []
    assert pipeline.ledger.snapshot().tokens == 0
    assert pipeline.enrichment.state_of("c1@s.whatsapp.net") is EnrichmentState.EVALUATED


@pytest.mark.asyncio
async def test_force_deep_enriches_inactive_contact(pipeline, fake_backend):
    _seed(pipeline, messages=0)
    fake_backend.queue_json(ENRICHMENT)

    result = await pipeline.enrichment.enrich("c1@s.whatsapp.net", force_deep=True)

    assert result is not None
    assert len(fake_backend.calls) == 1


@pytest.mark.asyncio
async def test_success_updates_contact_and_prepends_research_log(pipeline, fake_backend):
    older = ResearchLogEntry(date=make_message().timestamp, provider="gemini", result="old")
    _seed(pipeline, research_log=[older])
    fake_backend.queue_json(ENRICHMENT)

    await pipeline.enrichment.enrich("c1@s.whatsapp.net")

    contact = pipeline.identities.get_contact("c1@s.whatsapp.net")
    assert contact.enrichment.role == "Founder"
    assert contact.relevance == 88
    assert [e.result for e in contact.research_log] == ["Runs a utility-scale solar EPC.", "old"]
    assert contact.research_log[0].provider == "fake"
    assert pipeline.enrichment.state_of("c1@s.whatsapp.net") is EnrichmentState.ENRICHED
    assert pipeline.activity.snapshot()[0].text == "Enriched: David Chen"


@pytest.mark.asyncio
async def test_failure_leaves_contact_untouched(pipeline, fake_backend):
    _seed(pipeline)
    fake_backend.responses.append("{broken")

    result = await pipeline.enrichment.enrich("c1@s.whatsapp.net")

    contact = pipeline.identities.get_contact("c1@s.whatsapp.net")
    assert result is None
    assert contact.enrichment is None
    assert contact.research_log == []
    assert pipeline.enrichment.state_of("c1@s.whatsapp.net") is EnrichmentState.UNSEEN
    assert pipeline.enrichment.is_enriching is False
    assert pipeline.activity.errors("ParseError")


@pytest.mark.asyncio
async def test_silent_failure_stays_out_of_activity_log(pipeline, fake_backend):
    _seed(pipeline)
    fake_backend.responses.append("{broken")

    await pipeline.enrichment.enrich("c1@s.whatsapp.net", silent=True)

    assert pipeline.activity.errors() == []


@pytest.mark.asyncio
async def test_silent_success_still_persists(pipeline, fake_backend):
    _seed(pipeline)
    fake_backend.queue_json(ENRICHMENT)

    await pipeline.enrichment.enrich("c1@s.whatsapp.net", silent=True)

    contact = pipeline.identities.get_contact("c1@s.whatsapp.net")
    assert contact.relevance == 88
    assert len(contact.research_log) == 1


@pytest.mark.asyncio
async def test_context_is_truncated(pipeline, fake_backend):
    pipeline.enrichment.context_max_chars = 50
    pipeline.identities.upsert_contact(make_contact("c1@s.whatsapp.net"))
    pipeline.messages.add_messages(
        [make_message("long", body="x" * 500, sender_id="c1@s.whatsapp.net")]
    )

    context = pipeline.enrichment.build_context("c1@s.whatsapp.net")

    assert context == "x" * 50


@pytest.mark.asyncio
async def test_unknown_contact_raises(pipeline):
    with pytest.raises(KeyError):
        await pipeline.enrichment.enrich("missing")


@pytest.mark.asyncio
async def test_batch_pauses_after_every_fifth_target(pipeline, fake_backend, sleep_recorder):
    ids = [f"c{i}@s.whatsapp.net" for i in range(12)]
    for contact_id in ids:
        _seed(pipeline, contact_id=contact_id)
        fake_backend.queue_json(ENRICHMENT)

    result = await pipeline.enrichment.enrich_batch(ids)

    assert result.enriched == 12
    assert result.pauses >= 12 // 5
    assert len(sleep_recorder.delays) == result.pauses
    assert all(d == pipeline.settings.ENRICHMENT_PACING_SECONDS for d in sleep_recorder.delays)


@pytest.mark.asyncio
async def test_batch_counts_skips_and_failures(pipeline, fake_backend):
    _seed(pipeline, contact_id="active@s.whatsapp.net")
    _seed(pipeline, contact_id="quiet@s.whatsapp.net", messages=0)
    _seed(pipeline, contact_id="broken@s.whatsapp.net")
    fake_backend.queue_json(ENRICHMENT)
    fake_backend.responses.append("nope")

    result = await pipeline.enrichment.enrich_batch(
        ["active@s.whatsapp.net", "quiet@s.whatsapp.net", "broken@s.whatsapp.net"]
    )

    assert (result.enriched, result.skipped, result.failed) == (1, 1, 1)
    assert len(fake_backend.calls) == 2


@pytest.mark.asyncio
async def test_skipping_an_enriched_contact_keeps_it_enriched(pipeline, fake_backend):
    enrichment = EnrichmentRecord("Founder", "Solar", "Runs an EPC.", 88, "openai")
    _seed(pipeline, messages=0, enrichment=enrichment, relevance=88)

    result = await pipeline.enrichment.enrich("c1@s.whatsapp.net")

    assert result is None
    assert fake_backend.calls == []
    assert pipeline.enrichment.state_of("c1@s.whatsapp.net") is EnrichmentState.ENRICHED
