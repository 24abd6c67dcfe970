"""Tests for ExtractionPipeline, driven by fake readers and a fake clock."""

import asyncio

import pytest
from conftest import FakeReader
from playwright.async_api import Error as PlaywrightError

from contact_agent.mappers.exclusion import Blocklist
from contact_agent.schemas.extraction import FieldKind, PageBlock
from contact_agent.services.extraction import ExtractionPipeline

PHONE = (FieldKind.phone,)
EMAIL = (FieldKind.email,)
BOTH = (FieldKind.phone, FieldKind.email)


@pytest.fixture
def pipeline_factory(fake_clock):
    def factory(blocklist=None, **kwargs):
        kwargs.setdefault("poll_interval", 0.5)
        kwargs.setdefault("poll_deadline", 15.0)
        return ExtractionPipeline(blocklist or Blocklist(), clock=fake_clock, **kwargs)

    return factory


# --- Absence marker ---


async def test_absence_marker_short_circuits(pipeline_factory, fake_clock):
    reader = FakeReader(["This lead has NO PHONE NUMBER on file"], markup="07911123456")
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].value is None
    assert outcomes[FieldKind.phone].strategy == "absent"
    assert fake_clock.t == 0.0
    assert reader.body_calls == 1
    assert reader.block_calls == 0
    assert reader.markup_calls == 0


async def test_absence_marker_only_affects_its_field(pipeline_factory):
    reader = FakeReader(["No phone number. Email: lead@client.com"])
    outcomes = await pipeline_factory().run(reader, BOTH)

    assert outcomes[FieldKind.phone].strategy == "absent"
    assert outcomes[FieldKind.email].value == "lead@client.com"


async def test_absence_marker_rendered_late(pipeline_factory, fake_clock):
    reader = FakeReader(["Loading...", "Loading...", "Details: no phone number"])
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].strategy == "absent"
    assert fake_clock.t == pytest.approx(1.0)
    assert reader.markup_calls == 0


# --- Panel ---


async def test_panel_is_searched_before_body(pipeline_factory):
    blocks = [PageBlock(tag="section", text="Lead summary: 020 7946 0958")]
    reader = FakeReader(["Header 07911 123456 ... Lead summary: 020 7946 0958"], blocks=blocks)
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "02079460958"
    assert outcomes[FieldKind.phone].strategy == "panel"


async def test_panel_respects_blocklist_then_body(pipeline_factory):
    blocks = [PageBlock(tag="section", text="Conversation with us: 07911 123456")]
    reader = FakeReader(["Conversation with us: 07911 123456 Their number 07700 900123"], blocks=blocks)
    blocklist = Blocklist.build(phones=["07911123456"])
    outcomes = await pipeline_factory(blocklist).run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "07700900123"
    assert outcomes[FieldKind.phone].strategy == "body"


# --- Body poll ---


async def test_body_found_immediately(pipeline_factory, fake_clock):
    reader = FakeReader(["Call us on 07911 123456"])
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "07911123456"
    assert outcomes[FieldKind.phone].strategy == "body"
    assert fake_clock.sleeps == []


async def test_body_poll_waits_for_slow_render(pipeline_factory, fake_clock):
    reader = FakeReader(["Loading", "Loading", "Loading", "Call 07911 123456"])
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "07911123456"
    assert fake_clock.sleeps == [0.5, 0.5, 0.5]
    assert reader.markup_calls == 0


async def test_poll_stops_at_deadline_then_markup(pipeline_factory, fake_clock):
    reader = FakeReader(["Loading"], markup='<script>{"tel":"+447911123456"}</script>')
    outcomes = await pipeline_factory(poll_deadline=2.0).run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "07911123456"
    assert outcomes[FieldKind.phone].strategy == "markup"
    assert fake_clock.t == pytest.approx(2.0)
    assert reader.markup_calls == 1


async def test_poll_last_sleep_is_clamped_to_deadline(pipeline_factory, fake_clock):
    reader = FakeReader(["nothing"])
    await pipeline_factory(poll_interval=0.75, poll_deadline=2.0).run(reader, PHONE)

    assert fake_clock.sleeps == [0.75, 0.75, 0.5]


async def test_exhausted_when_nothing_anywhere(pipeline_factory):
    reader = FakeReader(["nothing"], markup="<html>nothing</html>")
    outcomes = await pipeline_factory(poll_deadline=1.0).run(reader, BOTH)

    assert outcomes[FieldKind.phone].value is None
    assert outcomes[FieldKind.phone].strategy == "exhausted"
    assert outcomes[FieldKind.email].strategy == "exhausted"


async def test_all_candidates_blocked_is_exhausted(pipeline_factory):
    reader = FakeReader(["Call us on 07911 123456"], markup="07911123456")
    blocklist = Blocklist.build(phones=["07911123456"])
    outcomes = await pipeline_factory(blocklist, poll_deadline=1.0).run(reader, PHONE)

    assert outcomes[FieldKind.phone].value is None
    assert outcomes[FieldKind.phone].strategy == "exhausted"


# --- Combined fields ---


async def test_both_fields_resolve_independently(pipeline_factory, fake_clock):
    reader = FakeReader(["Mail: buyer@shop.com", "Mail: buyer@shop.com Tel: 07911 123456"])
    outcomes = await pipeline_factory().run(reader, BOTH)

    assert outcomes[FieldKind.email].value == "buyer@shop.com"
    assert outcomes[FieldKind.phone].value == "07911123456"
    assert fake_clock.sleeps == [0.5]


async def test_login_identity_not_reported(pipeline_factory):
    reader = FakeReader(["Signed in as bot@gmail.com. Contact: lead@client.com"])
    blocklist = Blocklist.build(login_identity="bot@gmail.com")
    outcomes = await pipeline_factory(blocklist).run(reader, EMAIL)

    assert outcomes[FieldKind.email].value == "lead@client.com"


async def test_email_normalized_to_lowercase(pipeline_factory):
    reader = FakeReader(["Lead@Client.COM"])
    outcomes = await pipeline_factory().run(reader, EMAIL)
    assert outcomes[FieldKind.email].value == "lead@client.com"


# --- Budget ---


class _HangingReader(FakeReader):
    async def body_text(self):
        if self.body_calls:
            await asyncio.sleep(10)
        return await super().body_text()


async def test_budget_expiry_degrades_to_unresolved():
    reader = _HangingReader(["Mail buyer@shop.com"])
    pipeline = ExtractionPipeline(Blocklist(), poll_interval=0.01, poll_deadline=30.0)
    outcomes = await pipeline.run(reader, BOTH, budget=0.2)

    assert outcomes[FieldKind.email].value == "buyer@shop.com"
    assert outcomes[FieldKind.phone].value is None
    assert outcomes[FieldKind.phone].strategy == "timeout"


async def test_duplicate_fields_are_collapsed(pipeline_factory):
    reader = FakeReader(["07911 123456"])
    outcomes = await pipeline_factory().run(reader, [FieldKind.phone, FieldKind.phone])
    assert list(outcomes) == [FieldKind.phone]


class RedirectingReader(FakeReader):
    """Loses its execution context on the second read, as a client-side redirect does."""

    async def body_text(self):
        if self.body_calls == 1:
            self.body_calls += 1
            raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
        return await super().body_text()


async def test_poll_survives_destroyed_context(pipeline_factory):
    reader = RedirectingReader(["Loading", "ignored", "Call 07911 123456"])
    outcomes = await pipeline_factory().run(reader, PHONE)

    assert outcomes[FieldKind.phone].value == "07911123456"
    assert outcomes[FieldKind.phone].strategy == "body"
    assert reader.markup_calls == 0
