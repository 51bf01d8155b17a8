import asyncio
from datetime import datetime, timezone

from golem_agent.agent.content import MultimodalUnit, Origin, TextUnit
from golem_agent.agent.media import (
    AUDIO_FAILED_TAG,
    IMAGE_FAILED_TAG,
    IMAGE_OMITTED_TAG,
    MediaNormalizer,
    wants_audio,
)
from golem_agent.agent.planner import Plan
from golem_agent.agent.transcripts import TranscriptionCache, TranscriptionService
from golem_agent.agent.triggers import TriggerClassifier
from golem_agent.channels.base import MediaPayload, MessageKind

from fakes import FakeChannel, FakeTranscriber, make_message

WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _normalizer(channel: FakeChannel, transcriber: FakeTranscriber | None = None) -> MediaNormalizer:
    classifier = TriggerClassifier(triggers=["@golem", "@g"], loop_marker="🗿")
    service = TranscriptionService(transcriber or FakeTranscriber(), TranscriptionCache())
    return MediaNormalizer(channel, service, clean=classifier.clean_body, owner_name="Boss")


def test_wants_audio_gate():
    assert wants_audio(Plan(needs_audio=True), False, "") is True
    assert wants_audio(Plan(), True, "") is True
    assert wants_audio(Plan(), False, "can you LISTEN to this") is True
    assert wants_audio(Plan(), False, "what is this") is False


def test_audio_without_gate_is_not_downloaded():
    voice = make_message("v1", kind=MessageKind.VOICE, has_media=True)
    channel = FakeChannel(media={"v1": MediaPayload(b"ogg", "audio/ogg")})
    normalizer = _normalizer(channel)

    media = asyncio.run(normalizer.normalize_current(voice, Plan(), "what is this", audio_wanted=False))

    assert media.prefix_units == []
    assert channel.download_calls == []


def test_audio_with_gate_becomes_transcription_prefix():
    voice = make_message("v1", kind=MessageKind.VOICE, has_media=True)
    channel = FakeChannel(media={"v1": MediaPayload(b"ogg", "audio/ogg")})
    normalizer = _normalizer(channel, FakeTranscriber("meet at noon"))

    media = asyncio.run(normalizer.normalize_current(voice, Plan(), "transcribe", audio_wanted=True))

    assert media.prefix_units == [TextUnit("[AUDIO TRANSCRIPTION]: meet at noon")]
    assert media.query_override is None


def test_transcription_of_own_voice_note_is_assistant_origin():
    voice = make_message("v1", kind=MessageKind.VOICE, has_media=True, from_self=True)
    channel = FakeChannel(media={"v1": MediaPayload(b"ogg", "audio/ogg")})
    normalizer = _normalizer(channel, FakeTranscriber("note to self"))

    media = asyncio.run(normalizer.normalize_current(voice, Plan(), "@t", audio_wanted=True))

    assert media.prefix_units == [TextUnit("[AUDIO TRANSCRIPTION]: note to self", Origin.ASSISTANT)]
    assert media.prefix_units[0].to_message()["role"] == "assistant"


def test_failed_download_or_transcription_is_tagged():
    voice = make_message("v1", kind=MessageKind.AUDIO, has_media=True)
    channel = FakeChannel()
    channel.failing_downloads.add("v1")
    assert asyncio.run(_normalizer(channel).transcribe(voice)) == AUDIO_FAILED_TAG

    channel = FakeChannel(media={"v1": MediaPayload(b"ogg", "audio/ogg")})
    broken = _normalizer(channel, FakeTranscriber(error=RuntimeError("api down")))
    assert asyncio.run(broken.transcribe(voice)) == AUDIO_FAILED_TAG


def test_image_needed_becomes_query_override():
    image = make_message("i1", kind=MessageKind.IMAGE, has_media=True)
    channel = FakeChannel(media={"i1": MediaPayload(b"\x89PNG", "image/png")})
    normalizer = _normalizer(channel)

    media = asyncio.run(normalizer.normalize_current(image, Plan(needs_image=True), "what is this", False))

    assert isinstance(media.query_override, MultimodalUnit)
    assert media.query_override.text == "what is this"
    assert media.query_override.mime_type == "image/png"


def test_image_not_needed_is_not_downloaded():
    image = make_message("i1", kind=MessageKind.IMAGE, has_media=True)
    channel = FakeChannel(media={"i1": MediaPayload(b"\x89PNG", "image/png")})

    media = asyncio.run(_normalizer(channel).normalize_current(image, Plan(), "hi", False))

    assert media.query_override is None
    assert channel.download_calls == []


def test_image_failures_annotate_query():
    image = make_message("i1", kind=MessageKind.IMAGE, has_media=True)
    channel = FakeChannel()
    channel.failing_downloads.add("i1")
    failed = asyncio.run(_normalizer(channel).normalize_current(image, Plan(needs_image=True), "q", False))
    assert failed.annotation == IMAGE_FAILED_TAG

    empty = asyncio.run(_normalizer(FakeChannel()).normalize_current(image, Plan(needs_image=True), "q", False))
    assert empty.annotation == IMAGE_OMITTED_TAG


def test_pdf_document_is_attached():
    doc = make_message("d1", kind=MessageKind.DOCUMENT, has_media=True, filename="Report.PDF")
    channel = FakeChannel(media={"d1": MediaPayload(b"%PDF", "application/pdf")})

    media = asyncio.run(_normalizer(channel).normalize_current(doc, Plan(), "summarize", False))

    assert isinstance(media.query_override, MultimodalUnit)
    assert media.query_override.mime_type == "application/pdf"


def test_other_documents_are_ignored():
    doc = make_message("d1", kind=MessageKind.DOCUMENT, has_media=True, filename="notes.docx")
    channel = FakeChannel(media={"d1": MediaPayload(b"PK", "application/zip")})

    media = asyncio.run(_normalizer(channel).normalize_current(doc, Plan(), "summarize", False))

    assert media.query_override is None
    assert channel.download_calls == []


def test_history_text_uses_display_name_and_owner_origin():
    channel = FakeChannel(names={"alice@c.us": "Alice"})
    normalizer = _normalizer(channel)

    theirs = asyncio.run(normalizer.normalize_history(make_message("h1", "@g hello"), WHEN, False))
    mine = asyncio.run(normalizer.normalize_history(make_message("h2", "hi back", from_self=True), WHEN, False))

    assert theirs == TextUnit("[Alice] (2024-05-01T12:00:00.000Z): hello", Origin.HUMAN, "h1")
    assert mine.text == "[Boss] (2024-05-01T12:00:00.000Z): hi back"
    assert mine.origin is Origin.ASSISTANT
    assert mine.to_message()["role"] == "assistant"


def test_history_audio_without_gate_is_skipped():
    voice = make_message("h1", kind=MessageKind.VOICE, has_media=True)
    channel = FakeChannel(media={"h1": MediaPayload(b"ogg", "audio/ogg")})

    unit = asyncio.run(_normalizer(channel).normalize_history(voice, WHEN, False))

    assert unit is None
    assert channel.download_calls == []


def test_history_audio_with_gate_is_transcribed():
    voice = make_message("h1", kind=MessageKind.VOICE, has_media=True)
    channel = FakeChannel(media={"h1": MediaPayload(b"ogg", "audio/ogg")})

    unit = asyncio.run(_normalizer(channel, FakeTranscriber("see you")).normalize_history(voice, WHEN, True))

    assert unit.text.endswith("\n[AUDIO TRANSCRIPTION]: see you")
    assert unit.source_id == "h1"


def test_history_image_is_multimodal():
    image = make_message("h1", "look", kind=MessageKind.IMAGE, has_media=True)
    channel = FakeChannel(media={"h1": MediaPayload(b"jpg", "image/jpeg")})

    unit = asyncio.run(_normalizer(channel).normalize_history(image, WHEN, False))

    assert isinstance(unit, MultimodalUnit)
    assert unit.text == "[alice@c.us] (2024-05-01T12:00:00.000Z): [IMAGE SENT] look"
    assert unit.to_message()["content"][1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
