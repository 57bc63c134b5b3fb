import pytest
from sqlalchemy import select

from waste_service.core.errors import ValidationError
from waste_service.core.security import UserRole, create_access_token
from waste_service.models import Activity, ContentStatus, Resident
from waste_service.realtime import EventType
from waste_service.schemas.education import EducationCreate
from waste_service.services import education as education_service
from waste_service.utils.time import as_utc


async def _activity_texts(session):
    result = await session.execute(select(Activity.action).order_by(Activity.id))
    return list(result.scalars().all())


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://cdn.example.ph/media/segregation.MP4?token=x", "video"),
        ("https://cdn.example.ph/media/poster.jpeg", "image"),
        ("https://cdn.example.ph/guide.pdf", "pdf"),
        ("https://cdn.example.ph/slides.pptx", "file"),
        (None, None),
    ],
)
def test_media_type_for(url, expected):
    assert education_service.media_type_for(url) == expected


async def test_create_saves_draft_and_logs(session, feed):
    subscription = await feed.subscribe("educational_contents")
    content = await education_service.create_content(
        session,
        EducationCreate(title="Segregation 101", media_url="https://cdn.example.ph/seg.mp4"),
        official_id="official-1",
        feed=feed,
    )

    assert content.status is ContentStatus.draft
    assert content.media_type == "video"
    assert content.created_by == "official-1"
    assert await _activity_texts(session) == ["Saved draft of educational content: Segregation 101"]
    event = await subscription.get(timeout=1)
    assert event.event_type is EventType.insert
    assert event.new["status"] == "Draft"
    await subscription.close()


@pytest.mark.parametrize(
    "payload",
    [
        {"title": "   "},
        {"title": "Composting", "media_url": "https://x.ph/a.bin", "media_type": "hologram"},
    ],
)
async def test_create_rejects_bad_input(session, payload):
    with pytest.raises(ValidationError):
        await education_service.create_content(session, EducationCreate(**payload))


async def test_publish_archive_restore_lifecycle(session, feed):
    content = await education_service.create_content(session, EducationCreate(title="Composting"))
    subscription = await feed.subscribe("educational_contents", event_types=[EventType.update])

    published = await education_service.publish_content(session, content.id, feed=feed)
    assert published.changed and published.content.status is ContentStatus.published

    archived = await education_service.archive_content(session, content.id, feed=feed)
    assert archived.previous_status is ContentStatus.published
    assert archived.content.archived_at is not None

    restored = await education_service.restore_content(session, content.id, feed=feed)
    assert restored.content.status is ContentStatus.published
    assert restored.content.archived_at is None

    assert (await _activity_texts(session))[1:] == [
        "Published educational content: Composting",
        "Archived educational content: Composting",
        "Restored educational content: Composting",
    ]
    events = [await subscription.get(timeout=1) for _ in range(3)]
    assert [e.old["status"] for e in events] == ["Draft", "Published", "Archived"]
    await subscription.close()


async def test_repeated_archive_is_a_no_op(session, feed):
    content = await education_service.create_content(session, EducationCreate(title="Plastics", publish_now=True))
    await education_service.archive_content(session, content.id)
    subscription = await feed.subscribe("educational_contents")

    again = await education_service.archive_content(session, content.id, feed=feed)

    assert again.changed is False
    assert len(await _activity_texts(session)) == 2
    assert subscription.pending() == 0
    await subscription.close()


async def test_moves_from_the_wrong_status_are_rejected(session):
    draft = await education_service.create_content(session, EducationCreate(title="Draft"))
    with pytest.raises(ValidationError):
        await education_service.restore_content(session, draft.id)

    await education_service.archive_content(session, draft.id)
    with pytest.raises(ValidationError):
        await education_service.publish_content(session, draft.id)


async def test_list_for_purok_shows_published_audience_only(session):
    for title, audience, publish in [
        ("Everyone", "all", True),
        ("Ours", "Purok 3", True),
        ("Theirs", "Purok 7", True),
        ("Unpublished", "all", False),
    ]:
        await education_service.create_content(
            session, EducationCreate(title=title, audience=audience, publish_now=publish)
        )

    visible = await education_service.list_contents(session, purok="purok 3")
    assert [c.title for c in visible] == ["Ours", "Everyone"]

    drafts = await education_service.list_contents(session, status=ContentStatus.draft)
    assert [c.title for c in drafts] == ["Unpublished"]
    assert len(await education_service.list_contents(session)) == 4


async def test_record_view_counts_without_touching_updated_at(session):
    content = await education_service.create_content(session, EducationCreate(title="Tips", publish_now=True))
    before = as_utc(content.updated_at)

    await education_service.record_view(session, content.id)
    viewed = await education_service.record_view(session, content.id)

    assert viewed.views == 2
    assert as_utc(viewed.updated_at) == before


def _auth(user_id, role):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


async def test_education_over_http(client, session):
    session.add(Resident(id="resident-1", purok="Purok 3"))
    await session.commit()
    official = _auth("official-1", UserRole.official)
    resident = _auth("resident-1", UserRole.resident)

    forbidden = await client.post("/api/education", json={"title": "Nope"}, headers=resident)
    assert forbidden.status_code == 403

    created = await client.post(
        "/api/education", json={"title": "Eco Tips", "publish_now": True}, headers=official
    )
    assert created.status_code == 201
    content_id = created.json()["id"]
    draft = await client.post("/api/education", json={"title": "Later"}, headers=official)

    listed = await client.get("/api/education", headers=resident)
    assert [c["title"] for c in listed.json()] == ["Eco Tips"]

    viewed = await client.get(f"/api/education/{content_id}", headers=resident)
    assert viewed.json()["views"] == 1
    hidden = await client.get(f"/api/education/{draft.json()['id']}", headers=resident)
    assert hidden.status_code == 404

    archived = await client.post(f"/api/education/{content_id}/archive", headers=official)
    assert archived.json()["content"]["status"] == "Archived"
    assert (await client.get("/api/education", headers=resident)).json() == []

    archived_list = await client.get("/api/education", params={"status": "Archived"}, headers=official)
    assert [c["id"] for c in archived_list.json()] == [content_id]

    bad_move = await client.post(f"/api/education/{draft.json()['id']}/restore", headers=official)
    assert bad_move.status_code == 422
