import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.errors import NotFoundError, ValidationError
from app.models import ContentRelationship, ProcessingJob, Post, Transcript
from app.schemas.content import ContentFilter, EntityCreate
from app.services import content_store, job_tracker, scheduling


def test_transcript_is_its_own_root(factory):
    t = factory.transcript()
    assert isinstance(t, Transcript)
    assert t.status == "raw"
    assert t.root_transcript_id == t.id


def test_children_inherit_root_and_get_an_edge(db, factory):
    t = factory.transcript()
    i = factory.insight(t)
    p = factory.post(i)

    assert i.root_transcript_id == t.id
    assert p.root_transcript_id == t.id
    assert isinstance(p, Post)
    assert p.status == "needs_review"

    edges = {(e.parent_id, e.child_id, e.relationship_type) for e in db.execute(select(ContentRelationship)).scalars()}
    assert edges == {(t.id, i.id, "transcript_to_insight"), (i.id, p.id, "insight_to_post")}


def test_platform_is_stored_lower_case_and_word_count_derived(factory):
    p = factory.post(platform="LinkedIn", processed_content="one two three four")
    assert p.platform == "linkedin"
    assert p.word_count == 4


def test_parent_of_the_wrong_type_is_rejected(db, clock, factory):
    t = factory.transcript()
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="post", parent_id=t.id, platform="x"), clock)


def test_missing_parent_is_rejected(db, clock):
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="insight", parent_id=uuid.uuid4()), clock)


def test_root_must_match_the_parents_root(db, clock, factory):
    i = factory.insight()
    other = factory.transcript()
    with pytest.raises(ValidationError):
        content_store.create(
            db,
            EntityCreate(content_type="post", parent_id=i.id, root_transcript_id=other.id, platform="x"),
            clock,
        )


def test_root_must_reference_a_transcript(db, clock, factory):
    i = factory.insight()
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="insight", root_transcript_id=i.id), clock)


def test_variant_fields_stay_on_their_variant(db, clock, factory):
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="insight", platform="linkedin"), clock)
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="post", source_url="https://example.com"), clock)


def test_unknown_initial_status_is_rejected(db, clock):
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="transcript", status="published"), clock)


def test_nothing_is_written_when_create_fails(db, clock, factory):
    t = factory.transcript()
    before = db.execute(select(func.count()).select_from(ContentRelationship)).scalar_one()
    with pytest.raises(ValidationError):
        content_store.create(db, EntityCreate(content_type="post", parent_id=t.id), clock)
    after = db.execute(select(func.count()).select_from(ContentRelationship)).scalar_one()
    assert before == after


def test_get_unknown_id_is_not_found(db):
    with pytest.raises(NotFoundError):
        content_store.get(db, uuid.uuid4())


def test_update_status_skips_the_graph_but_not_the_status_set(db, clock, factory):
    p = factory.post()
    assert content_store.update_status(db, p.id, "scheduled", clock).status == "scheduled"
    with pytest.raises(ValidationError):
        content_store.update_status(db, p.id, "cleaning", clock)
    assert content_store.get(db, p.id).status == "scheduled"


def test_query_is_newest_first_with_filters_and_paging(db, clock, factory):
    i = factory.insight()
    posts = []
    for n in range(4):
        clock.advance(minutes=1)
        posts.append(factory.post(i, platform="x" if n % 2 else "linkedin"))

    listed = content_store.query(db, ContentFilter(content_type="post"))
    assert [p.id for p in listed] == [p.id for p in reversed(posts)]

    on_x = content_store.query(db, ContentFilter(content_type="post", platform="X"))
    assert {p.id for p in on_x} == {posts[1].id, posts[3].id}

    page = content_store.query(db, ContentFilter(content_type="post", limit=2, offset=1))
    assert [p.id for p in page] == [posts[2].id, posts[1].id]

    assert content_store.query(db, ContentFilter(status="approved")) == []


def test_get_pipeline_groups_descendants_by_type(db, factory):
    t = factory.transcript()
    i1 = factory.insight(t)
    i2 = factory.insight(t)
    p = factory.post(i1)
    factory.post(factory.insight())  # another transcript's tree

    view = content_store.get_pipeline(db, t.id)
    assert view.transcript.id == t.id
    assert {x.id for x in view.insights} == {i1.id, i2.id}
    assert [x.id for x in view.posts] == [p.id]
    assert view.scheduled_posts == []


def test_get_pipeline_needs_a_transcript(db, factory):
    i = factory.insight()
    with pytest.raises(ValidationError):
        content_store.get_pipeline(db, i.id)


def test_delete_removes_descendants_edges_and_jobs(db, clock, factory):
    t = factory.transcript()
    i = factory.insight(t)
    p = factory.post(i)
    keep = factory.post()
    job_tracker.start(db, i.id, "generate_posts", clock)

    deleted = content_store.delete_entity(db, t.id)

    assert set(deleted) == {t.id, i.id, p.id}
    for gone in (t.id, i.id, p.id):
        with pytest.raises(NotFoundError):
            content_store.get(db, gone)
    assert content_store.get(db, keep.id).status == "needs_review"
    edges = db.execute(select(ContentRelationship)).scalars().all()
    assert all(e.child_id not in deleted and e.parent_id not in deleted for e in edges)
    assert db.execute(select(ProcessingJob)).scalars().all() == []


def test_delete_unknown_id_is_not_found(db):
    with pytest.raises(NotFoundError):
        content_store.delete_entity(db, uuid.uuid4())


def test_duplicate_relationship_is_rejected(db, clock, factory):
    i = factory.insight()
    p = factory.post(i)
    with pytest.raises(ValidationError):
        content_store.add_relationship(db, i.id, p.id, "insight_to_post", clock)


def test_relationship_type_must_fit_the_pair(db, clock, factory):
    t = factory.transcript()
    i = factory.insight()
    with pytest.raises(ValidationError):
        content_store.add_relationship(db, t.id, i.id, "insight_to_post", clock)

    edge = content_store.add_relationship(db, t.id, i.id, "transcript_to_insight", clock)
    assert edge in content_store.list_relationships(db, i.id)


def test_pipeline_stats_counts_by_type_and_status(db, clock, settings, factory):
    t = factory.transcript()
    i = factory.insight(t)
    factory.post(i)
    booked = factory.post(i, status="approved")
    scheduling.schedule_at(db, booked.id, clock.now() + timedelta(hours=3), clock, settings)

    stats = content_store.pipeline_stats(db, t.id)
    assert stats["by_type"]["transcript"] == {"raw": 1}
    assert stats["by_type"]["post"] == {"needs_review": 1, "scheduled": 1}
    assert stats["by_type"]["scheduled_post"] == {"scheduled": 1}
    assert stats["scheduled_by_platform"] == {"linkedin": 1}


@pytest.mark.parametrize("status", ["scheduling", "scheduled", "publishing", "published", "failed"])
def test_engine_owned_post_statuses_cannot_be_created(db, clock, factory, status):
    i = factory.insight()
    with pytest.raises(ValidationError):
        content_store.create(
            db, EntityCreate(content_type="post", parent_id=i.id, platform="linkedin", status=status), clock
        )
    assert content_store.query(db, ContentFilter(content_type="post")) == []


def test_scheduled_time_and_scheduled_post_records_are_not_created_directly(db, clock, settings, factory):
    p = factory.post(status="approved")
    scheduling.schedule_at(db, p.id, clock.now() + timedelta(hours=14), clock, settings)
    i = content_store.get(db, p.parent_id)

    # a second post cannot slip into the booked hour by way of create
    with pytest.raises(ValidationError):
        content_store.create(
            db,
            EntityCreate(
                content_type="post", parent_id=i.id, platform="linkedin",
                scheduled_time=clock.now() + timedelta(hours=14, minutes=5),
            ),
            clock,
        )
    with pytest.raises(ValidationError):
        content_store.create(
            db, EntityCreate(content_type="scheduled_post", parent_id=p.id, platform="linkedin"), clock
        )

    holding = content_store.query(db, ContentFilter(content_type="post", status="scheduled"))
    assert [x.id for x in holding] == [p.id]
    assert len(content_store.get_pipeline(db, p.root_transcript_id).scheduled_posts) == 1
    assert content_store.get(db, p.id).scheduled_time == datetime(2026, 3, 3, 10)
