"""End-to-end through the HTTP routers against a throwaway SQLite database."""
import uuid
from datetime import datetime, timedelta, timezone


def _create(client, **payload):
    r = client.post("/content", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


def _chain(client, platform="linkedin"):
    t = _create(client, content_type="transcript", title="Ep 1", raw_content="hello there world")
    i = _create(client, content_type="insight", parent_id=t["id"], processed_content="an idea")
    p = _create(client, content_type="post", parent_id=i["id"], platform=platform, processed_content="a post")
    return t, i, p


def _future(**delta):
    return (datetime.now(timezone.utc) + timedelta(**delta)).replace(microsecond=0).isoformat()


def test_health_check(client):
    assert client.get("/").json() == {"status": "ok"}


def test_create_and_read_back(client):
    t, i, p = _chain(client, platform="LinkedIn")

    assert t["root_transcript_id"] == t["id"]
    assert p["root_transcript_id"] == t["id"]
    assert p["platform"] == "linkedin"
    assert p["status"] == "needs_review"

    got = client.get(f"/content/{p['id']}").json()
    assert got["id"] == p["id"]

    pipeline = client.get(f"/content/{t['id']}/pipeline").json()
    assert [x["id"] for x in pipeline["insights"]] == [i["id"]]
    assert [x["id"] for x in pipeline["posts"]] == [p["id"]]

    listed = client.get("/content", params={"content_type": "post", "root_transcript_id": t["id"]}).json()
    assert [x["id"] for x in listed] == [p["id"]]

    rels = client.get(f"/content/{i['id']}/relationships").json()
    assert {r["relationship_type"] for r in rels} == {"transcript_to_insight", "insight_to_post"}


def test_errors_map_to_distinct_statuses(client):
    t, i, p = _chain(client)

    r = client.get(f"/content/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = client.post("/content", json={"content_type": "post", "parent_id": t["id"], "platform": "x"})
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"

    r = client.post(f"/transitions/{p['id']}", json={"target_status": "published"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"


def test_approve_and_generate_posts(client):
    t, i, _ = _chain(client)

    r = client.post(f"/transitions/{i['id']}", json={"target_status": "approved"})
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    jobs = client.get(f"/jobs/by-content/{i['id']}").json()
    assert [(j["job_type"], j["status"]) for j in jobs] == [("generate_posts", "pending")]
    job_id = jobs[0]["id"]

    assert client.post(f"/jobs/{job_id}/begin").json()["status"] == "processing"
    assert client.post(f"/jobs/{job_id}/progress", json={"progress": 250}).json()["progress"] == 100
    drafts = [{"content": f"post {n}", "platform": "x"} for n in range(2)]
    done = client.post(f"/jobs/{job_id}/complete", json={"drafts": drafts}).json()
    assert (done["status"], done["result_count"]) == ("completed", 2)

    posts = client.get("/content", params={"content_type": "post", "parent_id": i["id"]}).json()
    assert len(posts) == 3
    assert client.post("/jobs", json={"content_id": i["id"], "job_type": "generate_posts"}).status_code == 201


def test_duplicate_job_is_a_conflict(client):
    t, _, _ = _chain(client)
    body = {"content_id": t["id"], "job_type": "clean_transcript"}
    assert client.post("/jobs", json=body).status_code == 201
    r = client.post("/jobs", json=body)
    assert r.status_code == 409
    assert r.json()["error"] == "job_already_active"


def test_bulk_transition(client):
    _, i, p1 = _chain(client)
    p2 = _create(client, content_type="post", parent_id=i["id"], platform="linkedin", status="approved")

    r = client.post("/transitions/bulk", json={"content_ids": [p1["id"], p2["id"]], "target_status": "approved"})

    assert r.status_code == 200
    assert [(x["ok"], x["error"]) for x in r.json()] == [(True, None), (False, "invalid_transition")]


def test_schedule_publish_flow(client, linkedin):
    _, _, p = _chain(client)
    client.post(f"/transitions/{p['id']}", json={"target_status": "approved"})

    r = client.post(f"/schedule/{p['id']}", json={"scheduled_time": _future(minutes=-5)})
    assert r.status_code == 400

    r = client.post(f"/schedule/{p['id']}", json={"scheduled_time": _future(days=2)})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "scheduled"

    slots = client.get("/schedule/slots/linkedin").json()
    assert slots["platform"] == "linkedin"

    r = client.delete(f"/schedule/{p['id']}")
    assert r.json()["status"] == "approved"
    assert r.json()["scheduled_time"] is None

    r = client.post(f"/schedule/{p['id']}/auto")
    assert r.status_code == 200
    assert r.json()["status"] == "scheduled"

    r = client.post(f"/publisher/{p['id']}/publish")
    assert r.status_code == 200
    assert r.json()["status"] == "published"
    assert linkedin.calls == [uuid.UUID(p["id"])]

    stats = client.get("/stats/overview").json()
    assert stats["by_type"]["post"] == {"published": 1}
    assert stats["jobs"] == {}


def test_slot_conflict_is_reported(client):
    _, i, p1 = _chain(client)
    p2 = _create(client, content_type="post", parent_id=i["id"], platform="linkedin", status="approved")
    client.post(f"/transitions/{p1['id']}", json={"target_status": "approved"})
    when = _future(days=3)

    assert client.post(f"/schedule/{p1['id']}", json={"scheduled_time": when}).status_code == 200
    r = client.post(f"/schedule/{p2['id']}", json={"scheduled_time": when})
    assert r.status_code == 409
    assert r.json()["error"] == "slot_conflict"


def test_publish_failure_is_a_bad_gateway(client, linkedin):
    _, _, p = _chain(client)
    client.post(f"/transitions/{p['id']}", json={"target_status": "approved"})
    client.post(f"/schedule/{p['id']}/auto")
    linkedin.fail = True

    r = client.post(f"/publisher/{p['id']}/publish")

    assert r.status_code == 502
    assert r.json()["error"] == "publish_error"
    assert client.get(f"/content/{p['id']}").json()["status"] == "failed"


def test_delete_cascades(client):
    t, i, p = _chain(client)
    r = client.delete(f"/content/{t['id']}")
    assert r.json()["deleted"] == 3
    assert client.get(f"/content/{p['id']}").status_code == 404
