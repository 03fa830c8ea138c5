import pytest

from app.models.action import Action
from tests.conftest import add_member, make_auth_headers

T0 = 1_700_000_000_000
HOUR = 3_600_000


@pytest.fixture
def record(db):
    """Insert an action row directly; returns it."""

    def _record(company_id="T1", count=1, created=T0, **extra):
        fields = {
            "type": "read",
            "collection": "documents",
            "read_type": "docChange",
            "uid": "u-1",
            "host": "app.example.com",
            "doc_id": "doc-1",
        }
        fields.update(extra)
        obj = Action(company_id=company_id, count=count, created=created, **fields)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    return _record


def _aggregate(client, user, **params):
    params = {"aggregate": "true", **params}
    return client.get("/api/actions", params=params, headers=make_auth_headers(user))


# --- aggregation -------------------------------------------------------------


def test_aggregate_per_company(client, super_admin, record):
    for count in (3, 5, 7):
        record("T1", count=count, created=T0 + HOUR)
    record("T2", count=2, created=T0 + HOUR)

    res = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + 24 * HOUR, companyId="T1")
    assert res.status_code == 200, res.text
    assert res.json()["data"] == {
        "company_id": "T1",
        "total_sum": 15,
        "document_count": 3,
        "period": {"from_date": T0, "to_date": T0 + 24 * HOUR},
    }


def test_aggregate_grouped_without_company(client, super_admin, record):
    for count in (3, 5, 7):
        record("T1", count=count, created=T0 + HOUR)
    record("T2", count=2, created=T0 + HOUR)

    res = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + 24 * HOUR)
    data = res.json()["data"]
    assert [(g["company_id"], g["total_sum"], g["document_count"]) for g in data] == [
        ("T1", 15, 3),
        ("T2", 2, 1),
    ]


def test_aggregate_unknown_company_is_zero(client, super_admin, record):
    record("T1", count=3, created=T0 + HOUR)
    res = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + HOUR * 24, companyId="T3")
    data = res.json()["data"]
    assert (data["total_sum"], data["document_count"]) == (0, 0)


def test_aggregate_window_is_half_open(client, super_admin, record):
    record("T1", count=1, created=T0)
    record("T1", count=10, created=T0 + HOUR - 1)
    record("T1", count=100, created=T0 + HOUR)

    data = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + HOUR, companyId="T1").json()["data"]
    assert (data["total_sum"], data["document_count"]) == (11, 2)


def test_aggregate_skips_removed(client, super_admin, record):
    record("T1", count=4, created=T0 + 1)
    record("T1", count=50, created=T0 + 1, removed=True)

    data = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + HOUR, companyId="T1").json()["data"]
    assert (data["total_sum"], data["document_count"]) == (4, 1)


def test_aggregate_group_by_other_field(client, super_admin, record):
    record("T1", count=2, created=T0 + 1, type="read")
    record("T2", count=3, created=T0 + 1, type="write")
    record("T2", count=4, created=T0 + 1, type="read")

    data = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + HOUR, groupBy="type").json()["data"]
    assert [(g["type"], g["total_sum"]) for g in data] == [("read", 6), ("write", 3)]

    # camelCase field names from older clients
    data = _aggregate(client, super_admin, fromDate=T0, toDate=T0 + HOUR, groupBy="companyId").json()["data"]
    assert [g["company_id"] for g in data] == ["T1", "T2"]


@pytest.mark.parametrize(
    "params, code",
    [
        ({"fromDate": T0}, "MISSING_DATE_RANGE"),
        ({"toDate": T0}, "MISSING_DATE_RANGE"),
        ({"fromDate": T0, "toDate": T0}, "INVALID_DATE_RANGE"),
        ({"fromDate": T0 + 1, "toDate": T0}, "INVALID_DATE_RANGE"),
        ({"fromDate": T0, "toDate": T0 + 1, "groupBy": "password"}, "INVALID_AGGREGATE_FIELD"),
        ({"fromDate": T0, "toDate": T0 + 1, "sum": "uid"}, "INVALID_AGGREGATE_FIELD"),
        ({"fromDate": T0, "toDate": T0 + 1, "companyId": "T1", "groupBy": "type"}, "GROUP_BY_CONFLICT"),
        ({"fromDate": "yesterday", "toDate": T0}, "VALIDATION_FAILED"),
    ],
)
def test_aggregate_rejects_bad_input(client, super_admin, params, code):
    res = _aggregate(client, super_admin, **params)
    assert res.status_code == 400
    assert res.json()["code"] == code


# --- listing -----------------------------------------------------------------


def test_list_newest_first_with_pagination(client, super_admin, record):
    ids = [record("T1", created=T0 + i).id for i in range(5)]

    res = client.get("/api/actions", params={"limit": 2}, headers=make_auth_headers(super_admin))
    data = res.json()["data"]
    assert [a["id"] for a in data["actions"]] == [ids[4], ids[3]]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}

    res = client.get("/api/actions", params={"limit": 2, "page": 3}, headers=make_auth_headers(super_admin))
    assert [a["id"] for a in res.json()["data"]["actions"]] == [ids[0]]


def test_list_filters(client, super_admin, record):
    keep = record("T1", created=T0 + 5, uid="u-2", collection="chats")
    record("T1", created=T0 + 5, uid="u-1", collection="chats")
    record("T2", created=T0 + 5, uid="u-2", collection="chats")
    record("T1", created=T0 + 5, uid="u-2", collection="documents")

    res = client.get(
        "/api/actions",
        params={"companyId": "T1", "uid": "u-2", "collection": "chats"},
        headers=make_auth_headers(super_admin),
    )
    assert [a["id"] for a in res.json()["data"]["actions"]] == [keep.id]


def test_list_since_and_date_range(client, super_admin, record):
    a = record("T1", created=T0)
    b = record("T1", created=T0 + 10)
    c = record("T1", created=T0 + 20)
    headers = make_auth_headers(super_admin)

    res = client.get("/api/actions", params={"since": T0}, headers=headers)
    assert [x["id"] for x in res.json()["data"]["actions"]] == [c.id, b.id]

    res = client.get("/api/actions", params={"fromDate": T0, "toDate": T0 + 20}, headers=headers)
    assert [x["id"] for x in res.json()["data"]["actions"]] == [b.id, a.id]


# --- access ------------------------------------------------------------------


def test_tenant_admin_reads_own_company_only(client, owner, make_user, company, record):
    cid = company["company_id"]
    record(cid, count=3, created=T0 + 1)
    record("other-tenant", count=9, created=T0 + 1)

    data = _aggregate(client, owner, fromDate=T0, toDate=T0 + HOUR, companyId=cid).json()["data"]
    assert data["total_sum"] == 3

    res = _aggregate(client, owner, fromDate=T0, toDate=T0 + HOUR, companyId="other-tenant")
    assert res.status_code == 403

    # a tenant-wide scan needs platform rights
    res = _aggregate(client, owner, fromDate=T0, toDate=T0 + HOUR)
    assert res.status_code == 403

    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob, role="creator")
    res = client.get("/api/actions", params={"companyId": cid}, headers=make_auth_headers(bob))
    assert res.status_code == 403
    assert res.json()["code"] == "INSUFFICIENT_PERMISSIONS"


def _payload(uid, company_id, **extra):
    body = {
        "type": "read",
        "collection": "documents",
        "uid": uid,
        "company_id": company_id,
        "count": 2,
        "host": "app.example.com",
        "doc_id": "doc-9",
    }
    body.update(extra)
    return body


def test_member_records_own_actions(client, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob)
    headers = make_auth_headers(bob)

    res = client.post("/api/actions", json=_payload(bob.uid, cid, created=T0), headers=headers)
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert (data["uid"], data["company_id"], data["count"], data["created"]) == (bob.uid, cid, 2, T0)
    assert data["removed"] is False
    assert data["read_type"] == "docChange"

    res = client.post("/api/actions", json=_payload(owner.uid, cid), headers=headers)
    assert res.status_code == 403

    res = client.post("/api/actions", json=_payload(bob.uid, "not-my-company"), headers=headers)
    assert res.status_code == 403
    assert res.json()["code"] == "NOT_A_MEMBER"


def test_created_defaults_to_now(client, super_admin):
    res = client.post(
        "/api/actions", json=_payload("anyone", "T1"), headers=make_auth_headers(super_admin)
    )
    assert res.status_code == 201
    assert res.json()["data"]["created"] > T0


def test_administrative_routes_are_super_admin_only(client, owner, super_admin, record):
    action = record("T1", count=1)
    for method, url in (
        ("get", f"/api/actions/{action.id}"),
        ("delete", f"/api/actions/{action.id}"),
        ("delete", "/api/actions"),
        ("get", "/api/actions/companies"),
        ("get", "/api/actions/collections"),
    ):
        res = client.request(method.upper(), url, headers=make_auth_headers(owner))
        assert res.status_code == 403, url
        assert res.json()["code"] == "SUPERADMIN_REQUIRED"


def test_super_admin_edits_and_deletes(client, db, super_admin, record):
    headers = make_auth_headers(super_admin)
    action = record("T1", count=1)
    record("T2", count=1, collection="chats")

    res = client.put(f"/api/actions/{action.id}", json={"count": 9, "removed": True}, headers=headers)
    assert res.status_code == 200
    assert (res.json()["data"]["count"], res.json()["data"]["removed"]) == (9, True)

    assert client.get("/api/actions/companies", headers=headers).json()["data"] == ["T2"]
    assert client.get("/api/actions/collections", headers=headers).json()["data"] == ["chats"]

    res = client.delete(f"/api/actions/{action.id}", headers=headers)
    assert res.status_code == 200
    res = client.get(f"/api/actions/{action.id}", headers=headers)
    assert res.status_code == 404
    assert res.json()["code"] == "ACTION_NOT_FOUND"

    res = client.delete("/api/actions", headers=headers)
    assert res.json()["data"] == {"deleted": 1}
    db.expire_all()
    assert db.query(Action).count() == 0


def test_aggregate_company_accepts_its_own_grouping(client, super_admin, record):
    record("T1", count=2, created=T0 + 1)
    data = _aggregate(
        client, super_admin, fromDate=T0, toDate=T0 + HOUR, companyId="T1", groupBy="companyId"
    ).json()["data"]
    assert (data["company_id"], data["total_sum"]) == ("T1", 2)
