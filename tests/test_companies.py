from app.models.company import CompanyMember
from app.models.creds import Creds
from app.models.user import User
from tests.conftest import add_member, make_auth_headers


def _members(client, user, company_id):
    return client.get(f"/api/companies/{company_id}/members", headers=make_auth_headers(user))


def test_create_company_makes_creator_admin(client, db, owner, company):
    assert company["name"] == "Acme"
    assert company["created_by"] == owner.uid
    assert [(m["uid"], m["role"]) for m in company["members"]] == [(owner.uid, "admin")]

    creds = db.query(Creds).filter(Creds.company_id == company["company_id"]).all()
    assert len(creds) == 1
    assert (creds[0].uid, creds[0].role, creds[0].status, creds[0].active) == (
        owner.uid,
        "admin",
        "accepted",
        True,
    )


def test_create_company_requires_name(client, owner):
    res = client.post("/api/companies", json={"name": ""}, headers=make_auth_headers(owner))
    assert res.status_code == 400


def test_my_companies(client, owner, make_user, company):
    res = client.get("/api/companies/my-companies", headers=make_auth_headers(owner))
    assert res.status_code == 200
    companies = res.json()["data"]["companies"]
    assert [(c["company_id"], c["my_role"], c["my_status"]) for c in companies] == [
        (company["company_id"], "admin", "accepted")
    ]

    stranger = make_user("stranger@example.com")
    res = client.get("/api/companies/my-companies", headers=make_auth_headers(stranger))
    assert res.json()["data"]["companies"] == []


def test_company_visibility(client, owner, make_user, company):
    cid = company["company_id"]
    assert client.get(f"/api/companies/{cid}", headers=make_auth_headers(owner)).status_code == 200

    stranger = make_user("stranger@example.com")
    res = client.get(f"/api/companies/{cid}", headers=make_auth_headers(stranger))
    assert res.status_code == 403
    assert res.json()["code"] == "NOT_A_MEMBER"

    res = client.get("/api/companies/no-such-company", headers=make_auth_headers(owner))
    assert res.status_code == 404
    assert res.json()["code"] == "COMPANY_NOT_FOUND"


def test_members_listing_is_for_members_only(client, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com", first_name="Bob")
    add_member(client, owner, cid, bob, role="creator")

    res = _members(client, bob, cid)
    assert res.status_code == 200
    members = res.json()["data"]["members"]
    assert [(m["email"], m["role"], m["status"]) for m in members] == [
        ("owner@example.com", "admin", "accepted"),
        ("bob@example.com", "creator", "accepted"),
    ]
    assert members[1]["invited_by"] == owner.uid

    stranger = make_user("stranger@example.com")
    res = _members(client, stranger, cid)
    assert res.status_code == 403
    assert res.json()["code"] == "NOT_A_MEMBER"


def test_permissions_follow_tenant_role(client, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob, role="creator")

    res = client.get(f"/api/companies/{cid}/permissions", headers=make_auth_headers(owner))
    perms = res.json()["data"]
    assert perms["role"] == "admin"
    assert perms["can_invite"] is True

    res = client.get(f"/api/companies/{cid}/permissions", headers=make_auth_headers(bob))
    perms = res.json()["data"]
    assert perms["role"] == "creator"
    assert perms["can_invite"] is False
    assert perms["can_access_creation_tools"] is True
    assert perms["can_view_audit_log"] is False


def test_role_change_updates_ledger_and_member_list(client, db, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob)

    res = client.patch(
        f"/api/companies/{cid}/members/{bob.uid}/role",
        json={"role": "admin"},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 200, res.text
    assert res.json()["data"]["role"] == "admin"

    db.expire_all()
    creds = db.query(Creds).filter(Creds.uid == bob.uid, Creds.company_id == cid).one()
    member = db.query(CompanyMember).filter(CompanyMember.uid == bob.uid, CompanyMember.company_id == cid).one()
    assert creds.role == member.role == "admin"

    # bob can now administer the tenant
    res = client.get(f"/api/companies/{cid}/invites", headers=make_auth_headers(bob))
    assert res.status_code == 200


def test_role_change_rejects_unknown_role(client, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob)

    res = client.patch(
        f"/api/companies/{cid}/members/{bob.uid}/role",
        json={"role": "owner"},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_FAILED"


def test_admin_cannot_demote_self(client, owner, company):
    cid = company["company_id"]
    res = client.patch(
        f"/api/companies/{cid}/members/{owner.uid}/role",
        json={"role": "member"},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 400
    assert res.json()["code"] == "SELF_DEMOTION"


def test_non_admin_cannot_manage_members(client, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    carol = make_user("carol@example.com")
    add_member(client, owner, cid, bob, role="creator")
    add_member(client, owner, cid, carol)

    res = client.patch(
        f"/api/companies/{cid}/members/{carol.uid}/role",
        json={"role": "creator"},
        headers=make_auth_headers(bob),
    )
    assert res.status_code == 403
    assert res.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    res = client.post(
        f"/api/companies/{cid}/members/delete",
        json={"uid": carol.uid},
        headers=make_auth_headers(bob),
    )
    assert res.status_code == 403


def test_platform_role_grants_no_tenant_authority(client, owner, super_admin, company):
    cid = company["company_id"]
    res = _members(client, super_admin, cid)
    assert res.status_code == 403
    assert res.json()["code"] == "NOT_A_MEMBER"


def test_status_toggle(client, db, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob)
    url = f"/api/companies/{cid}/members/{bob.uid}/status"

    res = client.patch(url, json={"status": "inactive"}, headers=make_auth_headers(owner))
    assert res.status_code == 200
    assert res.json()["data"] == {"uid": bob.uid, "company_id": cid, "status": "inactive", "active": False}

    # an inactive member loses tenant access
    res = client.get(f"/api/companies/{cid}/permissions", headers=make_auth_headers(bob))
    assert res.json()["data"]["role"] is None
    assert _members(client, bob, cid).status_code == 403

    res = client.patch(url, json={"status": "accepted"}, headers=make_auth_headers(owner))
    assert res.json()["data"]["active"] is True
    assert _members(client, bob, cid).status_code == 200

    res = client.patch(url, json={"status": "removed"}, headers=make_auth_headers(owner))
    assert res.status_code == 400


def test_admin_cannot_deactivate_self(client, owner, company):
    cid = company["company_id"]
    res = client.patch(
        f"/api/companies/{cid}/members/{owner.uid}/status",
        json={"status": "inactive"},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 400
    assert res.json()["code"] == "SELF_DEACTIVATION"


def test_remove_member_drops_both_rows(client, db, owner, make_user, company):
    cid = company["company_id"]
    bob = make_user("bob@example.com")
    add_member(client, owner, cid, bob)

    res = client.post(
        f"/api/companies/{cid}/members/delete",
        json={"uid": bob.uid},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 200
    assert res.json()["data"] == {"uid": bob.uid, "company_id": cid, "identity_purged": False}

    db.expire_all()
    assert db.query(Creds).filter(Creds.uid == bob.uid).count() == 0
    assert db.query(CompanyMember).filter(CompanyMember.uid == bob.uid).count() == 0
    # verified identity survives removal
    assert client.post(
        "/api/auth/login", json={"email": "bob@example.com", "password": "secret123"}
    ).status_code == 200

    res = client.post(
        f"/api/companies/{cid}/members/delete",
        json={"uid": bob.uid},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 404
    assert res.json()["code"] == "MEMBER_NOT_FOUND"


def test_admin_cannot_remove_self(client, owner, company):
    cid = company["company_id"]
    res = client.post(
        f"/api/companies/{cid}/members/delete",
        json={"uid": owner.uid},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 400
    assert res.json()["code"] == "SELF_REMOVAL"


def test_removal_never_deletes_unverified_real_accounts(client, db, owner, make_user, company):
    cid = company["company_id"]
    root = make_user("lone-root@example.com", role="super_admin", verified=False)
    carl = make_user("carl@example.com", verified=False)
    add_member(client, owner, cid, root)
    add_member(client, owner, cid, carl)

    for uid in (root.uid, carl.uid):
        res = client.post(
            f"/api/companies/{cid}/members/delete",
            json={"uid": uid},
            headers=make_auth_headers(owner),
        )
        assert res.status_code == 200
        assert res.json()["data"]["identity_purged"] is False

    db.expire_all()
    assert db.get(User, root.uid) is not None
    assert db.get(User, carl.uid) is not None
    assert db.query(User).filter(User.role == "super_admin", User.removed.is_(False)).count() == 1
