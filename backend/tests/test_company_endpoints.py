"""
Startup Dashboard - Company Endpoint Tests

End-to-end flows through /api/company: creation and join codes, quarters,
versioned section writes, masked reads and company deletion. Every test
runs with the cache enabled and disabled.
"""
import os
import re
import sys
import uuid
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

pytestmark = pytest.mark.timeout(60)


def _query(section, label="Q1", year=2025):
    return f"data={section}&quarter={label}&year={year}"


def _edit(client, account, section, body, label="Q1", year=2025):
    return client.put(f"/api/company/edit?{_query(section, label, year)}",
                      headers=account.headers, json=body)


def _set_masks(client, admin, company_id, section, label="Q1", year=2025, **masks):
    response = client.put(
        f"/api/manage/company/edit/{company_id}?{_query(section, label, year)}",
        headers=admin.headers, json=masks,
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestCompanyLifecycle:
    """Create, join, inspect and delete."""

    def test_create_returns_id_and_links_creator(self, client, make_member):
        owner = make_member()
        response = client.post("/api/company/create", headers=owner.headers, json={
            "name": "Lifecycle", "contact_name": "Founder",
            "contact_email": f"lc-{uuid.uuid4().hex[:8]}@example.com",
            "sector": "health", "description": "d",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Company created successfully"

        me = client.get("/api/users/me", headers=owner.headers).json()
        assert me["company_id"] == body["company_id"]

    def test_secret_code_is_twelve_hex_chars(self, client, startup):
        me = client.get("/api/company/me", headers=startup["owner"].headers)
        assert me.status_code == 200
        assert re.fullmatch(r"[0-9a-f]{12}", me.json()["secret_code"])

    def test_second_company_forbidden(self, client, startup):
        response = client.post("/api/company/create", headers=startup["owner"].headers, json={
            "name": "Again", "contact_name": "Founder",
            "contact_email": f"again-{uuid.uuid4().hex[:8]}@example.com",
        })
        assert response.status_code == 403

    def test_duplicate_contact_email_conflicts(self, client, make_member):
        email = f"dup-{uuid.uuid4().hex[:8]}@example.com"
        first, second = make_member(), make_member()
        payload = {"name": "Dup", "contact_name": "Founder", "contact_email": email}
        assert client.post("/api/company/create", headers=first.headers, json=payload).status_code == 201
        assert client.post("/api/company/create", headers=second.headers, json=payload).status_code == 409

    def test_join_with_correct_code(self, client, startup, make_member):
        code = client.get("/api/company/me", headers=startup["owner"].headers).json()["secret_code"]
        joiner = make_member("Joiner")
        response = client.post(f"/api/company/join/{startup['company_id']}",
                               headers=joiner.headers, json={"secret_code": code})
        assert response.status_code == 200
        assert response.json()["message"] == "Successfully joined the company"
        me = client.get("/api/users/me", headers=joiner.headers).json()
        assert me["company_id"] == startup["company_id"]

    def test_join_with_wrong_code_leaves_user_unlinked(self, client, startup, make_member):
        joiner = make_member("Joiner")
        response = client.post(f"/api/company/join/{startup['company_id']}",
                               headers=joiner.headers, json={"secret_code": "000000000000"})
        assert response.status_code == 401
        me = client.get("/api/users/me", headers=joiner.headers).json()
        assert me["company_id"] is None

    def test_join_missing_company(self, client, make_member):
        joiner = make_member()
        response = client.post("/api/company/join/999999", headers=joiner.headers,
                               json={"secret_code": "abcdefabcdef"})
        assert response.status_code == 404

    def test_list_is_public(self, client, startup):
        response = client.get("/api/company/list")
        assert response.status_code == 200
        assert str(startup["company_id"]) in response.json()

    def test_vc_cannot_create(self, client, make_vc):
        vc = make_vc()
        response = client.post("/api/company/create", headers=vc.headers, json={
            "name": "VC Co", "contact_name": "VC", "contact_email": "vcco@example.com",
        })
        assert response.status_code == 403

    def test_delete_unlinks_members(self, client, startup, make_member):
        owner = startup["owner"]
        code = client.get("/api/company/me", headers=owner.headers).json()["secret_code"]
        joiner = make_member()
        client.post(f"/api/company/join/{startup['company_id']}",
                    headers=joiner.headers, json={"secret_code": code})

        response = client.delete("/api/company/delete", headers=owner.headers)
        assert response.status_code == 200
        assert client.get("/api/users/me", headers=owner.headers).json()["company_id"] is None
        assert client.get("/api/users/me", headers=joiner.headers).json()["company_id"] is None
        assert client.get(f"/api/company/{startup['company_id']}", headers=owner.headers).status_code == 404


class TestQuarters:

    def test_duplicate_quarter_conflicts(self, client, make_member, make_company):
        owner = make_member()
        make_company(owner)
        first = client.post("/api/company/quarters/add", headers=owner.headers,
                            json={"quarter": "Q1", "year": 2025})
        second = client.post("/api/company/quarters/add", headers=owner.headers,
                             json={"quarter": "Q1", "year": 2025})
        assert first.status_code == 201
        assert second.status_code == 409

    def test_invalid_label_rejected(self, client, startup):
        response = client.post("/api/company/quarters/add", headers=startup["owner"].headers,
                               json={"quarter": "Q5", "year": 2025})
        assert response.status_code == 400

    @pytest.mark.parametrize("year", [10000, 99999999999999999999])
    def test_year_beyond_range_rejected(self, client, startup, year):
        response = client.post("/api/company/quarters/add", headers=startup["owner"].headers,
                               json={"quarter": "Q2", "year": year})
        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"

    def test_unlinked_member_cannot_add(self, client, make_member):
        response = client.post("/api/company/quarters/add", headers=make_member().headers,
                               json={"quarter": "Q1", "year": 2025})
        assert response.status_code == 403

    def test_list_ordered_by_year_then_label(self, client, startup, add_quarter):
        owner = startup["owner"]
        add_quarter(owner, "Q3", 2024)
        add_quarter(owner, "Q2", 2025)
        response = client.get(f"/api/company/quarters/{startup['company_id']}", headers=owner.headers)
        assert response.status_code == 200
        labels = [(q["quarter"], q["year"]) for q in response.json()]
        assert labels == [("Q3", 2024), ("Q1", 2025), ("Q2", 2025)]
        assert set(response.json()[0]) == {"id", "quarter", "year", "date"}

    def test_list_requires_auth(self, client, startup):
        assert client.get(f"/api/company/quarters/{startup['company_id']}").status_code == 401


class TestSectionVersioning:
    """Appending versions and reading the latest."""

    def test_versions_increment_and_latest_wins(self, client, startup):
        owner = startup["owner"]
        first = _edit(client, owner, "finance", {"quarterly_revenue": "100"})
        second = _edit(client, owner, "finance", {"quarterly_revenue": "110"})
        assert first.status_code == 200, first.text
        assert first.json()["version"] == 1
        assert second.json()["version"] == 2

        response = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                              headers=owner.headers)
        assert response.status_code == 200
        body = response.json()
        assert body["quarter_id"] == startup["quarter_id"]
        assert len(body["data"]) == 1
        assert body["data"][0]["version"] == 2
        assert body["data"][0]["quarterly_revenue"] == "110"

    def test_absent_fields_carry_forward(self, client, startup):
        owner = startup["owner"]
        _edit(client, owner, "finance", {"quarterly_revenue": "100", "cash_balance": "5000"})
        _edit(client, owner, "finance", {"quarterly_revenue": "110"})
        data = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                          headers=owner.headers).json()["data"][0]
        assert data["cash_balance"] == "5000"

    def test_children_round_trip(self, client, startup):
        owner = startup["owner"]
        breakdowns = [
            {"product": "SaaS", "revenue": "80", "percentage": "80"},
            {"product": "Services", "revenue": "20", "percentage": "20"},
        ]
        response = _edit(client, owner, "finance", {"revenue_breakdowns": breakdowns})
        assert response.status_code == 200
        data = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                          headers=owner.headers).json()["data"][0]
        assert data["revenue_breakdowns"] == breakdowns

    def test_self_assessment_payload(self, client, startup):
        owner = startup["owner"]
        response = _edit(client, owner, "self", {
            "overall_rating": 8, "priorities": ["hire", "ship"], "assessment_text": "good",
        })
        assert response.status_code == 200
        data = client.get(f"/api/company/{startup['company_id']}?{_query('self')}",
                          headers=owner.headers).json()["data"][0]
        assert data["overall_rating"] == 8
        assert data["priorities"] == ["hire", "ship"]

    def test_empty_priority_rejected(self, client, startup):
        response = _edit(client, startup["owner"], "self", {"priorities": [""]})
        assert response.status_code == 400
        assert "priorities" in response.json()["error"]

    def test_rating_out_of_range(self, client, startup):
        response = _edit(client, startup["owner"], "self", {"overall_rating": 11})
        assert response.status_code == 400

    def test_unknown_field_rejected(self, client, startup):
        response = _edit(client, startup["owner"], "finance", {"payroll": "1"})
        assert response.status_code == 400

    def test_missing_quarter_is_404(self, client, startup):
        response = _edit(client, startup["owner"], "finance", {"quarterly_revenue": "1"}, "Q4", 2030)
        assert response.status_code == 404

    def test_read_without_data_is_404(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?{_query('market')}",
                              headers=startup["owner"].headers)
        assert response.status_code == 404

    def test_info_edit_and_read(self, client, startup):
        owner = startup["owner"]
        response = client.put("/api/company/edit?data=info", headers=owner.headers,
                              json={"name": "Renamed"})
        assert response.status_code == 200
        info = client.get(f"/api/company/{startup['company_id']}", headers=owner.headers).json()
        assert info["company_name"] == "Renamed"
        assert set(info) == {"company_id", "company_name", "company_contact_name", "company_contact_email"}

    def test_info_edit_rejects_other_fields(self, client, startup):
        response = client.put("/api/company/edit?data=info", headers=startup["owner"].headers,
                              json={"secret_code": "aaaaaaaaaaaa"})
        assert response.status_code == 400


class TestQueryValidation:

    def test_unknown_section(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?{_query('payroll')}",
                              headers=startup["owner"].headers)
        assert response.status_code == 400

    def test_bad_year(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?data=finance&quarter=Q1&year=20x5",
                              headers=startup["owner"].headers)
        assert response.status_code == 400

    def test_negative_year(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?data=finance&quarter=Q1&year=-1",
                              headers=startup["owner"].headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("year", ["10000", "99999999999999999999", "9" * 5000],
                             ids=["five-digits", "twenty-digits", "five-thousand-digits"])
    def test_year_beyond_range(self, client, startup, year):
        response = client.get(f"/api/company/{startup['company_id']}?data=finance&quarter=Q1&year={year}",
                              headers=startup["owner"].headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"

    def test_edit_year_beyond_range(self, client, startup):
        response = _edit(client, startup["owner"], "finance", {"quarterly_revenue": "1"},
                         year=99999999999999999999)
        assert response.status_code == 400

    def test_oversized_company_id(self, client, startup):
        response = client.get(f"/api/company/99999999999999999999?{_query('finance')}",
                              headers=startup["owner"].headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"

    def test_duplicate_data_param(self, client, startup):
        response = client.get(
            f"/api/company/{startup['company_id']}?data=finance&data=market&quarter=Q1&year=2025",
            headers=startup["owner"].headers,
        )
        assert response.status_code == 400

    def test_empty_data_param(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?data=&quarter=Q1&year=2025",
                              headers=startup["owner"].headers)
        assert response.status_code == 400

    def test_unknown_company(self, client, startup):
        response = client.get(f"/api/company/999999?{_query('finance')}", headers=startup["owner"].headers)
        assert response.status_code == 404

    def test_anonymous_read_rejected(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}")
        assert response.status_code == 401

    def test_invalid_token_rejected(self, client, startup):
        response = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                              headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestMasks:
    """Visibility and editability masks on the wire."""

    def test_vc_sees_only_visible_fields(self, client, startup, make_vc, make_admin):
        owner = startup["owner"]
        _edit(client, owner, "finance", {"quarterly_revenue": "100", "cash_balance": "7"})
        _edit(client, owner, "finance", {"quarterly_revenue": "110"})
        admin = make_admin()
        # admin write with only a mask override appends version 3 with the same values
        _set_masks(client, admin, startup["company_id"], "finance", is_visible=16)

        vc = make_vc()
        response = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                              headers=vc.headers)
        assert response.status_code == 200
        assert response.json()["data"] == [{"version": 3, "quarterly_revenue": "110"}]

        owner_view = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                                headers=owner.headers).json()["data"][0]
        assert owner_view["cash_balance"] == "7"

    def test_other_member_is_filtered(self, client, startup, make_member, make_company, make_admin):
        _edit(client, startup["owner"], "finance", {"quarterly_revenue": "100", "cash_balance": "7"})
        _set_masks(client, make_admin(), startup["company_id"], "finance", is_visible=16)
        outsider = make_member()
        make_company(outsider, name="Other")
        data = client.get(f"/api/company/{startup['company_id']}?{_query('finance')}",
                          headers=outsider.headers).json()["data"][0]
        assert "cash_balance" not in data
        assert data["quarterly_revenue"] == "100"

    def test_unapproved_vc_denied(self, client, make_vc):
        vc = make_vc(approved=False)
        login = client.post("/api/auth/vc/login", json={"email": vc.email, "password": "correct-horse-battery"})
        assert login.status_code == 401

    def test_locked_field_edit_denied(self, client, startup, make_admin):
        owner = startup["owner"]
        _edit(client, owner, "finance", {"quarterly_revenue": "110"})
        _set_masks(client, make_admin(), startup["company_id"], "finance", is_editable=0b1111101111)

        response = _edit(client, owner, "finance", {"quarterly_revenue": "120"})
        assert response.status_code == 401
        assert response.json()["fields"] == ["quarterly_revenue"]
        assert "quarterly_revenue" in response.json()["error"]

        # unlocked fields still editable, masks carried forward
        ok = _edit(client, owner, "finance", {"cash_balance": "1"})
        assert ok.status_code == 200
        again = _edit(client, owner, "finance", {"quarterly_revenue": "130"})
        assert again.status_code == 401

    def test_masks_survive_member_writes(self, client, startup, make_admin, make_vc):
        owner = startup["owner"]
        _edit(client, owner, "fund", {"last_round": "seed", "target_amount": "2M"})
        _set_masks(client, make_admin(), startup["company_id"], "fund", is_visible=1)
        _edit(client, owner, "fund", {"target_amount": "3M"})
        data = client.get(f"/api/company/{startup['company_id']}?{_query('fund')}",
                          headers=make_vc().headers).json()["data"][0]
        assert data == {"version": 3, "last_round": "seed"}
