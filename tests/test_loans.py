import logging

from bson import ObjectId

from database import LOANS
from tests.helpers import auth_header, seed_loan

NEW_LOAN = {
    "loanTitle": "Education Loan",
    "description": "Tuition support",
    "category": "education",
    "interestRate": 7.25,
    "maxLoanLimit": 15000,
    "emiPlans": ["12 months", "24 months"],
    "requiredDocuments": ["NID", "Admission letter"],
    "image": "https://img.test/edu.png",
}


class TestPublicCatalog:
    def test_home_shows_at_most_six_flagged(self, client, db):
        for i in range(8):
            seed_loan(db, loanTitle=f"Home {i}", showOnHome=True)
        seed_loan(db, loanTitle="Hidden", showOnHome=False)

        loans = client.get("/loans/home").json()
        assert len(loans) == 6
        assert all(loan["showOnHome"] for loan in loans)

    def test_all_loans_pagination_matches_unpaginated_query(self, client, db):
        for i in range(12):
            seed_loan(db, loanTitle=f"Loan {i}", category="personal", showOnHome=True)
        seed_loan(db, loanTitle="Truck", category="auto", showOnHome=True)

        full = client.get("/all-loans", params={"category": "personal", "limit": 100}).json()
        page = client.get("/all-loans", params={"category": "personal", "page": 2, "limit": 5}).json()

        assert full["total"] == page["total"] == 12
        assert len(page["loans"]) == 5
        assert page["loans"] == full["loans"][5:10]

    def test_search_is_case_insensitive_substring(self, client, db):
        seed_loan(db, loanTitle="Small Business Loan", showOnHome=True)
        seed_loan(db, loanTitle="Car Loan", showOnHome=True)
        body = client.get("/all-loans", params={"search": "business"}).json()
        assert body["total"] == 1
        assert body["loans"][0]["loanTitle"] == "Small Business Loan"

    def test_search_is_literal(self, client, db):
        seed_loan(db, loanTitle="Car Loan", showOnHome=True)
        body = client.get("/all-loans", params={"search": ".*"}).json()
        assert body == {"loans": [], "total": 0}

    def test_all_loans_hides_unpublished(self, client, db):
        seed_loan(db, loanTitle="Published", showOnHome=True)
        seed_loan(db, loanTitle="Draft", showOnHome=False)
        body = client.get("/all-loans").json()
        assert [l["loanTitle"] for l in body["loans"]] == ["Published"]
        assert body["total"] == 1

    def test_invalid_page(self, client):
        assert client.get("/all-loans", params={"page": 0}).status_code == 422

    def test_get_loan(self, client, db):
        loan = seed_loan(db)
        body = client.get(f"/loan/{loan['_id']}").json()
        assert body["_id"] == str(loan["_id"])
        assert body["loanTitle"] == "Personal Loan"

    def test_get_loan_bad_or_unknown_id(self, client):
        assert client.get("/loan/not-an-id").status_code == 404
        response = client.get(f"/loan/{ObjectId()}")
        assert response.status_code == 404
        assert response.json() == {"message": "Loan not found"}


class TestManagerCatalog:
    def test_create_loan(self, client, db, manager):
        response = client.post("/loans", json=NEW_LOAN, headers=auth_header(manager["email"]))
        assert response.status_code == 201
        doc = db[LOANS].find_one({"_id": ObjectId(response.json()["id"])})
        assert doc["loanTitle"] == "Education Loan"
        assert doc["showOnHome"] is False
        assert doc["createdBy"] == manager["email"]

    def test_create_ignores_visibility_flag(self, client, db, manager):
        response = client.post("/loans", json={**NEW_LOAN, "showOnHome": True}, headers=auth_header(manager["email"]))
        doc = db[LOANS].find_one({"_id": ObjectId(response.json()["id"])})
        assert doc["showOnHome"] is False

    def test_create_validates_fields(self, client, manager):
        response = client.post("/loans", json={**NEW_LOAN, "interestRate": -1}, headers=auth_header(manager["email"]))
        assert response.status_code == 422

    def test_list_loans(self, client, db, manager):
        seed_loan(db)
        seed_loan(db, loanTitle="Car Loan", category="auto")
        body = client.get("/loans", params={"category": "auto"}, headers=auth_header(manager["email"])).json()
        assert body["total"] == 1
        assert body["loans"][0]["loanTitle"] == "Car Loan"

    def test_update_loan(self, client, db, manager):
        loan = seed_loan(db)
        response = client.patch(
            f"/loans/{loan['_id']}", json={"interestRate": 10.0}, headers=auth_header(manager["email"])
        )
        assert response.status_code == 200
        doc = db[LOANS].find_one({"_id": loan["_id"]})
        assert doc["interestRate"] == 10.0
        assert doc["loanTitle"] == "Personal Loan"
        assert doc["updatedAt"] != loan["updatedAt"]

    def test_update_cannot_touch_id_or_visibility(self, client, db, manager):
        loan = seed_loan(db)
        headers = auth_header(manager["email"])
        assert client.patch(f"/loans/{loan['_id']}", json={"showOnHome": True}, headers=headers).status_code == 422
        assert client.patch(f"/loans/{loan['_id']}", json={"_id": str(ObjectId())}, headers=headers).status_code == 422
        assert db[LOANS].find_one({"_id": loan["_id"]})["showOnHome"] is False

    def test_empty_update(self, client, db, manager):
        loan = seed_loan(db)
        response = client.patch(f"/loans/{loan['_id']}", json={}, headers=auth_header(manager["email"]))
        assert response.status_code == 400

    def test_delete_loan(self, client, db, manager):
        loan = seed_loan(db)
        headers = auth_header(manager["email"])
        assert client.delete(f"/loans/{loan['_id']}", headers=headers).json() == {"deleted": 1}
        assert db[LOANS].count_documents({}) == 0
        assert client.delete(f"/loans/{loan['_id']}", headers=headers).status_code == 404


class TestAdminCatalog:
    def test_toggle_show_on_home(self, client, db, admin, caplog):
        loan = seed_loan(db)
        with caplog.at_level(logging.INFO, logger="admin_api"):
            response = client.patch(
                f"/admin/loans/{loan['_id']}/show-on-home", json={"showOnHome": True}, headers=auth_header(admin["email"])
            )
        assert response.status_code == 200
        assert [l["_id"] for l in client.get("/loans/home").json()] == [str(loan["_id"])]
        assert any("showOnHome=True" in r.getMessage() and r.name == "admin_api" for r in caplog.records)

    def test_full_edit(self, client, db, admin):
        loan = seed_loan(db)
        response = client.put(
            f"/admin/loans/{loan['_id']}", json={**NEW_LOAN, "showOnHome": True}, headers=auth_header(admin["email"])
        )
        assert response.status_code == 200
        doc = db[LOANS].find_one({"_id": loan["_id"]})
        assert doc["loanTitle"] == "Education Loan"
        assert doc["showOnHome"] is True
        assert doc["createdBy"] == "manager@test.com"

    def test_get_list_and_delete(self, client, db, admin):
        loan = seed_loan(db)
        headers = auth_header(admin["email"])
        assert client.get(f"/admin/loans/{loan['_id']}", headers=headers).json()["_id"] == str(loan["_id"])
        assert client.get("/admin/loans", headers=headers).json()["total"] == 1
        assert client.delete(f"/admin/loans/{loan['_id']}", headers=headers).status_code == 200
        assert client.get(f"/admin/loans/{loan['_id']}", headers=headers).status_code == 404
