"""Test doubles and seed helpers shared by the API tests."""
from datetime import datetime, timezone

from auth import IdentityVerifier, InvalidCredential
from database import APPLICATIONS, LOANS, USERS
from payments import CheckoutSession, PaymentError, PaymentGateway, SessionStatus


class FakeVerifier(IdentityVerifier):
    """Treats the bearer token as the caller's email."""

    def __init__(self):
        self.calls = []

    def verify(self, token):
        self.calls.append(token)
        if "@" not in token:
            raise InvalidCredential("invalid token")
        return token


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.created = []
        self.sessions = {}

    def create_checkout_session(self, **kwargs):
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append(kwargs)
        self.sessions[session_id] = SessionStatus(
            id=session_id,
            payment_status="unpaid",
            customer_email=kwargs["customer_email"],
            payment_intent=f"pi_{session_id}",
            amount_total=kwargs["amount_cents"],
            metadata=kwargs["metadata"],
        )
        return CheckoutSession(id=session_id, url=f"https://checkout.test/{session_id}")

    def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise PaymentError(f"No such checkout.session: {session_id}")
        return self.sessions[session_id]

    def mark_paid(self, session_id):
        self.sessions[session_id] = self.sessions[session_id].model_copy(update={"payment_status": "paid"})


def auth_header(email):
    return {"Authorization": f"Bearer {email}"}


def _now():
    return datetime.now(timezone.utc).isoformat()


def seed_user(db, email, role="borrower", status="active", name=None):
    doc = {
        "email": email,
        "name": name or email.split("@")[0].title(),
        "role": role,
        "status": status,
        "createdAt": _now(),
        "lastLoggedIn": _now(),
    }
    doc["_id"] = db[USERS].insert_one(doc).inserted_id
    return doc


def seed_loan(db, **overrides):
    doc = {
        "loanTitle": "Personal Loan",
        "description": "Unsecured personal loan",
        "category": "personal",
        "interestRate": 12.5,
        "maxLoanLimit": 5000.0,
        "emiPlans": ["6 months", "12 months"],
        "requiredDocuments": ["NID"],
        "image": None,
        "showOnHome": False,
        "createdBy": "manager@test.com",
        "createdAt": _now(),
        "updatedAt": _now(),
    }
    doc.update(overrides)
    doc["_id"] = db[LOANS].insert_one(doc).inserted_id
    return doc


def seed_application(db, **overrides):
    doc = {
        "loanId": "L1",
        "loanTitle": "Personal Loan",
        "userEmail": "borrower@test.com",
        "monthlyIncome": 2500,
        "status": "pending",
        "applicationFeeStatus": "unpaid",
        "appliedAt": _now(),
        "updatedAt": _now(),
    }
    doc.update(overrides)
    doc["_id"] = db[APPLICATIONS].insert_one(doc).inserted_id
    return doc
