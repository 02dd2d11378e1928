"""
Loan application routes: borrower submission, fee payment, cancellation and
the manager review queue.

Every status change goes through ``lifecycle.next_status`` and is written
with the expected current status in the filter, so a concurrent decision or
cancellation is reported instead of overwritten.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo import DESCENDING
from pymongo.database import Database

import config
from auth import Role, check_role, get_token_email, require_role
from database import APPLICATIONS, find_by_id, get_db, now_iso, to_str_id
from lifecycle import ApplicationAction, ApplicationStatus, FeeStatus, decision_fields, next_status
from payments import PaymentGateway
from queries import application_filter
from schemas import (
    ApplicationSubmitRequest,
    CheckoutRequest,
    LoanApplication,
    PaymentInfo,
    RejectRequest,
    VerifyPaymentRequest,
)

logger = logging.getLogger(__name__)

# Only the lifecycle and payment flows may write these
SYSTEM_FIELDS = {
    "_id",
    "status",
    "applicationFeeStatus",
    "paymentInfo",
    "rejectionReason",
    "handledBy",
    "appliedAt",
    "approvedAt",
    "rejectedAt",
    "updatedAt",
}

router = APIRouter(tags=["applications"])


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def decide_application(
    db: Database,
    application_id: str,
    action: ApplicationAction,
    handled_by: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Approve or reject a pending application on behalf of ``handled_by``."""
    doc = find_by_id(db, APPLICATIONS, application_id, "Application")
    current = doc.get("status")
    next_status(current, action)
    fields = decision_fields(action, handled_by, now_iso(), reason)
    result = db[APPLICATIONS].update_one({"_id": doc["_id"], "status": current}, {"$set": fields})
    if result.matched_count == 0:
        raise HTTPException(status_code=400, detail="Application status changed, reload and try again")
    logger.info("%s set application %s to %s", handled_by, application_id, fields["status"])
    return {"id": application_id, "status": fields["status"], "modified": result.modified_count}


def list_applications(db: Database, query: Dict[str, Any]):
    cursor = db[APPLICATIONS].find(query).sort("_id", DESCENDING)
    return [to_str_id(d) for d in cursor]


# Borrower routes

@router.post("/loan-applications", status_code=201)
def submit_application(
    payload: ApplicationSubmitRequest,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
):
    applicant = payload.userEmail or email
    if applicant != email:
        raise HTTPException(status_code=403, detail="You can only apply on your own behalf")

    form = {k: v for k, v in payload.model_dump().items() if k not in SYSTEM_FIELDS and k != "userEmail"}
    timestamp = now_iso()
    application = LoanApplication(
        **form,
        userEmail=applicant,
        status=ApplicationStatus.PENDING,
        applicationFeeStatus=FeeStatus.UNPAID,
        appliedAt=timestamp,
        updatedAt=timestamp,
    )
    result = db[APPLICATIONS].insert_one(application.model_dump(mode="json"))
    logger.info("%s applied for loan %s", applicant, payload.loanId)
    return {"insertedId": str(result.inserted_id)}


@router.get("/my-loans")
def my_applications(
    email: Optional[str] = None,
    token_email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
):
    owner = email or token_email
    if owner != token_email:
        raise HTTPException(status_code=403, detail="You can only view your own applications")
    return list_applications(db, {"userEmail": owner})


@router.get("/loan-application/{application_id}")
def get_application(
    application_id: str,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
):
    doc = find_by_id(db, APPLICATIONS, application_id, "Application")
    if doc.get("userEmail") != email:
        check_role(db, email, Role.MANAGER, Role.ADMIN)
    return to_str_id(doc)


@router.patch("/loan-applications/cancel/{application_id}")
def cancel_application(
    application_id: str,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
):
    doc = find_by_id(db, APPLICATIONS, application_id, "Application")
    if doc.get("userEmail") != email:
        raise HTTPException(status_code=403, detail="You can only cancel your own applications")
    current = doc.get("status")
    next_status(current, ApplicationAction.CANCEL)
    result = db[APPLICATIONS].delete_one({"_id": doc["_id"], "status": current})
    if result.deleted_count == 0:
        raise HTTPException(status_code=400, detail="Application status changed, reload and try again")
    logger.info("%s cancelled application %s", email, application_id)
    return {"deleted": True}


# Application fee

@router.post("/create-checkout-session")
def create_checkout_session(
    payload: CheckoutRequest,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    if payload.userEmail != email:
        raise HTTPException(status_code=403, detail="You can only pay for your own application")

    metadata = {"loanId": payload.loanId, "userEmail": payload.userEmail}
    if payload.applicationId:
        doc = find_by_id(db, APPLICATIONS, payload.applicationId, "Application")
        if doc.get("userEmail") != email:
            raise HTTPException(status_code=403, detail="You can only pay for your own application")
        if doc.get("applicationFeeStatus") == FeeStatus.PAID.value:
            raise HTTPException(status_code=400, detail="Application fee already paid")
        metadata["applicationId"] = payload.applicationId

    title = payload.loanTitle or "Loan application"
    session = gateway.create_checkout_session(
        amount_cents=config.APPLICATION_FEE_CENTS,
        currency=config.FEE_CURRENCY,
        product_name=f"Application fee: {title}",
        customer_email=payload.userEmail,
        metadata=metadata,
        success_url=f"{config.CLIENT_URL}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{config.CLIENT_URL}/dashboard/my-loans",
    )
    logger.info("Checkout session %s opened for %s", session.id, payload.userEmail)
    return {"url": session.url}


@router.post("/loan-applications/verify-payment")
def verify_payment(
    payload: VerifyPaymentRequest,
    email: str = Depends(get_token_email),
    db: Database = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    session = gateway.retrieve_session(payload.sessionId)
    if session.payment_status != "paid":
        raise HTTPException(status_code=400, detail="Payment not completed")

    meta = session.metadata
    if meta.get("applicationId"):
        doc = find_by_id(db, APPLICATIONS, meta["applicationId"], "Application")
    else:
        query = {"loanId": meta.get("loanId"), "userEmail": meta.get("userEmail")}
        doc = next(iter(db[APPLICATIONS].find(query).sort("_id", DESCENDING).limit(1)), None)
        if not doc:
            raise HTTPException(status_code=404, detail="Application not found")

    previous = doc.get("paymentInfo") or {}
    paid_at = previous.get("paidAt") if previous.get("sessionId") == session.id else None
    info = PaymentInfo(
        email=session.customer_email or meta.get("userEmail"),
        transactionId=session.payment_intent,
        sessionId=session.id,
        amount=session.amount_total / 100 if session.amount_total is not None else None,
        paidAt=paid_at or now_iso(),
    )
    db[APPLICATIONS].update_one(
        {"_id": doc["_id"]},
        {"$set": {
            "applicationFeeStatus": FeeStatus.PAID.value,
            "paymentInfo": info.model_dump(),
            "updatedAt": now_iso(),
        }},
    )
    logger.info("Application fee paid for %s (session %s, confirmed by %s)", doc["_id"], session.id, email)
    return {"success": True, "applicationId": str(doc["_id"]), "transactionId": info.transactionId}


# Manager review queue

@router.get("/manager/loan-applications")
def manager_applications(
    status: Optional[ApplicationStatus] = None,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    return list_applications(db, application_filter(status.value if status else None))


@router.patch("/loan-applications/manager/{application_id}/approve")
def manager_approve(
    application_id: str,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    return decide_application(db, application_id, ApplicationAction.APPROVE, manager["email"])


@router.patch("/loan-applications/manager/{application_id}/reject")
def manager_reject(
    application_id: str,
    payload: Optional[RejectRequest] = None,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    reason = payload.reason if payload else None
    return decide_application(db, application_id, ApplicationAction.REJECT, manager["email"], reason)
