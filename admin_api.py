import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING
from pymongo.database import Database

from applications_api import decide_application
from auth import Role, require_role
from database import APPLICATIONS, LOANS, USERS, find_by_id, get_db, now_iso, parse_object_id, to_str_id
from lifecycle import ApplicationStatus, action_for_status
from loans_api import delete_loan_by_id, update_loan_fields
from queries import application_filter, loan_filter, paginate, user_filter
from schemas import (
    ApplicationStatusRequest,
    LoanProduct,
    RoleUpdateRequest,
    ShowOnHomeRequest,
    SuspendRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_role(Role.ADMIN)


# Catalog

@router.get("/loans")
def admin_list_loans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    loans, total = paginate(db[LOANS], loan_filter(search, category), page, limit)
    return {"loans": loans, "total": total}


@router.get("/loans/{loan_id}")
def admin_get_loan(loan_id: str, admin: dict = Depends(admin_only), db: Database = Depends(get_db)):
    return to_str_id(find_by_id(db, LOANS, loan_id, "Loan"))


@router.put("/loans/{loan_id}")
def admin_edit_loan(
    loan_id: str,
    payload: LoanProduct,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    result = update_loan_fields(db, loan_id, payload.model_dump())
    logger.info("Admin %s edited loan %s", admin["email"], loan_id)
    return result


@router.delete("/loans/{loan_id}")
def admin_delete_loan(loan_id: str, admin: dict = Depends(admin_only), db: Database = Depends(get_db)):
    result = delete_loan_by_id(db, loan_id)
    logger.info("Admin %s deleted loan %s", admin["email"], loan_id)
    return result


@router.patch("/loans/{loan_id}/show-on-home")
def admin_toggle_home(
    loan_id: str,
    payload: ShowOnHomeRequest,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    result = update_loan_fields(db, loan_id, {"showOnHome": payload.showOnHome})
    logger.info("Admin %s set showOnHome=%s on loan %s", admin["email"], payload.showOnHome, loan_id)
    return result


# Users

@router.get("/users")
def admin_list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    cursor = db[USERS].find(user_filter(admin["email"], search, role, status)).sort("_id", DESCENDING)
    return [to_str_id(d) for d in cursor]


@router.get("/users-management")
def admin_manage_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    users, total = paginate(db[USERS], user_filter(admin["email"], search, role, status), page, limit)
    return {"users": users, "total": total}


def _update_user(db: Database, user_id: str, update: dict, admin: dict, action: str):
    oid = parse_object_id(user_id, "User")
    if oid == admin["_id"]:
        raise HTTPException(status_code=400, detail=f"You cannot {action} your own account")
    update.setdefault("$set", {})["updatedAt"] = now_iso()
    result = db[USERS].update_one({"_id": oid}, update)
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Admin %s: %s user %s", admin["email"], action, user_id)
    return {"modified": result.modified_count}


@router.patch("/users/{user_id}/role")
def admin_set_role(
    user_id: str,
    payload: RoleUpdateRequest,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    return _update_user(db, user_id, {"$set": {"role": payload.role.value}}, admin, "change the role of")


@router.patch("/users/{user_id}/suspend")
def admin_suspend_user(
    user_id: str,
    payload: SuspendRequest,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    update = {"$set": {
        "status": "suspended",
        "suspendReason": payload.reason,
        "suspendFeedback": payload.feedback,
        "suspendedAt": now_iso(),
    }}
    return _update_user(db, user_id, update, admin, "suspend")


@router.patch("/users/{user_id}/approve")
def admin_approve_user(user_id: str, admin: dict = Depends(admin_only), db: Database = Depends(get_db)):
    update = {
        "$set": {"status": "approved"},
        "$unset": {"suspendReason": "", "suspendFeedback": "", "suspendedAt": ""},
    }
    return _update_user(db, user_id, update, admin, "approve")


# Applications

@router.get("/loan-applications")
def admin_list_applications(
    status: Optional[ApplicationStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    query = application_filter(status.value if status else None, search)
    applications, total = paginate(db[APPLICATIONS], query, page, limit)
    return {"applications": applications, "total": total}


@router.patch("/loan-applications/{application_id}/status")
def admin_set_application_status(
    application_id: str,
    payload: ApplicationStatusRequest,
    admin: dict = Depends(admin_only),
    db: Database = Depends(get_db),
):
    action = action_for_status(payload.status)
    return decide_application(db, application_id, action, admin["email"], payload.reason)
