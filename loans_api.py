import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from auth import Role, require_role
from database import LOANS, create_document, find_by_id, get_db, get_documents, now_iso, parse_object_id, to_str_id
from queries import loan_filter, paginate
from schemas import LoanProduct, LoanProductUpdate

logger = logging.getLogger(__name__)

HOME_LIMIT = 6

router = APIRouter(tags=["loans"])


# Public catalog

@router.get("/loans/home")
def list_home_loans(db: Database = Depends(get_db)):
    return get_documents(db, LOANS, {"showOnHome": True}, HOME_LIMIT)


@router.get("/all-loans")
def list_all_loans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query = loan_filter(search, category)
    # only products an admin has published
    query["showOnHome"] = True
    loans, total = paginate(db[LOANS], query, page, limit)
    return {"loans": loans, "total": total}


@router.get("/loan/{loan_id}")
def get_loan(loan_id: str, db: Database = Depends(get_db)):
    return to_str_id(find_by_id(db, LOANS, loan_id, "Loan"))


# Manager catalog management

def update_loan_fields(db: Database, loan_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Apply ``fields`` to one product; ``_id`` is never written."""
    oid = parse_object_id(loan_id, "Loan")
    fields = {k: v for k, v in fields.items() if k != "_id"}
    fields["updatedAt"] = now_iso()
    result = db[LOANS].update_one({"_id": oid}, {"$set": fields})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Loan not found")
    return {"modified": result.modified_count}


def delete_loan_by_id(db: Database, loan_id: str) -> Dict[str, Any]:
    result = db[LOANS].delete_one({"_id": parse_object_id(loan_id, "Loan")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Loan not found")
    return {"deleted": result.deleted_count}


@router.post("/loans", status_code=201)
def create_loan(
    payload: LoanProduct,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    timestamp = now_iso()
    doc = payload.model_dump()
    doc.update(showOnHome=False, createdBy=manager["email"], createdAt=timestamp, updatedAt=timestamp)
    inserted_id = create_document(db, LOANS, doc)
    logger.info("Manager %s created loan %s", manager["email"], inserted_id)
    return {"id": inserted_id}


@router.get("/loans")
def list_manager_loans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    loans, total = paginate(db[LOANS], loan_filter(search, category), page, limit)
    return {"loans": loans, "total": total}


@router.patch("/loans/{loan_id}")
def update_loan(
    loan_id: str,
    payload: LoanProductUpdate,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    result = update_loan_fields(db, loan_id, fields)
    logger.info("Manager %s updated loan %s", manager["email"], loan_id)
    return result


@router.delete("/loans/{loan_id}")
def delete_loan(
    loan_id: str,
    manager: dict = Depends(require_role(Role.MANAGER)),
    db: Database = Depends(get_db),
):
    result = delete_loan_by_id(db, loan_id)
    logger.info("Manager %s deleted loan %s", manager["email"], loan_id)
    return result
