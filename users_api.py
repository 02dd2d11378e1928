import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import USERS, get_db, now_iso
from schemas import SaveUserRequest, User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.post("/users")
def save_user(payload: SaveUserRequest, db: Database = Depends(get_db)):
    """Create the user on first sign-in, otherwise refresh the login time."""
    timestamp = now_iso()
    user = User(
        email=payload.email,
        name=payload.name,
        photoURL=payload.photoURL,
        role=payload.role,
        status="active",
        createdAt=timestamp,
    )
    result = db[USERS].update_one(
        {"email": payload.email},
        {
            "$set": {"lastLoggedIn": timestamp},
            "$setOnInsert": user.model_dump(mode="json", exclude_none=True, exclude={"email"}),
        },
        upsert=True,
    )
    if result.upserted_id is None:
        return {"created": False}
    logger.info("Created %s account for %s", payload.role, payload.email)
    return {"created": True, "id": str(result.upserted_id)}


@router.get("/users/role/{email}")
def get_user_role(email: str, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"email": email}, {"role": 1})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"role": user.get("role")}
