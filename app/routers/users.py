# app/routers/users.py
"""Authorized users: enrollment, listing and soft deactivation."""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.schemas.authorized_user import AuthorizedUserOut
from app.services.user_service import enroll_user, list_active_users, deactivate_user

router = APIRouter()


@router.get("/users", response_model=list[AuthorizedUserOut], summary="Active authorized users")
async def get_users(db: Session = Depends(get_db)):
    return await list_active_users(db)


@router.post("/users", response_model=AuthorizedUserOut, status_code=201, summary="Enroll a user with a face image")
async def post_user(name: str = Form(...), image: UploadFile = File(...), db: Session = Depends(get_db)):
    data = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    return await enroll_user(db, name, image.content_type, data)


@router.post("/users/{user_id}/deactivate", response_model=AuthorizedUserOut, summary="Revoke access")
async def post_deactivate(user_id: int, db: Session = Depends(get_db)):
    return await deactivate_user(db, user_id)
