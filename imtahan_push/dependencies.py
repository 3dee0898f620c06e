from fastapi import Request

from .config import Settings


def get_firestore_db(request: Request):
    return request.app.state.firestore_db


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
