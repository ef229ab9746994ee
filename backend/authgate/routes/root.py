"""
AuthGate — Root Route
======================

GET / answers with a fixed plain-text line so a fresh deployment can be
checked with nothing but curl.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Root"])

ROOT_MESSAGE = "Express boilerplate is successful"


@router.get("/", response_class=PlainTextResponse, summary="Boilerplate liveness text")
async def root() -> str:
    return ROOT_MESSAGE
