"""Development mail relay: accepts POST /send and keeps an inbox to read codes back."""
import logging
import sys
from collections import defaultdict, deque

from fastapi import FastAPI, Request, Response, status
from pydantic import BaseModel, EmailStr

logging.basicConfig(
    stream=sys.stdout, level=logging.INFO, format="%(asctime)sZ %(levelname)s %(message)s"
)

app = FastAPI(title="Mail relay mock", version="1.1.0")

_inbox: dict[str, deque] = defaultdict(lambda: deque(maxlen=20))
_seen_keys: set[str] = set()


class SendEmail(BaseModel):
    to: EmailStr
    subject: str
    body: str


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/send", status_code=status.HTTP_202_ACCEPTED)
async def send(payload: SendEmail, request: Request) -> Response:
    idem = request.headers.get("Idempotency-Key")
    if idem and idem in _seen_keys:
        logging.info("duplicate send ignored idem=%s", idem)
        return Response(status_code=status.HTTP_202_ACCEPTED)
    if idem:
        _seen_keys.add(idem)
    _inbox[payload.to.lower()].append(payload.model_dump())
    logging.info("send to=%s subject=%r idem=%s", payload.to, payload.subject, idem)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@app.get("/messages/{address}")
def messages(address: str) -> list[dict]:
    return list(_inbox.get(address.lower(), ()))
