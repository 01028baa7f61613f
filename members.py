"""Member registration and the admin member list."""

import csv
import io
import logging
import re
import secrets
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, parse_object_id
from errors import NotFound, ValidationFailed
from schemas import Member, RegisterRequest

logger = logging.getLogger(__name__)

COLLECTION = "member"

FREEMAIL_DOMAINS = frozenset(
    [
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "aol.com",
        "web.de",
        "gmx.de",
        "gmx.net",
        "t-online.de",
        "freenet.de",
        "mail.de",
        "posteo.de",
        "protonmail.com",
        "proton.me",
        "icloud.com",
        "me.com",
        "live.com",
        "live.de",
        "msn.com",
    ]
)

FREEMAIL_ERROR = (
    "Bitte verwenden Sie Ihre Firmen-E-Mail-Adresse "
    "(keine Freemail-Adressen wie Gmail, GMX, etc.)."
)
DUPLICATE_ERROR = "Diese E-Mail-Adresse ist bereits registriert."
REGISTERED_MESSAGE = "Erfolgreich registriert! Sie werden über das nächste Treffen informiert."

CSV_HEADER = ["Name", "E-Mail", "Firma", "Branche", "Registriert"]


def is_freemail(email: str) -> bool:
    _, _, domain = email.rpartition("@")
    return domain.strip().lower() in FREEMAIL_DOMAINS


def register(db: Database, payload: RegisterRequest) -> Member:
    email = payload.email.strip().lower()
    if is_freemail(email):
        raise ValidationFailed(FREEMAIL_ERROR)
    if db[COLLECTION].find_one({"email": email}):
        raise ValidationFailed(DUPLICATE_ERROR)

    member = Member(
        email=email,
        company=payload.company,
        name=payload.name,
        industry=payload.industry,
        is_verified=False,
        verification_token=secrets.token_hex(32),
        created_at=datetime.utcnow(),
    )
    doc = member.model_dump(exclude={"id"})
    # excluded from dumps, stored explicitly
    doc["verification_token"] = member.verification_token
    try:
        member.id = create_document(db, COLLECTION, doc)
    except DuplicateKeyError:
        raise ValidationFailed(DUPLICATE_ERROR)
    # TODO: send the verification mail once an SMTP account is set up
    logger.info(f"Registered member {member.id}")
    return member


def list_members(db: Database, query: Optional[str] = None) -> List[Member]:
    filter_dict = {}
    if query and query.strip():
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        filter_dict = {"$or": [{"name": pattern}, {"email": pattern}, {"company": pattern}]}
    docs = get_documents(db, COLLECTION, filter_dict, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])
    return [Member(**d) for d in docs]


def delete_member(db: Database, member_id: str) -> None:
    oid = parse_object_id(member_id)
    res = db[COLLECTION].delete_one({"_id": oid}) if oid else None
    if res is None or res.deleted_count == 0:
        raise NotFound("Mitglied nicht gefunden.")
    logger.info(f"Deleted member {member_id}")


def count_members(db: Database) -> int:
    return db[COLLECTION].count_documents({})


def export_csv(members: List[Member]) -> str:
    """Semicolon separated member list, the format Excel opens in German locales."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for m in members:
        writer.writerow([m.name, m.email, m.company, m.industry or "", m.created_at.strftime("%d.%m.%Y")])
    return buf.getvalue()


def export_filename(today: Optional[datetime] = None) -> str:
    today = today or datetime.utcnow()
    return f"mitglieder_{today.strftime('%Y-%m-%d')}.csv"
