# Overview: Store lookups and the officer -> stores mapping used by balance rollups.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Store, User
from ..permissions import ROLE_OFFICER, Actor, require_store_access


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found", details={"store_id": store_id})
    return store


def get_accessible_store(store_id: int, actor: Actor) -> Store:
    store = get_store(store_id)
    require_store_access(actor, store)
    return store


def get_officer_store_ids(officer_id: int) -> list[int]:
    rows = (
        db.session.query(Store.id)
        .filter(Store.officer_id == officer_id)
        .order_by(Store.id)
        .all()
    )
    return [row.id for row in rows]


def visible_store_ids(actor: Actor) -> list[int]:
    """Officers see their own stores; admins and stock managers see all."""
    if actor.role == ROLE_OFFICER:
        return get_officer_store_ids(actor.id)
    return [row.id for row in db.session.query(Store.id).order_by(Store.id).all()]


def create_store(
    *,
    store_code: str,
    name: str,
    officer_id: int,
    created_by_user_id: int | None = None,
    proprietor_name: str | None = None,
    address: str | None = None,
    contact_number: str | None = None,
    area: str | None = None,
) -> Store:
    """Store bootstrap used by the CLI."""
    officer = db.session.get(User, officer_id)
    if officer is None or officer.role != ROLE_OFFICER:
        raise ValidationError(f"User {officer_id} is not an officer")
    if contact_number is not None and not (contact_number.isdigit() and 10 <= len(contact_number) <= 15):
        raise ValidationError("contact_number must be 10-15 digits")

    store = Store(
        store_code=store_code,
        name=name,
        officer_id=officer_id,
        created_by_user_id=created_by_user_id,
        proprietor_name=proprietor_name,
        address=address,
        contact_number=contact_number,
        area=area,
    )
    db.session.add(store)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"store_code {store_code!r} already exists")
    return store
