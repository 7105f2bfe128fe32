"""Data access layer: one function per use case.

Each call validates its input locally, issues one or more reads/writes
against the document store and returns the stored documents.
"""

import json
import logging
import re
from datetime import date as date_type
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import session
from database import (count_documents, create_document, find_document,
                      get_document, get_documents, update_document)
from errors import AuthError, NoAvailabilityError, RemoteError, ValidationError
from schemas import (ALLERGY_OPTIONS, PREFERENCE_OPTIONS, Feedback, Order,
                     OrderLine, ProfileUpdate, Reservation, UserContext,
                     UserProfile)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_GUESTS = 10
BOOKING_WINDOW_DAYS = 30
RESERVATION_TIMES = [
    '17:00', '17:30', '18:00', '18:30', '19:00',
    '19:30', '20:00', '20:30', '21:00', '21:30',
]
RECENT_LIMIT = 5


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


# ---------------------- Identity & Session ----------------------

def create_account(email: str, password: str, name: str, confirm_password: Optional[str] = None) -> Dict[str, Any]:
    email = _normalize_email(email)
    name = (name or "").strip()
    if not email or not password or not name:
        raise ValidationError("Please fill in all required fields")
    if confirm_password is not None and password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    logger.info(f"[create_account] Creating account for {email}")
    account = session.create_identity(email, password, name)
    sess, token = session.create_session(email, password)

    profile_model = UserProfile(user_id=account["id"], email=email, username=name)
    try:
        profile = create_document("users", profile_model.model_dump())
    except RemoteError:
        # the identity stays; a later profile update re-creates the profile
        logger.error(f"[create_account] Profile creation failed for identity {account['id']}")
        raise
    logger.info(f"[create_account] Profile {profile['id']} created")
    return {"account": account, "session": sess, "token": token, "profile": profile}


def login(email: str, password: str) -> Dict[str, Any]:
    email = _normalize_email(email)
    if not email or not password:
        raise ValidationError("Please enter both email and password")
    logger.info(f"[login] Logging in {email}")
    try:
        sess, token = session.create_session(email, password)
    except RemoteError as e:
        raise AuthError("Login failed. Please try again later.", code=AuthError.AUTH_FAILED) from e
    return {"session": sess, "token": token}


def logout(token: Optional[str]) -> bool:
    logger.info("[logout] Logging out current session")
    return session.delete_session(token)


def _find_profile(user_id: str) -> Optional[Dict[str, Any]]:
    return find_document("users", {"user_id": user_id})


def get_current_user(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Identity merged with its profile, or None when there is no session."""
    identity = session.get_identity(token)
    if identity is None:
        return None
    profile = _find_profile(identity["id"])
    if profile is None:
        return identity
    merged = {**profile, **identity}
    merged["profile_id"] = profile["id"]
    return merged


def get_user_role(user_id: str) -> Optional[str]:
    try:
        profile = _find_profile(user_id)
    except RemoteError as e:
        logger.error(f"[get_user_role] Could not load role for {user_id}: {e.message}")
        return None
    return profile.get("role") if profile else None


# ---------------------- Menu ----------------------

def get_menu_items(
    category: Optional[str] = None,
    max_price: Optional[float] = None,
    tags: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {}
    if category and category != 'All':
        filt["category"] = category
    if max_price:
        filt["price"] = {"$lte": max_price}
    words = [w for tag in (tags or []) for w in tag.split()]
    if words:
        filt["tags"] = re.compile("|".join(re.escape(w) for w in words), re.IGNORECASE)
    logger.info(f"[get_menu_items] Filters: category={category} max_price={max_price} tags={list(tags or [])}")
    return get_documents("menu_items", filt)


def search_menu(items: List[Dict[str, Any]], query: Optional[str]) -> List[Dict[str, Any]]:
    if not query:
        return items
    q = query.lower()
    return [
        it for it in items
        if q in (it.get("name") or "").lower() or q in (it.get("description") or "").lower()
    ]


def get_menu_item(item_id: str) -> Dict[str, Any]:
    item = get_document("menu_items", item_id)
    if not item:
        raise ValidationError("Menu item not found")
    return item


def get_daily_menus(today: Optional[date_type] = None) -> List[Dict[str, Any]]:
    today = today or date_type.today()
    return get_documents("daily_menus", {"date": today.isoformat()})


# ---------------------- Orders ----------------------

def create_order(user_id: str, items: List[OrderLine], total: float) -> Dict[str, Any]:
    if not user_id:
        raise ValidationError("Please login to place an order")
    if not items:
        raise ValidationError("Your cart is empty")
    logger.info(f"[create_order] Creating order for {user_id}: {len(items)} lines, total {total}")
    model = Order(
        user_id=user_id,
        items=json.dumps([line.model_dump() for line in items]),
        total_price=total,
    )
    order = create_document("orders", model.model_dump())
    logger.info(f"[create_order] Order {order['id']} created")
    return order


def get_user_orders(user_id: str) -> List[Dict[str, Any]]:
    return get_documents("orders", {"user_id": user_id}, sort=[("created_at", -1), ("_id", -1)])


# ---------------------- Reservations ----------------------

def _validate_reservation(date: str, time: str, guests: int, today: date_type) -> None:
    if not date or not time:
        raise ValidationError("Please select a date and time")
    try:
        day = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Date must be in YYYY-MM-DD format")
    if day < today or day > today + timedelta(days=BOOKING_WINDOW_DAYS):
        raise ValidationError(f"Reservations can be made up to {BOOKING_WINDOW_DAYS} days ahead")
    if time not in RESERVATION_TIMES:
        raise ValidationError(f"Please choose one of: {', '.join(RESERVATION_TIMES)}")
    if not isinstance(guests, int) or guests < 1 or guests > MAX_GUESTS:
        raise ValidationError(f"Guest count must be between 1 and {MAX_GUESTS}")


def find_available_table(guests: int) -> Optional[Dict[str, Any]]:
    """First available table seating ``guests``, in store order."""
    tables = get_documents("tables", {"status": "available", "capacity": {"$gte": guests}}, limit=1)
    return tables[0] if tables else None


def create_reservation(
    user_id: str,
    date: str,
    time: str,
    guests: int,
    notes: str = "",
    today: Optional[date_type] = None,
) -> Dict[str, Any]:
    if not user_id:
        raise ValidationError("Please login to make a reservation")
    _validate_reservation(date, time, guests, today or date_type.today())

    # not atomic: two requests can both pick the same table
    table = find_available_table(guests)
    if table is None:
        raise NoAvailabilityError("No available table found for the requested number of guests.")

    logger.info(f"[create_reservation] {user_id} {date} {time} guests={guests} table={table['id']}")
    model = Reservation(
        user_id=user_id,
        date=date,
        time=time,
        guest_count=guests,
        special_requests=notes or "",
        table_id=table["id"],
    )
    reservation = create_document("reservations", model.model_dump())
    logger.info(f"[create_reservation] Reservation {reservation['id']} created")
    return reservation


def get_user_reservations(user_id: str) -> List[Dict[str, Any]]:
    return get_documents("reservations", {"user_id": user_id}, sort=[("date", -1), ("time", -1)])


def get_tables() -> List[Dict[str, Any]]:
    return get_documents("tables", sort=[("table_number", 1)])


# ---------------------- Feedback ----------------------

def submit_feedback(user_id: str, order_id: str, rating: int, comment: str = "") -> Dict[str, Any]:
    if not user_id or not order_id:
        raise ValidationError("An order is required to leave feedback")
    if not isinstance(rating, int) or rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")
    logger.info(f"[submit_feedback] {user_id} order={order_id} rating={rating}")
    model = Feedback(user_id=user_id, order_id=order_id, rating=rating, comment=comment or "")
    return create_document("feedback", model.model_dump())


# ---------------------- Profile ----------------------

def _clean_options(values: List[str], allowed: List[str], label: str) -> List[str]:
    unknown = [v for v in values if v not in allowed]
    if unknown:
        raise ValidationError(f"Unknown {label}: {', '.join(unknown)}")
    return list(dict.fromkeys(values))


def update_user_profile(user_id: str, update: ProfileUpdate) -> Dict[str, Any]:
    if not user_id:
        raise ValidationError("Please login to update your profile")
    logger.info(f"[update_user_profile] Updating profile for {user_id}: {update.model_dump(exclude_none=True)}")

    # validate everything before the first write
    name = None
    if update.name is not None:
        name = update.name.strip()
        if not name:
            raise ValidationError("Name cannot be empty")
    preferences = allergies = None
    if update.preferences is not None:
        preferences = _clean_options(update.preferences, PREFERENCE_OPTIONS, "preferences")
    if update.allergies is not None:
        allergies = _clean_options(update.allergies, ALLERGY_OPTIONS, "allergies")

    if name is not None:
        session.rename_identity(user_id, name)

    existing = _find_profile(user_id)
    context = UserContext.loads(existing.get("user_context")) if existing else UserContext()
    if preferences is not None:
        context.preferences = preferences
    if allergies is not None:
        context.allergies = allergies

    patch: Dict[str, Any] = {"user_context": context.dumps()}
    if update.phone is not None:
        patch["phone"] = update.phone.strip()

    if existing:
        result = update_document("users", existing["id"], patch)
        logger.info(f"[update_user_profile] Updated profile {result['id']}")
        return result

    logger.warning(f"[update_user_profile] Profile not found for {user_id}, creating one")
    account = session.get_account(user_id) or {}
    model = UserProfile(
        user_id=user_id,
        email=account.get("email") or "",
        username=account.get("name") or "",
        phone=patch.get("phone"),
        user_context=patch["user_context"],
    )
    profile = create_document("users", model.model_dump())
    logger.info(f"[update_user_profile] Created profile {profile['id']}")
    return profile


# ---------------------- Dashboard ----------------------

def dashboard_overview() -> Dict[str, Any]:
    return {
        "total_orders": count_documents("orders"),
        "pending_orders": count_documents("orders", {"status": "pending"}),
        "total_reservations": count_documents("reservations"),
        "total_customers": count_documents("users", {"role": "customer"}),
        "recent_orders": get_documents("orders", sort=[("created_at", -1), ("_id", -1)], limit=RECENT_LIMIT),
        "recent_reservations": get_documents(
            "reservations", sort=[("created_at", -1), ("_id", -1)], limit=RECENT_LIMIT
        ),
    }
