from contextlib import contextmanager
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

import services
from cart import CartStore
from config import FRONTEND_URL, PORT, TOKEN_EXPIRE_MIN, init_log
from errors import AppError, AuthError, RemoteError, ValidationError
from schemas import (ALLERGY_OPTIONS, MENU_CATEGORIES, MENU_TAGS,
                     PREFERENCE_OPTIONS, CartItemBody, CartQuantityBody,
                     FeedbackBody, LoginBody, ProfileUpdate, ReservationBody,
                     SignupBody, UserContext)

logger = init_log(__name__)

SESSION_COOKIE = "session"

app = FastAPI(title="Restaurant Portal API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

carts = CartStore(max_idle=TOKEN_EXPIRE_MIN * 60)


# ---------------------- Errors ----------------------
class LoginRequired(Exception):
    def __init__(self, path: str):
        super().__init__(path)
        self.path = path


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=f"/login?next={quote(exc.path)}", status_code=303)


@contextmanager
def user_message(message: str):
    """Swap a store failure's technical message for one fit for a form banner."""
    try:
        yield
    except RemoteError as e:
        logger.error(f"{message} ({e.message})")
        raise RemoteError(message, code=e.code) from e


# ---------------------- Request context ----------------------
class RequestContext(BaseModel):
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user["id"] if self.user else None

    @property
    def session_id(self) -> Optional[str]:
        return self.user.get("session_id") if self.user else None


bearer_scheme = HTTPBearer(auto_error=False)


def session_token(request: Request, creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[str]:
    if creds:
        return creds.credentials
    return request.cookies.get(SESSION_COOKIE)


def get_context(token: Optional[str] = Depends(session_token)) -> RequestContext:
    user = services.get_current_user(token)
    if user is None:
        return RequestContext()
    return RequestContext(token=token, user=user, role=services.get_user_role(user["id"]))


def require_session(request: Request, ctx: RequestContext = Depends(get_context)) -> RequestContext:
    if not ctx.is_authenticated:
        raise LoginRequired(request.url.path)
    return ctx


def require_admin(ctx: RequestContext = Depends(require_session)) -> RequestContext:
    if ctx.role != 'admin':
        raise HTTPException(status_code=403, detail="Access denied")
    return ctx


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(SESSION_COOKIE, token, max_age=TOKEN_EXPIRE_MIN * 60, httponly=True, samesite="lax")


# ---------------------- Home & Menu ----------------------
@app.get("/")
def home(ctx: RequestContext = Depends(get_context)):
    return {
        "message": "Welcome to our restaurant",
        "daily_menus": services.get_daily_menus(),
        "user": ctx.user,
    }


@app.get("/menu")
def menu(
    category: Optional[str] = None,
    max_price: Optional[float] = None,
    tags: List[str] = Query(default=[]),
    q: Optional[str] = None,
):
    with user_message("Failed to load menu items. Please try again later."):
        items = services.get_menu_items(category=category, max_price=max_price, tags=tags)
    return {
        "items": services.search_menu(items, q),
        "categories": ['All'] + MENU_CATEGORIES,
        "tags": MENU_TAGS,
    }


@app.get("/tables")
def tables():
    return {"tables": services.get_tables()}


# ---------------------- Auth ----------------------
@app.post("/signup")
def signup(body: SignupBody, response: Response):
    with user_message("Account creation failed. Please try again later."):
        result = services.create_account(body.email, body.password, body.name, body.confirm_password)
    set_session_cookie(response, result["token"])
    return {"token": result["token"], "user": services.get_current_user(result["token"])}


@app.post("/login")
def login(body: LoginBody, response: Response):
    result = services.login(body.email, body.password)
    user = services.get_current_user(result["token"])
    if user is None:
        raise AuthError("Failed to get user data after login")
    set_session_cookie(response, result["token"])
    return {"token": result["token"], "user": user, "role": services.get_user_role(user["id"])}


@app.post("/logout")
def logout(response: Response, ctx: RequestContext = Depends(get_context)):
    if ctx.is_authenticated:
        carts.discard(ctx.session_id)
        services.logout(ctx.token)
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@app.get("/me")
def me(ctx: RequestContext = Depends(get_context)):
    return {"user": ctx.user, "role": ctx.role, "is_authenticated": ctx.is_authenticated}


# ---------------------- Reservations ----------------------
@app.get("/reservation")
def list_reservations(ctx: RequestContext = Depends(require_session)):
    return {
        "reservations": services.get_user_reservations(ctx.user_id),
        "times": services.RESERVATION_TIMES,
        "max_guests": services.MAX_GUESTS,
        "booking_window_days": services.BOOKING_WINDOW_DAYS,
    }


@app.post("/reservation", status_code=201)
def make_reservation(body: ReservationBody, ctx: RequestContext = Depends(require_session)):
    with user_message("Failed to create reservation. Please try again."):
        reservation = services.create_reservation(
            ctx.user_id, body.date, body.time, body.guest_count, body.special_requests
        )
    return {"reservation": reservation}


# ---------------------- Orders & Cart ----------------------
@app.get("/order")
def view_order(ctx: RequestContext = Depends(require_session)):
    return {
        "cart": carts.get(ctx.session_id).summary(),
        "orders": services.get_user_orders(ctx.user_id),
    }


@app.post("/order/items")
def add_to_cart(body: CartItemBody, ctx: RequestContext = Depends(require_session)):
    item = services.get_menu_item(body.item_id)
    if not item.get("available", True):
        raise ValidationError(f"{item['name']} is currently unavailable")
    cart = carts.get(ctx.session_id)
    cart.add(item)
    return {"cart": cart.summary()}


@app.patch("/order/items/{item_id}")
def update_cart_item(item_id: str, body: CartQuantityBody, ctx: RequestContext = Depends(require_session)):
    cart = carts.get(ctx.session_id)
    cart.update_quantity(item_id, body.quantity)
    return {"cart": cart.summary()}


@app.post("/order/items/{item_id}/increment")
def increment_cart_item(item_id: str, ctx: RequestContext = Depends(require_session)):
    cart = carts.get(ctx.session_id)
    cart.increment(item_id)
    return {"cart": cart.summary()}


@app.post("/order/items/{item_id}/decrement")
def decrement_cart_item(item_id: str, ctx: RequestContext = Depends(require_session)):
    cart = carts.get(ctx.session_id)
    cart.decrement(item_id)
    return {"cart": cart.summary()}


@app.delete("/order/items/{item_id}")
def remove_cart_item(item_id: str, ctx: RequestContext = Depends(require_session)):
    cart = carts.get(ctx.session_id)
    cart.remove(item_id)
    return {"cart": cart.summary()}


@app.post("/order/checkout", status_code=201)
def checkout(ctx: RequestContext = Depends(require_session)):
    cart = carts.get(ctx.session_id)
    if not len(cart):
        raise ValidationError("Your cart is empty")
    with user_message("Failed to place your order. Please try again."):
        order = services.create_order(ctx.user_id, cart.order_lines(), float(cart.subtotal))
    cart.clear()
    return {"order": order}


@app.post("/feedback", status_code=201)
def feedback(body: FeedbackBody, ctx: RequestContext = Depends(require_session)):
    return {"feedback": services.submit_feedback(ctx.user_id, body.order_id, body.rating, body.comment)}


# ---------------------- Profile ----------------------
@app.get("/profile")
def view_profile(ctx: RequestContext = Depends(require_session)):
    return {
        "user": ctx.user,
        "context": UserContext.loads(ctx.user.get("user_context")).model_dump(),
        "preference_options": PREFERENCE_OPTIONS,
        "allergy_options": ALLERGY_OPTIONS,
    }


@app.put("/profile")
def update_profile(body: ProfileUpdate, ctx: RequestContext = Depends(require_session)):
    with user_message("Failed to update profile. Please try again."):
        profile = services.update_user_profile(ctx.user_id, body)
    return {"profile": profile, "context": UserContext.loads(profile.get("user_context")).model_dump()}


# ---------------------- Admin ----------------------
@app.get("/dashboard")
def dashboard(ctx: RequestContext = Depends(require_admin)):
    return services.dashboard_overview()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
