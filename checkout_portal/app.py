import logging
from functools import wraps

from flask import Flask, jsonify, request, abort, session, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .api_client import ApiClient, ApiError
from .classifier import annotate, utc_now
from .config import Config
from .models import (
    CheckoutRequest,
    RequestStatus,
    Resource,
    Role,
    User,
    can_transition,
)
from .notifications import NotificationFeed, notification_view
from .ordering import FILTER_KEYS, filter_and_sort, filter_counts
from .policies import (
    PolicyStore,
    default_policy_table,
    describe_max_quantity,
    validate_policy_table,
)
from .session import SessionContext, SessionError
from .validation import build_request_payload, validate_denial_reason, validate_request
from . import views

# ---------------------------------------------------------
# Logging (so you can see backend calls in the terminal)
# ---------------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Flask setup
# ---------------------------------------------------------

app = Flask(__name__)
app.config.from_object(Config)
CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def build_client(token=None):
    return ApiClient(
        app.config["API_BASE_URL"],
        token=token,
        timeout=app.config["API_TIMEOUT"],
    )


def current_session() -> SessionContext:
    ctx = g.get("portal_session")
    if ctx is not None:
        return ctx

    token = session.get("token")
    if not token:
        abort(401, description="Please login first.")
    try:
        ctx = SessionContext.from_token(token)
    except SessionError as e:
        session.pop("token", None)
        abort(401, description=str(e))

    g.portal_session = ctx
    return ctx


def require_login(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        current_session()
        return func(*args, **kwargs)

    return wrapper


def require_admin(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = current_session()
        if not ctx.user.is_admin:
            logger.warning("Non-admin %s tried %s", ctx.user.email, request.path)
            abort(403, description="Admin access required")
        return func(*args, **kwargs)

    return wrapper


def session_client():
    return build_client(current_session().token)


def request_policies(client=None) -> PolicyStore:
    """Policy table for this request, fetched once with the caller's token."""
    store = g.get("policy_store")
    if store is None:
        store = PolicyStore()
        store.refresh(client or session_client())
        g.policy_store = store
    return store


def fetch_requests(client):
    return [CheckoutRequest.from_dict(r) for r in client.get_requests() or []]


def fetch_resources(client):
    return [Resource.from_dict(r) for r in client.get_resources() or []]


def find_by_id(items, item_id):
    return next((item for item in items if str(item.id) == str(item_id)), None)


@app.errorhandler(ApiError)
def handle_api_error(e):
    logger.warning("Backend call failed (%s): %s", e.status, e.message)
    return jsonify({"error": e.message}), e.status or 502


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"error": e.description}), e.code


# ---------------------------------------------------------
# Health
# ---------------------------------------------------------

@app.get("/api/health")
def health_check():
    return jsonify({"status": "ok", "service": "checkout_portal"}), 200


# ---------------------------------------------------------
# Auth
# ---------------------------------------------------------

@app.post("/api/signup")
def signup():
    data = request.get_json(force=True) or {}
    if not data.get("name") or not data.get("email") or not data.get("password"):
        abort(400, description="name, email, password are required")

    data.setdefault("role", Role.STUDENT.value)
    build_client().signup(data)
    logger.info("Signed up %s as %s", data["email"], data["role"])
    return jsonify({"message": "Account created successfully! Please login."}), 201


@app.post("/api/login")
def login():
    data = request.get_json(force=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        abort(400, description="email and password are required")

    result = build_client().login({"email": email, "password": password}) or {}
    ctx = SessionContext()
    try:
        user = ctx.init(result.get("token") or "")
    except SessionError:
        abort(401, description="Invalid token received. Please try again.")

    session["token"] = ctx.token
    logger.info("Login %s (%s)", user.email, user.role)
    return jsonify({"message": "Login successful!", "user": user.to_dict()})


@app.post("/api/logout")
def logout():
    session.pop("token", None)
    ctx = g.pop("portal_session", None)
    if ctx is not None:
        ctx.teardown()
    return jsonify({"message": "Logged out successfully!"})


@app.get("/api/me")
@require_login
def me():
    ctx = current_session()
    return jsonify(
        {
            "user": ctx.user.to_dict(),
            "policy": request_policies().resolve(ctx.role).to_dict(),
        }
    )


# ---------------------------------------------------------
# Dashboard
# ---------------------------------------------------------

@app.get("/api/dashboard")
@require_login
def dashboard():
    ctx = current_session()
    client = session_client()

    resources = fetch_resources(client)
    requests_ = fetch_requests(client)
    due = client.get_due_returns() or []
    overdue = []
    if ctx.user.is_admin:
        overdue = client.get_overdue_returns() or []

    return jsonify(
        {
            "stats": views.dashboard_stats(ctx.role, resources, requests_, due, overdue),
            "recentRequests": views.recent_requests(requests_),
        }
    )


# ---------------------------------------------------------
# Resources
# ---------------------------------------------------------

@app.get("/api/resources")
@require_login
def list_resources():
    resources = fetch_resources(session_client())
    filtered = views.filter_resources(
        resources,
        search=request.args.get("search", ""),
        status=request.args.get("status", "all"),
        category=request.args.get("category", "all"),
    )
    return jsonify(
        {
            "resources": [r.to_dict() for r in filtered],
            "categories": views.resource_categories(resources),
            "total": len(resources),
        }
    )


@app.post("/api/resources")
@require_admin
def create_resource():
    data = request.get_json(force=True) or {}
    if not data.get("name"):
        abort(400, description="name is required")
    created = session_client().create_resource(data)
    logger.info("Created resource %s", data.get("name"))
    return jsonify(created), 201


@app.put("/api/resources/<resource_id>")
@require_admin
def update_resource(resource_id):
    data = request.get_json(force=True) or {}
    updated = session_client().update_resource(resource_id, data)
    logger.info("Updated resource %s", resource_id)
    return jsonify(updated)


@app.delete("/api/resources/<resource_id>")
@require_admin
def delete_resource(resource_id):
    session_client().delete_resource(resource_id)
    logger.info("Deleted resource %s", resource_id)
    return jsonify({"message": "Resource deleted successfully!"})


@app.get("/api/resources/<resource_id>/policy")
@require_login
def resource_policy(resource_id):
    """
    Limits for a request on this resource, as shown in the request form:
    resolved policy, default form values and the effective quantity cap.
    """
    ctx = current_session()
    client = session_client()
    resource = find_by_id(fetch_resources(client), resource_id)
    if resource is None:
        abort(404, description="Resource not found")

    policy = request_policies(client).resolve(ctx.role, resource)
    caps = [q for q in (resource.available_quantity, policy.max_quantity) if q is not None]

    return jsonify(
        {
            "resource": resource.to_dict(),
            "policy": policy.to_dict(),
            "maxAllowedQuantity": min(caps) if caps else None,
            "defaults": {
                "quantity": 1,
                "duration": policy.default_duration,
                "priority": policy.default_priority,
            },
        }
    )


# ---------------------------------------------------------
# Requests
# ---------------------------------------------------------

@app.get("/api/requests")
@require_login
def list_requests():
    ctx = current_session()
    filter_key = request.args.get("filter", "all")
    if filter_key not in FILTER_KEYS:
        abort(400, description=f"filter must be one of: {', '.join(FILTER_KEYS)}")

    now = utc_now()
    window = app.config["DUE_SOON_DAYS"]
    requests_ = fetch_requests(session_client())
    ordered = filter_and_sort(requests_, filter_key, ctx.role, now=now, due_window_days=window)
    counts = filter_counts(requests_, now=now, due_window_days=window)

    logger.debug("Filtering by status: %s, found %s requests", filter_key, len(ordered))
    return jsonify(
        {
            "filter": filter_key,
            "counts": counts,
            "showOverdueFilter": ctx.user.is_admin or counts["overdue"] > 0,
            "requests": [views.request_row(r, ctx.role, now) for r in ordered],
        }
    )


@app.post("/api/requests")
@require_login
def create_request():
    ctx = current_session()
    data = request.get_json(force=True) or {}
    resource_id = data.get("resourceId")
    if not resource_id:
        abort(400, description="resourceId is required")

    client = session_client()
    resource = find_by_id(fetch_resources(client), resource_id)
    if resource is None:
        abort(404, description="Resource not found")

    policy = request_policies(client).resolve(ctx.role, resource)
    result = validate_request(data, policy, resource, role=ctx.role)
    if not result.valid:
        return jsonify(result.to_dict()), 422

    payload = build_request_payload(data, resource, policy, role=ctx.role)
    created = client.create_request(payload)
    logger.info(
        "Request by %s: %s x%s for %s days",
        ctx.user.email,
        resource.name,
        payload["quantity"],
        payload["duration"],
    )
    return jsonify({"message": "Request submitted successfully!", "request": created}), 201


def propose_transition(request_id, target: RequestStatus, extra=None, message=""):
    """
    Ask the backend to move a request to ``target`` and return the
    refetched list. The backend decides; we only refuse moves that can
    never be legal.
    """
    ctx = current_session()
    client = session_client()
    current = find_by_id(fetch_requests(client), request_id)
    if current is None:
        abort(404, description="Request not found")
    if not can_transition(current.status, target):
        state = current.status.value if current.status else "unknown"
        abort(409, description=f"Cannot move request from {state} to {target.value}")

    payload = {"status": target.value}
    payload.update(extra or {})
    client.update_request(request_id, payload)
    logger.info("%s set request %s to %s", ctx.user.email, request_id, target.value)

    now = utc_now()
    ordered = filter_and_sort(fetch_requests(client), "all", ctx.role, now=now)
    return jsonify(
        {
            "message": message,
            "requests": [views.request_row(r, ctx.role, now) for r in ordered],
        }
    )


@app.post("/api/requests/<request_id>/approve")
@require_admin
def approve_request(request_id):
    return propose_transition(
        request_id, RequestStatus.APPROVED, message="Request approved successfully!"
    )


@app.post("/api/requests/<request_id>/deny")
@require_admin
def deny_request(request_id):
    data = request.get_json(force=True) or {}
    reason = data.get("denialReason")
    error = validate_denial_reason(reason)
    if error:
        return jsonify({"valid": False, "errors": {"denialReason": error}}), 422

    return propose_transition(
        request_id,
        RequestStatus.DENIED,
        extra={"denialReason": reason.strip()},
        message="Request denied successfully!",
    )


@app.post("/api/requests/<request_id>/return")
@require_login
def request_return(request_id):
    return propose_transition(
        request_id,
        RequestStatus.RETURN_REQUESTED,
        message="Return request submitted successfully! Admin will verify the return.",
    )


@app.post("/api/requests/<request_id>/confirm-return")
@require_admin
def confirm_return(request_id):
    return propose_transition(
        request_id, RequestStatus.RETURNED, message="Return confirmed successfully!"
    )


# ---------------------------------------------------------
# Overdue / due returns
# ---------------------------------------------------------

@app.get("/api/overdue")
@require_login
def overdue_overview():
    ctx = current_session()
    client = session_client()
    now = utc_now()

    overdue = []
    if ctx.user.is_admin:
        overdue = client.get_overdue_returns() or []
    due = client.get_due_returns() or []

    return jsonify(
        {
            "overdue": annotate(overdue, now, overdue=True),
            "due": annotate(due, now, overdue=False),
        }
    )


@app.post("/api/check-overdue")
@require_admin
def check_overdue():
    result = session_client().check_overdue() or {}
    overdue_count = result.get("overdueCount", 0)
    due_count = result.get("dueCount", 0)
    logger.info("Overdue check: %s overdue, %s due soon", overdue_count, due_count)
    return jsonify(
        {
            "overdueCount": overdue_count,
            "dueCount": due_count,
            "message": f"Overdue check completed: {overdue_count} overdue, {due_count} due soon",
        }
    )


# ---------------------------------------------------------
# Notifications
# ---------------------------------------------------------

def feed_response(feed: NotificationFeed):
    return jsonify(
        {
            "unread": feed.unread,
            "notifications": [notification_view(n) for n in feed.notifications],
        }
    )


@app.get("/api/notifications")
@require_login
def list_notifications():
    feed = NotificationFeed(session_client())
    if feed.refresh() is None:
        abort(502, description="Failed to fetch notifications")
    return feed_response(feed)


@app.put("/api/notifications/<notification_id>/read")
@require_login
def mark_notification_read(notification_id):
    feed = NotificationFeed(session_client())
    feed.mark_read(notification_id)
    return feed_response(feed)


@app.put("/api/notifications/read")
@require_login
def mark_all_notifications_read():
    feed = NotificationFeed(session_client())
    feed.mark_all_read()
    return feed_response(feed)


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------

@app.get("/api/users")
@require_admin
def list_users():
    client = session_client()
    users = [User.from_dict(u) for u in client.get_users() or []]
    requests_ = fetch_requests(client)

    filtered = views.filter_users(
        users,
        search=request.args.get("search", ""),
        role=request.args.get("role", "all"),
    )
    return jsonify(
        {
            "stats": views.user_overview(users, requests_),
            "users": [u.to_dict() for u in filtered],
        }
    )


# ---------------------------------------------------------
# Stakeholder policies
# ---------------------------------------------------------

@app.get("/api/policies")
@require_login
def get_policies():
    store = request_policies()
    table = store.policies or default_policy_table()
    admin_quantity = (table.get(Role.ADMIN.value) or {}).get("maxQuantity")
    return jsonify(
        {
            "policies": table,
            "live": store.is_live,
            "error": store.error,
            "adminQuantityLabel": describe_max_quantity(admin_quantity),
        }
    )


@app.put("/api/policies")
@require_admin
def update_policies():
    data = request.get_json(force=True)
    errors = validate_policy_table(data)
    if errors:
        return jsonify({"valid": False, "errors": errors}), 422

    client = session_client()
    client.update_stakeholder_policies(data)
    logger.info("Stakeholder policies updated by %s", current_session().user.email)
    g.pop("policy_store", None)
    refreshed = request_policies(client)
    return jsonify(
        {
            "message": "Stakeholder policies updated successfully!",
            "policies": refreshed.policies or data,
        }
    )


@app.get("/api/stakeholders")
@require_admin
def stakeholder_analytics():
    return jsonify(session_client().get_stakeholder_analytics())


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=True)
