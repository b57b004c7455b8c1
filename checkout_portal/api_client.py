# checkout_portal/api_client.py
"""
Thin wrapper around the checkout backend's REST API.

One method per endpoint. Every call either returns the decoded JSON body or
raises ``ApiError``; nothing is retried or queued.
"""
import logging

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A backend call failed. ``status`` is None for transport errors."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class ApiClient:
    def __init__(self, base_url, token=None, timeout=10, http=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = http or requests.Session()

    # ----------------- plumbing -----------------

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _call(self, method, path, payload=None, auth=True):
        url = f"{self.base_url}{path}"
        headers = self._headers() if auth else {"Content-Type": "application/json"}
        logger.debug("%s %s", method, url)

        try:
            resp = self.http.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise ApiError("Network error") from e

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = {"error": "Network error"}
            message = None
            if isinstance(body, dict):
                message = body.get("error")
            raise ApiError(message or f"HTTP {resp.status_code}", status=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ----------------- auth -----------------

    def signup(self, user_data):
        return self._call("POST", "/signup", user_data, auth=False)

    def login(self, credentials):
        return self._call("POST", "/login", credentials, auth=False)

    # ----------------- resources -----------------

    def get_resources(self):
        return self._call("GET", "/resources")

    def create_resource(self, resource_data):
        return self._call("POST", "/resources", resource_data)

    def update_resource(self, resource_id, resource_data):
        return self._call("PUT", f"/resources/{resource_id}", resource_data)

    def delete_resource(self, resource_id):
        return self._call("DELETE", f"/resources/{resource_id}")

    # ----------------- requests -----------------

    def get_requests(self):
        return self._call("GET", "/requests")

    def create_request(self, request_data):
        return self._call("POST", "/requests", request_data)

    def update_request(self, request_id, update_data):
        return self._call("PUT", f"/requests/{request_id}", update_data)

    # ----------------- notifications -----------------

    def get_notifications(self):
        return self._call("GET", "/notifications")

    def mark_notification_read(self, notification_id):
        return self._call("PUT", f"/notifications/{notification_id}", {"read": True})

    def mark_all_notifications_read(self):
        return self._call("PUT", "/notifications")

    # ----------------- users -----------------

    def get_users(self):
        return self._call("GET", "/users")

    # ----------------- overdue / due returns -----------------

    def get_overdue_returns(self):
        return self._call("GET", "/overdue-returns")

    def get_due_returns(self):
        return self._call("GET", "/due-returns")

    def check_overdue(self):
        return self._call("POST", "/check-overdue")

    # ----------------- stakeholder policies -----------------

    def get_stakeholder_policies(self):
        return self._call("GET", "/stakeholder-policies")

    def update_stakeholder_policies(self, policies):
        return self._call("PUT", "/stakeholder-policies", policies)

    def get_stakeholder_analytics(self):
        return self._call("GET", "/stakeholder-analytics")
