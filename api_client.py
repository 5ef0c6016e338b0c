"""
HTTP client used by the view-models.

Every request carries ``Authorization: Bearer <token>`` when a token is
stored. HTTP failures come back as the errors in ``errors``; a request that
gets no response at all raises NetworkUnreachableError.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from config import get_settings
from errors import (
    AppError, ConflictError, NetworkUnreachableError, NotFoundError,
    UnauthorizedError, ValidationError,
)

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the bearer token, optionally persisted to a file."""

    def __init__(self, path: Optional[str] = None):
        self._path = Path(path) if path else None
        self._token: Optional[str] = None
        if self._path and self._path.exists():
            self._token = self._path.read_text().strip() or None

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token
        if self._path:
            self._path.write_text(token)

    def clear(self) -> None:
        self._token = None
        if self._path and self._path.exists():
            self._path.unlink()

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None


token_store = TokenStore(get_settings().TOKEN_FILE or None)


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        tokens: Optional[TokenStore] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.tokens = tokens or token_store
        self.http = http or httpx.Client(base_url=base_url or get_settings().API_BASE_URL, timeout=timeout)

        self.students = Resource(self, "/student", "students", "newStudent")
        self.employees = Resource(self, "/employee", "employees", "newEmployee")
        self.tasks = Resource(self, "/task", "tasks", "newTask")
        self.expenses = Resource(self, "/expense", "expenses", "newExpense", total_key="total")
        self.products = Resource(self, "/product", "products", "newProduct", total_key="totalStockValue")

    def request(self, method: str, path: str, json: Any = None, params: Optional[Dict[str, str]] = None) -> Any:
        headers = {"Content-Type": "application/json"}
        token = self.tokens.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(method, path, json=json, params=params or None, headers=headers)
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise NetworkUnreachableError() from e

        if response.status_code >= 400:
            self._raise_for_status(response)
        return response.json() if response.content else None

    def _raise_for_status(self, response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or response.reason_phrase
        status = response.status_code

        if status == 401:
            # A rejected login says nothing about the stored token
            if not response.request.url.path.endswith("/login"):
                self.tokens.clear()
            raise UnauthorizedError(message)
        if status == 404:
            raise NotFoundError(message=message)
        if status == 409:
            raise ConflictError(message)
        if status == 422:
            raise ValidationError(message, errors=body.get("errors"))
        raise AppError(message, code=body.get("code", "HTTP_ERROR"))

    # Auth
    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/register", json=data)

    def login(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/login", json=data)

    def profile(self) -> Dict[str, Any]:
        return self.request("GET", "/profile")

    def close(self) -> None:
        self.http.close()


class Resource:
    """Create/list/update/delete calls for one entity path."""

    def __init__(self, client: ApiClient, path: str, list_key: str, created_key: str, total_key: Optional[str] = None):
        self.client = client
        self.path = path
        self.list_key = list_key
        self.created_key = created_key
        self.total_key = total_key

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        body = self.client.request("POST", self.path, json=data)
        return body.get(self.created_key, body)

    def list(self, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        body = self.client.request("GET", self.path, params=params)
        data = body.get(self.list_key, []) if isinstance(body, dict) else body
        return data if isinstance(data, list) else []

    def update(self, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.request("PUT", f"{self.path}/{record_id}", json=data)

    def delete(self, record_id: str) -> None:
        self.client.request("DELETE", f"{self.path}/{record_id}")

    def total(self) -> float:
        if not self.total_key:
            raise AttributeError(f"{self.path} has no total endpoint")
        body = self.client.request("GET", f"{self.path}/total")
        return body.get(self.total_key) or 0
