"""
Per-page client state and actions.

Each view-model owns its form values, the last fetched records, the id of
the record being edited and its filter settings. State changes only through
the action methods; a failed action leaves the previous state in place and
adds a notification instead.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from api_client import ApiClient
from errors import AppError, NetworkUnreachableError, UnauthorizedError, ValidationError
from filters import ExpenseFilter, ProductFilter, parse_filter

logger = logging.getLogger(__name__)

ENTRY_ROUTE = "/"
HOME_ROUTE = "/student"


@dataclass
class Notification:
    level: str
    message: str


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class RecordViewModel:
    label = "Record"
    plural = "records"
    resource_name = ""
    initial_form: Dict[str, Any] = {}
    required: Dict[str, str] = {}
    protected = False
    has_total = False

    def __init__(self, api: ApiClient, confirm: Optional[Callable[[str], bool]] = None, protected: Optional[bool] = None):
        self.api = api
        self.resource = getattr(api, self.resource_name)
        self.confirm = confirm or (lambda message: True)
        if protected is not None:
            self.protected = protected

        self.form: Dict[str, Any] = dict(self.initial_form)
        self.records: List[Dict[str, Any]] = []
        self.edit_id: Optional[str] = None
        self.errors: Dict[str, str] = {}
        self.total: float = 0
        self.notifications: List[Notification] = []
        self.redirect: Optional[str] = None

    # -- helpers --
    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level, message))

    def _handle_error(self, exc: AppError, fallback: str) -> None:
        if isinstance(exc, UnauthorizedError):
            logger.warning("%s: session rejected", self.label)
            self.notify("warning", "Session expired. Please login again.")
            self.redirect = ENTRY_ROUTE
        elif isinstance(exc, NetworkUnreachableError):
            self.notify("error", exc.message)
        else:
            logger.warning("%s: %s (%s)", self.label, fallback, exc.message)
            self.notify("error", fallback)

    def query_params(self) -> Optional[Dict[str, str]]:
        return None

    def payload(self) -> Dict[str, Any]:
        return dict(self.form)

    # -- actions --
    def mount(self) -> None:
        if self.protected and not self.api.tokens.is_authenticated:
            self.redirect = ENTRY_ROUTE
            return
        self.fetch()

    def fetch(self) -> bool:
        try:
            records = self.resource.list(self.query_params())
            total = self.resource.total() if self.has_total else self.total
        except ValidationError as e:
            self.errors = dict(e.errors)
            self.notify("error", e.message)
            return False
        except AppError as e:
            self._handle_error(e, f"Failed to fetch {self.plural}")
            return False
        self.records = records
        self.total = total
        return True

    def set_field(self, field: str, value: Any) -> None:
        self.form[field] = value

    def validate(self) -> bool:
        self.errors = {field: msg for field, msg in self.required.items() if _is_blank(self.form.get(field))}
        return not self.errors

    def submit(self) -> bool:
        if not self.validate():
            return False
        try:
            if self.edit_id:
                self.resource.update(self.edit_id, self.payload())
                message = f"{self.label} updated successfully!"
            else:
                self.resource.create(self.payload())
                message = f"{self.label} added successfully!"
        except ValidationError as e:
            self.errors = dict(e.errors)
            self.notify("error", f"Failed to save {self.label.lower()}")
            return False
        except AppError as e:
            self._handle_error(e, f"Failed to save {self.label.lower()}")
            return False

        self.notify("success", message)
        self.form = dict(self.initial_form)
        self.edit_id = None
        self.errors = {}
        self.fetch()
        return True

    def start_edit(self, record: Dict[str, Any]) -> None:
        self.edit_id = record["_id"]
        self.form = {field: record.get(field, default) for field, default in self.initial_form.items()}
        self.errors = {}

    def cancel_edit(self) -> None:
        self.edit_id = None
        self.form = dict(self.initial_form)
        self.errors = {}

    def delete(self, record_id: str) -> bool:
        if not self.confirm(f"Delete this {self.label.lower()}?"):
            return False
        try:
            self.resource.delete(record_id)
        except AppError as e:
            self._handle_error(e, f"Failed to delete {self.label.lower()}")
            return False
        self.notify("success", f"{self.label} deleted successfully!")
        self.fetch()
        return True


class StudentViewModel(RecordViewModel):
    label = "Student"
    plural = "students"
    resource_name = "students"
    initial_form = {"name": "", "email": "", "course": "", "batch": "", "grade": ""}
    required = {
        "name": "Enter name",
        "email": "Enter email",
        "course": "Enter course",
        "batch": "Enter batch",
        "grade": "Enter grade",
    }
    protected = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.search = ""
        self.search_term = ""

    def apply_search(self, search: Optional[str] = None) -> None:
        if search is not None:
            self.search = search
        self.search_term = self.search

    @property
    def visible(self) -> List[Dict[str, Any]]:
        term = self.search_term.lower()
        return [s for s in self.records if term in s.get("name", "").lower()]


class EmployeeViewModel(RecordViewModel):
    label = "Employee"
    plural = "employees"
    resource_name = "employees"
    initial_form = {"name": "", "email": "", "position": "", "department": "", "salary": ""}
    required = {
        "name": "Enter name",
        "email": "Enter email",
        "position": "Enter position",
        "department": "Enter department",
        "salary": "Enter salary",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.search = ""
        self.sort_order = "asc"

    def toggle_sort(self) -> None:
        """Sort the fetched list by name, alternating A-Z and Z-A."""
        self.records = sorted(
            self.records,
            key=lambda e: e.get("name", "").casefold(),
            reverse=self.sort_order == "desc",
        )
        self.sort_order = "desc" if self.sort_order == "asc" else "asc"

    @property
    def visible(self) -> List[Dict[str, Any]]:
        term = self.search.lower()
        return [e for e in self.records if term in e.get("name", "").lower()]


class TaskViewModel(RecordViewModel):
    label = "Task"
    plural = "tasks"
    resource_name = "tasks"
    initial_form = {"title": "", "description": "", "priority": "Low", "status": "Pending"}
    required = {"title": "Enter title", "description": "Enter description"}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.status_filter = "All"
        self.priority_filter = "All"

    @property
    def visible(self) -> List[Dict[str, Any]]:
        return [
            t for t in self.records
            if self.status_filter in ("All", t.get("status"))
            and self.priority_filter in ("All", t.get("priority"))
        ]

    @property
    def stats(self) -> Dict[str, int]:
        total = len(self.records)
        done = sum(1 for t in self.records if t.get("status") == "Done")
        # Half rounds up: 1 of 8 is 13%
        completion = math.floor(done / total * 100 + 0.5) if total else 0
        return {"total": total, "done": done, "completion": completion}


class ExpenseViewModel(RecordViewModel):
    label = "Expense"
    plural = "expenses"
    resource_name = "expenses"
    initial_form = {"title": "", "amount": "", "category": "", "date": ""}
    required = {
        "title": "Enter title",
        "amount": "Enter amount",
        "category": "Enter category",
        "date": "Enter date",
    }
    has_total = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.filters = {"category": "", "from": "", "to": ""}

    def query_params(self) -> Dict[str, str]:
        flt = parse_filter(
            ExpenseFilter,
            category=self.filters["category"],
            from_date=self.filters["from"],
            to_date=self.filters["to"],
        )
        return flt.to_params()

    def apply_filters(self, **changes: str) -> bool:
        self.filters.update(changes)
        return self.fetch()

    def start_edit(self, record: Dict[str, Any]) -> None:
        super().start_edit(record)
        self.form["date"] = str(record.get("date", "")).split("T")[0]


class ProductViewModel(RecordViewModel):
    label = "Product"
    plural = "products"
    resource_name = "products"
    initial_form = {"productName": "", "price": "", "quantity": "", "category": ""}
    required = {
        "productName": "Enter product name",
        "price": "Enter price",
        "quantity": "Enter quantity",
        "category": "Enter category",
    }
    has_total = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.filters = {"search": "", "category": ""}
        self.sort = ""

    def query_params(self) -> Dict[str, str]:
        flt = parse_filter(ProductFilter, search=self.filters["search"], category=self.filters["category"], sort=self.sort)
        return flt.to_params()

    def apply_filters(self, sort: Optional[str] = None, **changes: str) -> bool:
        self.filters.update(changes)
        if sort is not None:
            self.sort = sort
        return self.fetch()


class AuthViewModel:
    """Login/register page and the Anonymous/Authenticated switch."""

    initial_form = {"name": "", "email": "", "password": ""}

    def __init__(self, api: ApiClient):
        self.api = api
        self.is_login = True
        self.form: Dict[str, str] = dict(self.initial_form)
        self.errors: Dict[str, str] = {}
        self.notifications: List[Notification] = []
        self.redirect: Optional[str] = None

    @property
    def state(self) -> str:
        return "authenticated" if self.api.tokens.is_authenticated else "anonymous"

    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level, message))

    def toggle_mode(self) -> None:
        self.is_login = not self.is_login
        self.errors = {}

    def validate(self) -> bool:
        fields = ("email", "password") if self.is_login else ("name", "email", "password")
        self.errors = {f: f"Enter {f}" for f in fields if _is_blank(self.form.get(f))}
        return not self.errors

    def submit(self) -> bool:
        if not self.validate():
            return False
        try:
            if self.is_login:
                body = self.api.login({"email": self.form["email"], "password": self.form["password"]})
                self.api.tokens.set(body["token"])
                self.notify("success", "Login successful!")
                self.redirect = HOME_ROUTE
            else:
                self.api.register(dict(self.form))
                self.notify("success", "Registration successful! Please login.")
                self.is_login = True
        except AppError as e:
            logger.warning("Authentication failed: %s", e.message)
            self.notify("error", e.message or "Something went wrong")
            return False
        self.form = dict(self.initial_form)
        return True

    def logout(self) -> None:
        self.api.tokens.clear()
        self.redirect = ENTRY_ROUTE

    def load_profile(self) -> Optional[Dict[str, Any]]:
        try:
            return self.api.profile()
        except UnauthorizedError:
            self.notify("warning", "Session expired. Please login again.")
            self.redirect = ENTRY_ROUTE
        except AppError as e:
            self.notify("error", e.message)
        return None
