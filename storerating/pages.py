"""Page compositions: what each screen fetches, validates and submits.

Pages fetch on mount and again after every filter change, sort change or
mutation; results of a mutation are never merged into the local list.
Failures end up in a single banner message (``error``) per page.
"""
import logging
from typing import Callable, Mapping

from starlette.concurrency import run_in_threadpool

from . import validation
from .config import get_settings
from .forms import FormState
from .rating_widget import RatingWidget
from .roles import Role, display_name
from .services import ApiError, Services
from .session import AuthResult, SessionContext
from .table import ASC, Column, Table
from .utils import format_date, format_rating

logger = logging.getLogger(__name__)

NO_STORE_HINT = ". Please logout and login again, or contact an administrator to assign you a store."


class Page:
    def __init__(self, session: SessionContext, services: Services):
        self.session = session
        self.services = services
        self.error = ""
        self.success = ""

    def _call(self, fallback: str, func: Callable, *args, **kwargs):
        """Run one service call; on failure show its message (or ``fallback``) and return None."""
        try:
            return func(*args, **kwargs)
        except ApiError as exc:
            self.error = exc.describe(fallback)
            logger.info("%s: %s", type(self).__name__, self.error, extra={"status": exc.status_code})
            return None


# -------------------- Auth --------------------

class LoginPage(Page):
    FIELDS = ("email", "password")

    def __init__(self, session, services):
        super().__init__(session, services)
        self.form = FormState({"email": "", "password": ""})

    def submit(self, values: Mapping[str, str]) -> AuthResult | None:
        self.error = ""
        self.form.set_fields({k: values.get(k, "") for k in self.FIELDS})
        if self.form.validate(validation.LOGIN_FORM):
            return None
        result = self.session.login(self.form.values["email"].strip(), self.form.values["password"])
        if not result.ok:
            self.error = result.error
        return result


class RegisterPage(Page):
    FIELDS = ("name", "email", "address", "password")

    def __init__(self, session, services):
        super().__init__(session, services)
        self.form = FormState({name: "" for name in self.FIELDS})

    @property
    def hints(self) -> dict:
        return self.form.hints(self.FIELDS)

    def submit(self, values: Mapping[str, str]) -> AuthResult | None:
        self.error = ""
        self.form.set_fields({k: values.get(k, "") for k in self.FIELDS})
        if self.form.validate(validation.REGISTER_FORM):
            return None
        v = self.form.values
        result = self.session.register({
            "name": v["name"].strip(),
            "email": v["email"].strip(),
            "address": v["address"].strip(),
            "password": v["password"],
        })
        if result.ok:
            self.success = "Registration successful!"
        else:
            self.error = result.error
        return result


class PasswordUpdatePage(Page):
    FIELDS = ("currentPassword", "newPassword", "confirmPassword")

    def __init__(self, session, services):
        super().__init__(session, services)
        self.form = FormState({name: "" for name in self.FIELDS})

    @property
    def hints(self) -> dict:
        return self.form.hints(("newPassword",))

    def submit(self, values: Mapping[str, str]) -> bool:
        self.error = self.success = ""
        self.form.set_fields({k: values.get(k, "") for k in self.FIELDS})
        errors = validation.validate_password_update(self.form.values)
        self.form.set_errors(errors)
        if errors:
            return False
        v = self.form.values
        done = self._call(
            "Failed to update password. Please try again.",
            self.services.users.update_password,
            self.session.current_user.id, v["newPassword"], v["currentPassword"] or None,
        )
        if done is None:
            return False
        self.form.reset_form()
        self.success = "Password updated successfully! Redirecting..."
        return True


# -------------------- Admin --------------------

class AdminDashboardPage(Page):
    def __init__(self, session, services):
        super().__init__(session, services)
        self.stats = None

    def mount(self):
        self.stats = self._call("Failed to load statistics", self.services.dashboard.admin_stats)


class ListPage(Page):
    """A filtered list whose sorting is done by the backend."""

    FILTERS: tuple = ()
    COLUMNS: list = []
    load_error = ""

    def __init__(self, session, services, filters: Mapping[str, str] | None = None,
                 sort: str | None = None, direction: str = ASC):
        super().__init__(session, services)
        filters = filters or {}
        self.filters = {name: filters.get(name) or "" for name in self.FILTERS}
        self.table = Table(
            self.COLUMNS,
            page_size=get_settings().page_size,
            on_sort=self.change_sort,
            sort_key=sort or "name",
            direction=direction,
            loading=True,
        )

    @property
    def sorting(self) -> dict:
        return {"field": self.table.sort_key, "direction": self.table.direction}

    def _fetch(self) -> list | None:
        raise NotImplementedError

    def mount(self):
        self.error = ""
        self.table.loading = True
        rows = self._call(self.load_error, self._fetch)
        self.table.loading = False
        self.table.set_rows(rows or [])

    def change_filter(self, name: str, value: str):
        self.filters[name] = value
        self.mount()

    def change_sort(self, key: str, direction: str):
        self.mount()


class AdminUsersPage(ListPage):
    FILTERS = ("name", "email", "address", "role")
    FORM_FIELDS = ("name", "email", "address", "password", "role", "storeId")
    COLUMNS = [
        Column("name", "Name"),
        Column("email", "Email"),
        Column("address", "Address"),
        Column("role", "Role", render=lambda value, row: display_name(Role(value))),
        Column("averageRating", "Rating", sortable=False,
               render=lambda value, row: format_rating(value) if row.get("role") == Role.STORE_OWNER.value else "-"),
    ]
    load_error = "Failed to load users"

    def __init__(self, session, services, **kwargs):
        super().__init__(session, services, **kwargs)
        self.form = FormState({
            "name": "", "email": "", "address": "", "password": "",
            "role": Role.NORMAL_USER.value, "storeId": "",
        })
        self.form_error = ""
        self.selected_user = None

    @property
    def hints(self) -> dict:
        return self.form.hints(("name", "address", "password"))

    def _fetch(self):
        return self.services.users.list(self.filters, self.sorting)

    def view_user(self, user_id: int):
        self.selected_user = self._call("Failed to load user details", self.services.users.get, user_id)

    def create_user(self, values: Mapping[str, str]) -> bool:
        self.form_error = ""
        self.form.set_fields({k: values.get(k, "") for k in self.FORM_FIELDS})
        if self.form.validate(validation.CREATE_USER_FORM):
            return False
        v = self.form.values
        payload = {
            "name": v["name"].strip(),
            "email": v["email"].strip(),
            "address": v["address"].strip(),
            "password": v["password"],
            "role": v["role"],
        }
        store_id = (v.get("storeId") or "").strip()
        if v["role"] == Role.STORE_OWNER.value and store_id:
            if not store_id.isdigit():
                self.form.set_field_error("storeId", "Store ID must be a number")
                return False
            payload["storeId"] = int(store_id)
        try:
            self.services.users.create(payload)
        except ApiError as exc:
            self.form_error = exc.describe("Failed to create user")
            return False
        self.form.reset_form()
        self.success = "User created successfully!"
        self.mount()
        return True


class AdminStoresPage(ListPage):
    FILTERS = ("name", "email", "address")
    FORM_FIELDS = ("name", "email", "address")
    COLUMNS = [
        Column("name", "Name"),
        Column("email", "Email"),
        Column("address", "Address"),
        Column("averageRating", "Rating", sortable=False, render=lambda value, row: format_rating(value)),
        Column("totalRatings", "Total Ratings", sortable=False),
    ]
    load_error = "Failed to load stores"

    def __init__(self, session, services, **kwargs):
        super().__init__(session, services, **kwargs)
        self.form = FormState({name: "" for name in self.FORM_FIELDS})
        self.form_error = ""

    @property
    def hints(self) -> dict:
        return self.form.hints(("name", "address"))

    def _fetch(self):
        return self.services.stores.list(self.filters, self.sorting)

    def create_store(self, values: Mapping[str, str]) -> bool:
        self.form_error = ""
        self.form.set_fields({k: values.get(k, "") for k in self.FORM_FIELDS})
        if self.form.validate(validation.CREATE_STORE_FORM):
            return False
        try:
            self.services.stores.create({k: self.form.values[k].strip() for k in self.FORM_FIELDS})
        except ApiError as exc:
            self.form_error = exc.describe("Failed to create store")
            return False
        self.form.reset_form()
        self.success = "Store created successfully!"
        self.mount()
        return True


# -------------------- Normal user --------------------

class UserStoresPage(ListPage):
    FILTERS = ("name", "address")
    COLUMNS = [
        Column("name", "Store Name"),
        Column("address", "Address"),
    ]
    load_error = "Failed to load stores"

    def __init__(self, session, services, **kwargs):
        super().__init__(session, services, **kwargs)
        self.widgets: dict[int, RatingWidget] = {}

    def _fetch(self):
        return self.services.stores.list(self.filters, self.sorting)

    def mount(self):
        super().mount()
        for store in self.table.rows:
            if store["id"] not in self.widgets:
                self.widgets[store["id"]] = self._widget(store)

    def _widget(self, store: Mapping) -> RatingWidget:
        user_rating = store.get("userRating")

        async def submit(value: int):
            # look the store up again: an earlier submit may have created the rating
            current = self.store(store["id"]) or store
            await run_in_threadpool(self.services.ratings.submit_for_store, current, value)

        return RatingWidget(submit, current_rating=user_rating["value"] if user_rating else None)

    def store(self, store_id: int) -> dict | None:
        for row in self.table.rows:
            if row["id"] == store_id:
                return row
        return None

    async def rate(self, store_id: int, value: int) -> RatingWidget | None:
        widget = self.widgets.get(store_id)
        if widget is None:
            self.error = "Store not found"
            return None
        widget.select(value)
        if await widget.submit():
            await run_in_threadpool(self.mount)
            widget.current_rating = value
        return widget


# -------------------- Store owner --------------------

class OwnerDashboardPage(Page):
    COLUMNS = [
        Column("userName", "User Name"),
        Column("userEmail", "Email"),
        Column("value", "Rating"),
        Column("createdAt", "Date", render=lambda value, row: format_date(value)),
    ]

    def __init__(self, session, services, sort: str | None = None, direction: str = ASC):
        super().__init__(session, services)
        self.stats = None
        self.table = Table(self.COLUMNS, page_size=get_settings().page_size,
                           sort_key=sort, direction=direction, loading=True,
                           empty_message="No ratings yet")

    def mount(self):
        self.error = ""
        self.stats = self._call("Failed to load statistics", self.services.dashboard.owner_stats)
        if self.error and "no associated store" in self.error:
            self.error += NO_STORE_HINT
        self.table.loading = False
        self.table.set_rows((self.stats or {}).get("ratings", []))

    @property
    def average_label(self) -> str:
        average = (self.stats or {}).get("averageRating")
        return "No ratings yet" if average is None else f"{average:.2f}"
