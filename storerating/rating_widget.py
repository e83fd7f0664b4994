import asyncio
import logging
from typing import Awaitable, Callable, NamedTuple

from .services import ApiError
from .validation import RATING_MAX, RATING_MIN

logger = logging.getLogger(__name__)

SUCCESS_CLEAR_DELAY = 3.0

PERMISSION_DENIED = (
    "Permission denied. Only normal users can submit ratings. "
    "Please logout and login with a normal user account."
)


class Message(NamedTuple):
    kind: str = ""
    text: str = ""


class Star(NamedTuple):
    value: int
    filled: bool
    disabled: bool


NO_MESSAGE = Message()


class RatingWidget:
    """Pending 1-5 star selection for one store, submitted through ``on_submit``."""

    def __init__(
        self,
        on_submit: Callable[[int], Awaitable],
        current_rating: int | None = None,
        disabled: bool = False,
        clear_delay: float = SUCCESS_CLEAR_DELAY,
    ):
        self.on_submit = on_submit
        self.current_rating = current_rating
        self.disabled = disabled
        self.clear_delay = clear_delay
        self.selected = current_rating or 0
        self.hovered = 0
        self.submitting = False
        self.message = NO_MESSAGE
        self._clear_handle: asyncio.TimerHandle | None = None

    @property
    def locked(self) -> bool:
        return self.disabled or self.submitting

    @property
    def can_submit(self) -> bool:
        return not self.locked and self.selected != 0

    @property
    def display_rating(self) -> int:
        return self.hovered or self.selected

    @property
    def stars(self) -> list[Star]:
        shown = self.display_rating
        return [Star(i, i <= shown, self.locked) for i in range(RATING_MIN, RATING_MAX + 1)]

    @property
    def button_label(self) -> str:
        if self.submitting:
            return "Submitting..."
        return "Update Rating" if self.current_rating else "Submit Rating"

    def select(self, value: int):
        if not self.locked:
            self.selected = value

    def hover(self, value: int):
        if not self.locked:
            self.hovered = value

    def leave(self):
        self.hovered = 0

    def _set_message(self, kind: str, text: str):
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
        self.message = Message(kind, text)

    def _clear_success(self):
        self._clear_handle = None
        if self.message.kind == "success":
            self.message = NO_MESSAGE

    async def submit(self) -> bool:
        if self.submitting:
            return False
        if not RATING_MIN <= self.selected <= RATING_MAX:
            self._set_message("error", f"Please select a rating between {RATING_MIN} and {RATING_MAX}")
            return False

        self.submitting = True
        self._set_message("", "")
        try:
            await self.on_submit(self.selected)
        except Exception as exc:
            if not isinstance(exc, ApiError):
                logger.exception("Rating submission failed")
                text = "Failed to submit rating"
            elif exc.status_code == 403:
                logger.info("Rating submission failed", extra={"status": exc.status_code})
                text = PERMISSION_DENIED
            else:
                logger.info("Rating submission failed", extra={"status": exc.status_code})
                text = exc.describe("Failed to submit rating")
            self._set_message("error", text)
            return False
        finally:
            self.submitting = False

        if self.current_rating:
            self._set_message("success", "Rating updated successfully!")
        else:
            self._set_message("success", "Rating submitted successfully!")
        self._clear_handle = asyncio.get_running_loop().call_later(self.clear_delay, self._clear_success)
        return True
