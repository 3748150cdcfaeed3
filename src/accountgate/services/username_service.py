"""Username allocation — slugify a handle and make sure nobody has it.

Learn: Usernames are globally unique (not per account), because a
username is also a login identifier. Normalisation:

1. transliterate letters NFD can't decompose (ø, æ, ß, …)
2. NFD-decompose and drop combining marks (á → a)
3. lowercase, trim, whitespace runs → "-"
4. drop anything that isn't an ASCII word char or "-"
5. collapse repeated hyphens

So "Dáve  Jønes!!" becomes "dave-jones".
"""

import re
import unicodedata

import structlog

from accountgate.auth.errors import InvalidUsername, UsernameTaken
from accountgate.store.base import AuthStore

logger = structlog.get_logger()

_TRANSLITERATE = str.maketrans(
    {
        "ø": "o",
        "Ø": "O",
        "æ": "ae",
        "Æ": "AE",
        "œ": "oe",
        "Œ": "OE",
        "ß": "ss",
        "đ": "d",
        "Đ": "D",
        "ð": "d",
        "Ð": "D",
        "ł": "l",
        "Ł": "L",
        "þ": "th",
        "Þ": "TH",
    }
)

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w-]+", re.ASCII)
_HYPHENS = re.compile(r"--+")


def slugify(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", str(text).translate(_TRANSLITERATE))
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    slug = _WHITESPACE.sub("-", stripped.lower().strip())
    slug = _NON_WORD.sub("", slug)
    return _HYPHENS.sub("-", slug)


class UsernameAllocator:
    """Turns a desired handle into a free, normalised username."""

    def __init__(self, store: AuthStore):
        self.store = store

    async def allocate(self, handle: str) -> str:
        """Return the slug for ``handle`` if no User has it yet.

        Raises UsernameTaken if the slug exists, InvalidUsername if the
        handle normalises to nothing.
        """
        slug = slugify(handle)
        if not slug:
            raise InvalidUsername(f"Cannot use {handle!r} as username")
        if await self.store.find_user_by_username(slug):
            logger.info("auth.username_taken", username=slug)
            raise UsernameTaken(f"Cannot use {handle!r} as username")
        return slug
