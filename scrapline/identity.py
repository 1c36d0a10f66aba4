from typing import Optional

from fastapi import Request

from scrapline.config import settings


def current_user(request: Request) -> Optional[str]:
    """Caller identity resolved upstream by the auth gateway.

    Returns None for anonymous requests.
    """
    user_id = request.headers.get(settings.USER_ID_HEADER, "").strip()
    return user_id or None
