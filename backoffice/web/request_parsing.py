"""Request parsing dependencies for form routes."""

from __future__ import annotations

from fastapi import Request


async def parse_form(request: Request) -> dict[str, str]:
    """Text fields of a urlencoded or multipart form."""
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}
