"""Small HTML pages shown to people going through the browser side of OAuth."""

from __future__ import annotations

from html import escape
from http import HTTPStatus

from fastapi.responses import HTMLResponse

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ font-family: system-ui, sans-serif; background: #f4f7f6; margin: 0; }}
main {{ max-width: 28rem; margin: 4rem auto; background: #fff; padding: 2rem;
        border-radius: 12px; box-shadow: 0 2px 12px rgba(0, 0, 0, .08); }}
h1 {{ font-size: 1.4rem; color: {accent}; }}
button {{ background: #1cc29f; color: #fff; border: 0; padding: .7rem 1.4rem;
          border-radius: 6px; font-size: 1rem; cursor: pointer; }}
</style>
</head>
<body><main><h1>{title}</h1>{body}</main></body>
</html>"""


def _render(title: str, body: str, *, accent: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(title=escape(title), body=body, accent=accent),
        status_code=status_code,
    )


def success_page(message: str) -> HTMLResponse:
    return _render(
        "Splitwise connected",
        f"<p>{escape(message)}</p><p>You can close this window.</p>",
        accent="#1cc29f",
        status_code=HTTPStatus.OK,
    )


def error_page(message: str, status_code: int = HTTPStatus.BAD_REQUEST) -> HTMLResponse:
    return _render(
        "Authorization failed",
        f"<p>{escape(message)}</p><p>Please start the authorization again.</p>",
        accent="#d9534f",
        status_code=status_code,
    )


def approval_page(*, client_id: str, state: str, action: str = "/authorize") -> HTMLResponse:
    body = (
        f"<p><strong>{escape(client_id)}</strong> is requesting access to your "
        "Splitwise account.</p>"
        f'<form method="post" action="{escape(action)}">'
        f'<input type="hidden" name="state" value="{escape(state)}">'
        "<button type=\"submit\">Approve and continue to Splitwise</button>"
        "</form>"
    )
    return _render("Connect Splitwise", body, accent="#333", status_code=HTTPStatus.OK)


__all__ = ["approval_page", "error_page", "success_page"]
