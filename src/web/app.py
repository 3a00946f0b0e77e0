"""
Public HTTP surface: email tracking pixel and click redirects, the one-click
unsubscribe page and the campaign-send trigger.

Run with ``corecomponents-web`` or ``uvicorn web.app:app`` from ``src/``.
"""

from __future__ import annotations

import base64
from datetime import datetime
from html import escape
from typing import Optional

import aiosqlite
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from db import crud
from shop import accounts, campaigns
from shop.errors import NotFoundError, PersistenceError, ValidationError
from utils import config
from utils.logger import get_logger
from web.schemas import SendReportResponse

_logger = get_logger(__name__)

PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")
NO_CACHE = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title} | {store}</title></head>
<body style="font-family: Arial, sans-serif; background: #f5f5f5; margin: 0;">
  <div style="max-width: 480px; margin: 80px auto; background: #fff; padding: 32px;
              border-radius: 8px; text-align: center;">
    <h1 style="font-size: 24px;">{title}</h1>
    <p style="color: #555;">{body}</p>
    <p><a href="{site}">Back to {store}</a></p>
  </div>
</body>
</html>
"""


def _int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html = _PAGE.format(
        title=escape(title), body=body, store=escape(config.STORE_NAME), site=escape(config.SITE_URL)
    )
    return HTMLResponse(html, status_code=status_code)


def create_app() -> FastAPI:
    app = FastAPI(title=f"{config.STORE_NAME} tracking")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/track/open")
    async def track_open(c: Optional[str] = None, e: Optional[str] = None):
        campaign_id = _int(c)
        if campaign_id is None or not e:
            _logger.warning(f"Open pixel hit with missing parameters c={c!r} e={e!r}")
        else:
            try:
                await crud.record_open(campaign_id, e, datetime.now())
            except aiosqlite.Error as err:
                _logger.error(f"Could not record open for campaign {campaign_id}: {err}")
        return Response(content=PIXEL, media_type="image/gif", headers=NO_CACHE)

    @app.get("/track/click")
    async def track_click(
        c: Optional[str] = None, e: Optional[str] = None, p: Optional[str] = None
    ):
        campaign_id, product_id = _int(c), _int(p)
        if product_id is None:
            _logger.warning(f"Click hit without a product id (c={c!r})")
            return RedirectResponse(f"{config.SITE_URL}/catalog", status_code=302)
        if campaign_id is None or not e:
            _logger.warning(f"Click hit with missing parameters c={c!r} e={e!r}")
        else:
            try:
                await crud.record_click(campaign_id, e, product_id, datetime.now())
            except aiosqlite.Error as err:
                _logger.error(f"Could not record click for campaign {campaign_id}: {err}")
        return RedirectResponse(f"{config.SITE_URL}/catalog/{product_id}", status_code=302)

    @app.get("/unsubscribe", response_class=HTMLResponse)
    async def unsubscribe(token: str = ""):
        try:
            result = await accounts.redeem_unsubscribe(token)
        except PersistenceError as err:
            _logger.error(f"Unsubscribe failed: {err}")
            return _page(
                "Something went wrong",
                "We could not update your preferences. Please try the link again later.",
                status_code=500,
            )
        if result.outcome == "invalid":
            return _page(
                "Invalid link",
                "This unsubscribe link is invalid or has expired.",
                status_code=404,
            )
        if result.outcome == "already_unsubscribed":
            return _page(
                "Already unsubscribed",
                f"{escape(result.email)} is no longer on our mailing list.",
            )
        return _page(
            "You have been unsubscribed",
            f"{escape(result.email)} will no longer receive marketing emails from us.",
        )

    @app.post("/api/campaigns/{campaign_id}/send", response_model=SendReportResponse)
    async def send_campaign(campaign_id: int):
        try:
            report = await campaigns.send_campaign(campaign_id)
        except NotFoundError as err:
            raise HTTPException(status_code=404, detail=str(err))
        except ValidationError as err:
            raise HTTPException(status_code=400, detail=err.message)
        except PersistenceError as err:
            raise HTTPException(status_code=500, detail=str(err))
        return SendReportResponse.from_report(report)

    return app


app = create_app()


def main():
    uvicorn.run("web.app:app", host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
