"""
GraphQL route for padrun.

Translates HTTP requests into platform invocations and hands them to the
PadHandler. Contains no pipeline logic.

Platform headers:
    x-padrun-user-context   JSON list of tenant secrets ({key, value})
    x-padrun-url            public invocation URL

Both are removed before the headers reach pad code. When absent, the
configured defaults are used.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from padrun.config.schemas import AppSettings
from padrun.handler import PadHandler
from padrun.pipeline.context import Invocation, PadRequest, PadResponse
from padrun.pipeline.stages import USER_CONTEXT_SECRET
from padrun.proxy.manager import ORIGIN_URL_SECRET

logger = logging.getLogger(__name__)

router = APIRouter(tags=["graphql"])

USER_CONTEXT_HEADER = "x-padrun-user-context"
URL_HEADER = "x-padrun-url"
PLATFORM_HEADERS = frozenset({USER_CONTEXT_HEADER, URL_HEADER})


async def build_invocation(request: Request, settings: AppSettings) -> Invocation:
    """Build a platform invocation from an HTTP request."""
    headers = {
        key.lower(): value
        for key, value in request.headers.items()
        if key.lower() not in PLATFORM_HEADERS
    }

    secrets = {
        USER_CONTEXT_SECRET: request.headers.get(
            USER_CONTEXT_HEADER,
            settings.default_user_context.get_secret_value(),
        ),
        ORIGIN_URL_SECRET: request.headers.get(URL_HEADER) or settings.default_url or str(request.url),
    }

    pad_request = PadRequest(
        method=request.method,
        url=str(request.url),
        headers=headers,
        query_params=dict(request.query_params),
        body=await request.body(),
    )
    return Invocation(request=pad_request, secrets=secrets)


def to_http_response(response: PadResponse) -> JSONResponse:
    headers = {k: v for k, v in response.headers.items() if k.lower() != "content-type"}
    return JSONResponse(
        content=response.body,
        status_code=response.status_code,
        headers=headers,
    )


@router.api_route("/", methods=["GET", "POST"])
async def graphql_endpoint(request: Request) -> JSONResponse:
    """Run a GraphQL request against the pad."""
    handler: PadHandler = request.app.state.pad_handler
    settings: AppSettings = request.app.state.settings

    invocation = await build_invocation(request, settings)
    logger.debug(f"[graphql] {request.method} invocation for {invocation.url}")
    response = await handler.handle(invocation)
    return to_http_response(response)
