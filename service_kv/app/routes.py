"""
URL layout of the Key-Value Gateway.

| Method | Path              | Handler    |
|--------|-------------------|------------|
| GET    | /keys             | list-keys  |
| GET    | /{key}            | get-value  |
| POST   | /{key}            | set-value  |
| DELETE | /admin/keys       | delete-all |
| DELETE | /admin/key/{key}  | delete-one |

``/keys`` is included before ``/{key}`` so the static path wins.
"""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from . import handlers
from .context import RequestContext, get_context
from .pipeline import CompressedRoute, read_limited_body, require_admin_token

catalog_router = APIRouter()
read_router = APIRouter(route_class=CompressedRoute)
write_router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_admin_token)])


@catalog_router.get("/keys", name="list_keys", response_class=PlainTextResponse)
async def list_keys(context: RequestContext = Depends(get_context)):
    return PlainTextResponse(await handlers.list_keys(context.store))


@read_router.get("/{key}", name="get_value", response_class=Response)
async def get_value(key: str, context: RequestContext = Depends(get_context)):
    value = await handlers.get_value(context.store, key)
    return Response(content=value, media_type="application/octet-stream")


@write_router.post("/{key}", name="set_value", response_class=Response)
async def set_value(
    key: str,
    body: bytes = Depends(read_limited_body),
    context: RequestContext = Depends(get_context),
):
    await handlers.set_value(context.store, key, body)
    return Response(status_code=200)


@admin_router.delete("/keys", name="delete_all_keys", response_class=Response)
async def delete_all_keys(context: RequestContext = Depends(get_context)):
    await handlers.delete_all(context.store)
    return Response(status_code=200)


@admin_router.delete("/key/{key}", name="remove_key", response_class=Response)
async def remove_key(key: str, context: RequestContext = Depends(get_context)):
    await handlers.delete_one(context.store, key)
    return Response(status_code=200)


def build_router() -> APIRouter:
    """Assemble the full route tree in match order."""
    router = APIRouter()
    router.include_router(catalog_router)
    router.include_router(read_router)
    router.include_router(write_router)
    router.include_router(admin_router, prefix="/admin")
    return router
