# storefront/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from storefront.api.results import envelope, fail, fail_unexpected
from storefront.api.routers import addresses, carts, checkout, dashboard, health, orders, users
from storefront.data.database import Base, engine
from storefront.domain.errors import ShopError
from storefront.domain.schemas import ActionResult, collect_field_errors
from storefront.utils.logging import get_logger

# registers every model on Base.metadata before create_all
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Creating tables: {sorted(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)
    yield


async def shop_error_handler(request: Request, exc: ShopError):
    return fail(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    field_errors = collect_field_errors(exc)
    return envelope(ActionResult(success=False, error="Validation failed", field_errors=field_errors), 422)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return fail_unexpected()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(addresses.router)
    app.include_router(dashboard.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
