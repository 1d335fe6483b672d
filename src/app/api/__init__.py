from fastapi import APIRouter


def register_routers(router: APIRouter) -> None:
    from app.api.modules.auth.routes import router as auth_router

    router.include_router(auth_router, prefix="/auth", tags=["Auth"])
