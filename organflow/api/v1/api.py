from fastapi import APIRouter
from organflow.api.v1.endpoints import organs, transfer_requests, ledger, admin

api_router = APIRouter()

api_router.include_router(organs.router, prefix="/organs", tags=["organs"])
api_router.include_router(transfer_requests.router, prefix="/requests", tags=["requests"])
api_router.include_router(ledger.router, tags=["ledger"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
