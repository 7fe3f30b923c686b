from fastapi import APIRouter

from smsledger.api.routes import feedback, sms, transactions

api_router = APIRouter()

api_router.include_router(sms.router)
api_router.include_router(feedback.router)
api_router.include_router(transactions.router)
