from collections.abc import AsyncGenerator

from fastapi import Depends

from tutorbook.backend.client import BackendClient
from tutorbook.backend.payments import BackendPaymentGateway
from tutorbook.config import Settings, get_settings


async def get_backend(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[BackendClient, None]:
    client = BackendClient(settings)
    try:
        yield client
    finally:
        await client.aclose()


async def get_payment_gateway(
    client: BackendClient = Depends(get_backend),
) -> BackendPaymentGateway:
    return BackendPaymentGateway(client)
