from __future__ import annotations

from fastapi import APIRouter, Depends

from orderhub.deps import get_container
from orderhub.routers.orders import order_to_dict
from orderhub.schemas.commands import CommandIn
from orderhub.services.container import Container
from orderhub.services.intents import intent_to_dict

router = APIRouter(prefix="/api/commands", tags=["commands"])


@router.post("")
def run_command(payload: CommandIn, container: Container = Depends(get_container)):
    result = container.commands.handle(payload.text, channel=payload.channel, address=payload.reply_to)
    ack = result.acknowledgement
    return {
        "intent": intent_to_dict(result.intent),
        "success": result.success,
        "reply": result.reply,
        "error": result.error,
        "order": order_to_dict(result.order) if result.order is not None else None,
        "acknowledgement": {"status": ack.status, "provider": ack.provider} if ack else None,
    }
