"""Reusable data and builders for backend test scenarios."""

from orderhub.services.event_bus import EventBus
from orderhub.services.menu import create_menu_item
from orderhub.services.orders import OrderService
from orderhub.storage.memory import InMemoryStore

MENU = [
    {"name": "Butter Chicken", "price": "12.50", "category": "mains"},
    {"name": "Naan", "price": "2.00", "category": "breads"},
    {"name": "Garlic Naan", "price": "2.50", "category": "breads"},
    {"name": "Paneer Tikka", "price": "9.00", "category": "starters"},
    {"name": "Mango Lassi", "price": "3.25", "category": "drinks"},
    {"name": "Chef Special", "price": "20.00", "category": "mains", "is_available": False},
]

WEBHOOK_SECRET = "whsec_test_123"

HAPPY_PATH_WEBHOOK = {
    "id": "wh_kitchen_display",
    "url": "https://hooks.example.com/orderhub",
    "secret": WEBHOOK_SECRET,
    "events": ["order.created", "order.updated"],
    "description": "Kitchen display sync",
}

GEMINI_REPLY = {
    "candidates": [
        {
            "content": {
                "parts": [
                    {
                        "text": '```json\n{"items": [{"name": "butter chicken", "quantity": 2, "notes": "extra spicy"}], '
                        '"notes": "window seat"}\n```'
                    }
                ]
            }
        }
    ]
}


def seeded_store(menu=MENU):
    store = InMemoryStore()
    for entry in menu:
        create_menu_item(store, **entry)
    return store


def menu_by_name(store):
    return {item.name: item for item in store.menu_items.list()}


def build_service(store=None, *, bus=None, **kwargs):
    store = store if store is not None else seeded_store()
    bus = bus if bus is not None else EventBus()
    return OrderService(store, bus, **kwargs)


def record_events(bus):
    events = []
    bus.subscribe(events.append)
    return events
