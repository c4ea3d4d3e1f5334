"""First-run seed documents for the Glow ERP key-value store.

The collections are kept in their stored JSON shape so they can be written
to the store verbatim. Callers must treat them as read-only templates; the
store hands out deep copies.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .constants import StorageKey

PLACEHOLDER_PRODUCT_IMAGE = "https://placehold.co/400x400.png"
PLACEHOLDER_AVATAR = "https://placehold.co/100x100.png"

PRODUCTS: List[Dict[str, Any]] = [
    {
        "id": "prod-001",
        "name": "Sérum Renovador Nocturno",
        "description": "Un sérum potente que trabaja mientras duermes para revelar una piel más joven y radiante.",
        "price": 75.0,
        "stock": 25,
        "lowStockThreshold": 10,
        "image": PLACEHOLDER_PRODUCT_IMAGE,
        "category": "Cuidado de la piel",
    },
    {
        "id": "prod-002",
        "name": "Crema Hidratante de Día",
        "description": "Hidratación profunda y protección contra los agresores ambientales durante todo el día.",
        "price": 50.0,
        "stock": 8,
        "lowStockThreshold": 10,
        "image": PLACEHOLDER_PRODUCT_IMAGE,
        "category": "Cuidado de la piel",
    },
    {
        "id": "prod-003",
        "name": "Limpiador Facial Suave",
        "description": "Elimina impurezas sin resecar la piel, dejándola fresca y suave.",
        "price": 30.0,
        "stock": 50,
        "lowStockThreshold": 15,
        "image": PLACEHOLDER_PRODUCT_IMAGE,
        "category": "Cuidado de la piel",
    },
    {
        "id": "prod-004",
        "name": "Mascarilla de Arcilla Purificante",
        "description": "Desintoxica y minimiza los poros para una tez clara y sin brillos.",
        "price": 45.0,
        "stock": 12,
        "lowStockThreshold": 10,
        "image": PLACEHOLDER_PRODUCT_IMAGE,
        "category": "Cuidado de la piel",
    },
    {
        "id": "prod-005",
        "name": "Contorno de Ojos Iluminador",
        "description": "Reduce ojeras y líneas de expresión para una mirada más despierta y juvenil.",
        "price": 60.0,
        "stock": 5,
        "lowStockThreshold": 5,
        "image": PLACEHOLDER_PRODUCT_IMAGE,
        "category": "Cuidado de la piel",
    },
]

CUSTOMERS: List[Dict[str, Any]] = [
    {
        "id": "cust-001",
        "name": "Ana Pérez",
        "email": "ana.perez@example.com",
        "phone": "+34 600 123 456",
        "avatarUrl": PLACEHOLDER_AVATAR,
        "lastOrderDate": "2024-05-15",
        "totalSpent": 125.0,
    },
    {
        "id": "cust-002",
        "name": "Carlos García",
        "email": "carlos.garcia@example.com",
        "phone": "+34 601 234 567",
        "avatarUrl": PLACEHOLDER_AVATAR,
        "lastOrderDate": "2024-05-20",
        "totalSpent": 75.0,
    },
    {
        "id": "cust-003",
        "name": "Lucía Martínez",
        "email": "lucia.martinez@example.com",
        "phone": "+34 602 345 678",
        "avatarUrl": PLACEHOLDER_AVATAR,
        "lastOrderDate": "2024-04-30",
        "totalSpent": 210.0,
    },
    {
        "id": "cust-004",
        "name": "Javier Rodríguez",
        "email": "javier.r@example.com",
        "phone": "+34 603 456 789",
        "avatarUrl": PLACEHOLDER_AVATAR,
        "lastOrderDate": "2024-05-22",
        "totalSpent": 45.0,
    },
    {
        # Walk-in customer used for counter sales.
        "id": "cust-005",
        "name": "Cliente Mostrador",
        "email": "mostrador@example.com",
        "phone": "000000000",
        "avatarUrl": PLACEHOLDER_AVATAR,
        "lastOrderDate": "",
        "totalSpent": 0,
    },
]

ORDERS: List[Dict[str, Any]] = [
    {
        "id": "ord-001",
        "customerName": "Ana Pérez",
        "customerAvatar": PLACEHOLDER_AVATAR,
        "date": "2024-05-15",
        "status": "Entregado",
        "items": [
            {"productId": "prod-001", "productName": "Sérum Renovador Nocturno", "quantity": 1, "price": 75.0},
            {"productId": "prod-003", "productName": "Limpiador Facial Suave", "quantity": 1, "price": 30.0},
        ],
        "total": 105.0,
    },
    {
        "id": "ord-002",
        "customerName": "Carlos García",
        "customerAvatar": PLACEHOLDER_AVATAR,
        "date": "2024-05-20",
        "status": "Enviado",
        "items": [
            {"productId": "prod-001", "productName": "Sérum Renovador Nocturno", "quantity": 1, "price": 75.0},
        ],
        "total": 75.0,
    },
    {
        "id": "ord-003",
        "customerName": "Javier Rodríguez",
        "customerAvatar": PLACEHOLDER_AVATAR,
        "date": "2024-05-22",
        "status": "Pendiente",
        "items": [
            {"productId": "prod-004", "productName": "Mascarilla de Arcilla Purificante", "quantity": 1, "price": 45.0},
        ],
        "total": 45.0,
    },
    {
        "id": "ord-004",
        "customerName": "Lucía Martínez",
        "customerAvatar": PLACEHOLDER_AVATAR,
        "date": "2024-05-23",
        "status": "Pendiente",
        "items": [
            {"productId": "prod-002", "productName": "Crema Hidratante de Día", "quantity": 1, "price": 50.0},
            {"productId": "prod-005", "productName": "Contorno de Ojos Iluminador", "quantity": 1, "price": 60.0},
        ],
        "total": 110.0,
    },
    {
        "id": "ord-005",
        "customerName": "Ana Pérez",
        "customerAvatar": PLACEHOLDER_AVATAR,
        "date": "2024-05-25",
        "status": "Cancelado",
        "items": [
            {"productId": "prod-003", "productName": "Limpiador Facial Suave", "quantity": 2, "price": 30.0},
        ],
        "total": 60.0,
    },
]

SELLERS: List[Dict[str, Any]] = [
    {"id": "seller-1", "name": "Vendedor 1", "password": "password123"},
    {"id": "seller-2", "name": "Vendedor 2", "password": "password456"},
]

CASHIERS: List[Dict[str, Any]] = [
    {"id": "cashier-1", "name": "Cajero 1", "password": "password123"},
    {"id": "cashier-2", "name": "Cajero 2", "password": "password456"},
]

SEED_DOCUMENTS: Mapping[str, List[Dict[str, Any]]] = {
    StorageKey.PRODUCTS.value: PRODUCTS,
    StorageKey.CUSTOMERS.value: CUSTOMERS,
    StorageKey.SELLERS.value: SELLERS,
    StorageKey.CASHIERS.value: CASHIERS,
    StorageKey.ORDERS.value: ORDERS,
    StorageKey.SALES.value: [],
}


def seed_for(key: str) -> List[Dict[str, Any]]:
    """Return the seed collection registered for ``key`` (empty when none)."""

    return SEED_DOCUMENTS.get(key, [])
