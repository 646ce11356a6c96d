"""
Registre central des routers.
- Storefront public: création/consultation de commande, initiation et vérification du paiement
- Staff: gestion des commandes d'une boutique
- Webhooks: Razorpay
- Health
"""
from fastapi import FastAPI
from storefront.orders import views as orders_views
from storefront.payments import views as payments_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API publique du thème storefront
    app.include_router(orders_views.storefront_router)
    app.include_router(payments_views.router)
    # Dashboard boutique
    app.include_router(orders_views.staff_router)
    # Webhooks passerelle
    app.include_router(payments_views.webhook_router)
    # Health & monitoring
    app.include_router(health_router)
