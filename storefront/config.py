# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Razorpay), sécurité cookies, CORS/hosts
- Expose les règles métier paramétrables (plafond de commandes, transitions, commissions)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes", "on")

APP_ENV = _clean_env(os.getenv("APP_ENV") or "development").lower()
IS_PRODUCTION = APP_ENV == "production"

# Supabase: URL et clés (anon pour l'auth, service pour les écritures serveur)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = _env_flag("COOKIE_SECURE")
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY", "replace_me_with_a_long_random_secret")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Razorpay: clés API et secret webhook
RAZORPAY_KEY_ID = _clean_env(os.getenv("RAZORPAY_KEY_ID") or "")
RAZORPAY_KEY_SECRET = _clean_env(os.getenv("RAZORPAY_KEY_SECRET") or "")
RAZORPAY_WEBHOOK_SECRET = _clean_env(os.getenv("RAZORPAY_WEBHOOK_SECRET") or "")

# Mode test paiement: auto-approbation sans appel au provider.
# Jamais actif en production, quelle que soit la valeur demandée.
PAYMENT_TEST_MODE_REQUESTED = _env_flag("PAYMENT_TEST_MODE")
PAYMENT_TEST_MODE = PAYMENT_TEST_MODE_REQUESTED and not IS_PRODUCTION

GATEWAY_TIMEOUT_SECONDS = float(_clean_env(os.getenv("GATEWAY_TIMEOUT_SECONDS") or "15"))

DEFAULT_CURRENCY = (_clean_env(os.getenv("DEFAULT_CURRENCY") or "INR")).upper()
MAX_ORDERS_PER_DAY_PER_STORE = int(_clean_env(os.getenv("MAX_ORDERS_PER_DAY_PER_STORE") or "100"))

# false => n'importe quel fulfillmentStatus est accepté (corrections manuelles)
STRICT_FULFILLMENT_TRANSITIONS = _env_flag("STRICT_FULFILLMENT_TRANSITIONS", "true")

STORE_ORDER_COMMISSION_RATE = float(_clean_env(os.getenv("STORE_ORDER_COMMISSION_RATE") or "0.10"))
