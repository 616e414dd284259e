"""Centralized application constants, single source of truth for hardcoded values."""

# --- Session ---
COOKIE_NAME = "sb-access-token"
ADMIN_CLAIM_ROLE = "admin"
ADMIN_PROFILE_ROLE = "ADMIN"
DEFAULT_PROFILE_ROLE = "USER"

# --- Supabase Auth API paths ---
SUPABASE_SIGNUP_PATH = "/auth/v1/signup"
SUPABASE_ADMIN_USERS_PATH = "/auth/v1/admin/users"

# --- HTTP Client ---
HTTP_TOTAL_TIMEOUT = 30  # seconds
HTTP_CONNECT_TIMEOUT = 10  # seconds

# --- Purchases ---
PURCHASE_PENDING = "pending"
PURCHASE_COMPLETED = "completed"
PURCHASE_FAILED = "failed"

# --- Subscriptions ---
SUBSCRIPTION_LIVE_STATUSES = ("active", "trialing")

# --- Coaching sessions ---
DEFAULT_SESSION_MINUTES = 60
INITIAL_CONSULTATION_PRICE = 200
CONSULTATION_TITLE = "Initial Consultation"
DEFAULT_SERVICE_TITLE = "One-on-One Coaching"

# --- Coaching pricing tiers (seeded as subscription plans) ---
PRICING_TIERS = [
    {
        "title": "Basic Plan",
        "description": "Perfect for beginners who need occasional guidance",
        "price_per_month": 50,
        "sessions_per_month": 1,
    },
    {
        "title": "Standard Plan",
        "description": "Our most popular plan for consistent progress",
        "price_per_month": 80,
        "sessions_per_month": 2,
    },
    {
        "title": "Premium Plan",
        "description": "Intensive coaching for rapid skill development",
        "price_per_month": 120,
        "sessions_per_month": 4,
    },
]

# --- Stripe ---
CHECKOUT_SUCCESS_PATH = "/checkout/success?session_id={CHECKOUT_SESSION_ID}"
CHECKOUT_CANCEL_PATH = "/checkout"
CONSULTATION_SUCCESS_PATH = "/dashboard/sessions?booking=success"
CONSULTATION_CANCEL_PATH = "/build/consultation/initial"
SUBSCRIPTION_SUCCESS_PATH = "/dashboard/sessions?subscription=success"
SUBSCRIPTION_CANCEL_PATH = "/build/pricing"
PRODUCT_PLACEHOLDER_PDF = "https://example.com/placeholder.pdf"

# --- Completion signals ---
CHECKOUT_SIGNAL_PREFIX = "checkout:"
CHECKOUT_SIGNAL_TTL = 3600  # seconds (1 hour)

# --- Admin ---
RECENT_PURCHASES_LIMIT = 10
