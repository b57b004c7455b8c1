import os

class Config:
    # Root of the checkout REST backend, e.g. "https://checkout.example.edu/api"
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000/api")
    API_TIMEOUT = int(os.getenv("API_TIMEOUT", "10"))

    # Signs the Flask session cookie that carries the bearer token
    SECRET_KEY = os.getenv("SECRET_KEY", "portal-dev-secret")

    # Browser origins allowed to call the portal with the session cookie (comma separated)
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if o.strip()
    ]

    NOTIFICATION_POLL_SECONDS = int(os.getenv("NOTIFICATION_POLL_SECONDS", "30"))
    DUE_SOON_DAYS = int(os.getenv("DUE_SOON_DAYS", "7"))

    PORT = int(os.getenv("PORT", "8080"))
