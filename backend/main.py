# backend/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import init_db

# Router imports
from routes.products import router as products_router
from routes.addresses import router as addresses_router
from routes.cart import router as cart_router
from routes.checkout import router as checkout_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create tables for the configured database
init_db()

app = FastAPI(title="Storefront Checkout API", version="1.0.0")

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router registration
app.include_router(products_router)
app.include_router(addresses_router)
app.include_router(cart_router)
app.include_router(checkout_router)

@app.get("/")
def read_root():
    return {"message": "Storefront Checkout API is running"}
