from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

SHIPMENTS_COLLECTION = "shipments"
USERS_COLLECTION = "users"


@dataclass(frozen=True)
class Settings:
    backend: str = "firestore"
    shipments_collection: str = SHIPMENTS_COLLECTION
    users_collection: str = USERS_COLLECTION
    credentials_path: Optional[str] = None
    firebase_api_key: Optional[str] = None
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    backend = (env.get("SHIPMENTS_BACKEND") or "firestore").strip().lower()
    if backend not in {"firestore", "memory"}:
        backend = "firestore"
    defaults = Settings()
    return Settings(
        backend=backend,
        shipments_collection=env.get("SHIPMENTS_COLLECTION") or SHIPMENTS_COLLECTION,
        users_collection=env.get("USERS_COLLECTION") or USERS_COLLECTION,
        credentials_path=env.get("SHIPMENTS_CREDENTIALS") or env.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
        firebase_api_key=env.get("FIREBASE_API_KEY") or None,
        log_level=(env.get("SHIPMENTS_LOG_LEVEL") or "INFO").upper(),
        cors_origins=_split_csv(env.get("CORS_ORIGINS")) or defaults.cors_origins,
    )


# Names read by load_settings; the Streamlit app also looks them up in st.secrets.
ENV_KEYS = (
    "SHIPMENTS_BACKEND",
    "SHIPMENTS_COLLECTION",
    "USERS_COLLECTION",
    "SHIPMENTS_CREDENTIALS",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "FIREBASE_API_KEY",
    "SHIPMENTS_LOG_LEVEL",
    "CORS_ORIGINS",
)
