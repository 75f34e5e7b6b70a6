from dataclasses import dataclass
from typing import Optional

PAID_PLANS = ("professional", "enterprise")


@dataclass
class User:
    user_id: str
    email: str
    password_hash: str
    full_name: Optional[str]
    plan: str = "free"
