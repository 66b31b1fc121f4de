from vidhanto.auth.utils import create_access_token
from vidhanto.models import User

PASSWORD = "secret123"


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
