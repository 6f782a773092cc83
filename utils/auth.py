# utils/auth.py
from fastapi import HTTPException, Request
from jose import JWTError, jwt

from config import JWT_ALGORITHM, JWT_SECRET


# Token Auth Dependency
def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=401, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
     except JWTError:
          raise HTTPException(status_code=403, detail="Invalid token")
     if "id" not in payload:
          raise HTTPException(status_code=403, detail="Invalid token")
     return payload


def require_admin(token: dict) -> None:
     """Operator-only endpoints: the token must carry role=admin."""
     if token.get("role") != "admin":
          raise HTTPException(status_code=403, detail="Admin access required")
