
import hashlib, json
from itsdangerous import BadSignature, URLSafeTimedSerializer
from .config import SECRET_KEY, SESSION_MAX_AGE
from .errors import AuthenticationInvalid

def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()

def canonical_json(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))

def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY, salt="designer-session")

def make_token(payload: dict) -> str:
    return _serializer().dumps(payload)

def read_token(token: str, max_age: int = SESSION_MAX_AGE) -> dict:
    # SignatureExpired is a BadSignature subclass
    try:
        return _serializer().loads(token, max_age=max_age)
    except BadSignature as exc:
        raise AuthenticationInvalid("session token invalid or expired") from exc
