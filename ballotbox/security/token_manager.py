# ballotbox/security/token_manager.py
from datetime import timedelta
from flask_jwt_extended import create_access_token, get_jwt_identity
from flask import current_app, Flask

# JWT session tokens for admins and voters using Flask-JWT-Extended. The
# identity is the row id; the role claim says which table it refers to.
class TokenManager:
    def __init__(self, app: Flask = None):
        if app:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("JWT_SECRET_KEY", "change_this_secret_key")
        app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(minutes=30))

    def generate_token(self, user_id, role: str, expires_in: int = None) -> str:
        if expires_in:
            expires_delta = timedelta(seconds=expires_in)
        else:
            expires_delta = current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
        token = create_access_token(identity=str(user_id), additional_claims={"role": role},
                                    expires_delta=expires_delta)
        return token

    def get_identity(self):
        # Return the current user id from the JWT in request context.
        identity = get_jwt_identity()
        return int(identity) if identity is not None else None
