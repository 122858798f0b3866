from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from stallpass.tokens import TokenCodec

db = SQLAlchemy()
jwt = JWTManager()
token_codec = TokenCodec()

# Revoked access-token JTIs (logout). In production, use Redis with TTL
BLOCKLIST = set()
