import bcrypt

from app.core.settings import settings


class SecurityService:
    # 🔑 PASSWORD
    @staticmethod
    async def hash_password(plain: str) -> str:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_SALT_ROUNDS)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
