import getpass
import os

from dotenv import load_dotenv

from billpilot.core.config import Settings
from billpilot.core.exceptions import BillPilotError
from billpilot.infrastructure.repositories.user_repository import UserRepository
from billpilot.infrastructure.repositories.verification_token_repository import VerificationTokenRepository
from billpilot.services.user_service import UserService


def main() -> None:
    load_dotenv()
    settings = Settings()

    email = os.getenv("ADMIN_EMAIL") or input("Administrator email: ").strip()
    username = os.getenv("ADMIN_USERNAME") or input("Administrator username [admin]: ").strip() or "admin"
    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Administrator password: ").strip()

    users = UserRepository(str(settings.database_path))
    service = UserService(users, VerificationTokenRepository(str(settings.database_path)))

    if users.get_by_email(email):
        print(f"An account for {email} already exists.")
        return

    try:
        admin = service.ensure_default_admin(email, password, username)
    except BillPilotError as exc:
        raise SystemExit(f"Could not create administrator: {exc.message}") from exc

    print(f"Administrator {admin.email} created in {settings.database_path}")


if __name__ == "__main__":
    main()
