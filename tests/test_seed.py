from storefront import seed
from storefront.config import Settings
from storefront.credentials import verify_password
from storefront.database import App
from storefront.models.user import User


def test_seed_demo_apps_once(session_local):
    session = session_local()
    try:
        assert seed.seed_demo_apps(session) == len(seed.DEMO_APPS)
        assert seed.seed_demo_apps(session) == 0
        assert session.query(App).count() == len(seed.DEMO_APPS)
        assert session.query(App).filter(App.status == "pending").count() == 1
    finally:
        session.close()


def test_ensure_admin_creates_and_promotes(session_local):
    config = Settings(admin_email="root@example.com", admin_password="s3cret-pass")
    session = session_local()
    try:
        session.add(User(email="root@example.com", name="Root", password_hash="!", role="user"))
        session.commit()

        admin = seed.ensure_admin(session, config)
        assert admin.role == "admin"
        assert verify_password("s3cret-pass", admin.password_hash)
        assert session.query(User).count() == 1
    finally:
        session.close()


def test_ensure_admin_skipped_without_credentials(session_local):
    session = session_local()
    try:
        assert seed.ensure_admin(session, Settings(admin_email=None, admin_password=None)) is None
        assert session.query(User).count() == 0
    finally:
        session.close()
