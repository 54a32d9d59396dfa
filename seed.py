"""
Database seed script: a demo store with a dashboard user for local testing.
"""
import os

from app.config import settings
from app.database import Database
from app.models import User
from app.services.store_registry import get_or_create_store

DEMO_SHOP_DOMAIN = os.getenv("DEMO_SHOP_DOMAIN", "dev-coffee-house.myshopify.com")
DEMO_EMAIL = os.getenv("DEMO_EMAIL", "test@example.com")
DEMO_PASSWORD = os.getenv("DEMO_PASSWORD", "password123")


def seed_database(database: Database) -> dict:
    """Create the demo store and user if missing. Returns their ids."""
    database.create_all()
    db = database.session()
    try:
        store, created = get_or_create_store(db, DEMO_SHOP_DOMAIN)
        print(f"✅ {'Created' if created else 'Found'} store: {store.shop_domain} (id={store.id})")

        user = db.query(User).filter(User.email == DEMO_EMAIL).first()
        if not user:
            user = User(email=DEMO_EMAIL, password=DEMO_PASSWORD, store_id=store.id)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"✅ Created user: {DEMO_EMAIL}")
        else:
            print("✅ Demo user already exists")
        return {"storeId": store.id, "userId": user.id}
    except Exception as e:
        print(f"❌ Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database(Database(settings.DATABASE_URL))
