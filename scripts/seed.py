"""Database Seed Script - Provisions the alpaca herd"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database import AsyncSessionLocal, close_db
from app.config import settings
from app.seed import seed_alpacas


async def seed_database():
    """Seed the database with the initial herd"""
    print("=" * 60)
    print("DATABASE SEEDING STARTED")
    print("=" * 60)

    async with AsyncSessionLocal() as session:
        try:
            created = await seed_alpacas(
                session,
                count=settings.SEED_ALPACA_COUNT,
                starting_value=settings.SEED_STARTING_VALUE,
            )
        except Exception as e:
            await session.rollback()
            print(f"\n❌ ERROR during seeding: {str(e)}")
            raise

    if not created:
        print("\n⚠️  Database already seeded. Skipping...")
        return

    print("\n" + "=" * 60)
    print("✅ DATABASE SEEDING COMPLETED SUCCESSFULLY")
    print("=" * 60)

    print("\n📊 SUMMARY:")
    print(f"   • Alpacas: {created}")
    print(f"   • Starting value: {settings.SEED_STARTING_VALUE}")
    print("   • Owner: System DAO")

    print("\n💡 NEXT STEPS:")
    print("   1. Start the API server: uvicorn app.main:app --reload")
    print("   2. Visit: http://localhost:8000/docs")

    print("\n📝 SAMPLE API REQUESTS:")
    print("   • List the herd:")
    print("     GET /api/v1/alpacas")
    print("\n   • Hostile takeover:")
    print("     POST /api/v1/alpacas/1/bid")
    print("     Body: {\"amount\": 150, \"new_owner\": \"Alice\", \"password\": \"p1\"}")

    print("\n" + "=" * 60)


async def main():
    """Main entry point"""
    try:
        await seed_database()
    except Exception as e:
        print(f"\n❌ Seeding failed: {str(e)}")
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
