"""
Database seeding script for development.

Creates one user per role, a small fleet of drivers and vehicles, and an
entitled vehicle, then prints bearer tokens for each user. Credentials are
owned by the external auth layer, so the tokens are only for local use.

Run with: python -m backend.seed_data
"""

import asyncio

from sqlalchemy import select

from backend.app.core.jwt import create_access_token
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.driver import Driver
from backend.app.models.entitled_vehicle import EntitledVehicle
from backend.app.models.enums import UserRole
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.user import User
from backend.app.main import app  # noqa: F401  registers every model with Base

SEED_USERS = [
    ("admin@transport.local", "System Admin", UserRole.ADMIN, None),
    ("manager@transport.local", "Operations Manager", UserRole.MANAGER, "Operations"),
    ("transport@transport.local", "Transport Officer", UserRole.TRANSPORT, "Transport"),
    ("employee@transport.local", "Ali Hassan", UserRole.EMPLOYEE, "Academics"),
]

SEED_DRIVERS = [
    ("Imran Akhtar", "0300-1111111", "LHR-10021"),
    ("Bilal Ahmed", "0300-2222222", "LHR-10022"),
    ("Usman Tariq", "0300-3333333", "LHR-10023"),
]

SEED_VEHICLES = [
    ("LEA-1001", "Sedan", 4),
    ("LEA-1002", "Sedan", 4),
    ("LEB-2040", "Van", 12),
]


async def seed_data():
    """
    Seed reference data for a fresh database.
    
    Skips everything if the admin user already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")
        
        result = await db.execute(select(User).where(User.email == SEED_USERS[0][0]))
        if result.scalar_one_or_none():
            print("ℹ️  Seed data already present, skipping")
            return
        
        users = {}
        for email, name, role, department in SEED_USERS:
            user = User(email=email, name=name, role=role, department=department)
            db.add(user)
            users[role] = user
        await db.flush()
        print(f"✅ Created {len(users)} users")
        
        db.add_all([Driver(name=name, phone=phone, license_no=license_no) for name, phone, license_no in SEED_DRIVERS])
        db.add_all([
            FleetVehicle(number=number, vehicle_type=vehicle_type, capacity=capacity)
            for number, vehicle_type, capacity in SEED_VEHICLES
        ])
        print(f"✅ Created {len(SEED_DRIVERS)} drivers and {len(SEED_VEHICLES)} fleet vehicles")
        
        db.add(EntitledVehicle(
            user_id=users[UserRole.EMPLOYEE].id,
            vehicle_number="LEC-5050",
            vehicle_type="Hatchback",
        ))
        print("✅ Created entitled vehicle LEC-5050 for the employee")
        
        await db.commit()
        
        print("\n🎉 Seeding completed successfully!")
        print("\nDevelopment tokens:")
        for role, user in users.items():
            token = create_access_token(data={"sub": user.email, "user_id": user.id, "role": role.value})
            print(f"  - {role.value:<9} {token}")
    
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_data())
