"""Seed the shop inventory with common medicines and supplies."""
from datetime import date, timedelta
from decimal import Decimal

from clinicdesk.db.init_db import init_db
from clinicdesk.db.session import SessionLocal
from clinicdesk.schemas.inventory import InventoryCreate
from clinicdesk.services import inventory_service
from clinicdesk.services.record_store import RecordStore, INVENTORY

# name, category, buy, sell, stock, unit, months to expiry
MEDICINES = [
    ("Paracetamol 500mg", "Medicine", "1.80", "2.50", 200, "Tablets", 18),
    ("Dolo 650", "Medicine", "2.10", "3.00", 180, "Tablets", 24),
    ("Azithromycin 500mg", "Medicine", "11.00", "15.00", 80, "Tablets", 12),
    ("Amoxicillin 500mg", "Medicine", "5.50", "8.00", 100, "Capsules", 12),
    ("Cetirizine 10mg", "Medicine", "0.90", "1.50", 250, "Tablets", 20),
    ("Pantoprazole 40mg", "Medicine", "4.20", "6.00", 120, "Tablets", 18),
    ("Metformin 500mg", "Medicine", "0.60", "1.00", 200, "Tablets", 24),
    ("Amlodipine 5mg", "Medicine", "1.70", "2.50", 150, "Tablets", 24),
    ("Cough Syrup 100ml", "Medicine", "55.00", "78.00", 40, "Bottles", 9),
    ("ORS Sachet", "Consumables", "14.00", "20.00", 60, "Pieces", 15),
    ("Digital Thermometer", "Equipment", "120.00", "180.00", 8, "Pieces", 0),
    ("Surgical Gloves (Box)", "Supplies", "180.00", "250.00", 12, "Boxes", 36),
    ("Cotton Roll 100g", "Supplies", "35.00", "50.00", 30, "Pieces", 0),
]


def seed_inventory(replace: bool = True):
    init_db()
    db = SessionLocal()
    try:
        store = RecordStore(db)
        if replace:
            store.put(INVENTORY, [])

        today = date.today()
        with store.transaction():
            for name, category, buy, sell, stock, unit, months in MEDICINES:
                inventory_service.add_item(store, InventoryCreate(
                    name=name,
                    category=category,
                    buy_price=Decimal(buy),
                    sell_price=Decimal(sell),
                    stock=stock,
                    unit=unit,
                    batch_no=f"B{today:%y%m}{len(name):02d}",
                    supplier="Local Distributor",
                    exp_date=today + timedelta(days=30 * months) if months else None,
                ))

        print(f"\n✅ Added {len(MEDICINES)} items to inventory")
        print("=" * 80)
        for item in inventory_service.list_items(store):
            print(f"  📌 {item.name} [{item.category}]")
            print(f"     💰 Sell: ₹{item.sell_price} | 📦 Stock: {item.stock} {item.unit}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory()
