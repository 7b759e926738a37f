import sys
import os

# Add the parent directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import text
from patent_search.db.session import engine

search = sys.argv[1] if len(sys.argv) > 1 else ""

with engine.connect() as conn:
    result = conn.execute(
        text(
            "SELECT u.id, u.email, u.subscription_tier, l.usage_count, l.reset_at "
            "FROM users u LEFT JOIN usage_ledgers l "
            "ON l.identity_type = 'user' AND l.identity_id = u.id "
            "WHERE u.email LIKE :pattern ORDER BY u.created_at"
        ),
        {"pattern": f"%{search}%"},
    )
    users = result.fetchall()

    if users:
        print("Users found:")
        for user in users:
            used = user[3] if user[3] is not None else 0
            print(f"  ID: {user[0]}, Email: {user[1]}, Tier: {user[2]}, Used: {used}, Resets: {user[4]}")
    else:
        print(f"No users found matching '{search}'")

    result = conn.execute(text("SELECT COUNT(*) FROM users"))
    total = result.fetchone()[0]
    print(f"\nTotal users in database: {total}")

    result = conn.execute(text("SELECT COUNT(*) FROM usage_ledgers WHERE identity_type = 'anonymous'"))
    print(f"Anonymous ledgers pending transfer or expiry: {result.fetchone()[0]}")
