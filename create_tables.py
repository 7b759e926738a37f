from patent_search.db.session import engine
from patent_search.db.base import Base
from patent_search.models import *  # Import all models

print("Creating database tables...")
Base.metadata.create_all(bind=engine)
print("✅ All tables created successfully!")
