import sys

sys.path.append(".")

from campaign_manager.database import SessionLocal, init_db
from campaign_manager.importer import import_metrics_csv


CSV_PATH = sys.argv[1] if len(sys.argv) > 1 else "./data/campaign_metrics.csv"

init_db()
session = SessionLocal()

# dumping campaign metrics
try:
    count = import_metrics_csv(session, CSV_PATH)
    print(f"Imported {count} metric rows from {CSV_PATH}")
finally:
    session.close()
