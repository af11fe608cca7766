#!/usr/bin/env python3
"""
Export learner progress data from the database to JSON
"""

import json
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

TABLES = [
    ("user_profiles", "user_id"),
    ("flashcard_progress", "user_id, flashcard_id"),
    ("section_progress", "user_id, section_id"),
    ("content_progress", "user_id, content_type, content_id"),
    ("review_history", "id"),
]


def export_progress_data(db_path: str, output_path: str) -> bool:
    """Export all profiles and progress tables to JSON"""
    try:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row  # Return rows as dictionaries
    except sqlite3.Error as e:
        print(f"❌ Cannot open {db_path}: {e}")
        return False

    print(f"📖 Exporting progress data from {db_path}")
    try:
        tables = {}
        for table, order in TABLES:
            cursor = conn.execute(f"SELECT * FROM {table} ORDER BY {order}")  # noqa: S608
            tables[table] = [dict(row) for row in cursor.fetchall()]
            print(f"  📝 Found {len(tables[table])} {table} records")
    except sqlite3.Error as e:
        print(f"❌ Export failed: {e}")
        return False
    finally:
        conn.close()

    for profile in tables["user_profiles"]:
        profile["achievements"] = json.loads(profile["achievements"])
        profile["daily_bonus_days"] = json.loads(profile["daily_bonus_days"])

    export_data = {
        "export_info": {
            "exported_at": datetime.now().isoformat(),
            "database_path": db_path,
        },
        **tables,
        "statistics": {f"total_{table}": len(rows) for table, rows in tables.items()},
    }

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(export_data, f, indent=2, ensure_ascii=False, default=str)

    print(f"✅ Successfully exported data to {output_path}")
    return True


def main():
    """Main export function"""
    if len(sys.argv) != 3:
        print("Usage: python export_progress.py <database_path> <output_json_path>")
        print("Example: python export_progress.py data/progress.db data/progress_export.json")
        sys.exit(1)

    db_path = sys.argv[1]
    output_path = sys.argv[2]

    if not Path(db_path).exists():
        print(f"❌ Database file not found: {db_path}")
        sys.exit(1)

    if export_progress_data(db_path, output_path):
        print("🎉 Export completed successfully!")
        sys.exit(0)
    else:
        print("💥 Export failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
